"""
Row sources for uploaded export files.

Every supported format (delimited text, XLSX, legacy XLS) is exposed as a
``RowSource``: headers parsed once, then a lazy, ordered stream of
``Row`` objects keyed by header name. Iteration can restart from any data
row offset, which is what validation, preview and import rely on.
"""
import codecs
import csv
import io
import itertools
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence

import openpyxl
import pandas as pd

from migration_engine.core.config import settings
from migration_engine.domain.migrations.errors import UnreadableSource

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]
FORMAT_BY_EXTENSION = {
    ".csv": "csv",
    ".txt": "csv",
    ".tsv": "csv",
    ".xlsx": "xlsx",
    ".xls": "xls",
}
FALLBACK_ENCODINGS = ["utf-8", "cp1252", "latin-1"]
_ENCODING_SAMPLE_BYTES = 1024 * 1024
_BOMS = [
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
]


@dataclass
class Row:
    """One data row. ``index`` is zero-based and excludes the header row."""
    index: int
    fields: Dict[str, str]
    error: Optional[str] = None

    @property
    def number(self) -> int:
        return self.index + 1


def normalize_headers(raw_headers: Sequence[Any]) -> List[str]:
    """Strip header names, name blank cells and de-duplicate repeated names."""
    headers: List[str] = []
    seen: Dict[str, int] = {}
    for position, raw in enumerate(raw_headers, start=1):
        name = "" if raw is None else str(raw).replace("\ufeff", "").strip()
        if not name:
            name = f"column_{position}"
        key = name.lower()
        if key in seen:
            seen[key] += 1
            name = f"{name}_{seen[key]}"
        else:
            seen[key] = 1
        headers.append(name)
    return headers


def _is_blank(values: Sequence[Any]) -> bool:
    return all(v is None or str(v).strip() == "" for v in values)


def _cell_to_text(value: Any) -> str:
    """Render a spreadsheet cell the way a CSV export would carry it."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return ""
        return _cell_to_text(value.to_pydatetime())
    return str(value)


class RowSource:
    """Base class: subclasses provide ``_iter_raw`` yielding lists of cells."""

    file_format = "csv"

    def __init__(self, file_name: str, opener: Callable[[], BinaryIO]):
        self.file_name = file_name
        self._opener = opener
        self.encoding: Optional[str] = None
        self.delimiter: Optional[str] = None
        self.headers: List[str] = []

    def _iter_raw(self) -> Iterator[List[Any]]:
        raise NotImplementedError

    def _read_headers(self) -> None:
        for raw in self._iter_raw():
            if _is_blank(raw):
                continue
            self.headers = normalize_headers(raw)
            break
        if not self.headers:
            raise UnreadableSource(f"{self.file_name}: no columns found")

    def _build_row(self, index: int, raw: List[Any]) -> Row:
        cells = [_cell_to_text(v) for v in raw]
        expected = len(self.headers)
        error = None
        if len(cells) != expected:
            error = f"Expected {expected} columns, found {len(cells)}"
        padded = cells + [""] * max(0, expected - len(cells))
        return Row(index=index, fields=dict(zip(self.headers, padded)), error=error)

    def iter_rows(self, start: int = 0) -> Iterator[Row]:
        """Yield data rows in file order, skipping the first ``start`` rows."""
        header_seen = False
        index = 0
        for raw in self._iter_raw():
            if _is_blank(raw):
                continue
            if not header_seen:
                header_seen = True
                continue
            if index >= start:
                yield self._build_row(index, raw)
            index += 1

    def sample(self, n: int) -> List[Row]:
        return list(itertools.islice(self.iter_rows(), n))

    def count_rows(self) -> int:
        return sum(1 for _ in self.iter_rows())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.file_name!r} columns={len(self.headers)}>"


class DelimitedRowSource(RowSource):
    file_format = "csv"

    def __init__(self, file_name: str, opener: Callable[[], BinaryIO]):
        super().__init__(file_name, opener)
        sample_text = self._sniff_encoding()
        self.delimiter = detect_delimiter(sample_text, settings.delimiter_sample_lines)
        self._read_headers()

    def _sniff_encoding(self) -> str:
        with self._opener() as handle:
            head = handle.read(_ENCODING_SAMPLE_BYTES)
        if not head.strip():
            raise UnreadableSource(f"{self.file_name}: file is empty")

        for bom, encoding in _BOMS:
            if head.startswith(bom):
                self.encoding = encoding
                return head.decode(encoding, errors="ignore")

        for encoding in FALLBACK_ENCODINGS:
            decoder = codecs.getincrementaldecoder(encoding)()
            try:
                # final=False tolerates a multi-byte character cut at the sample boundary
                text = decoder.decode(head, final=False)
            except UnicodeDecodeError:
                continue
            self.encoding = encoding
            return text
        raise UnreadableSource(f"{self.file_name}: unsupported text encoding")

    def _iter_raw(self) -> Iterator[List[Any]]:
        with self._opener() as handle:
            text = io.TextIOWrapper(handle, encoding=self.encoding, newline="")
            reader = csv.reader(text, delimiter=self.delimiter)
            try:
                for raw in reader:
                    yield raw
            except UnicodeDecodeError as exc:
                raise UnreadableSource(
                    f"{self.file_name}: could not decode line {reader.line_num + 1} as {self.encoding}"
                ) from exc
            except csv.Error as exc:
                raise UnreadableSource(f"{self.file_name}: line {reader.line_num}: {exc}") from exc


class XlsxRowSource(RowSource):
    file_format = "xlsx"

    def __init__(self, file_name: str, opener: Callable[[], BinaryIO]):
        super().__init__(file_name, opener)
        self._read_headers()

    def _iter_raw(self) -> Iterator[List[Any]]:
        with self._opener() as handle:
            try:
                workbook = openpyxl.load_workbook(handle, read_only=True, data_only=True)
            except Exception as exc:
                raise UnreadableSource(f"{self.file_name}: not a readable XLSX workbook ({exc})") from exc
            try:
                sheet = workbook.worksheets[0]
                # Read-only mode parses sheet XML lazily, so corruption surfaces here.
                rows = sheet.iter_rows(values_only=True)
                while True:
                    try:
                        values = next(rows)
                    except StopIteration:
                        break
                    except Exception as exc:
                        raise UnreadableSource(f"{self.file_name}: worksheet is corrupt ({exc})") from exc
                    yield _trim_trailing_empty(list(values))
            finally:
                workbook.close()

    def _build_row(self, index: int, raw: List[Any]) -> Row:
        # Read-only sheets drop trailing empty cells, so short rows are padded.
        if len(raw) < len(self.headers):
            raw = raw + [None] * (len(self.headers) - len(raw))
        return super()._build_row(index, raw)


class XlsRowSource(RowSource):
    """Legacy binary workbooks. xlrd cannot stream, so the sheet is loaded once."""

    file_format = "xls"

    def __init__(self, file_name: str, opener: Callable[[], BinaryIO]):
        super().__init__(file_name, opener)
        with self._opener() as handle:
            try:
                frame = pd.read_excel(handle, sheet_name=0, header=None, dtype=object)
                self._rows = [
                    _trim_trailing_empty([None if pd.isna(v) else v for v in record])
                    for record in frame.itertuples(index=False, name=None)
                ]
            except Exception as exc:
                raise UnreadableSource(f"{self.file_name}: not a readable XLS workbook ({exc})") from exc
        self._read_headers()

    def _iter_raw(self) -> Iterator[List[Any]]:
        return iter(self._rows)

    def _build_row(self, index: int, raw: List[Any]) -> Row:
        if len(raw) < len(self.headers):
            raw = raw + [None] * (len(self.headers) - len(raw))
        return super()._build_row(index, raw)


def _trim_trailing_empty(values: List[Any]) -> List[Any]:
    end = len(values)
    while end > 0 and (values[end - 1] is None or str(values[end - 1]).strip() == ""):
        end -= 1
    return values[:end]


def detect_delimiter(sample_text: str, max_lines: int = 20) -> str:
    """
    Pick the delimiter whose column count is most consistent across the
    first ``max_lines`` non-blank lines.

    Candidates are ranked by how many sampled lines share the most common
    column count, then by that column count. A delimiter that never splits
    a line is never chosen; comma is the fallback.
    """
    lines = [line for line in sample_text.splitlines() if line.strip()][:max_lines]
    if not lines:
        return ","

    best = None
    best_score = (0, 0)
    for delimiter in CANDIDATE_DELIMITERS:
        counts = [len(cells) for cells in csv.reader(lines, delimiter=delimiter)]
        if not counts:
            continue
        frequencies: Dict[int, int] = {}
        for count in counts:
            frequencies[count] = frequencies.get(count, 0) + 1
        mode_columns, mode_frequency = max(frequencies.items(), key=lambda item: (item[1], item[0]))
        if mode_columns <= 1:
            continue
        score = (mode_frequency, mode_columns)
        if score > best_score:
            best, best_score = delimiter, score

    if best is None:
        logger.debug("No delimiter split the sample; defaulting to comma")
        return ","
    return best


def source_format(file_name: str) -> str:
    extension = os.path.splitext(file_name or "")[1].lower()
    file_format = FORMAT_BY_EXTENSION.get(extension)
    if file_format is None:
        raise UnreadableSource(f"Unsupported file type '{extension or file_name}'")
    return file_format


_SOURCE_CLASSES = {
    "csv": DelimitedRowSource,
    "xlsx": XlsxRowSource,
    "xls": XlsRowSource,
}


def open_source(content: bytes, file_name: str) -> RowSource:
    """Open an in-memory upload."""
    file_format = source_format(file_name)
    if not content:
        raise UnreadableSource(f"{file_name}: file is empty")
    source = _SOURCE_CLASSES[file_format](file_name, lambda: io.BytesIO(content))
    logger.debug(
        "Opened %s as %s (encoding=%s delimiter=%r columns=%d)",
        file_name, file_format, source.encoding, source.delimiter, len(source.headers),
    )
    return source


def open_source_path(path: str, file_name: Optional[str] = None) -> RowSource:
    """Open a stored file without reading it into memory."""
    name = file_name or os.path.basename(path)
    file_format = source_format(name)
    if not os.path.exists(path):
        raise UnreadableSource(f"{name}: stored file is missing")
    return _SOURCE_CLASSES[file_format](name, lambda: open(path, "rb"))
