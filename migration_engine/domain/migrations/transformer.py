"""
Per-row value transformation.

Takes a source row plus the job's field mappings and produces the values
to write, grouped by target entity, together with any issues found.
Errors keep the row out of the import; warnings let it through with a
best-effort value.
"""
import hashlib
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from migration_engine.domain.migrations.connectors import Connector
from migration_engine.domain.migrations.fields import (
    NATURAL_IDENTIFIERS,
    REQUIRED_TARGETS,
    TARGET_FIELDS,
    FieldMapping,
    TransformKind,
)
from migration_engine.domain.migrations.sources import Row
from migration_engine.utils.date import parse_flexible_date

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"

TRUE_VALUES = {"yes", "true", "1", "y", "x", "anonymous", "t"}
FALSE_VALUES = {"no", "false", "0", "n", "identified", "f"}

_EMAIL_SEARCH = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
_CURRENCY = re.compile(r"[$€£¥\s]")
_VOCABULARY_KINDS = {
    TransformKind.STATUS: "status",
    TransformKind.CATEGORY: "category",
    TransformKind.SEVERITY: "severity",
}


@dataclass
class Issue:
    field: str
    severity: str
    message: str
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TransformResult:
    row_index: int
    entity_fields: Dict[str, Dict[str, Any]]
    issues: List[Issue] = field(default_factory=list)
    row_identifier: Optional[str] = None
    synthesized_identifier: bool = False
    unmapped_values: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == ERROR for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(issue.severity == WARNING for issue in self.issues)

    @property
    def errors(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.severity == ERROR]

    def flat_fields(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for values in self.entity_fields.values():
            merged.update(values)
        return merged


class TransformFailed(ValueError):
    """A value could not be converted; the field becomes null with a warning."""
    pass


def synthesize_row_id(prefix: str, fields: Dict[str, Any], ordinal: int) -> str:
    """``{PREFIX}-{first 8 hex of sha256(sorted JSON)}-R{ordinal}``."""
    payload = json.dumps(fields, sort_keys=True, default=str)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:8].upper()
    return f"{prefix}-{digest}-R{ordinal}"


def parse_number(text: str) -> float:
    value = _CURRENCY.sub("", text)
    negative = False
    if value.startswith("(") and value.endswith(")"):
        negative = True
        value = value[1:-1]
    value = value.replace(",", "")
    if value.startswith("-"):
        negative = not negative
        value = value[1:]
    try:
        number = float(value)
    except ValueError:
        raise TransformFailed(f"'{text}' is not a number")
    if negative:
        number = -number
    if number.is_integer():
        return int(number)
    return number


def parse_boolean(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise TransformFailed(f"'{text}' is not a yes/no value")


def extract_email(text: str) -> str:
    match = _EMAIL_SEARCH.search(text)
    if not match:
        raise TransformFailed(f"No email address in '{text}'")
    return match.group(0).lower()


def extract_phone(text: str) -> str:
    digits = re.sub(r"\D", "", text)
    if not 7 <= len(digits) <= 15:
        raise TransformFailed(f"'{text}' does not look like a phone number")
    return f"+{digits}" if text.strip().startswith("+") else digits


class ValueTransformer:
    """Applies mapping transforms using one connector's value dictionaries."""

    def __init__(self, connector: Connector, dayfirst: Optional[bool] = None):
        self.connector = connector
        self.dayfirst = dayfirst

    def transform_value(self, kind: TransformKind, raw: Optional[str], target: str) -> Tuple[Any, Optional[str], bool]:
        """
        Return ``(value, warning, unmapped)`` for one cell.

        ``unmapped`` is True when a vocabulary value fell back to the
        connector default.
        """
        if kind == TransformKind.IDENTITY:
            return raw, None, False

        text = "" if raw is None else str(raw).strip()
        if kind in _VOCABULARY_KINDS:
            result = self.connector.lookup_value(_VOCABULARY_KINDS[kind], text)
            if result.matched:
                return result.value, None, False
            return (
                result.value,
                f"Unrecognized {_VOCABULARY_KINDS[kind]} '{text}', defaulted to {result.value}",
                True,
            )

        if text == "":
            return None, None, False
        if kind == TransformKind.TRIM:
            return text, None, False
        if kind == TransformKind.UPPERCASE:
            return text.upper(), None, False
        if kind == TransformKind.LOWERCASE:
            return text.lower(), None, False

        try:
            if kind == TransformKind.DATE:
                parsed = parse_flexible_date(text, dayfirst=self.dayfirst, log_context=target)
                if parsed is None:
                    raise TransformFailed(f"Could not parse date '{text}'")
                return parsed, None, False
            if kind == TransformKind.NUMBER:
                return parse_number(text), None, False
            if kind == TransformKind.BOOLEAN:
                return parse_boolean(text), None, False
            if kind == TransformKind.EMAIL:
                return extract_email(text), None, False
            if kind == TransformKind.PHONE:
                return extract_phone(text), None, False
        except TransformFailed as exc:
            return None, str(exc), False

        raise ValueError(f"Unsupported transform {kind!r}")

    def transform_row(self, row: Row, mappings: Sequence[FieldMapping]) -> TransformResult:
        entity_fields: Dict[str, Dict[str, Any]] = {"case": {}, "intake": {}, "person": {}}
        result = TransformResult(row_index=row.index, entity_fields=entity_fields)

        if row.error:
            result.issues.append(Issue(field="_row", severity=ERROR, message=row.error))

        mapped_targets = set()
        for mapping in mappings:
            target = TARGET_FIELDS.get(mapping.target_field)
            if target is None:
                result.issues.append(Issue(
                    field=mapping.target_field, severity=ERROR, message="Unknown target field",
                ))
                continue
            mapped_targets.add(target.name)
            raw = row.fields.get(mapping.source_column)
            value, warning, unmapped = self.transform_value(TransformKind(mapping.transform), raw, target.name)
            if warning:
                result.issues.append(Issue(field=target.name, severity=WARNING, message=warning, value=raw))
            if unmapped:
                result.unmapped_values.append((target.name, str(raw).strip()))
            entity_fields[target.entity][target.name] = value

        flat = result.flat_fields()
        for name in REQUIRED_TARGETS:
            value = flat.get(name)
            if value is None or (isinstance(value, str) and value.strip() == ""):
                message = "Required field is empty" if name in mapped_targets else "Required field is not mapped"
                result.issues.append(Issue(field=name, severity=ERROR, message=message))

        for name in NATURAL_IDENTIFIERS:
            value = flat.get(name)
            if value not in (None, ""):
                result.row_identifier = str(value)
                break
        else:
            result.row_identifier = synthesize_row_id(self.connector.id_prefix, row.fields, row.number)
            result.synthesized_identifier = True
            result.issues.append(Issue(
                field="sourceRecordId",
                severity=WARNING,
                message=f"No record identifier; generated {result.row_identifier}",
            ))

        return result
