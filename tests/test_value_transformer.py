from datetime import datetime, timezone

import pytest

from migration_engine.domain.migrations.connectors import GENERIC_CSV, NAVEX
from migration_engine.domain.migrations.fields import FieldMapping, TransformKind
from migration_engine.domain.migrations.sources import Row
from migration_engine.domain.migrations.transformer import (
    TransformFailed,
    ValueTransformer,
    extract_email,
    extract_phone,
    parse_boolean,
    parse_number,
    synthesize_row_id,
)
from migration_engine.utils.date import detect_date_column, parse_flexible_date


def _row(index=0, error=None, **fields):
    return Row(index=index, fields=fields, error=error)


def test_parse_flexible_date_formats():
    expected = datetime(2024, 3, 15, tzinfo=timezone.utc)

    assert parse_flexible_date("2024-03-15") == expected
    assert parse_flexible_date("03/15/2024") == expected
    assert parse_flexible_date("15/03/2024") == expected
    assert parse_flexible_date("March 15, 2024") == expected
    assert parse_flexible_date("2024-03-15T10:30:00Z") == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def test_ambiguous_slashed_date_respects_dayfirst():
    assert parse_flexible_date("04/05/2024").month == 4
    assert parse_flexible_date("04/05/2024", dayfirst=True).month == 5


def test_unparseable_date_returns_none():
    assert parse_flexible_date("not a date", log_failures=False) is None
    assert parse_flexible_date("   ") is None
    assert parse_flexible_date(None) is None


def test_bare_numbers_are_not_date_columns():
    assert detect_date_column(["1", "2", "3"]) is False
    assert detect_date_column(["2024-01-01", "2024-02-01", ""]) is True


def test_parse_number_handles_currency_and_negatives():
    assert parse_number("$1,234.50") == 1234.5
    assert parse_number("(200)") == -200
    assert parse_number("-7") == -7
    assert parse_number("42") == 42
    assert isinstance(parse_number("42"), int)
    with pytest.raises(TransformFailed):
        parse_number("twelve")


def test_parse_boolean():
    assert parse_boolean("Yes") is True
    assert parse_boolean("anonymous") is True
    assert parse_boolean("N") is False
    assert parse_boolean("Identified") is False
    with pytest.raises(TransformFailed):
        parse_boolean("maybe")


def test_email_and_phone_extraction():
    assert extract_email("Jane Doe <Jane.Doe@Example.com>") == "jane.doe@example.com"
    assert extract_phone("+1 (555) 010-9999") == "+15550109999"
    assert extract_phone("555.010.1234") == "5550101234"
    with pytest.raises(TransformFailed):
        extract_email("no address here")
    with pytest.raises(TransformFailed):
        extract_phone("12")


def test_transform_value_kinds():
    transformer = ValueTransformer(NAVEX)

    assert transformer.transform_value(TransformKind.TRIM, "  hi  ", "summary") == ("hi", None, False)
    assert transformer.transform_value(TransformKind.UPPERCASE, "abc", "summary")[0] == "ABC"
    assert transformer.transform_value(TransformKind.LOWERCASE, "ABC", "summary")[0] == "abc"
    assert transformer.transform_value(TransformKind.IDENTITY, "  raw ", "summary")[0] == "  raw "
    assert transformer.transform_value(TransformKind.TRIM, "   ", "summary") == (None, None, False)
    assert transformer.transform_value(TransformKind.NUMBER, "1,000", "summary")[0] == 1000


def test_failed_conversion_becomes_null_with_warning():
    value, warning, unmapped = ValueTransformer(NAVEX).transform_value(TransformKind.DATE, "someday", "createdAt")

    assert value is None
    assert "someday" in warning
    assert unmapped is False


def test_vocabulary_values_use_connector_dictionary():
    transformer = ValueTransformer(NAVEX)

    assert transformer.transform_value(TransformKind.STATUS, "Investigating", "status") == ("IN_PROGRESS", None, False)
    assert transformer.transform_value(TransformKind.SEVERITY, "", "severity") == ("MEDIUM", None, False)

    value, warning, unmapped = transformer.transform_value(TransformKind.CATEGORY, "Alien Abduction", "categoryName")
    assert value == "OTHER"
    assert warning == "Unrecognized category 'Alien Abduction', defaulted to OTHER"
    assert unmapped is True


def test_transform_row_groups_fields_by_entity():
    mappings = [
        FieldMapping("Case Number", "referenceNumber"),
        FieldMapping("Description", "details"),
        FieldMapping("Case Status", "status", "status"),
        FieldMapping("Date Reported", "createdAt", "date"),
        FieldMapping("Subject Name", "subjectName"),
    ]
    row = _row(**{
        "Case Number": "NVX-9",
        "Description": "Something happened",
        "Case Status": "Closed",
        "Date Reported": "2024-01-15",
        "Subject Name": "Jane Doe",
    })

    result = ValueTransformer(NAVEX).transform_row(row, mappings)

    assert result.issues == []
    assert result.row_identifier == "NVX-9"
    assert result.synthesized_identifier is False
    assert result.entity_fields["case"]["status"] == "CLOSED"
    assert result.entity_fields["case"]["createdAt"] == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert result.entity_fields["intake"] == {"details": "Something happened"}
    assert result.entity_fields["person"] == {"subjectName": "Jane Doe"}


def test_empty_required_field_is_an_error():
    result = ValueTransformer(GENERIC_CSV).transform_row(
        _row(ticket="T-2", concern=""),
        [FieldMapping("ticket", "sourceRecordId"), FieldMapping("concern", "details")],
    )

    assert result.has_errors
    assert [(i.field, i.message) for i in result.errors] == [("details", "Required field is empty")]


def test_unmapped_required_field_is_an_error():
    result = ValueTransformer(GENERIC_CSV).transform_row(_row(ticket="T-1"), [FieldMapping("ticket", "sourceRecordId")])

    assert result.errors[0].message == "Required field is not mapped"


def test_ragged_row_is_an_error():
    result = ValueTransformer(GENERIC_CSV).transform_row(
        _row(error="Expected 3 columns, found 2", concern="text"),
        [FieldMapping("concern", "details")],
    )

    assert result.errors[0].field == "_row"


def test_missing_identifier_is_synthesized_with_warning():
    row = _row(index=4, concern="Report body")

    result = ValueTransformer(GENERIC_CSV).transform_row(row, [FieldMapping("concern", "details")])

    assert result.has_errors is False
    assert result.synthesized_identifier is True
    assert result.row_identifier == synthesize_row_id("CSV", {"concern": "Report body"}, 5)
    assert result.row_identifier.startswith("CSV-")
    assert result.row_identifier.endswith("-R5")
    assert result.issues[-1].severity == "warning"


def test_synthesized_identifier_is_stable():
    fields = {"b": "2", "a": "1"}

    first = synthesize_row_id("NAVEX", fields, 3)

    assert first == synthesize_row_id("NAVEX", {"a": "1", "b": "2"}, 3)
    assert first != synthesize_row_id("NAVEX", fields, 4)
    assert len(first.split("-")[1]) == 8


def test_unmapped_vocabulary_values_are_collected():
    result = ValueTransformer(GENERIC_CSV).transform_row(
        _row(ticket="T-3", concern="Third report", stage="zzz"),
        [
            FieldMapping("ticket", "sourceRecordId"),
            FieldMapping("concern", "details"),
            FieldMapping("stage", "status", "status"),
        ],
    )

    assert result.has_errors is False
    assert result.has_warnings is True
    assert result.entity_fields["case"]["status"] == "OPEN"
    assert result.unmapped_values == [("status", "zzz")]
