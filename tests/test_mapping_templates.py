import pytest

from migration_engine.domain.migrations.errors import MappingError, TemplateNotFound
from migration_engine.domain.migrations.fields import FieldMapping
from migration_engine.domain.migrations.templates import (
    calculate_fingerprint,
    calculate_jaccard_similarity,
    normalize_column_name,
)

MAPPINGS = [
    {"source_column": "Case Number", "target_field": "referenceNumber"},
    {"source_column": "Description", "target_field": "details"},
    {"source_column": "Case Status", "target_field": "status", "transform": "status"},
]


def test_fingerprint_ignores_order_case_and_punctuation():
    first, normalized = calculate_fingerprint(["Case Number", "Description", "Case-Status"])
    second, _ = calculate_fingerprint(["case status", "DESCRIPTION", "case_number"])

    assert first == second
    assert normalized == ["casenumber", "casestatus", "description"]
    assert normalize_column_name("  Date (Reported) ") == "datereported"


def test_jaccard_similarity():
    assert calculate_jaccard_similarity({"a", "b"}, {"a", "b"}) == 1.0
    assert calculate_jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
    assert calculate_jaccard_similarity(set(), {"a"}) == 0.0


def test_save_and_load_round_trip(templates):
    saved = templates.save_template("tenant-a", "navex-default", MAPPINGS, connector_id="NAVEX")

    loaded = templates.load_template("tenant-a", "navex-default")

    assert saved["field_count"] == 3
    assert loaded["connector_id"] == "NAVEX"
    assert [m["target_field"] for m in loaded["mappings"]] == ["referenceNumber", "details", "status"]
    assert loaded["mappings"][0]["transform"] == "trim"
    mappings = templates.load_mappings("tenant-a", "navex-default")
    assert all(isinstance(m, FieldMapping) for m in mappings)


def test_saving_same_name_replaces_template(templates):
    templates.save_template("tenant-a", "mine", MAPPINGS)
    templates.save_template("tenant-a", "mine", MAPPINGS[:2])

    listed = templates.list_templates("tenant-a")

    assert [(t["name"], t["field_count"]) for t in listed] == [("mine", 2)]


def test_templates_are_tenant_scoped(templates):
    templates.save_template("tenant-a", "mine", MAPPINGS)

    assert templates.list_templates("tenant-b") == []
    with pytest.raises(TemplateNotFound):
        templates.load_template("tenant-b", "mine")
    assert templates.delete_template("tenant-b", "mine") is False
    assert templates.find_template_for_headers("tenant-b", ["Case Number", "Description", "Case Status"]) is None


def test_delete_template(templates):
    templates.save_template("tenant-a", "mine", MAPPINGS)

    assert templates.delete_template("tenant-a", "mine") is True
    with pytest.raises(TemplateNotFound):
        templates.load_template("tenant-a", "mine")


def test_invalid_templates_are_rejected(templates):
    with pytest.raises(MappingError):
        templates.save_template("tenant-a", "  ", MAPPINGS)
    with pytest.raises(MappingError):
        templates.save_template("tenant-a", "empty", [])
    with pytest.raises(MappingError):
        templates.save_template("tenant-a", "bad", [{"source_column": "X", "target_field": "nope"}])


def test_find_template_by_exact_header_set(templates):
    headers = ["Case Number", "Description", "Case Status", "Location"]
    templates.save_template("tenant-a", "with-headers", MAPPINGS, headers=headers)

    found = templates.find_template_for_headers("tenant-a", list(reversed(headers)))

    assert found["name"] == "with-headers"


def test_find_template_by_similar_header_set(templates):
    headers = [f"Column {i}" for i in range(10)]
    templates.save_template(
        "tenant-a",
        "wide",
        [{"source_column": "Column 0", "target_field": "details"}],
        headers=headers,
    )

    # One extra column: 10 / 11 shared.
    assert templates.find_template_for_headers("tenant-a", headers + ["Extra"])["name"] == "wide"
    # Two columns swapped out: 8 / 12 shared.
    assert templates.find_template_for_headers("tenant-a", headers[:8] + ["X", "Y"]) is None
