import pytest

from migration_engine.domain.migrations.connectors import (
    EQS,
    GENERIC_CSV,
    LEGACY_ETHICO,
    NAVEX,
    ConnectorRegistry,
    default_registry,
)
from migration_engine.domain.migrations.detection import best_candidate, detect
from migration_engine.domain.migrations.errors import ConnectorNotFound

NAVEX_HEADERS = [
    "Case Number", "Case Type", "Case Status", "Date Reported", "Description",
    "Priority", "Location", "Subject Name",
]
EQS_HEADERS = ["Report ID", "Report Type", "Created Date", "Report Text", "Status Name", "Risk Level"]
ETHICO_HEADERS = ["case_num", "riu_num", "case_type", "call_details", "intake_date", "case_status"]


def test_navex_export_is_detected_with_full_confidence():
    candidates = detect(NAVEX_HEADERS)

    top = candidates[0]
    assert top.connector_id == "NAVEX"
    assert top.confidence == 1.0
    assert top.usable is True
    assert "Case Number" in top.matched_columns


def test_eqs_export_is_detected():
    candidates = detect(EQS_HEADERS)

    assert candidates[0].connector_id == "EQS"
    assert candidates[0].usable is True


def test_legacy_ethico_export_is_detected():
    top = best_candidate(detect(ETHICO_HEADERS))

    assert top.connector_id == "LEGACY_ETHICO"
    assert top.confidence == 1.0


def test_unknown_headers_fall_back_to_generic():
    headers = ["ticket", "concern", "stage", "urgency"]

    candidates = detect(headers)
    chosen = best_candidate(candidates)

    assert chosen.connector_id == "GENERIC_CSV"
    assert chosen.confidence == pytest.approx(0.18)
    assert chosen.usable is False


def test_generic_confidence_is_capped():
    score, matched = GENERIC_CSV.score([f"col{i}" for i in range(40)])

    assert score == 0.4
    assert matched == []


def test_short_header_does_not_match_longer_column_names():
    score, matched = NAVEX.score(["id", "text"])

    assert matched == []
    assert score == 0.0


def test_every_connector_is_scored_and_sorted():
    candidates = detect(NAVEX_HEADERS)

    assert {c.connector_id for c in candidates} == {"NAVEX", "EQS", "LEGACY_ETHICO", "GENERIC_CSV"}
    confidences = [c.confidence for c in candidates]
    assert confidences == sorted(confidences, reverse=True)


def test_hint_adds_bonus_to_named_connector():
    headers = ["Report ID", "Description", "Notes"]

    without_hint = {c.connector_id: c.confidence for c in detect(headers)}
    with_hint = {c.connector_id: c.confidence for c in detect(headers, hint="eqs")}

    assert with_hint["EQS"] == pytest.approx(min(1.0, without_hint["EQS"] + 0.2))
    assert with_hint["NAVEX"] == without_hint["NAVEX"]


def test_unknown_hint_is_ignored():
    assert detect(NAVEX_HEADERS, hint="NOT_A_SYSTEM") == detect(NAVEX_HEADERS)


def test_detection_is_deterministic():
    runs = [detect(EQS_HEADERS) for _ in range(3)]

    assert runs[0] == runs[1] == runs[2]


def test_ties_keep_registry_order():
    candidates = detect(["Alpha", "Beta"])

    zero_scored = [c.connector_id for c in candidates if c.confidence == 0.0]
    assert zero_scored == ["NAVEX", "EQS", "LEGACY_ETHICO"]


def test_empty_header_list_scores_zero_for_specific_connectors():
    candidates = detect([])

    assert best_candidate(candidates).connector_id == "GENERIC_CSV"
    assert all(c.confidence == 0.0 for c in candidates if c.connector_id != "GENERIC_CSV")


def test_registry_lookup_is_case_insensitive():
    registry = default_registry()

    assert registry.get("navex") is NAVEX
    assert "legacy_ethico" in registry
    assert registry.fallback is GENERIC_CSV
    with pytest.raises(ConnectorNotFound):
        registry.get("SAP")


def test_registry_rejects_duplicate_ids():
    registry = ConnectorRegistry([NAVEX])

    with pytest.raises(ValueError):
        registry.register(NAVEX)


def test_value_lookup_exact_partial_and_default():
    assert NAVEX.lookup_value("status", "under investigation").value == "IN_PROGRESS"
    assert NAVEX.lookup_value("category", "Sexual Harassment Claim").method == "partial"
    assert NAVEX.lookup_value("category", "Sexual Harassment Claim").value == "HARASSMENT"

    fallback = NAVEX.lookup_value("status", "Limbo")
    assert fallback.matched is False
    assert fallback.value == "NEW"

    empty = EQS.lookup_value("severity", "  ")
    assert empty.matched is True
    assert empty.value == "MEDIUM"


def test_generic_numeric_severity_scale():
    values = {digit: GENERIC_CSV.lookup_value("severity", digit).value for digit in "12345"}

    assert values == {"1": "CRITICAL", "2": "HIGH", "3": "MEDIUM", "4": "HIGH", "5": "CRITICAL"}


def test_legacy_ethico_statuses_extend_generic_table():
    assert LEGACY_ETHICO.lookup_value("status", "closed no action").value == "DISMISSED"
    assert LEGACY_ETHICO.lookup_value("status", "in progress").value == "IN_PROGRESS"
