"""Exports from the legacy Ethico hotline platform (snake_case column names)."""
from migration_engine.domain.migrations.connectors.base import Connector, MarkerRule
from migration_engine.domain.migrations.connectors.generic import (
    GENERIC_CATEGORIES,
    GENERIC_SEVERITIES,
    GENERIC_STATUSES,
)

LEGACY_ETHICO_COLUMNS = (
    "case_num", "riu_num", "case_type", "narrative", "call_details",
    "intake_date", "case_status", "investigator", "site_code", "caller_type",
    "closed_date", "priority",
)

LEGACY_ETHICO_COLUMN_HINTS = {
    "case_num": "referenceNumber",
    "riu_num": "sourceRecordId",
    "case_type": "categoryName",
    "narrative": "details",
    "call_details": "details",
    "intake_date": "createdAt",
    "case_status": "status",
    "investigator": "assignedToEmail",
    "site_code": "locationName",
    "caller_type": "reporterType",
    "closed_date": "closedAt",
    "priority": "severity",
}

LEGACY_ETHICO_STATUSES = dict(
    GENERIC_STATUSES,
    **{
        "intake": "NEW",
        "triage": "NEW",
        "assigned to investigator": "IN_PROGRESS",
        "closed no action": "DISMISSED",
        "closed action taken": "CLOSED",
    },
)

LEGACY_ETHICO = Connector(
    connector_id="LEGACY_ETHICO",
    display_name="Legacy Ethico hotline",
    known_columns=LEGACY_ETHICO_COLUMNS,
    marker_rules=(
        MarkerRule(groups=(("case_num",), ("riu_num", "call_details")), bonus=0.3),
    ),
    column_hints=LEGACY_ETHICO_COLUMN_HINTS,
    value_dictionaries={
        "status": LEGACY_ETHICO_STATUSES,
        "category": GENERIC_CATEGORIES,
        "severity": GENERIC_SEVERITIES,
    },
    value_defaults={"status": "OPEN", "category": "OTHER", "severity": "MEDIUM"},
    id_prefix="ETHICO",
)
