"""
Catch-all connector for spreadsheets from systems we have no table for.

It never claims a file on column names alone; its score only depends on
how many columns there are, so it is always available as a fallback.
Values are translated with broad dictionaries keyed by lowercase words.
"""
from migration_engine.domain.migrations.connectors.base import Connector

GENERIC_STATUSES = {
    "new": "OPEN",
    "open": "OPEN",
    "active": "OPEN",
    "pending": "PENDING",
    "awaiting": "PENDING",
    "awaiting info": "PENDING",
    "waiting": "PENDING",
    "on hold": "PENDING",
    "hold": "PENDING",
    "in progress": "IN_PROGRESS",
    "inprogress": "IN_PROGRESS",
    "investigating": "IN_PROGRESS",
    "under investigation": "IN_PROGRESS",
    "assigned": "IN_PROGRESS",
    "working": "IN_PROGRESS",
    "review": "IN_REVIEW",
    "in review": "IN_REVIEW",
    "under review": "IN_REVIEW",
    "closed": "CLOSED",
    "resolved": "CLOSED",
    "complete": "CLOSED",
    "completed": "CLOSED",
    "done": "CLOSED",
    "finished": "CLOSED",
    "closed substantiated": "CLOSED",
    "closed unsubstantiated": "CLOSED",
    "withdrawn": "CLOSED",
    "cancelled": "CLOSED",
    "archived": "CLOSED",
    "dismissed": "DISMISSED",
}

GENERIC_CATEGORIES = {
    "harassment": "HARASSMENT",
    "sexual harassment": "HARASSMENT",
    "bullying": "HARASSMENT",
    "hostile work environment": "HARASSMENT",
    "workplace harassment": "HARASSMENT",
    "discrimination": "DISCRIMINATION",
    "bias": "DISCRIMINATION",
    "unfair treatment": "DISCRIMINATION",
    "disability": "DISCRIMINATION",
    "religious": "DISCRIMINATION",
    "fraud": "FRAUD",
    "financial fraud": "FRAUD",
    "expense fraud": "FRAUD",
    "embezzlement": "FRAUD",
    "falsification": "FRAUD",
    "misrepresentation": "FRAUD",
    "accounting fraud": "FRAUD",
    "theft": "THEFT",
    "stealing": "THEFT",
    "misappropriation": "THEFT",
    "asset theft": "THEFT",
    "safety": "SAFETY",
    "health safety": "SAFETY",
    "unsafe conditions": "SAFETY",
    "workplace safety": "SAFETY",
    "osha": "SAFETY",
    "injury": "SAFETY",
    "accident": "SAFETY",
    "environmental": "ENVIRONMENTAL",
    "policy": "POLICY_VIOLATION",
    "policy violation": "POLICY_VIOLATION",
    "code of conduct": "POLICY_VIOLATION",
    "compliance": "POLICY_VIOLATION",
    "procedure violation": "POLICY_VIOLATION",
    "rule violation": "POLICY_VIOLATION",
    "ethics": "ETHICS_VIOLATION",
    "ethics violation": "ETHICS_VIOLATION",
    "unethical": "ETHICS_VIOLATION",
    "misconduct": "ETHICS_VIOLATION",
    "conflict": "CONFLICT_OF_INTEREST",
    "conflict of interest": "CONFLICT_OF_INTEREST",
    "coi": "CONFLICT_OF_INTEREST",
    "related party": "CONFLICT_OF_INTEREST",
    "gifts": "CONFLICT_OF_INTEREST",
    "retaliation": "RETALIATION",
    "whistleblower retaliation": "RETALIATION",
    "retaliatory": "RETALIATION",
    "data breach": "DATA_PRIVACY",
    "privacy": "DATA_PRIVACY",
    "data privacy": "DATA_PRIVACY",
    "confidentiality": "DATA_PRIVACY",
    "information security": "DATA_PRIVACY",
    "substance": "SUBSTANCE_ABUSE",
    "substance abuse": "SUBSTANCE_ABUSE",
    "drugs": "SUBSTANCE_ABUSE",
    "alcohol": "SUBSTANCE_ABUSE",
    "impairment": "SUBSTANCE_ABUSE",
    "violence": "WORKPLACE_VIOLENCE",
    "bribery": "BRIBERY",
    "corruption": "CORRUPTION",
    "other": "OTHER",
    "general": "OTHER",
    "miscellaneous": "OTHER",
    "unknown": "OTHER",
    "unclassified": "OTHER",
    "inquiry": "OTHER",
    "question": "OTHER",
    "suggestion": "OTHER",
}

GENERIC_SEVERITIES = {
    "critical": "CRITICAL",
    "high": "HIGH",
    "urgent": "HIGH",
    "severe": "HIGH",
    "major": "HIGH",
    "medium": "MEDIUM",
    "moderate": "MEDIUM",
    "normal": "MEDIUM",
    "standard": "MEDIUM",
    "low": "LOW",
    "minor": "LOW",
    "minimal": "LOW",
    "informational": "LOW",
    "info": "LOW",
}

GENERIC_CSV = Connector(
    connector_id="GENERIC_CSV",
    display_name="Generic CSV / spreadsheet",
    value_dictionaries={
        "status": GENERIC_STATUSES,
        "category": GENERIC_CATEGORIES,
        "severity": GENERIC_SEVERITIES,
    },
    value_defaults={"status": "OPEN", "category": "OTHER", "severity": "MEDIUM"},
    id_prefix="CSV",
    fallback=True,
    numeric_severity_scale=True,
)
