"""
Field mapping suggestions.

Each source column is matched against the canonical target fields with a
tiered strategy, and the first tier that produces a match wins:

1. template    - a saved template already maps this column (1.0)
2. alias       - header equals a known synonym or a connector hint (0.95)
3. substring   - header contains a synonym or vice versa (0.75)
4. fuzzy       - Levenshtein similarity of at least 0.70
5. inference   - sample values look like emails, dates, phones or prose

Each tier is tried on every unmapped column before the next one starts,
so an exact alias always beats a substring or fuzzy match elsewhere in
the file. Within a tier identifier-like columns go first, and every
target field is claimed at most once.
"""
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from migration_engine.domain.migrations.connectors import Connector
from migration_engine.domain.migrations.fields import (
    TARGET_FIELDS,
    FieldMapping,
    MappingOrigin,
)
from migration_engine.domain.migrations.matching import (
    best_fuzzy_match,
    contains_with_overlap,
    normalize_field_name,
)
from migration_engine.utils.date import detect_date_column

logger = logging.getLogger(__name__)

ALIAS_CONFIDENCE = 0.95
SUBSTRING_CONFIDENCE = 0.75
TEMPLATE_CONFIDENCE = 1.0
LONG_TEXT_THRESHOLD = 100

FIELD_SYNONYMS: Dict[str, List[str]] = {
    "sourceRecordId": [
        "id", "case_id", "case_number", "report_id", "incident_id", "reference",
        "ref", "ticket", "record_id", "external_id",
    ],
    "referenceNumber": [
        "case_number", "case_ref", "reference", "ref_number", "ticket_number",
        "report_number", "incident_number", "case_no",
    ],
    "incidentDate": [
        "incident_date", "date_of_incident", "occurrence_date", "event_date",
        "when", "happened_date", "occurred_date",
    ],
    "createdAt": [
        "created_date", "report_date", "reported_date", "date_reported", "submitted_date",
        "submission_date", "opened_date", "intake_date", "received_date",
        "date_created", "created",
    ],
    "closedAt": [
        "closed_date", "close_date", "date_closed", "resolution_date", "completed_date",
        "end_date", "resolved_date", "finished_date",
    ],
    "details": [
        "description", "allegation", "narrative", "incident_description",
        "details", "report_text", "content", "concern", "issue", "body",
        "message", "notes",
    ],
    "summary": ["summary", "synopsis", "short_description", "title"],
    "categoryName": [
        "category", "incident_type", "issue_type", "type", "classification",
        "topic", "concern_type", "report_type", "case_type",
    ],
    "severity": [
        "severity", "priority", "risk_level", "urgency", "criticality",
        "importance", "risk", "level",
    ],
    "status": [
        "status", "state", "case_status", "current_status", "workflow_status",
        "stage", "phase",
    ],
    "reporterType": [
        "reporter_type", "reporter_relationship", "contact_type", "source_type",
        "caller_type",
    ],
    "isAnonymous": ["anonymous", "is_anonymous", "anonymous_report", "confidential"],
    "reporterName": [
        "reporter_name", "reporter", "complainant", "complainant_name",
        "submitted_by", "filed_by", "source_name",
    ],
    "reporterEmail": ["reporter_email", "contact_email", "complainant_email"],
    "reporterPhone": ["reporter_phone", "contact_phone", "contact_number"],
    "locationName": [
        "location", "location_name", "site", "office", "facility", "branch",
        "building", "workplace",
    ],
    "locationCity": ["city", "town", "municipality"],
    "locationState": ["state_province", "province", "region"],
    "locationCountry": ["country", "nation", "country_code"],
    "businessUnitName": [
        "business_unit", "department", "division", "team", "group", "unit",
        "area", "org_unit",
    ],
    "assignedToEmail": [
        "assigned_to", "assignee", "handler", "investigator", "owner",
        "case_manager", "case_owner", "responsible",
    ],
    "firstName": ["first_name", "given_name", "forename", "fname"],
    "lastName": ["last_name", "surname", "family_name", "lname"],
    "email": ["email", "email_address", "e_mail", "mail"],
    "phone": ["phone", "phone_number", "telephone", "mobile", "cell"],
    "employeeId": ["employee_id", "emp_id", "staff_id", "worker_id", "badge", "badge_number"],
    "jobTitle": ["job_title", "position", "role"],
    "subjectName": [
        "subject_name", "subject", "accused", "accused_name", "respondent",
        "respondent_name", "person_involved",
    ],
    "resolution": [
        "resolution", "outcome", "findings", "result", "final_outcome",
        "determination", "conclusion", "disposition", "action_taken",
    ],
    "investigationNotes": [
        "investigation_notes", "inv_notes", "findings_detail", "investigation_summary",
    ],
    "dueDate": ["due_date", "deadline", "target_date", "expected_close"],
}

_IDENTIFIER_TOKENS = {"id", "number", "num", "no", "ref", "reference", "key"}
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
_PHONE_RE = re.compile(r"^\+?[\d\s().\-]{7,}$")


def _camel_to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _normalized_synonyms() -> Dict[str, List[str]]:
    table = {}
    for target, synonyms in FIELD_SYNONYMS.items():
        names = [normalize_field_name(s) for s in synonyms]
        own = _camel_to_snake(target)
        if own not in names:
            names.append(own)
        table[target] = names
    return table


_SYNONYMS = _normalized_synonyms()


def is_identifier_column(header: str) -> bool:
    normalized = normalize_field_name(header)
    tokens = set(normalized.split("_"))
    return bool(tokens & _IDENTIFIER_TOKENS) or normalized.endswith("id")


@dataclass
class MappingSuggestion:
    source_column: str
    target_field: str
    transform: str
    confidence: float
    strategy: str
    reason: str

    def to_mapping(self) -> FieldMapping:
        origin = MappingOrigin.TEMPLATE if self.strategy == "template" else MappingOrigin.SUGGESTED
        return FieldMapping(
            source_column=self.source_column,
            target_field=self.target_field,
            transform=self.transform,
            confidence=self.confidence,
            origin=origin.value,
            strategy=self.strategy,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _column_values(header: str, sample_rows: Sequence[Any]) -> List[str]:
    values = []
    for row in sample_rows:
        fields = getattr(row, "fields", row)
        value = fields.get(header) if isinstance(fields, Mapping) else None
        if value is not None and str(value).strip():
            values.append(str(value).strip())
    return values


def _mostly(values: List[str], predicate) -> bool:
    if not values:
        return False
    hits = sum(1 for v in values if predicate(v))
    return hits / len(values) >= 0.5


def _looks_like_phone(value: str) -> bool:
    if not _PHONE_RE.match(value):
        return False
    digits = re.sub(r"\D", "", value)
    has_separator = value.startswith("+") or bool(re.search(r"[\s().\-]", value))
    return 7 <= len(digits) <= 15 and has_separator


def _make(header: str, target: str, confidence: float, strategy: str, reason: str) -> MappingSuggestion:
    return MappingSuggestion(
        source_column=header,
        target_field=target,
        transform=TARGET_FIELDS[target].default_transform.value,
        confidence=round(confidence, 4),
        strategy=strategy,
        reason=reason,
    )


class FieldMapper:
    """Suggests source column → target field mappings."""

    def suggest(
        self,
        headers: Sequence[str],
        sample_rows: Sequence[Any] = (),
        template: Optional[Sequence[Any]] = None,
        connector: Optional[Connector] = None,
    ) -> List[MappingSuggestion]:
        template_map = self._template_index(template)
        used_targets: set = set()
        suggestions: Dict[str, MappingSuggestion] = {}

        for header in headers:
            entry = template_map.get(normalize_field_name(header))
            if entry and entry.target_field in TARGET_FIELDS and entry.target_field not in used_targets:
                used_targets.add(entry.target_field)
                suggestions[header] = MappingSuggestion(
                    source_column=header,
                    target_field=entry.target_field,
                    transform=entry.transform,
                    confidence=TEMPLATE_CONFIDENCE,
                    strategy="template",
                    reason=f'Template maps "{entry.source_column}" to {entry.target_field}',
                )

        # A tier sees every unmapped column before the next tier starts.
        pending = sorted(
            (h for h in headers if h not in suggestions and normalize_field_name(h)),
            key=lambda h: 0 if is_identifier_column(h) else 1,
        )
        tiers = (
            lambda h: self._alias_match(h, used_targets, connector),
            lambda h: self._substring_match(h, used_targets),
            lambda h: self._fuzzy_match(h, used_targets),
            lambda h: self._infer_from_values(h, _column_values(h, sample_rows), used_targets),
        )
        for tier in tiers:
            for header in list(pending):
                suggestion = tier(header)
                if suggestion is not None:
                    used_targets.add(suggestion.target_field)
                    suggestions[header] = suggestion
                    pending.remove(header)

        result = [suggestions[h] for h in headers if h in suggestions]
        logger.debug(
            "Suggested %d mappings for %d columns (%s)",
            len(result), len(headers), ", ".join(f"{s.source_column}->{s.target_field}" for s in result),
        )
        return result

    @staticmethod
    def _template_index(template: Optional[Sequence[Any]]) -> Dict[str, FieldMapping]:
        index = {}
        for entry in template or ():
            mapping = entry if isinstance(entry, FieldMapping) else FieldMapping.from_dict(entry)
            index[normalize_field_name(mapping.source_column)] = mapping
        return index

    @staticmethod
    def _alias_match(header: str, used_targets: set, connector: Optional[Connector]) -> Optional[MappingSuggestion]:
        if connector is not None:
            hinted = connector.hint_for(header)
            if hinted and hinted in TARGET_FIELDS and hinted not in used_targets:
                return _make(header, hinted, ALIAS_CONFIDENCE, "alias", f"{connector.display_name} column")

        normalized = normalize_field_name(header)
        for target, synonyms in _SYNONYMS.items():
            if target not in used_targets and normalized in synonyms:
                return _make(header, target, ALIAS_CONFIDENCE, "alias", f'"{header}" is a known name for {target}')
        return None

    @staticmethod
    def _substring_match(header: str, used_targets: set) -> Optional[MappingSuggestion]:
        normalized = normalize_field_name(header)
        for target, synonyms in _SYNONYMS.items():
            if target in used_targets:
                continue
            for synonym in synonyms:
                if contains_with_overlap(normalized, synonym):
                    return _make(header, target, SUBSTRING_CONFIDENCE, "substring", f'"{header}" overlaps "{synonym}"')
        return None

    @staticmethod
    def _fuzzy_match(header: str, used_targets: set) -> Optional[MappingSuggestion]:
        normalized = normalize_field_name(header)
        best: Optional[Tuple[str, str, float]] = None
        for target, synonyms in _SYNONYMS.items():
            if target in used_targets:
                continue
            match = best_fuzzy_match(normalized, synonyms)
            if match is not None and (best is None or match[1] > best[2]):
                best = (target, match[0], match[1])
        if best is None:
            return None
        target, synonym, score = best
        return _make(header, target, score, "fuzzy", f'"{header}" is similar to "{synonym}" ({score:.0%})')

    @staticmethod
    def _infer_from_values(header: str, values: List[str], used_targets: set) -> Optional[MappingSuggestion]:
        if not values:
            return None

        if _mostly(values, lambda v: bool(_EMAIL_RE.match(v))) and "email" not in used_targets:
            return _make(header, "email", 0.60, "inference", "Values look like email addresses")

        if detect_date_column(values):
            for target in ("createdAt", "incidentDate"):
                if target not in used_targets:
                    return _make(header, target, 0.50, "inference", "Values parse as dates")

        if _mostly(values, _looks_like_phone) and "phone" not in used_targets:
            return _make(header, "phone", 0.55, "inference", "Values look like phone numbers")

        average = sum(len(v) for v in values) / len(values)
        if average > LONG_TEXT_THRESHOLD and "details" not in used_targets:
            return _make(header, "details", 0.40, "inference", f"Long free text (avg {average:.0f} chars)")

        return None
