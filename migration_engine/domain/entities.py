"""
Entity creation for imported rows.

The import orchestrator treats entity creation as a black box behind the
``EntityWriter`` protocol: it hands over the transformed fields of one row
together with the open session of that row's transaction, and records one
provenance entry per entity the writer reports back. ``SqlEntityWriter``
is the implementation used by the service, writing to the case-management
tables in ``db/models.py``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from migration_engine.db.models import Case, IntakeCaseLink, IntakeUnit, Person, PersonCaseLink
from migration_engine.utils.serialization import to_json_safe

logger = logging.getLogger(__name__)

# Rollback deletes from the highest rank down, so links go before the rows
# they point at.
DEPENDENCY_RANKS = {
    "person_case_link": 3,
    "intake_case_link": 3,
    "intake": 2,
    "case": 1,
    "person": 0,
}

ENTITY_MODELS = {
    "person": Person,
    "case": Case,
    "intake": IntakeUnit,
    "person_case_link": PersonCaseLink,
    "intake_case_link": IntakeCaseLink,
}

UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class CreatedEntity:
    entity_type: str
    entity_id: str
    dependency_rank: int


class EntityWriter(Protocol):
    def create_entities(
        self,
        session: Session,
        tenant_id: str,
        entity_fields: Dict[str, Dict[str, Any]],
        row_identifier: str,
        source_system: Optional[str] = None,
    ) -> List[CreatedEntity]:
        ...

    def snapshot(self, session: Session, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        ...

    def delete(self, session: Session, entity_type: str, entity_id: str) -> None:
        ...

    def dependencies(self, entity_type: str, snapshot: Dict[str, Any]) -> List[Tuple[str, str]]:
        ...


def split_full_name(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """``"Jane van Dyke"`` -> ``("Jane", "van Dyke")``; ``"Doe, Jane"`` -> ``("Jane", "Doe")``."""
    if not full_name or not str(full_name).strip():
        return None, None
    name = " ".join(str(full_name).split())
    if "," in name:
        last, _, first = name.partition(",")
        return first.strip() or None, last.strip() or None
    parts = name.split(" ", 1)
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1]


def _has_values(fields: Dict[str, Any]) -> bool:
    return any(value not in (None, "") for value in fields.values())


class SqlEntityWriter:
    """Creates people, intake units, cases and their links in the caller's session."""

    def create_entities(
        self,
        session: Session,
        tenant_id: str,
        entity_fields: Dict[str, Dict[str, Any]],
        row_identifier: str,
        source_system: Optional[str] = None,
    ) -> List[CreatedEntity]:
        case_fields = entity_fields.get("case", {})
        intake_fields = entity_fields.get("intake", {})
        person_fields = entity_fields.get("person", {})
        created: List[Tuple[str, Any]] = []

        person = None
        if _has_values(person_fields):
            person = self._build_person(tenant_id, person_fields, source_system, row_identifier)
            session.add(person)
            created.append(("person", person))

        case = Case(
            tenant_id=tenant_id,
            reference_number=case_fields.get("referenceNumber") or row_identifier,
            status=case_fields.get("status") or "NEW",
            severity=case_fields.get("severity"),
            category=case_fields.get("categoryName"),
            summary=case_fields.get("summary"),
            details=intake_fields.get("details"),
            location_name=case_fields.get("locationName"),
            location_city=case_fields.get("locationCity"),
            location_state=case_fields.get("locationState"),
            location_country=case_fields.get("locationCountry"),
            business_unit=case_fields.get("businessUnitName"),
            assignee=case_fields.get("assignedToEmail"),
            outcome=case_fields.get("resolution"),
            investigation_notes=case_fields.get("investigationNotes"),
            opened_at=case_fields.get("createdAt"),
            incident_date=case_fields.get("incidentDate"),
            closed_at=case_fields.get("closedAt"),
            due_date=case_fields.get("dueDate"),
            source_system=source_system,
            source_record_id=row_identifier,
        )
        session.add(case)
        created.append(("case", case))

        intake = None
        if _has_values(intake_fields):
            reporter_type = intake_fields.get("reporterType")
            is_anonymous = intake_fields.get("isAnonymous")
            if is_anonymous is None:
                is_anonymous = bool(reporter_type and "anonym" in str(reporter_type).lower())
            intake = IntakeUnit(
                tenant_id=tenant_id,
                reference_number=case.reference_number,
                details=intake_fields.get("details") or "",
                reporter_type=reporter_type,
                reporter_name=intake_fields.get("reporterName"),
                reporter_email=intake_fields.get("reporterEmail"),
                reporter_phone=intake_fields.get("reporterPhone"),
                is_anonymous=bool(is_anonymous),
                source_system=source_system,
                source_record_id=intake_fields.get("sourceRecordId") or row_identifier,
            )
            session.add(intake)
            created.append(("intake", intake))

        # Primary keys are assigned client-side but links need the rows inserted first.
        session.flush()

        if person is not None:
            link = PersonCaseLink(tenant_id=tenant_id, person_id=person.id, case_id=case.id, label="SUBJECT")
            session.add(link)
            created.append(("person_case_link", link))
        if intake is not None:
            link = IntakeCaseLink(tenant_id=tenant_id, intake_id=intake.id, case_id=case.id, association_type="PRIMARY")
            session.add(link)
            created.append(("intake_case_link", link))
        session.flush()

        return [
            CreatedEntity(entity_type=kind, entity_id=obj.id, dependency_rank=DEPENDENCY_RANKS[kind])
            for kind, obj in created
        ]

    def snapshot(self, session: Session, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        """Current column values of an entity, or None when it no longer exists."""
        obj = session.get(ENTITY_MODELS[entity_type], entity_id)
        if obj is None:
            return None
        # SQLite hands back naive datetimes; to_json_safe reads them as UTC.
        return to_json_safe({column.key: getattr(obj, column.key) for column in obj.__table__.columns})

    def delete(self, session: Session, entity_type: str, entity_id: str) -> None:
        obj = session.get(ENTITY_MODELS[entity_type], entity_id)
        if obj is None:
            return
        session.delete(obj)
        session.flush()

    def dependencies(self, entity_type: str, snapshot: Dict[str, Any]) -> List[Tuple[str, str]]:
        """Entities this one references; they must outlive it."""
        if entity_type == "person_case_link":
            return [("person", snapshot["person_id"]), ("case", snapshot["case_id"])]
        if entity_type == "intake_case_link":
            return [("intake", snapshot["intake_id"]), ("case", snapshot["case_id"])]
        return []

    @staticmethod
    def _build_person(
        tenant_id: str,
        fields: Dict[str, Any],
        source_system: Optional[str],
        row_identifier: str,
    ) -> Person:
        first, last = fields.get("firstName"), fields.get("lastName")
        if not first and not last:
            first, last = split_full_name(fields.get("subjectName"))
        return Person(
            tenant_id=tenant_id,
            first_name=first or UNKNOWN_NAME,
            last_name=last or UNKNOWN_NAME,
            email=fields.get("email"),
            phone=fields.get("phone"),
            employee_id=fields.get("employeeId"),
            job_title=fields.get("jobTitle"),
            source_system=source_system,
            source_record_id=row_identifier,
        )
