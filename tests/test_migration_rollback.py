from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from migration_engine.db.models import Case, IntakeCaseLink, IntakeUnit, MigrationRecord, Person, PersonCaseLink
from migration_engine.domain.migrations.errors import ConfirmationRequired, RollbackUnavailable
from migration_engine.domain.migrations.rollback import (
    SKIP_DEPENDENT,
    SKIP_MISSING,
    SKIP_MODIFIED,
    compute_entity_hash,
    rollback_status,
)
from migration_engine.utils.date import ensure_utc, utcnow
from tests.utils.migration_data import NAVEX_CSV, TENANT, import_file, upload_csv


def _count(session_factory, model):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar()


def _reasons(report):
    return sorted(skip["reason"] for skip in report["skipped"])


def test_entity_hash_is_order_independent():
    assert compute_entity_hash({"a": 1, "b": "x"}) == compute_entity_hash({"b": "x", "a": 1})
    assert compute_entity_hash({"a": 1}) != compute_entity_hash({"a": 2})


def test_full_rollback_removes_everything(orchestrator, session_factory):
    job = import_file(orchestrator, NAVEX_CSV)

    report = orchestrator.rollback(TENANT, job.id, "ROLLBACK")

    assert report == {"removed": 13, "skipped": []}
    for model in (Case, Person, IntakeUnit, PersonCaseLink, IntakeCaseLink, MigrationRecord):
        assert _count(session_factory, model) == 0
    status = orchestrator.get_status(TENANT, job.id)
    assert status["state"] == "ROLLED_BACK"
    assert status["rollback_report"]["removed"] == 13
    assert status["rollback"]["available"] is False


def test_rollback_requires_exact_confirmation(orchestrator):
    job = import_file(orchestrator, NAVEX_CSV)

    with pytest.raises(ConfirmationRequired):
        orchestrator.rollback(TENANT, job.id, "rollback")
    assert orchestrator.get_status(TENANT, job.id)["state"] == "COMPLETED"


def test_edited_case_keeps_its_links_and_linked_entities(orchestrator, session_factory):
    job = import_file(orchestrator, NAVEX_CSV)
    with session_factory() as session:
        session.execute(update(Case).where(Case.reference_number == "NVX-001").values(summary="Edited by investigator"))
        session.commit()

    report = orchestrator.rollback(TENANT, job.id, "ROLLBACK")

    # Row 1 created five entities; the other two rows go.
    assert report["removed"] == 8
    assert _reasons(report) == [SKIP_DEPENDENT] * 4 + [SKIP_MODIFIED]
    modified = [s for s in report["skipped"] if s["reason"] == SKIP_MODIFIED][0]
    assert modified["entity_type"] == "case"
    assert modified["row_index"] == 0
    with session_factory() as session:
        case = session.execute(select(Case)).scalar_one()
        assert case.reference_number == "NVX-001"
        assert session.execute(select(PersonCaseLink.case_id)).scalar_one() == case.id
        assert session.execute(select(IntakeCaseLink.case_id)).scalar_one() == case.id
        assert session.execute(select(Person.first_name)).scalar_one() == "John"
        assert session.execute(select(IntakeUnit.reference_number)).scalar_one() == "NVX-001"
        kept = session.execute(select(MigrationRecord)).scalar_one()
        assert kept.modified_after_import is True
        assert len(kept.entities) == 5
    assert orchestrator.rollback_status(TENANT, job.id)["modified_record_count"] == 1


def test_entities_connected_to_edited_link_are_kept(orchestrator, session_factory):
    job = import_file(orchestrator, NAVEX_CSV)
    with session_factory() as session:
        case_id = session.execute(select(Case.id).where(Case.reference_number == "NVX-001")).scalar_one()
        session.execute(update(PersonCaseLink).where(PersonCaseLink.case_id == case_id).values(label="WITNESS"))
        session.commit()

    report = orchestrator.rollback(TENANT, job.id, "ROLLBACK")

    assert report["removed"] == 8
    assert _reasons(report) == [SKIP_DEPENDENT] * 4 + [SKIP_MODIFIED]
    for model in (PersonCaseLink, IntakeCaseLink, Person, Case, IntakeUnit):
        assert _count(session_factory, model) == 1


def test_entity_deleted_by_hand_is_reported(orchestrator, session_factory):
    job = import_file(orchestrator, NAVEX_CSV)
    with session_factory() as session:
        session.query(IntakeCaseLink).filter(
            IntakeCaseLink.case_id.in_(select(Case.id).where(Case.reference_number == "NVX-003"))
        ).delete(synchronize_session=False)
        session.commit()

    report = orchestrator.rollback(TENANT, job.id, "ROLLBACK")

    assert report["removed"] == 12
    assert _reasons(report) == [SKIP_MISSING]
    assert _count(session_factory, MigrationRecord) == 0


def test_rollback_window_closes(orchestrator, store):
    job = import_file(orchestrator, NAVEX_CSV)
    store.update_job(job.id, rollback_deadline=utcnow() - timedelta(minutes=1))

    status = orchestrator.rollback_status(TENANT, job.id)
    assert status["available"] is False
    assert "window closed" in status["reason"]
    with pytest.raises(RollbackUnavailable):
        orchestrator.rollback(TENANT, job.id, "ROLLBACK")


def test_rollback_only_once(orchestrator):
    job = import_file(orchestrator, NAVEX_CSV)
    orchestrator.rollback(TENANT, job.id, "ROLLBACK")

    with pytest.raises(RollbackUnavailable):
        orchestrator.rollback(TENANT, job.id, "ROLLBACK")


def test_rollback_status_reports_remaining_time(orchestrator, store):
    job = import_file(orchestrator, NAVEX_CSV)
    job = store.get_job_by_id(job.id)

    status = rollback_status(job, (3, 0), now=ensure_utc(job.rollback_deadline) - timedelta(hours=1))

    assert status["available"] is True
    assert status["remaining_seconds"] == 3600
    assert status["record_count"] == 3


def test_rollback_not_available_before_completion(orchestrator):
    job_id = upload_csv(orchestrator, NAVEX_CSV)["job"]["id"]

    status = orchestrator.rollback_status(TENANT, job_id)

    assert status["available"] is False
    assert "MAPPING" in status["reason"]
