"""
Persistence for migration jobs, their mappings and per-row outcomes.

Every method opens its own short session from the injected factory and
returns detached ORM objects (the factory must use
``expire_on_commit=False``). State changes go through ``transition`` so the
lifecycle rules and per-state timestamps are applied in one place.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from migration_engine.db.models import (
    FieldMappingRow,
    MigrationJob,
    MigrationRecord,
    MigrationRowOutcome,
    SourceFile,
)
from migration_engine.domain.migrations.errors import JobNotFound
from migration_engine.domain.migrations.fields import FieldMapping
from migration_engine.domain.migrations.state import STATE_TIMESTAMPS, JobState, ensure_transition
from migration_engine.utils.date import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class JobStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def session(self) -> Session:
        return self._session_factory()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(self, tenant_id: str, source_file: Dict[str, Any]) -> MigrationJob:
        """Persist the uploaded file and a new job in state UPLOADED."""
        with self._session_factory() as session:
            record = SourceFile(tenant_id=tenant_id, **source_file)
            session.add(record)
            session.flush()
            job = MigrationJob(
                tenant_id=tenant_id,
                source_file_id=record.id,
                state=JobState.UPLOADED.value,
                error_sample=[],
                warning_summary={},
            )
            session.add(job)
            session.commit()
            job_id = job.id
        logger.info("Created migration job %s for %s (tenant %s)", job_id, source_file.get("file_name"), tenant_id)
        return self.get_job_by_id(job_id)

    def get_job(self, tenant_id: str, job_id: str) -> MigrationJob:
        """Load a job visible to ``tenant_id``; other tenants' jobs are reported as missing."""
        with self._session_factory() as session:
            job = session.execute(
                select(MigrationJob).where(MigrationJob.id == job_id, MigrationJob.tenant_id == tenant_id)
            ).scalar_one_or_none()
            if job is None:
                raise JobNotFound(job_id)
            return job

    def get_job_by_id(self, job_id: str) -> MigrationJob:
        with self._session_factory() as session:
            job = session.get(MigrationJob, job_id)
            if job is None:
                raise JobNotFound(job_id)
            return job

    def transition(self, job_id: str, target: Union[JobState, str], **updates: Any) -> MigrationJob:
        """Move a job to ``target`` (raising ``InvalidTransition`` if illegal) and apply ``updates``."""
        with self._session_factory() as session:
            job = session.get(MigrationJob, job_id)
            if job is None:
                raise JobNotFound(job_id)
            previous = job.state
            state = ensure_transition(job.state, target)
            job.state = state.value
            setattr(job, STATE_TIMESTAMPS[state], utcnow())
            for key, value in updates.items():
                setattr(job, key, value)
            session.commit()
        logger.info("Job %s: %s -> %s", job_id, previous, state.value)
        return self.get_job_by_id(job_id)

    def update_job(self, job_id: str, **updates: Any) -> MigrationJob:
        with self._session_factory() as session:
            job = session.get(MigrationJob, job_id)
            if job is None:
                raise JobNotFound(job_id)
            for key, value in updates.items():
                setattr(job, key, value)
            session.commit()
        return self.get_job_by_id(job_id)

    def update_source_file(self, source_file_id: str, **updates: Any) -> None:
        with self._session_factory() as session:
            session.execute(update(SourceFile).where(SourceFile.id == source_file_id).values(**updates))
            session.commit()

    def list_jobs(self, tenant_id: str, limit: int = 50, offset: int = 0) -> Tuple[List[MigrationJob], int]:
        with self._session_factory() as session:
            total = session.execute(
                select(func.count()).select_from(MigrationJob).where(MigrationJob.tenant_id == tenant_id)
            ).scalar() or 0
            jobs = session.execute(
                select(MigrationJob)
                .where(MigrationJob.tenant_id == tenant_id)
                .order_by(MigrationJob.uploaded_at.desc(), MigrationJob.id)
                .limit(limit)
                .offset(offset)
            ).scalars().unique().all()
            return list(jobs), total

    def request_cancel(self, job_id: str) -> None:
        with self._session_factory() as session:
            session.execute(
                update(MigrationJob).where(MigrationJob.id == job_id).values(cancel_requested=True)
            )
            session.commit()
        logger.info("Cancellation requested for job %s", job_id)

    def is_cancel_requested(self, job_id: str) -> bool:
        with self._session_factory() as session:
            return bool(session.execute(
                select(MigrationJob.cancel_requested).where(MigrationJob.id == job_id)
            ).scalar())

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def replace_mappings(self, job_id: str, mappings: Sequence[FieldMapping]) -> List[FieldMapping]:
        with self._session_factory() as session:
            session.query(FieldMappingRow).filter(FieldMappingRow.job_id == job_id).delete()
            for position, mapping in enumerate(mappings):
                session.add(FieldMappingRow(
                    job_id=job_id,
                    position=position,
                    source_column=mapping.source_column,
                    target_field=mapping.target_field,
                    transform=mapping.transform,
                    confidence=mapping.confidence,
                    origin=mapping.origin,
                    strategy=mapping.strategy,
                ))
            session.commit()
        return self.get_mappings(job_id)

    def get_mappings(self, job_id: str) -> List[FieldMapping]:
        with self._session_factory() as session:
            rows = session.execute(
                select(FieldMappingRow)
                .where(FieldMappingRow.job_id == job_id)
                .order_by(FieldMappingRow.position)
            ).scalars().all()
            return [
                FieldMapping(
                    source_column=row.source_column,
                    target_field=row.target_field,
                    transform=row.transform,
                    confidence=row.confidence,
                    origin=row.origin,
                    strategy=row.strategy,
                )
                for row in rows
            ]

    # ------------------------------------------------------------------
    # Row outcomes
    # ------------------------------------------------------------------

    def clear_outcomes(self, job_id: str, phase: str) -> None:
        with self._session_factory() as session:
            session.query(MigrationRowOutcome).filter(
                MigrationRowOutcome.job_id == job_id, MigrationRowOutcome.phase == phase
            ).delete()
            session.commit()

    def add_outcomes(self, job_id: str, phase: str, outcomes: Iterable[Dict[str, Any]]) -> None:
        with self._session_factory() as session:
            session.add_all(
                MigrationRowOutcome(job_id=job_id, phase=phase, **outcome) for outcome in outcomes
            )
            session.commit()

    def list_row_outcomes(
        self,
        tenant_id: str,
        job_id: str,
        status: Optional[str] = None,
        phase: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        self.get_job(tenant_id, job_id)
        with self._session_factory() as session:
            query = select(MigrationRowOutcome).where(MigrationRowOutcome.job_id == job_id)
            if status:
                query = query.where(MigrationRowOutcome.status == status)
            if phase:
                query = query.where(MigrationRowOutcome.phase == phase)
            total = session.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
            rows = session.execute(
                query.order_by(MigrationRowOutcome.phase, MigrationRowOutcome.row_index)
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return [
                {
                    "row_index": row.row_index,
                    "row_number": row.row_index + 1,
                    "phase": row.phase,
                    "status": row.status,
                    "row_identifier": row.row_identifier,
                    "issues": row.issues or [],
                }
                for row in rows
            ], total

    # ------------------------------------------------------------------
    # Provenance records
    # ------------------------------------------------------------------

    def count_records(self, job_id: str) -> Tuple[int, int]:
        """Return ``(total, modified_after_import)`` for the job's records (one per imported row)."""
        with self._session_factory() as session:
            total = session.execute(
                select(func.count()).select_from(MigrationRecord).where(MigrationRecord.job_id == job_id)
            ).scalar() or 0
            modified = session.execute(
                select(func.count()).select_from(MigrationRecord).where(
                    MigrationRecord.job_id == job_id, MigrationRecord.modified_after_import.is_(True)
                )
            ).scalar() or 0
            return total, modified

    def records_for_rollback(self, job_id: str) -> List[MigrationRecord]:
        """The job's records, later rows first."""
        with self._session_factory() as session:
            return list(session.execute(
                select(MigrationRecord)
                .where(MigrationRecord.job_id == job_id)
                .order_by(MigrationRecord.row_index.desc(), MigrationRecord.id.desc())
            ).scalars().all())


def serialize_job(job: MigrationJob) -> Dict[str, Any]:
    """Status view of a job, shaped for the API."""
    source = job.source_file
    return {
        "id": job.id,
        "tenant_id": job.tenant_id,
        "state": job.state,
        "file_name": source.file_name if source else None,
        "file_format": source.file_format if source else None,
        "size_bytes": source.size_bytes if source else None,
        "connector_id": job.connector_id,
        "detection_confidence": job.detection_confidence,
        "detection_candidates": job.detection_candidates or [],
        "template_name": job.template_name,
        "progress": job.progress,
        "current_step": job.current_step,
        "counters": {
            "total_rows": job.total_rows,
            "valid_rows": job.valid_rows,
            "error_rows": job.error_rows,
            "warning_rows": job.warning_rows,
            "imported_rows": job.imported_rows,
            "import_error_rows": job.import_error_rows,
        },
        "error_sample": job.error_sample or [],
        "warning_summary": job.warning_summary or {},
        "failure_reason": job.failure_reason,
        "cancel_requested": bool(job.cancel_requested),
        "rollback_deadline": ensure_utc(job.rollback_deadline),
        "rollback_report": job.rollback_report,
        "timestamps": {
            column: ensure_utc(getattr(job, column))
            for column in sorted(set(STATE_TIMESTAMPS.values()) | {"updated_at"})
        },
    }
