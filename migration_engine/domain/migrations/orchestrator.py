"""
Migration orchestration: upload, detect, map, validate, preview, import and
roll back one competitor export.

The orchestrator owns the job lifecycle. Long passes over the file
(validation, import, rollback) are split into a cheap ``begin``/``start``
step that checks preconditions and moves the job into its working state,
and a ``run`` step that the API hands to the worker pool. The combined
``validate`` and ``rollback`` calls run both steps inline.

Row-level problems never abort a pass: they become row outcomes, counter
increments and entries in the bounded error sample. Only file-level
problems (the stored file cannot be read) fail the job.
"""
import logging
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import text, update

from migration_engine.core.config import Settings
from migration_engine.core.config import settings as default_settings
from migration_engine.db.models import MigrationJob, MigrationRecord, MigrationRowOutcome
from migration_engine.domain.entities import EntityWriter
from migration_engine.domain.migrations.connectors import Connector, ConnectorRegistry, default_registry
from migration_engine.domain.migrations.detection import best_candidate, detect
from migration_engine.domain.migrations.errors import (
    ConfirmationRequired,
    FileTooLarge,
    InvalidTransition,
    MappingError,
    RollbackUnavailable,
    RowCommitTimeout,
    UnreadableSource,
)
from migration_engine.domain.migrations.fields import (
    FieldMapping,
    MappingOrigin,
    check_mappings,
    missing_required,
)
from migration_engine.domain.migrations.mapper import FieldMapper, MappingSuggestion
from migration_engine.domain.migrations.rollback import (
    CONFIRMATION_PHRASE as ROLLBACK_CONFIRMATION,
    compute_entity_hash,
    rollback_deadline,
    rollback_status,
    undo_import,
)
from migration_engine.domain.migrations.sources import Row, RowSource, open_source_path, source_format
from migration_engine.domain.migrations.state import MAPPING_EDITABLE_STATES, JobState
from migration_engine.domain.migrations.storage import LocalFileStorage, StorageError
from migration_engine.domain.migrations.store import JobStore, serialize_job
from migration_engine.domain.migrations.templates import MappingTemplates
from migration_engine.domain.migrations.transformer import TransformResult, ValueTransformer
from migration_engine.utils.date import utcnow
from migration_engine.utils.serialization import to_json_safe

logger = logging.getLogger(__name__)

IMPORT_CONFIRMATION = "IMPORT"

VALIDATION_PHASE = "validation"
IMPORT_PHASE = "import"

# Row failures are logged for the first few rows, then every Nth.
ROW_FAILURE_LOG_LIMIT = 5
ROW_FAILURE_LOG_EVERY = 100


def _percent(done: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(99, int(done * 100 / total))


def _error_entry(phase: str, row: Row, row_identifier: Optional[str], issues: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "phase": phase,
        "row_index": row.index,
        "row_number": row.number,
        "row_identifier": row_identifier,
        "issues": issues,
    }


class MigrationOrchestrator:
    def __init__(
        self,
        store: JobStore,
        entity_writer: EntityWriter,
        registry: Optional[ConnectorRegistry] = None,
        storage: Optional[LocalFileStorage] = None,
        settings: Optional[Settings] = None,
        templates: Optional[MappingTemplates] = None,
    ):
        self.store = store
        self.entity_writer = entity_writer
        self.registry = registry or default_registry()
        self.settings = settings or default_settings
        self.storage = storage or LocalFileStorage(self.settings.storage_dir)
        self.templates = templates or MappingTemplates(store.session)
        self.mapper = FieldMapper()

    # ------------------------------------------------------------------
    # Upload and detection
    # ------------------------------------------------------------------

    def upload(self, tenant_id: str, file_name: str, content: bytes, hint: Optional[str] = None) -> Dict[str, Any]:
        """
        Store an export, create its job and run format detection.

        Returns the job, the detection result, the suggested mappings and
        any warnings (low confidence, large file, unmapped required fields).
        """
        limit = self.settings.upload_max_file_size_mb * 1024 * 1024
        if len(content) > limit:
            raise FileTooLarge(len(content), limit)
        file_format = source_format(file_name)
        if not content:
            raise UnreadableSource(f"{file_name}: file is empty")

        try:
            path, digest = self.storage.save(tenant_id, file_name, content)
        except StorageError as exc:
            raise UnreadableSource(str(exc)) from exc

        job = self.store.create_job(tenant_id, {
            "file_name": file_name,
            "storage_path": path,
            "file_format": file_format,
            "size_bytes": len(content),
            "content_hash": digest,
        })
        self.store.transition(job.id, JobState.DETECTING, current_step="Detecting format")

        try:
            source = self._open_source(job)
            sample = source.sample(self.settings.sample_row_count)
            row_count = source.count_rows()
        except UnreadableSource as exc:
            logger.error("Upload %s (job %s) is unreadable: %s", file_name, job.id, exc)
            self.store.transition(job.id, JobState.VALIDATION_FAILED, failure_reason=str(exc), current_step=None)
            raise
        except Exception as exc:
            logger.exception("Upload %s (job %s) could not be read", file_name, job.id)
            self.store.transition(
                job.id, JobState.VALIDATION_FAILED, failure_reason=f"Detection failed: {exc}", current_step=None,
            )
            raise

        self.store.update_source_file(
            job.source_file_id,
            encoding=source.encoding,
            delimiter=source.delimiter,
            row_count=row_count,
        )

        candidates = detect(source.headers, [r.fields for r in sample], hint=hint, registry=self.registry)
        chosen = best_candidate(candidates, self.registry)
        connector = self.registry.get(chosen.connector_id)

        template = self.templates.find_template_for_headers(tenant_id, source.headers)
        suggestions = self.mapper.suggest(
            source.headers,
            sample,
            template=template["mappings"] if template else None,
            connector=connector,
        )
        mappings = self.store.replace_mappings(job.id, [s.to_mapping() for s in suggestions])

        job = self.store.transition(
            job.id,
            JobState.MAPPING,
            connector_id=connector.connector_id,
            detection_confidence=chosen.confidence,
            detection_candidates=[c.to_dict() for c in candidates],
            template_name=template["name"] if template else None,
            total_rows=row_count,
            current_step="Awaiting mapping review",
        )

        warnings = []
        if not chosen.usable:
            warnings.append(
                f"Could not identify the source system with confidence; using {connector.display_name}"
            )
        if row_count > self.settings.large_file_warning_rows:
            warnings.append(f"Large file ({row_count} rows); validation and import will take a while")
        if row_count == 0:
            warnings.append("The file has a header row but no data rows")
        missing = missing_required(mappings)
        if missing:
            warnings.append(f"Required fields are not mapped: {', '.join(missing)}")

        logger.info(
            "Uploaded %s for tenant %s: job %s, %s (%.2f), %d rows, %d columns mapped",
            file_name, tenant_id, job.id, connector.connector_id, chosen.confidence, row_count, len(mappings),
        )
        return {
            "job": serialize_job(job),
            "detection": {
                "connector_id": connector.connector_id,
                "confidence": chosen.confidence,
                "usable": chosen.usable,
                "candidates": [c.to_dict() for c in candidates],
            },
            "headers": list(source.headers),
            "suggestions": [s.to_dict() for s in suggestions],
            "missing_required": missing,
            "warnings": warnings,
        }

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def get_mappings(self, tenant_id: str, job_id: str) -> Dict[str, Any]:
        job = self.store.get_job(tenant_id, job_id)
        mappings = self.store.get_mappings(job.id)
        return self._mapping_view(job, mappings)

    def select_connector(self, tenant_id: str, job_id: str, connector_id: str) -> Dict[str, Any]:
        """Override the detected connector; suggestions are rebuilt for it."""
        job = self.store.get_job(tenant_id, job_id)
        if job.state != JobState.MAPPING.value:
            raise InvalidTransition(job.state, JobState.MAPPING.value)
        connector = self.registry.get(connector_id)

        source = self._open_source(job)
        suggestions = self.mapper.suggest(
            source.headers, source.sample(self.settings.sample_row_count), connector=connector,
        )
        mappings = self.store.replace_mappings(job.id, [s.to_mapping() for s in suggestions])
        job = self.store.transition(
            job.id, JobState.MAPPING, connector_id=connector.connector_id, template_name=None, preview=None,
        )
        logger.info("Job %s: connector set to %s by user", job.id, connector.connector_id)
        return self._mapping_view(job, mappings, source.headers, suggestions)

    def update_mappings(self, tenant_id: str, job_id: str, mappings: Sequence[Any]) -> Dict[str, Any]:
        """Replace the job's mapping with a user-confirmed list."""
        job = self.store.get_job(tenant_id, job_id)
        self._ensure_mapping_editable(job)

        entries = []
        for entry in mappings:
            mapping = entry if isinstance(entry, FieldMapping) else FieldMapping.from_dict(entry)
            mapping.origin = MappingOrigin.USER_CONFIRMED.value
            mapping.confidence = 1.0
            entries.append(mapping)

        source = self._open_source(job)
        check_mappings(entries, source.headers)

        saved = self.store.replace_mappings(job.id, entries)
        job = self.store.transition(job.id, JobState.MAPPING, preview=None, current_step="Awaiting mapping review")
        logger.info("Job %s: %d mappings confirmed by user", job.id, len(saved))
        return self._mapping_view(job, saved, source.headers)

    def apply_template(self, tenant_id: str, job_id: str, name: str) -> Dict[str, Any]:
        job = self.store.get_job(tenant_id, job_id)
        self._ensure_mapping_editable(job)
        template = self.templates.load_template(tenant_id, name)

        connector = self.registry.find(job.connector_id) or self.registry.fallback
        source = self._open_source(job)
        suggestions = self.mapper.suggest(
            source.headers,
            source.sample(self.settings.sample_row_count),
            template=template["mappings"],
            connector=connector,
        )
        mappings = self.store.replace_mappings(job.id, [s.to_mapping() for s in suggestions])
        job = self.store.transition(job.id, JobState.MAPPING, template_name=template["name"], preview=None)
        logger.info("Job %s: applied template '%s'", job.id, template["name"])
        return self._mapping_view(job, mappings, source.headers, suggestions)

    def save_template_from_job(self, tenant_id: str, job_id: str, name: str) -> Dict[str, Any]:
        job = self.store.get_job(tenant_id, job_id)
        mappings = self.store.get_mappings(job.id)
        headers = self._open_source(job).headers
        return self.templates.save_template(tenant_id, name, mappings, connector_id=job.connector_id, headers=headers)

    # ------------------------------------------------------------------
    # Validation and preview
    # ------------------------------------------------------------------

    def validate(self, tenant_id: str, job_id: str) -> MigrationJob:
        self.begin_validation(tenant_id, job_id)
        return self.run_validation(job_id)

    def begin_validation(self, tenant_id: str, job_id: str) -> MigrationJob:
        """Check the mapping is complete and move the job to VALIDATING."""
        job = self.store.get_job(tenant_id, job_id)
        mappings = self.store.get_mappings(job.id)
        missing = missing_required(mappings)
        if missing:
            raise MappingError(f"Required fields are not mapped: {', '.join(missing)}", missing)
        return self.store.transition(
            job.id,
            JobState.VALIDATING,
            valid_rows=0,
            error_rows=0,
            warning_rows=0,
            progress=0,
            error_sample=[],
            warning_summary={},
            preview=None,
            failure_reason=None,
            cancel_requested=False,
            current_step="Validating rows",
        )

    def run_validation(self, job_id: str) -> MigrationJob:
        """Transform every row without writing entities and record the outcome."""
        job = self.store.get_job_by_id(job_id)
        if job.state != JobState.VALIDATING.value:
            raise InvalidTransition(job.state, JobState.PREVIEW_READY.value)
        connector = self._connector_for(job)
        transformer = self._transformer(connector)
        mappings = self.store.get_mappings(job.id)
        self.store.clear_outcomes(job.id, VALIDATION_PHASE)

        expected = job.total_rows or 0
        sample_limit = self.settings.error_sample_limit
        every = max(1, self.settings.validation_yield_every)
        total = valid = errors = warnings = 0
        error_sample: List[Dict[str, Any]] = []
        unmapped: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        warnings_by_field: Dict[str, int] = defaultdict(int)
        outcomes: List[Dict[str, Any]] = []

        def summary() -> Dict[str, Any]:
            return {
                "unmapped_values": {f: dict(values) for f, values in unmapped.items()},
                "warnings_by_field": dict(warnings_by_field),
            }

        try:
            source = self._open_source(job)
            for row in source.iter_rows():
                result = transformer.transform_row(row, mappings)
                total += 1
                issues = [issue.to_dict() for issue in result.issues]
                if result.has_errors:
                    errors += 1
                    if len(error_sample) < sample_limit:
                        error_sample.append(_error_entry(VALIDATION_PHASE, row, result.row_identifier, issues))
                else:
                    valid += 1
                    if result.has_warnings:
                        warnings += 1
                for issue in result.issues:
                    if issue.severity == "warning":
                        warnings_by_field[issue.field] += 1
                for field_name, value in result.unmapped_values:
                    unmapped[field_name][value] += 1
                if issues:
                    outcomes.append({
                        "row_index": row.index,
                        "status": "error" if result.has_errors else "valid",
                        "row_identifier": result.row_identifier,
                        "issues": issues,
                    })

                if total % every == 0:
                    self.store.add_outcomes(job.id, VALIDATION_PHASE, outcomes)
                    outcomes = []
                    self.store.update_job(
                        job.id,
                        valid_rows=valid,
                        error_rows=errors,
                        warning_rows=warnings,
                        progress=_percent(total, expected),
                        current_step=f"Validated {total} of {expected} rows",
                    )
                    if self.store.is_cancel_requested(job.id):
                        logger.info("Job %s: validation cancelled after %d rows", job.id, total)
                        return self.store.transition(
                            job.id,
                            JobState.MAPPING,
                            cancel_requested=False,
                            error_sample=error_sample,
                            current_step="Validation cancelled",
                        )
            preview = self._build_preview(source, transformer, mappings) if valid else None
        except UnreadableSource as exc:
            logger.error("Job %s: validation aborted, source unreadable: %s", job.id, exc)
            return self.store.transition(
                job.id, JobState.VALIDATION_FAILED, failure_reason=str(exc), current_step=None,
            )
        except Exception as exc:
            logger.exception("Job %s: validation aborted", job.id)
            self.store.transition(
                job.id, JobState.VALIDATION_FAILED, failure_reason=f"Validation failed: {exc}", current_step=None,
            )
            raise

        self.store.add_outcomes(job.id, VALIDATION_PHASE, outcomes)
        counters = {
            "total_rows": total,
            "valid_rows": valid,
            "error_rows": errors,
            "warning_rows": warnings,
            "error_sample": error_sample,
            "warning_summary": summary(),
            "cancel_requested": False,
        }
        logger.info(
            "Job %s validated: %d rows, %d valid, %d errors, %d with warnings",
            job.id, total, valid, errors, warnings,
        )

        if valid == 0:
            reason = "The file has no data rows" if total == 0 else "No row passed validation"
            return self.store.transition(
                job.id, JobState.VALIDATION_FAILED, failure_reason=reason, progress=100, current_step=None, **counters
            )

        return self.store.transition(
            job.id,
            JobState.PREVIEW_READY,
            preview=preview,
            progress=100,
            current_step="Preview ready",
            **counters,
        )

    def preview(self, tenant_id: str, job_id: str) -> Dict[str, Any]:
        """Side-by-side view of the first rows: source values, transformed values and issues."""
        job = self.store.get_job(tenant_id, job_id)
        rows = job.preview
        if rows is None:
            connector = self._connector_for(job)
            rows = self._build_preview(
                self._open_source(job), self._transformer(connector), self.store.get_mappings(job.id),
            )
        return {
            "job_id": job.id,
            "state": job.state,
            "connector_id": job.connector_id,
            "rows": rows,
            "counters": serialize_job(job)["counters"],
        }

    def _build_preview(
        self,
        source: RowSource,
        transformer: ValueTransformer,
        mappings: Sequence[FieldMapping],
    ) -> List[Dict[str, Any]]:
        rows = []
        for row in source.sample(self.settings.preview_row_count):
            result = transformer.transform_row(row, mappings)
            if result.has_errors:
                status = "error"
            elif result.has_warnings:
                status = "warning"
            else:
                status = "valid"
            rows.append({
                "row_index": row.index,
                "row_number": row.number,
                "row_identifier": result.row_identifier,
                "status": status,
                "source": dict(row.fields),
                "transformed": to_json_safe(result.entity_fields),
                "issues": [issue.to_dict() for issue in result.issues],
            })
        return rows

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def start_import(self, tenant_id: str, job_id: str, confirmation: Optional[str]) -> MigrationJob:
        """Check the confirmation phrase and preconditions, then move the job to IMPORTING."""
        if confirmation != IMPORT_CONFIRMATION:
            raise ConfirmationRequired(IMPORT_CONFIRMATION)
        job = self.store.get_job(tenant_id, job_id)
        if job.state != JobState.PREVIEW_READY.value:
            raise InvalidTransition(job.state, JobState.IMPORTING.value)
        missing = missing_required(self.store.get_mappings(job.id))
        if missing:
            raise MappingError(f"Required fields are not mapped: {', '.join(missing)}", missing)
        self.store.clear_outcomes(job.id, IMPORT_PHASE)
        return self.store.transition(
            job.id,
            JobState.IMPORTING,
            imported_rows=0,
            import_error_rows=0,
            progress=0,
            cancel_requested=False,
            current_step="Importing rows",
        )

    def run_import(self, job_id: str) -> MigrationJob:
        """Commit every valid row, one transaction per row, in file order."""
        job = self.store.get_job_by_id(job_id)
        if job.state != JobState.IMPORTING.value:
            raise InvalidTransition(job.state, JobState.COMPLETED.value)
        connector = self._connector_for(job)
        transformer = self._transformer(connector)
        mappings = self.store.get_mappings(job.id)

        expected = job.total_rows or 0
        every = max(1, self.settings.import_progress_every)
        error_sample = [e for e in (job.error_sample or []) if e.get("phase") != IMPORT_PHASE]
        processed = imported = failed = 0

        logger.info("Job %s: importing %d rows via %s", job.id, job.valid_rows, connector.connector_id)
        try:
            source = self._open_source(job)
            for row in source.iter_rows():
                processed += 1
                result = transformer.transform_row(row, mappings)
                if not result.has_errors:
                    if self._import_row(job, connector, row, result, error_sample, failed):
                        imported += 1
                    else:
                        failed += 1

                if processed % every == 0:
                    self.store.update_job(
                        job.id,
                        progress=_percent(processed, expected),
                        error_sample=error_sample,
                        current_step=f"Imported {imported} rows ({processed} of {expected} processed)",
                    )
                    if self.store.is_cancel_requested(job.id):
                        logger.info("Job %s: import cancelled after %d rows (%d imported)", job.id, processed, imported)
                        return self.store.transition(
                            job.id,
                            JobState.IMPORT_FAILED,
                            failure_reason="cancelled",
                            error_sample=error_sample,
                            current_step="Import cancelled",
                        )
        except UnreadableSource as exc:
            logger.error("Job %s: import aborted, source unreadable: %s", job.id, exc)
            return self.store.transition(
                job.id, JobState.IMPORT_FAILED, failure_reason=str(exc), error_sample=error_sample, current_step=None,
            )
        except Exception as exc:
            logger.exception("Job %s: import aborted", job.id)
            self.store.transition(
                job.id,
                JobState.IMPORT_FAILED,
                failure_reason=f"Import failed: {exc}",
                error_sample=error_sample,
                current_step=None,
            )
            raise

        completed_at = utcnow()
        logger.info("Job %s: import finished, %d imported, %d failed", job.id, imported, failed)
        return self.store.transition(
            job.id,
            JobState.COMPLETED,
            completed_at=completed_at,
            rollback_deadline=rollback_deadline(completed_at, self.settings.rollback_window_days),
            progress=100,
            error_sample=error_sample,
            current_step="Import complete",
        )

    def _import_row(
        self,
        job: MigrationJob,
        connector: Connector,
        row: Row,
        result: TransformResult,
        error_sample: List[Dict[str, Any]],
        failures_so_far: int,
    ) -> bool:
        """Create one row's entities, provenance and counter bump atomically."""
        started = time.monotonic()
        timeout = self.settings.row_commit_timeout_seconds
        session = self.store.session()
        try:
            if session.get_bind().dialect.name == "postgresql":
                session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

            created = self.entity_writer.create_entities(
                session,
                job.tenant_id,
                result.entity_fields,
                result.row_identifier,
                source_system=connector.connector_id,
            )
            entities = []
            for entity in created:
                snapshot = self.entity_writer.snapshot(session, entity.entity_type, entity.entity_id) or {}
                entities.append({
                    "entity_type": entity.entity_type,
                    "entity_id": entity.entity_id,
                    "dependency_rank": entity.dependency_rank,
                    "snapshot_hash": compute_entity_hash(snapshot),
                })
            session.add(MigrationRecord(
                job_id=job.id,
                row_index=row.index,
                row_identifier=result.row_identifier,
                source_row=dict(row.fields),
                entities=entities,
            ))
            session.add(MigrationRowOutcome(
                job_id=job.id,
                row_index=row.index,
                phase=IMPORT_PHASE,
                status="imported",
                row_identifier=result.row_identifier,
                issues=[issue.to_dict() for issue in result.issues],
            ))
            session.execute(
                update(MigrationJob)
                .where(MigrationJob.id == job.id)
                .values(imported_rows=MigrationJob.imported_rows + 1)
            )

            elapsed = time.monotonic() - started
            if elapsed > timeout:
                raise RowCommitTimeout(f"Row transaction took {elapsed:.2f}s (limit {timeout:.2f}s)")
            session.commit()
            return True
        except Exception as exc:
            session.rollback()
            self._record_import_failure(job, row, result, exc, error_sample, failures_so_far)
            return False
        finally:
            session.close()

    def _record_import_failure(
        self,
        job: MigrationJob,
        row: Row,
        result: TransformResult,
        exc: Exception,
        error_sample: List[Dict[str, Any]],
        failures_so_far: int,
    ) -> None:
        message = str(exc) or exc.__class__.__name__
        issues = [{"field": "_row", "severity": "error", "message": f"Import failed: {message}", "value": None}]
        if failures_so_far < ROW_FAILURE_LOG_LIMIT or failures_so_far % ROW_FAILURE_LOG_EVERY == 0:
            logger.warning("Job %s: row %d failed to import: %s", job.id, row.number, message)
        if len(error_sample) < self.settings.error_sample_limit:
            error_sample.append(_error_entry(IMPORT_PHASE, row, result.row_identifier, issues))

        with self.store.session() as session:
            session.add(MigrationRowOutcome(
                job_id=job.id,
                row_index=row.index,
                phase=IMPORT_PHASE,
                status="failed",
                row_identifier=result.row_identifier,
                issues=issues,
            ))
            session.execute(
                update(MigrationJob)
                .where(MigrationJob.id == job.id)
                .values(import_error_rows=MigrationJob.import_error_rows + 1)
            )
            session.commit()

    def cancel(self, tenant_id: str, job_id: str) -> MigrationJob:
        """Ask a running validation or import to stop at its next batch boundary."""
        job = self.store.get_job(tenant_id, job_id)
        if job.state not in (JobState.VALIDATING.value, JobState.IMPORTING.value):
            raise InvalidTransition(job.state, "CANCELLED")
        self.store.request_cancel(job.id)
        return self.store.get_job_by_id(job.id)

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback_status(self, tenant_id: str, job_id: str) -> Dict[str, Any]:
        job = self.store.get_job(tenant_id, job_id)
        return rollback_status(job, self.store.count_records(job.id))

    def check_rollback(self, tenant_id: str, job_id: str, confirmation: Optional[str]) -> MigrationJob:
        if confirmation != ROLLBACK_CONFIRMATION:
            raise ConfirmationRequired(ROLLBACK_CONFIRMATION)
        job = self.store.get_job(tenant_id, job_id)
        status = rollback_status(job, self.store.count_records(job.id))
        if not status["available"]:
            raise RollbackUnavailable(status["reason"])
        return job

    def rollback(self, tenant_id: str, job_id: str, confirmation: Optional[str]) -> Dict[str, Any]:
        job = self.check_rollback(tenant_id, job_id, confirmation)
        return self.run_rollback(job.id)

    def run_rollback(self, job_id: str) -> Dict[str, Any]:
        """Undo the import, keeping anything edited since, and close the job."""
        job = self.store.get_job_by_id(job_id)
        status = rollback_status(job, self.store.count_records(job.id))
        if not status["available"]:
            raise RollbackUnavailable(status["reason"])

        self.store.update_job(job.id, current_step="Rolling back")
        report = undo_import(self.store, self.entity_writer, job.id)
        self.store.transition(
            job.id,
            JobState.ROLLED_BACK,
            rollback_report=report,
            current_step=f"Rolled back: {report['removed']} removed, {len(report['skipped'])} kept",
        )
        return report

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self, tenant_id: str, job_id: str) -> Dict[str, Any]:
        job = self.store.get_job(tenant_id, job_id)
        status = serialize_job(job)
        status["percent_complete"] = job.progress
        status["rollback"] = rollback_status(job, self.store.count_records(job.id))
        return status

    def list_jobs(self, tenant_id: str, limit: int = 50, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
        jobs, total = self.store.list_jobs(tenant_id, limit=limit, offset=offset)
        return [serialize_job(job) for job in jobs], total

    def list_row_outcomes(
        self,
        tenant_id: str,
        job_id: str,
        status: Optional[str] = None,
        phase: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        return self.store.list_row_outcomes(tenant_id, job_id, status=status, phase=phase, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_source(self, job: MigrationJob) -> RowSource:
        source_file = job.source_file
        return open_source_path(source_file.storage_path, source_file.file_name)

    def _connector_for(self, job: MigrationJob) -> Connector:
        return self.registry.find(job.connector_id) or self.registry.fallback

    def _transformer(self, connector: Connector) -> ValueTransformer:
        return ValueTransformer(connector, dayfirst=self.settings.date_default_dayfirst)

    @staticmethod
    def _ensure_mapping_editable(job: MigrationJob) -> None:
        if job.state not in {state.value for state in MAPPING_EDITABLE_STATES}:
            raise InvalidTransition(job.state, JobState.MAPPING.value)

    @staticmethod
    def _mapping_view(
        job: MigrationJob,
        mappings: Sequence[FieldMapping],
        headers: Optional[Sequence[str]] = None,
        suggestions: Optional[Sequence[MappingSuggestion]] = None,
    ) -> Dict[str, Any]:
        view = {
            "job_id": job.id,
            "state": job.state,
            "connector_id": job.connector_id,
            "template_name": job.template_name,
            "mappings": [m.to_dict() for m in mappings],
            "missing_required": missing_required(mappings),
        }
        if headers is not None:
            view["headers"] = list(headers)
            mapped = {m.source_column for m in mappings}
            view["unmapped_columns"] = [h for h in headers if h not in mapped]
        if suggestions is not None:
            view["suggestions"] = [s.to_dict() for s in suggestions]
        return view
