"""
Rollback of a completed import.

Every imported row has one ``MigrationRecord`` listing the entities it
created, each with a hash of the entity as it was written. Rolling back
walks those entities links first, then leaves, then roots (and later rows
before earlier ones):

- if the live entity no longer hashes to the snapshot, somebody edited it
  after the import; its record is flagged ``modified_after_import`` and the
  entity is kept
- whatever an edited entity is connected to through the imported links is
  kept too, so an edited case keeps its people and intakes
- anything a kept entity points at is kept
- otherwise the entity is deleted and dropped from its record; a record
  with no entities left is removed

Each entity is handled in its own transaction, so a rollback interrupted
half-way leaves a consistent (partially rolled back) job behind.
"""
import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from migration_engine.db.models import MigrationJob, MigrationRecord
from migration_engine.domain.entities import EntityWriter
from migration_engine.domain.migrations.state import JobState
from migration_engine.domain.migrations.store import JobStore
from migration_engine.utils.date import ensure_utc, utcnow

logger = logging.getLogger(__name__)

CONFIRMATION_PHRASE = "ROLLBACK"

SKIP_MODIFIED = "modified after import"
SKIP_DEPENDENT = "dependent entity retained"
SKIP_REFERENCED = "still referenced by other data"
SKIP_MISSING = "entity no longer exists"


def compute_entity_hash(values: Dict[str, Any]) -> str:
    """
    Compute SHA-256 hash of entity values for edit detection.

    Args:
        values: Dictionary of column name -> value pairs

    Returns:
        SHA-256 hash hex string
    """
    sorted_items = sorted(values.items())
    json_str = json.dumps(sorted_items, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode()).hexdigest()


def rollback_deadline(completed_at: datetime, window_days: int) -> datetime:
    return ensure_utc(completed_at) + timedelta(days=window_days)


def rollback_status(
    job: MigrationJob,
    record_counts: Tuple[int, int],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Whether ``job`` can be rolled back right now, and why not if it can't."""
    now = now or utcnow()
    total, modified = record_counts
    deadline = ensure_utc(job.rollback_deadline)
    remaining = None
    reason = None

    if job.state == JobState.ROLLED_BACK.value:
        reason = "Job has already been rolled back"
    elif job.state != JobState.COMPLETED.value:
        reason = f"Only completed imports can be rolled back (job is {job.state})"
    elif deadline is None:
        reason = "Job has no rollback deadline"
    elif now > deadline:
        reason = f"Rollback window closed at {deadline.isoformat()}"
    else:
        remaining = int((deadline - now).total_seconds())

    return {
        "available": reason is None,
        "reason": reason,
        "deadline": deadline,
        "remaining_seconds": remaining,
        "record_count": total,
        "modified_record_count": modified,
    }


def _skip(record: MigrationRecord, entry: Dict[str, Any], reason: str) -> Dict[str, Any]:
    return {
        "entity_type": entry["entity_type"],
        "entity_id": entry["entity_id"],
        "row_index": record.row_index,
        "reason": reason,
    }


def _entity_key(entry: Dict[str, Any]) -> Tuple[str, str]:
    return entry["entity_type"], entry["entity_id"]


def _drop_entry(session: Session, record_id: int, entry: Dict[str, Any]) -> None:
    """Remove ``entry`` from its record, and the record once it lists nothing."""
    record = session.get(MigrationRecord, record_id)
    if record is None:
        return
    remaining = [e for e in record.entities if _entity_key(e) != _entity_key(entry)]
    if remaining:
        record.entities = remaining
    else:
        session.delete(record)


def _edited_groups(
    store: JobStore,
    writer: EntityWriter,
    entries: List[Tuple[MigrationRecord, Dict[str, Any]]],
) -> Tuple[Set[Tuple[str, str]], Set[Tuple[str, str]]]:
    """
    Find edited entities and everything linked to them.

    Returns ``(modified, connected)``: ``connected`` holds the entities
    reachable from an edited one through the links the import created.
    """
    modified: Set[Tuple[str, str]] = set()
    neighbours: Dict[Tuple[str, str], Set[Tuple[str, str]]] = {}

    with store.session() as session:
        for _, entry in entries:
            key = _entity_key(entry)
            current = writer.snapshot(session, *key)
            if current is None:
                continue
            if compute_entity_hash(current) != entry["snapshot_hash"]:
                modified.add(key)
            for dependency in writer.dependencies(key[0], current):
                neighbours.setdefault(key, set()).add(dependency)
                neighbours.setdefault(dependency, set()).add(key)

    connected: Set[Tuple[str, str]] = set()
    pending = list(modified)
    while pending:
        key = pending.pop()
        for other in neighbours.get(key, ()):
            if other not in modified and other not in connected:
                connected.add(other)
                pending.append(other)
    return modified, connected


def undo_import(store: JobStore, writer: EntityWriter, job_id: str) -> Dict[str, Any]:
    """
    Delete the entities created by ``job_id`` that are safe to delete.

    Returns ``{"removed": int, "skipped": [...]}`` where ``removed`` counts
    entities. Never raises for a single entity; failures are reported as
    skips.
    """
    records = store.records_for_rollback(job_id)
    entries = [(record, entry) for record in records for entry in record.entities]
    # Records come later rows first; the sort is stable.
    entries.sort(key=lambda item: -item[1]["dependency_rank"])

    modified, retained = _edited_groups(store, writer, entries)
    removed = 0
    skipped: List[Dict[str, Any]] = []

    logger.info("Rolling back job %s: %d records, %d entities", job_id, len(records), len(entries))

    for record, entry in entries:
        key = _entity_key(entry)
        if key in retained:
            skipped.append(_skip(record, entry, SKIP_DEPENDENT))
            continue

        current = None
        with store.session() as session:
            try:
                current = writer.snapshot(session, *key)
                if current is None:
                    # Already gone (deleted by hand); nothing left to undo.
                    _drop_entry(session, record.id, entry)
                    session.commit()
                    skipped.append(_skip(record, entry, SKIP_MISSING))
                    continue

                if key in modified or compute_entity_hash(current) != entry["snapshot_hash"]:
                    session.query(MigrationRecord).filter(MigrationRecord.id == record.id).update(
                        {"modified_after_import": True}
                    )
                    session.commit()
                    retained.update(writer.dependencies(key[0], current))
                    skipped.append(_skip(record, entry, SKIP_MODIFIED))
                    logger.info(
                        "Keeping %s %s from row %d: modified after import", key[0], key[1], record.row_index + 1
                    )
                    continue

                writer.delete(session, *key)
                _drop_entry(session, record.id, entry)
                session.commit()
                removed += 1
            except IntegrityError as exc:
                session.rollback()
                if current is not None:
                    retained.update(writer.dependencies(key[0], current))
                skipped.append(_skip(record, entry, SKIP_REFERENCED))
                logger.warning("Could not delete %s %s: %s", key[0], key[1], exc.orig)
            except SQLAlchemyError as exc:
                session.rollback()
                skipped.append(_skip(record, entry, f"delete failed: {exc.__class__.__name__}"))
                logger.error("Rollback of %s %s failed: %s", key[0], key[1], exc)

    logger.info("Rollback of job %s finished: %d removed, %d skipped", job_id, removed, len(skipped))
    return {"removed": removed, "skipped": skipped}
