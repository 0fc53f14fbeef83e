"""
Shared dependencies for the API: tenant scoping, the process-wide
orchestrator and worker pool, and translation of domain errors to HTTP.

Tests replace ``get_orchestrator`` and ``get_worker_pool`` through
``app.dependency_overrides``.
"""
import logging
from typing import Optional

from fastapi import Header, HTTPException

from migration_engine.core.config import settings
from migration_engine.db.session import get_session_local
from migration_engine.domain.entities import SqlEntityWriter
from migration_engine.domain.migrations.errors import (
    FileTooLarge,
    InvalidTransition,
    JobBusy,
    JobNotFound,
    MappingError,
    MigrationError,
    RollbackUnavailable,
    TemplateNotFound,
)
from migration_engine.domain.migrations.orchestrator import MigrationOrchestrator
from migration_engine.domain.migrations.store import JobStore
from migration_engine.domain.migrations.worker import MigrationWorkerPool

logger = logging.getLogger(__name__)

_orchestrator: Optional[MigrationOrchestrator] = None
_worker_pool: Optional[MigrationWorkerPool] = None


def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> str:
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is required")
    return x_tenant_id.strip()


def get_orchestrator() -> MigrationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        store = JobStore(get_session_local())
        _orchestrator = MigrationOrchestrator(store, SqlEntityWriter(), settings=settings)
    return _orchestrator


def get_worker_pool() -> MigrationWorkerPool:
    global _worker_pool
    if _worker_pool is None:
        _worker_pool = MigrationWorkerPool(settings.import_max_workers)
    return _worker_pool


def shutdown_worker_pool() -> None:
    global _worker_pool
    if _worker_pool is not None:
        _worker_pool.shutdown(wait=False)
        _worker_pool = None


def to_http_error(exc: MigrationError) -> HTTPException:
    """Map a domain error onto the HTTP status the API documents for it."""
    if isinstance(exc, (JobNotFound, TemplateNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransition, JobBusy, RollbackUnavailable)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, FileTooLarge):
        return HTTPException(status_code=413, detail=str(exc))
    if isinstance(exc, MappingError) and exc.missing_fields:
        return HTTPException(status_code=400, detail={"message": str(exc), "missing_fields": exc.missing_fields})
    return HTTPException(status_code=400, detail=str(exc))
