"""
Migration job endpoints: upload, mapping review, validation, preview,
import, cancellation and rollback. Every route is scoped to the tenant in
the ``X-Tenant-ID`` header.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from migration_engine.api.dependencies import get_orchestrator, get_tenant_id, get_worker_pool, to_http_error
from migration_engine.api.schemas.migrations import (
    ConfirmationRequest,
    ConnectorSelectRequest,
    MappingUpdateRequest,
    MigrationJobListResponse,
    MigrationJobResponse,
    RowOutcomeListResponse,
    TaskResponse,
    TemplateApplyRequest,
)
from migration_engine.domain.migrations.errors import MigrationError
from migration_engine.domain.migrations.orchestrator import MigrationOrchestrator
from migration_engine.domain.migrations.worker import MigrationWorkerPool

router = APIRouter(tags=["migrations"])


@router.post("/migrations/upload")
async def upload_migration_file(
    file: UploadFile = File(...),
    source_hint: Optional[str] = Form(None),
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a competitor export and detect its format.

    Returns the new job, detection candidates, suggested mappings and any
    warnings. The job waits in MAPPING for the mapping to be reviewed.
    """
    content = await file.read()
    try:
        result = orchestrator.upload(tenant_id, file.filename or "", content, hint=source_hint)
    except MigrationError as exc:
        raise to_http_error(exc)
    return {"success": True, **result}


@router.get("/migrations", response_model=MigrationJobListResponse)
async def list_migrations(
    limit: int = 50,
    offset: int = 0,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    jobs, total = orchestrator.list_jobs(tenant_id, limit=limit, offset=offset)
    return MigrationJobListResponse(success=True, jobs=jobs, total_count=total, limit=limit, offset=offset)


@router.get("/migrations/{job_id}", response_model=MigrationJobResponse)
async def get_migration(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
    pool: MigrationWorkerPool = Depends(get_worker_pool),
):
    try:
        status = orchestrator.get_status(tenant_id, job_id)
    except MigrationError as exc:
        raise to_http_error(exc)
    active = pool.active_task(job_id)
    status["active_task"] = active.to_dict() if active else None
    return MigrationJobResponse(success=True, job=status)


@router.get("/migrations/{job_id}/mappings")
async def get_migration_mappings(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, **orchestrator.get_mappings(tenant_id, job_id)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.put("/migrations/{job_id}/mappings")
async def update_migration_mappings(
    job_id: str,
    request: MappingUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    entries = [entry.model_dump() for entry in request.mappings]
    try:
        return {"success": True, **orchestrator.update_mappings(tenant_id, job_id, entries)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.post("/migrations/{job_id}/connector")
async def select_migration_connector(
    job_id: str,
    request: ConnectorSelectRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, **orchestrator.select_connector(tenant_id, job_id, request.connector_id)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.post("/migrations/{job_id}/template")
async def apply_migration_template(
    job_id: str,
    request: TemplateApplyRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, **orchestrator.apply_template(tenant_id, job_id, request.name)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.post("/migrations/{job_id}/validate", response_model=TaskResponse, status_code=202)
async def validate_migration(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
    pool: MigrationWorkerPool = Depends(get_worker_pool),
):
    """Start validation in the background; poll the returned task or the job."""
    try:
        handle = pool.submit(
            job_id,
            "validate",
            lambda: orchestrator.run_validation(job_id),
            prepare=lambda: orchestrator.begin_validation(tenant_id, job_id),
        )
    except MigrationError as exc:
        raise to_http_error(exc)
    return TaskResponse(**handle.to_dict())


@router.get("/migrations/{job_id}/preview")
async def preview_migration(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, **orchestrator.preview(tenant_id, job_id)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.post("/migrations/{job_id}/import", response_model=TaskResponse, status_code=202)
async def import_migration(
    job_id: str,
    request: ConfirmationRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
    pool: MigrationWorkerPool = Depends(get_worker_pool),
):
    """Start the import. The body must be ``{"confirmation": "IMPORT"}``."""
    try:
        handle = pool.submit(
            job_id,
            "import",
            lambda: orchestrator.run_import(job_id),
            prepare=lambda: orchestrator.start_import(tenant_id, job_id, request.confirmation),
        )
    except MigrationError as exc:
        raise to_http_error(exc)
    return TaskResponse(**handle.to_dict())


@router.post("/migrations/{job_id}/cancel", response_model=MigrationJobResponse)
async def cancel_migration(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        orchestrator.cancel(tenant_id, job_id)
        status = orchestrator.get_status(tenant_id, job_id)
    except MigrationError as exc:
        raise to_http_error(exc)
    return MigrationJobResponse(success=True, job=status)


@router.get("/migrations/{job_id}/rollback")
async def get_migration_rollback_status(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, **orchestrator.rollback_status(tenant_id, job_id)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.post("/migrations/{job_id}/rollback", response_model=TaskResponse, status_code=202)
async def rollback_migration(
    job_id: str,
    request: ConfirmationRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
    pool: MigrationWorkerPool = Depends(get_worker_pool),
):
    """Start a rollback. The body must be ``{"confirmation": "ROLLBACK"}``."""
    try:
        handle = pool.submit(
            job_id,
            "rollback",
            lambda: orchestrator.run_rollback(job_id),
            prepare=lambda: orchestrator.check_rollback(tenant_id, job_id, request.confirmation),
        )
    except MigrationError as exc:
        raise to_http_error(exc)
    return TaskResponse(**handle.to_dict())


@router.get("/migrations/{job_id}/rows", response_model=RowOutcomeListResponse)
async def list_migration_rows(
    job_id: str,
    status: Optional[str] = None,
    phase: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        rows, total = orchestrator.list_row_outcomes(
            tenant_id, job_id, status=status, phase=phase, limit=limit, offset=offset,
        )
    except MigrationError as exc:
        raise to_http_error(exc)
    return RowOutcomeListResponse(success=True, rows=rows, total_count=total, limit=limit, offset=offset)
