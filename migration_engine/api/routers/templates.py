"""
Saved mapping templates, per tenant.
"""
from fastapi import APIRouter, Depends, HTTPException

from migration_engine.api.dependencies import get_orchestrator, get_tenant_id, to_http_error
from migration_engine.api.schemas.migrations import TemplateListResponse, TemplateSaveRequest
from migration_engine.domain.migrations.errors import MigrationError
from migration_engine.domain.migrations.orchestrator import MigrationOrchestrator

router = APIRouter(tags=["migration-templates"])


@router.get("/migration-templates", response_model=TemplateListResponse)
async def list_mapping_templates(
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    return TemplateListResponse(success=True, templates=orchestrator.templates.list_templates(tenant_id))


@router.post("/migration-templates")
async def save_mapping_template(
    request: TemplateSaveRequest,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    """Save explicit mappings, or snapshot the current mapping of ``job_id``."""
    try:
        if request.job_id:
            template = orchestrator.save_template_from_job(tenant_id, request.job_id, request.name)
        elif request.mappings:
            template = orchestrator.templates.save_template(
                tenant_id,
                request.name,
                [entry.model_dump() for entry in request.mappings],
                connector_id=request.connector_id,
                headers=request.headers,
            )
        else:
            raise HTTPException(status_code=400, detail="Provide either mappings or job_id")
    except MigrationError as exc:
        raise to_http_error(exc)
    return {"success": True, "template": template}


@router.get("/migration-templates/{name}")
async def get_mapping_template(
    name: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return {"success": True, "template": orchestrator.templates.load_template(tenant_id, name)}
    except MigrationError as exc:
        raise to_http_error(exc)


@router.delete("/migration-templates/{name}")
async def delete_mapping_template(
    name: str,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    if not orchestrator.templates.delete_template(tenant_id, name):
        raise HTTPException(status_code=404, detail=f"Mapping template '{name}' not found")
    return {"success": True, "deleted": name}
