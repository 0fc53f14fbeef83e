from fastapi import APIRouter, Depends

from migration_engine.api.dependencies import get_orchestrator
from migration_engine.domain.migrations.orchestrator import MigrationOrchestrator

router = APIRouter(tags=["migration-connectors"])


@router.get("/migration-connectors")
async def list_connectors(orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Registered source-system connectors, in detection tie-break order."""
    return {
        "success": True,
        "connectors": [connector.describe() for connector in orchestrator.registry],
    }
