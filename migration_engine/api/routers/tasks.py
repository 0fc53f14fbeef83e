"""
Status of background migration tasks (validate, import, rollback).
"""
from fastapi import APIRouter, Depends, HTTPException

from migration_engine.api.dependencies import get_worker_pool
from migration_engine.api.schemas.migrations import TaskResponse
from migration_engine.domain.migrations.worker import MigrationWorkerPool

router = APIRouter(tags=["tasks"])


@router.get("/migration-tasks/{task_id}", response_model=TaskResponse)
async def get_migration_task(task_id: str, pool: MigrationWorkerPool = Depends(get_worker_pool)):
    handle = pool.get_task(task_id)
    if handle is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse(**handle.to_dict())
