from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class MappingEntry(BaseModel):
    """One source column -> target field assignment."""
    source_column: str
    target_field: str
    transform: Optional[str] = None  # Defaults to the target field's transform

    @field_validator("source_column", "target_field")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class MappingUpdateRequest(BaseModel):
    mappings: List[MappingEntry]


class ConnectorSelectRequest(BaseModel):
    connector_id: str


class TemplateApplyRequest(BaseModel):
    name: str


class ConfirmationRequest(BaseModel):
    confirmation: Optional[str] = None


class TemplateSaveRequest(BaseModel):
    """Save either an explicit mapping list or the current mapping of a job."""
    name: str
    mappings: Optional[List[MappingEntry]] = None
    job_id: Optional[str] = None
    connector_id: Optional[str] = None
    headers: Optional[List[str]] = None


class TaskResponse(BaseModel):
    task_id: str
    job_id: str
    action: str
    status: str
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class MigrationJobResponse(BaseModel):
    success: bool
    job: Dict[str, Any]


class MigrationJobListResponse(BaseModel):
    success: bool
    jobs: List[Dict[str, Any]]
    total_count: int
    limit: int
    offset: int


class RowOutcomeListResponse(BaseModel):
    success: bool
    rows: List[Dict[str, Any]]
    total_count: int
    limit: int
    offset: int


class TemplateListResponse(BaseModel):
    success: bool
    templates: List[Dict[str, Any]] = Field(default_factory=list)
