"""
Request schemas of the function endpoints (job and replace-all imports).
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models.rows import DatasetType


class ProcessImportRequest(BaseModel):
    """Body of POST /api/functions/process-import."""
    batch_id: UUID
    dataset_type: DatasetType
    file_path: str = Field(..., min_length=1)
    mapping: dict[str, str] = Field(..., min_length=1)


class ProcessImportResponse(BaseModel):
    ok: bool = True
    batch_id: str
    processed: int


class ProcessImportAccepted(BaseModel):
    """Reply of POST /api/functions/process-import: the job runs after it."""
    ok: bool = True
    batch_id: str
    status: str = "accepted"


class BulkReplaceRequest(BaseModel):
    """
    Body of the replace-all endpoints.

    Accepts the camelCase keys sent by the admin UI.
    """
    model_config = ConfigDict(populate_by_name=True)

    batch_id: UUID = Field(..., alias="batchId")
    rows: list[dict[str, Any]] = Field(..., min_length=1)
    diff_summary: Optional[dict[str, int]] = Field(None, alias="diffSummary")
    template_id: Optional[UUID] = Field(None, alias="templateId")


class BulkReplaceResponse(BaseModel):
    ok: bool = True
    processed: int
    diff_summary: Optional[dict[str, int]] = None
