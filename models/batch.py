"""
Import batch schemas and status rules.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.base import BaseSchema


class BatchStatus(str, Enum):
    """Import batch lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {BatchStatus.COMPLETED, BatchStatus.FAILED}

ALLOWED_TRANSITIONS = {
    BatchStatus.PENDING: {BatchStatus.PROCESSING, BatchStatus.FAILED},
    # processing -> processing is a progress update
    BatchStatus.PROCESSING: {BatchStatus.PROCESSING, BatchStatus.COMPLETED, BatchStatus.FAILED},
    BatchStatus.COMPLETED: set(),
    BatchStatus.FAILED: set(),
}


def is_valid_batch_status_transition(current: BatchStatus, new: BatchStatus) -> bool:
    """
    Check if batch status transition is valid.

    Rules:
    - pending -> processing -> completed | failed
    - pending -> failed (setup failed before any write)
    - completed and failed are terminal
    """
    return new in ALLOWED_TRANSITIONS[current]


class ImportBatchCreate(BaseSchema):
    """New batch row, created before any row mutation."""
    id: Optional[str] = None
    filename: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    dataset_type: str
    total_lines: int = Field(0, ge=0)
    error_lines: int = Field(0, ge=0)
    template_id: Optional[str] = None
    diff_summary: Optional[dict[str, int]] = None
    mapping: Optional[dict[str, str]] = None
    file_url: Optional[str] = None
    skipped_count: int = Field(0, ge=0)
    comment: str = ""


class ImportBatchResponse(BaseSchema):
    id: str
    filename: str
    user_id: Optional[str] = None
    dataset_type: Optional[str] = None
    status: BatchStatus
    total_lines: int = 0
    processed_lines: int = 0
    error_lines: int = 0
    created_count: Optional[int] = None
    updated_count: Optional[int] = None
    skipped_count: Optional[int] = None
    diff_summary: Optional[dict[str, Any]] = None
    template_id: Optional[str] = None
    mapping: Optional[dict[str, Any]] = None
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImportBatchListResponse(BaseModel):
    data: list[ImportBatchResponse]
    total: int
