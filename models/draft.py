"""
Import wizard draft schemas.

A draft is a versioned snapshot of one wizard session. It is saved and
loaded through a DraftStore, never through ambient browser/session state.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.imports import DiffResult, Resolution, RowError, ValidationReport
from models.rows import DatasetType

# Bump when the snapshot layout changes; older snapshots are discarded on load
DRAFT_VERSION = 1


class WizardStep(str, Enum):
    """Where the wizard stands."""
    FILE = "file"
    MAPPING = "mapping"
    ANALYSIS = "analysis"
    APPLIED = "applied"


class ImportDraft(BaseModel):
    """Snapshot of one import session."""
    version: int = DRAFT_VERSION
    draft_id: str
    dataset_type: DatasetType
    step: WizardStep = WizardStep.FILE
    file_name: str
    file_content: bytes = b""
    headers: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    line_numbers: list[int] = Field(default_factory=list)
    column_mapping: dict[str, str] = Field(default_factory=dict)
    template_id: Optional[str] = None
    validation: Optional[ValidationReport] = None
    diff: Optional[DiffResult] = None
    resolutions: dict[str, Resolution] = Field(default_factory=dict)
    batch_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DraftSummary(BaseModel):
    """Draft as returned to the client (no raw file bytes)."""
    draft_id: str
    dataset_type: DatasetType
    step: WizardStep
    file_name: str
    headers: list[str]
    total_lines: int
    column_mapping: dict[str, str]
    missing_fields: list[str]
    template_id: Optional[str] = None
    sample: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)
    diff: Optional[DiffResult] = None
    resolutions: dict[str, Resolution] = Field(default_factory=dict)
    batch_id: Optional[str] = None
