"""
Import reconciliation schemas: validation report, diff, resolutions, apply.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.base import BaseSchema
from models.rows import DatasetType


# ===================
# VALIDATION
# ===================

class RowError(BaseModel):
    """One failing field of one source row (enough for an error CSV line)."""
    row: int = Field(..., description="Spreadsheet line (1-based, header included)")
    field: str
    message: str
    value: Any = None


class ValidRow(BaseModel):
    """Typed row plus the spreadsheet line it came from."""
    row: int
    data: dict[str, Any]


class ValidationReport(BaseModel):
    """Outcome of validating every row of a file."""
    dataset_type: DatasetType
    total_lines: int = 0
    valid_rows: list[ValidRow] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)
    warnings: list[RowError] = Field(default_factory=list)

    @property
    def error_lines(self) -> int:
        return len({e.row for e in self.errors})

    @property
    def success(self) -> bool:
        return not self.errors


# ===================
# DIFF
# ===================

class DiffStatus(str, Enum):
    """Per-row classification against persisted state."""
    UNCHANGED = "unchanged"
    CREATE = "create"
    UPDATE = "update"
    CONFLICT = "conflict"


class DiffItem(BaseModel):
    key: str
    status: DiffStatus
    before: Optional[dict[str, Any]] = None
    after: dict[str, Any]
    changed_fields: list[str] = Field(default_factory=list)


class DiffCounts(BaseModel):
    unchanged: int = 0
    create: int = 0
    update: int = 0
    conflict: int = 0


class DiffResult(BaseModel):
    counts: DiffCounts = Field(default_factory=DiffCounts)
    items: list[DiffItem] = Field(default_factory=list)


# ===================
# RESOLUTIONS
# ===================

class ResolutionAction(str, Enum):
    KEEP = "keep"        # keep the existing row, drop the change
    REPLACE = "replace"  # imported values win
    MERGE = "merge"      # pick per changed field


class FieldChoice(str, Enum):
    EXISTING = "existing"
    IMPORT = "import"


class Resolution(BaseModel):
    action: ResolutionAction
    field_choices: dict[str, FieldChoice] = Field(default_factory=dict)


class BulkResolveRequest(BaseModel):
    """Apply one action to every diff item with a given status ("all" for every item)."""
    status: str = Field(..., pattern="^(all|unchanged|create|update|conflict)$")
    action: ResolutionAction


# ===================
# APPLY
# ===================

class ApplyMode(str, Enum):
    DIRECT = "direct"   # written now by this process
    ASYNC = "async"     # handed to the process-import job


class ImportPlan(BaseModel):
    """Everything an executor needs to commit one import."""
    dataset_type: DatasetType
    file_name: str
    file_content: Optional[bytes] = None
    column_mapping: dict[str, str] = Field(default_factory=dict)
    items: list[DiffItem] = Field(default_factory=list)
    resolutions: dict[str, Resolution] = Field(default_factory=dict)
    diff_counts: DiffCounts = Field(default_factory=DiffCounts)
    total_lines: int = 0
    error_lines: int = 0
    template_id: Optional[str] = None
    user_id: Optional[str] = None


class ApplyResult(BaseSchema):
    batch_id: str
    mode: ApplyMode
    status: str
    created: int = 0
    updated: int = 0
    skipped: int = 0


# ===================
# WIZARD REQUESTS / RESPONSES
# ===================

class ColumnMappingUpdate(BaseModel):
    mapping: dict[str, str]


class AnalyzeResponse(BaseModel):
    draft_id: str
    total_lines: int
    valid_count: int
    error_count: int
    errors: list[RowError]
    warnings: list[RowError]
    diff: DiffResult
