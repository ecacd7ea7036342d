"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
)
from models.rows import (
    DatasetType,
    MappingRow,
    ClassificationRow,
    ROW_MODELS,
    REQUIRED_FIELDS,
    dataset_fields,
)
from models.imports import (
    RowError,
    ValidRow,
    ValidationReport,
    DiffStatus,
    DiffItem,
    DiffCounts,
    DiffResult,
    ResolutionAction,
    FieldChoice,
    Resolution,
    BulkResolveRequest,
    ApplyMode,
    ImportPlan,
    ApplyResult,
)
from models.batch import (
    BatchStatus,
    ImportBatchCreate,
    ImportBatchResponse,
    ImportBatchListResponse,
    is_valid_batch_status_transition,
)
from models.template import (
    MappingTemplateCreate,
    MappingTemplateResponse,
    MappingTemplateListResponse,
)
from models.functions import (
    ProcessImportRequest,
    ProcessImportResponse,
    ProcessImportAccepted,
    BulkReplaceRequest,
    BulkReplaceResponse,
)
from models.draft import (
    DRAFT_VERSION,
    WizardStep,
    ImportDraft,
    DraftSummary,
)

__all__ = [
    # Base
    "BaseSchema",

    # Rows
    "DatasetType",
    "MappingRow",
    "ClassificationRow",
    "ROW_MODELS",
    "REQUIRED_FIELDS",
    "dataset_fields",

    # Imports
    "RowError",
    "ValidRow",
    "ValidationReport",
    "DiffStatus",
    "DiffItem",
    "DiffCounts",
    "DiffResult",
    "ResolutionAction",
    "FieldChoice",
    "Resolution",
    "BulkResolveRequest",
    "ApplyMode",
    "ImportPlan",
    "ApplyResult",

    # Batches
    "BatchStatus",
    "ImportBatchCreate",
    "ImportBatchResponse",
    "ImportBatchListResponse",
    "is_valid_batch_status_transition",

    # Templates
    "MappingTemplateCreate",
    "MappingTemplateResponse",
    "MappingTemplateListResponse",

    # Functions
    "ProcessImportRequest",
    "ProcessImportResponse",
    "ProcessImportAccepted",
    "BulkReplaceRequest",
    "BulkReplaceResponse",

    # Drafts
    "DRAFT_VERSION",
    "WizardStep",
    "ImportDraft",
    "DraftSummary",
]
