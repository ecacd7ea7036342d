"""
Business logic services.

Each service handles one step of the import workflow.
"""

from services.import_batch_service import ImportBatchService, get_import_batch_service
from services.template_service import TemplateService, get_template_service
from services.diff_engine import ExistingRowRepository, compute_diff, natural_key
from services.resolution_service import ResolutionStore, resolve_item
from services.row_validator import validate_rows, errors_to_csv
from services.audit_session import AuditSession
from services.import_executor import DirectExecutor, RemoteExecutor
from services.process_import_service import ProcessImportService, get_process_import_service
from services.bulk_replace_service import BulkReplaceService, get_bulk_replace_service
from services.draft_store import DraftStore, InMemoryDraftStore, get_draft_store
from services.import_wizard_service import ImportWizardService, get_import_wizard_service

__all__ = [
    "ImportBatchService",
    "get_import_batch_service",
    "TemplateService",
    "get_template_service",
    "ExistingRowRepository",
    "compute_diff",
    "natural_key",
    "ResolutionStore",
    "resolve_item",
    "validate_rows",
    "errors_to_csv",
    "AuditSession",
    "DirectExecutor",
    "RemoteExecutor",
    "ProcessImportService",
    "get_process_import_service",
    "BulkReplaceService",
    "get_bulk_replace_service",
    "DraftStore",
    "InMemoryDraftStore",
    "get_draft_store",
    "ImportWizardService",
    "get_import_wizard_service",
]
