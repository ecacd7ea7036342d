"""
Import wizard service.

Drives one import from upload to apply:
file -> column mapping -> analysis (validation + diff) -> resolutions -> apply.
Each step loads the draft from the DraftStore, changes it and saves it back.
"""

import uuid
from typing import Optional

import structlog
from fastapi import BackgroundTasks

from exceptions import (
    DraftNotFoundError,
    ImportFileParseError,
    MappingValidationError,
    ValidationError,
)
from models.draft import DraftSummary, ImportDraft, WizardStep
from models.imports import (
    AnalyzeResponse,
    ApplyMode,
    ApplyResult,
    BulkResolveRequest,
    ImportPlan,
    Resolution,
)
from models.rows import DatasetType
from parsers.header_matcher import auto_map_fields, missing_required_fields, unknown_fields
from parsers.import_file_parser import read_import_file
from services.diff_engine import (
    ExistingRowRepository,
    compute_diff,
    get_existing_row_repository,
    natural_key,
)
from services.draft_store import DraftStore, get_draft_store
from services.import_executor import DirectExecutor, RemoteExecutor
from services.resolution_service import ResolutionStore
from services.row_validator import errors_to_csv, validate_column_mapping, validate_rows
from services.template_service import TemplateService, get_template_service

logger = structlog.get_logger(__name__)

SAMPLE_ROWS = 5


class ImportWizardService:
    """
    Import wizard business logic.
    """

    def __init__(
        self,
        store: Optional[DraftStore] = None,
        repository: Optional[ExistingRowRepository] = None,
        templates: Optional[TemplateService] = None,
    ):
        self.store = store or get_draft_store()
        self._repository = repository
        self._templates = templates

    @property
    def repository(self) -> ExistingRowRepository:
        if self._repository is None:
            self._repository = get_existing_row_repository()
        return self._repository

    @property
    def templates(self) -> TemplateService:
        if self._templates is None:
            self._templates = get_template_service()
        return self._templates

    # ===================
    # DRAFT LIFECYCLE
    # ===================

    def create_draft(
        self,
        file_name: str,
        content: bytes,
        dataset_type: DatasetType,
        template_id: Optional[str] = None,
    ) -> ImportDraft:
        """
        Parse an uploaded file and open a draft with an initial mapping.

        Raises:
            ImportFileParseError: If the file can't be read or has no header
            TemplateNotFoundError: If template_id is unknown
        """
        dataset_type = DatasetType(dataset_type)
        sheet = read_import_file(content, file_name)
        if not sheet.headers:
            raise ImportFileParseError("File has no header row", details={"file_name": file_name})

        template_mapping = None
        if template_id:
            template = self.templates.get_by_id(template_id)
            if template.dataset_type != dataset_type:
                raise ValidationError(
                    "Template belongs to another dataset",
                    details={"template_dataset_type": template.dataset_type.value},
                )
            template_mapping = template.mapping

        draft = ImportDraft(
            draft_id=str(uuid.uuid4()),
            dataset_type=dataset_type,
            step=WizardStep.MAPPING,
            file_name=file_name,
            file_content=content,
            headers=sheet.headers,
            rows=sheet.rows,
            line_numbers=sheet.line_numbers,
            column_mapping=auto_map_fields(sheet.headers, dataset_type, template_mapping),
            template_id=template_id,
        )
        self.store.save(draft)

        logger.info(
            "import_draft_created",
            draft_id=draft.draft_id,
            dataset_type=dataset_type.value,
            rows=len(draft.rows),
            mapped_fields=len(draft.column_mapping),
        )
        return draft

    def get_draft(self, draft_id: str) -> ImportDraft:
        draft = self.store.load(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return draft

    def discard_draft(self, draft_id: str) -> None:
        self.get_draft(draft_id)
        self.store.clear(draft_id)
        logger.info("import_draft_discarded", draft_id=draft_id)

    def summarize(self, draft: ImportDraft) -> DraftSummary:
        """Client view of a draft (no file bytes)."""
        return DraftSummary(
            draft_id=draft.draft_id,
            dataset_type=draft.dataset_type,
            step=draft.step,
            file_name=draft.file_name,
            headers=draft.headers,
            total_lines=len(draft.rows),
            column_mapping=draft.column_mapping,
            missing_fields=missing_required_fields(draft.column_mapping, draft.dataset_type),
            template_id=draft.template_id,
            sample=draft.rows[:SAMPLE_ROWS],
            errors=draft.validation.errors if draft.validation else [],
            diff=draft.diff,
            resolutions=draft.resolutions,
            batch_id=draft.batch_id,
        )

    # ===================
    # MAPPING
    # ===================

    def update_mapping(self, draft_id: str, mapping: dict[str, str]) -> ImportDraft:
        """
        Replace the column mapping.

        Blank entries are dropped. Any previous analysis and resolutions
        are discarded.

        Raises:
            MappingValidationError: If the mapping names unknown fields
            ValidationError: If a mapped header is not in the file
        """
        draft = self._editable(draft_id)
        mapping = {field: header for field, header in mapping.items() if header}

        unknown = unknown_fields(mapping, draft.dataset_type)
        if unknown:
            raise MappingValidationError(missing=[], unknown=unknown)

        absent = sorted({h for h in mapping.values() if h not in draft.headers})
        if absent:
            raise ValidationError(
                "Mapped headers not found in file",
                code="UNKNOWN_HEADER",
                details={"headers": absent},
            )

        draft.column_mapping = mapping
        draft.validation = None
        draft.diff = None
        draft.resolutions = {}
        draft.step = WizardStep.MAPPING
        self.store.save(draft)

        logger.info("import_draft_mapping_updated", draft_id=draft_id, mapped_fields=len(mapping))
        return draft

    # ===================
    # ANALYSIS
    # ===================

    def analyze(self, draft_id: str) -> AnalyzeResponse:
        """
        Validate every row and diff the valid ones against stored rows.

        Raises:
            MappingValidationError: If required fields are unmapped
        """
        draft = self._editable(draft_id)
        validate_column_mapping(draft.column_mapping, draft.dataset_type)

        report = validate_rows(draft.rows, draft.column_mapping, draft.dataset_type, draft.line_numbers)
        keys = [natural_key(v.data, draft.dataset_type) for v in report.valid_rows]
        existing = self.repository.fetch_by_keys(keys, draft.dataset_type)
        diff = compute_diff(report.valid_rows, existing, draft.dataset_type)

        draft.validation = report
        draft.diff = diff
        draft.resolutions = {}
        draft.step = WizardStep.ANALYSIS
        self.store.save(draft)

        return AnalyzeResponse(
            draft_id=draft_id,
            total_lines=report.total_lines,
            valid_count=len(report.valid_rows),
            error_count=len(report.errors),
            errors=report.errors,
            warnings=report.warnings,
            diff=diff,
        )

    def errors_csv(self, draft_id: str) -> str:
        """Error report of the last analysis as CSV."""
        draft = self._analyzed(draft_id)
        return errors_to_csv(draft.validation.errors)

    # ===================
    # RESOLUTIONS
    # ===================

    def set_resolution(self, draft_id: str, key: str, resolution: Resolution) -> ImportDraft:
        draft = self._analyzed(draft_id)
        if key not in {item.key for item in draft.diff.items}:
            raise ValidationError("Unknown diff key", code="UNKNOWN_DIFF_KEY", details={"key": key})

        store = ResolutionStore(draft.resolutions)
        store.set(key, resolution)
        draft.resolutions = store.as_dict()
        self.store.save(draft)
        return draft

    def bulk_resolve(self, draft_id: str, request: BulkResolveRequest) -> int:
        draft = self._analyzed(draft_id)
        store = ResolutionStore(draft.resolutions)
        touched = store.bulk_resolve(draft.diff.items, request.status, request.action)
        draft.resolutions = store.as_dict()
        self.store.save(draft)
        return touched

    # ===================
    # APPLY
    # ===================

    def build_plan(self, draft: ImportDraft, user_id: Optional[str]) -> ImportPlan:
        return ImportPlan(
            dataset_type=draft.dataset_type,
            file_name=draft.file_name,
            file_content=draft.file_content,
            column_mapping=draft.column_mapping,
            items=draft.diff.items,
            resolutions=draft.resolutions,
            diff_counts=draft.diff.counts,
            total_lines=draft.validation.total_lines,
            error_lines=draft.validation.error_lines,
            template_id=draft.template_id,
            user_id=user_id,
        )

    def apply(
        self,
        draft_id: str,
        mode: ApplyMode,
        user_id: Optional[str],
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> ApplyResult:
        """
        Commit an analyzed draft, directly or through the process-import job.

        Raises:
            BatchIntegrityError: If user_id is missing
            DatabaseError: If a write fails (direct mode)
        """
        draft = self._analyzed(draft_id)
        plan = self.build_plan(draft, user_id)

        if ApplyMode(mode) == ApplyMode.ASYNC:
            result = RemoteExecutor().execute(plan, background_tasks or BackgroundTasks())
        else:
            result = DirectExecutor().execute(plan)

        draft.batch_id = result.batch_id
        draft.step = WizardStep.APPLIED
        self.store.save(draft)

        logger.info("import_draft_applied", draft_id=draft_id, batch_id=result.batch_id, mode=result.mode.value)
        return result

    # ===================
    # HELPERS
    # ===================

    def _editable(self, draft_id: str) -> ImportDraft:
        draft = self.get_draft(draft_id)
        if draft.step == WizardStep.APPLIED:
            raise ValidationError(
                "Draft has already been applied",
                code="DRAFT_ALREADY_APPLIED",
                details={"batch_id": draft.batch_id},
            )
        return draft

    def _analyzed(self, draft_id: str) -> ImportDraft:
        draft = self._editable(draft_id)
        if draft.validation is None or draft.diff is None:
            raise ValidationError("Draft has not been analyzed", code="DRAFT_NOT_ANALYZED")
        return draft


_import_wizard_service: Optional[ImportWizardService] = None


def get_import_wizard_service() -> ImportWizardService:
    """Get or create ImportWizardService instance."""
    global _import_wizard_service
    if _import_wizard_service is None:
        _import_wizard_service = ImportWizardService()
    return _import_wizard_service
