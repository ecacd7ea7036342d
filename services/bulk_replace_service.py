"""
Replace-all imports.

Admin tooling that swaps the whole content of a dataset table for a new
set of rows: the table is purged, then every row is inserted in chunks.
Rows are checked with the same canonical schema as every other import.
"""

from typing import Any, Optional

import structlog

from config import get_supabase_client
from config.datasets import GENERATED_COLUMNS, get_dataset_config
from config.settings import settings
from exceptions import AppError, DatabaseError, RowValidationError
from models.batch import BatchStatus
from models.functions import BulkReplaceRequest, BulkReplaceResponse
from models.rows import DatasetType
from services.audit_session import AuditSession
from services.import_batch_service import ImportBatchService, get_import_batch_service
from services.import_executor import chunked
from services.process_import_service import MAX_REPORTED_FAILURES, summarize_failures
from services.row_validator import validate_rows

logger = structlog.get_logger(__name__)


def canonical_rows(rows: list[dict[str, Any]], dataset_type: DatasetType) -> list[dict[str, Any]]:
    """
    Validate payload rows (already keyed by field) with the canonical schema.

    Database-computed columns are dropped first; any other unknown key is
    a row error. The table is replaced as a whole, so a repeated natural
    key is an error too rather than a dropped row.

    Raises:
        RowValidationError: If any row fails or repeats a key
    """
    cleaned = [{k: v for k, v in row.items() if k not in GENERATED_COLUMNS} for row in rows]
    identity = {key: key for row in cleaned for key in row}

    report = validate_rows(
        cleaned,
        identity,
        dataset_type,
        line_numbers=list(range(1, len(cleaned) + 1)),
    )
    if report.errors or report.warnings:
        failures = summarize_failures(report.errors + report.warnings)
        raise RowValidationError(errors=failures[:MAX_REPORTED_FAILURES], total_errors=len(failures))

    return [valid.data for valid in report.valid_rows]


class BulkReplaceService:
    """
    Replaces a dataset table under an existing batch.
    """

    def __init__(self, batch_service: Optional[ImportBatchService] = None):
        self.db = get_supabase_client()
        self.batches = batch_service or get_import_batch_service()
        self.chunk_size = settings.import_chunk_size

    def replace_all(self, dataset_type: DatasetType, request: BulkReplaceRequest) -> BulkReplaceResponse:
        """
        Purge the dataset table and insert the payload rows.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
            RowValidationError: If any row fails the canonical schema
            DatabaseError: If the purge or an insert fails
        """
        config = get_dataset_config(dataset_type)
        batch_id = str(request.batch_id)
        diff_summary = request.diff_summary
        template_id = str(request.template_id) if request.template_id else None

        logger.info(
            "replace_all_started",
            batch_id=batch_id,
            dataset_type=config.dataset_type.value,
            rows=len(request.rows),
        )

        self.batches.get(batch_id)

        processed = 0
        try:
            rows = canonical_rows(request.rows, config.dataset_type)
            if config.source_type:
                rows = [{**row, "source_type": config.source_type} for row in rows]

            self.batches.transition(batch_id, BatchStatus.PROCESSING)

            with AuditSession(batch_id, config.replace_reason, config.batch_column, client=self.db) as audit:
                audit.delete_all(config.table, config.key_columns[0])
                for chunk in chunked(rows, self.chunk_size):
                    audit.insert(config.table, chunk)
                    processed += len(chunk)
                    self.batches.update_progress(batch_id, processed)

            self.batches.transition(
                batch_id,
                BatchStatus.COMPLETED,
                processed_lines=processed,
                created_count=processed,
                updated_count=0,
                skipped_count=0,
                diff_summary=diff_summary,
                template_id=template_id,
            )

        except Exception as e:
            logger.error(
                "replace_all_failed",
                batch_id=batch_id,
                processed_so_far=processed,
                error=str(e),
                error_type=type(e).__name__
            )
            self.batches.mark_failed(batch_id, str(e))
            if isinstance(e, AppError):
                raise
            raise DatabaseError("import", str(e), details={"batch_id": batch_id})

        logger.info("replace_all_completed", batch_id=batch_id, processed=processed)
        return BulkReplaceResponse(processed=processed, diff_summary=diff_summary)


_bulk_replace_service: Optional[BulkReplaceService] = None


def get_bulk_replace_service() -> BulkReplaceService:
    """Get or create BulkReplaceService instance."""
    global _bulk_replace_service
    if _bulk_replace_service is None:
        _bulk_replace_service = BulkReplaceService()
    return _bulk_replace_service
