"""
Process-import job.

Runs an asynchronous import recorded by the RemoteExecutor: downloads the
stored file, validates every row strictly and upserts them in chunks.
Nothing is written unless every row is valid.
"""

from collections import defaultdict
from typing import Optional

import structlog
from fastapi import BackgroundTasks

from config import get_supabase_client
from config.datasets import get_dataset_config
from config.settings import settings
from exceptions import AppError, DatabaseError, ExternalServiceError, RowValidationError
from models.batch import BatchStatus
from models.functions import ProcessImportAccepted, ProcessImportRequest, ProcessImportResponse
from models.imports import RowError
from parsers.import_file_parser import read_import_file
from services.audit_session import AuditSession
from services.import_batch_service import ImportBatchService, get_import_batch_service
from services.import_executor import chunked
from services.row_validator import validate_column_mapping, validate_rows

logger = structlog.get_logger(__name__)

MAX_REPORTED_FAILURES = 10


def summarize_failures(errors: list[RowError]) -> list[dict]:
    """Group field errors by source row, in row order."""
    by_row: dict[int, list[dict]] = defaultdict(list)
    for e in errors:
        by_row[e.row].append({"field": e.field, "message": e.message, "value": e.value})
    return [{"row": row, "errors": by_row[row]} for row in sorted(by_row)]


class ProcessImportService:
    """
    Executes one queued import batch.
    """

    def __init__(self, batch_service: Optional[ImportBatchService] = None):
        self.db = get_supabase_client()
        self.batches = batch_service or get_import_batch_service()
        self.bucket = settings.imports_bucket
        self.chunk_size = settings.import_chunk_size

    def _download(self, file_path: str) -> bytes:
        try:
            content = self.db.storage.from_(self.bucket).download(file_path)
        except Exception as e:
            logger.error("import_file_download_failed", file_path=file_path, error=str(e))
            raise ExternalServiceError("storage", f"Failed to download import file: {str(e)}", details={"path": file_path})
        if not content:
            raise ExternalServiceError("storage", "Downloaded import file is empty", details={"path": file_path})
        return content

    def run(self, request: ProcessImportRequest) -> ProcessImportResponse:
        """
        Process a pending batch.

        Raises:
            BatchNotFoundError: If the batch doesn't exist (nothing changes)
            MappingValidationError: If the mapping is incomplete or names unknown fields
            RowValidationError: If any row fails (first failures + total)
            DatabaseError: If a write fails
        """
        batch_id = str(request.batch_id)
        dataset_type = request.dataset_type
        config = get_dataset_config(dataset_type)

        logger.info(
            "process_import_started",
            batch_id=batch_id,
            dataset_type=dataset_type.value,
            file_path=request.file_path,
        )

        self.batches.get(batch_id)

        processed = 0
        try:
            self.batches.transition(batch_id, BatchStatus.PROCESSING)
            validate_column_mapping(request.mapping, dataset_type)

            content = self._download(request.file_path)
            file_name = request.file_path.rsplit("/", 1)[-1]
            sheet = read_import_file(content, file_name)

            report = validate_rows(sheet.rows, request.mapping, dataset_type, sheet.line_numbers)
            if report.errors:
                failures = summarize_failures(report.errors)
                logger.warning(
                    "process_import_rows_invalid",
                    batch_id=batch_id,
                    invalid_rows=len(failures),
                    total_rows=sheet.total_lines,
                )
                raise RowValidationError(
                    errors=failures[:MAX_REPORTED_FAILURES],
                    total_errors=len(failures),
                )

            rows = [valid.data for valid in report.valid_rows]
            if config.source_type:
                rows = [{**row, "source_type": config.source_type} for row in rows]

            with AuditSession(batch_id, config.change_reason, config.batch_column, client=self.db) as audit:
                chunks = chunked(rows, self.chunk_size)
                for chunk_number, chunk in enumerate(chunks, start=1):
                    audit.upsert(config.table, chunk, on_conflict=config.conflict_target)
                    processed += len(chunk)
                    self.batches.update_progress(batch_id, processed)
                    logger.info(
                        "chunk_processed",
                        batch_id=batch_id,
                        chunk_number=chunk_number,
                        processed_so_far=processed,
                        total=len(rows),
                    )

            self.batches.transition(
                batch_id,
                BatchStatus.COMPLETED,
                processed_lines=processed,
                error_lines=0,
            )

        except Exception as e:
            logger.error(
                "process_import_failed",
                batch_id=batch_id,
                processed_so_far=processed,
                error=str(e),
                error_type=type(e).__name__
            )
            self.batches.mark_failed(batch_id, str(e))
            if isinstance(e, AppError):
                raise
            raise DatabaseError("import", str(e), details={"batch_id": batch_id})

        logger.info("process_import_completed", batch_id=batch_id, total_processed=processed)
        return ProcessImportResponse(batch_id=batch_id, processed=processed)

    def accept(self, request: ProcessImportRequest, background_tasks: BackgroundTasks) -> ProcessImportAccepted:
        """
        Check the batch exists and queue the job after the response.

        The caller only waits for this check, never for the import itself.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
        """
        batch_id = str(request.batch_id)
        self.batches.get(batch_id)
        background_tasks.add_task(self.run_detached, request)
        logger.info("process_import_accepted", batch_id=batch_id)
        return ProcessImportAccepted(batch_id=batch_id)

    def run_detached(self, request: ProcessImportRequest) -> None:
        """Background task body. run() has already marked the batch failed on error."""
        try:
            self.run(request)
        except AppError as e:
            logger.warning("process_import_job_ended_with_error", batch_id=str(request.batch_id), code=e.code)


_process_import_service: Optional[ProcessImportService] = None


def get_process_import_service() -> ProcessImportService:
    """Get or create ProcessImportService instance."""
    global _process_import_service
    if _process_import_service is None:
        _process_import_service = ProcessImportService()
    return _process_import_service
