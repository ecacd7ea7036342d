"""
Import executors.

An ImportPlan (resolved diff items plus file metadata) is committed by one
of two executors:

- DirectExecutor writes the rows now, in chunks, inside an audit session.
- RemoteExecutor stores the file, records a pending batch and hands the
  work to the process-import job.

Both return an ApplyResult.
"""

import uuid
from typing import Any, Optional

import structlog
from fastapi import BackgroundTasks

from config import get_supabase_client
from config.datasets import DatasetConfig, GENERATED_COLUMNS, get_dataset_config
from config.settings import settings
from exceptions import AppError, BatchIntegrityError, DatabaseError, ExternalServiceError
from integrations.job_invoker import (
    JobInvocationError,
    build_process_import_payload,
    invoke_process_import,
)
from models.batch import BatchStatus, ImportBatchCreate
from models.imports import ApplyMode, ApplyResult, DiffItem, ImportPlan
from services.audit_session import AuditSession
from services.import_batch_service import ImportBatchService, get_import_batch_service
from services.resolution_service import partition_items

logger = structlog.get_logger(__name__)


def chunked(rows: list, size: int) -> list[list]:
    """Split rows into consecutive slices of at most `size`."""
    return [rows[i:i + size] for i in range(0, len(rows), size)]


def strip_generated(row: dict[str, Any]) -> dict[str, Any]:
    """Drop database-computed columns from a write payload."""
    return {k: v for k, v in row.items() if k not in GENERATED_COLUMNS}


def _insert_payload(row: dict[str, Any], config: DatasetConfig, user_id: str) -> dict[str, Any]:
    payload = strip_generated(row)
    if config.source_type:
        payload["source_type"] = config.source_type
        payload["created_by"] = user_id
    return payload


def _match_existing(item: DiffItem, config: DatasetConfig) -> dict[str, Any]:
    """Key column values of the stored row (updates never match on imported values)."""
    before = item.before or {}
    return {column: before.get(column) for column in config.key_columns}


def _new_batch(plan: ImportPlan, skipped: int, **extra: Any) -> ImportBatchCreate:
    if not plan.user_id:
        raise BatchIntegrityError(
            "Import batch requires a user_id",
            details={"file_name": plan.file_name}
        )
    return ImportBatchCreate(
        filename=plan.file_name,
        user_id=plan.user_id,
        dataset_type=plan.dataset_type.value,
        total_lines=plan.total_lines,
        error_lines=plan.error_lines,
        template_id=plan.template_id,
        diff_summary=plan.diff_counts.model_dump(),
        mapping=plan.column_mapping,
        skipped_count=skipped,
        **extra,
    )


# ===================
# DIRECT
# ===================

class DirectExecutor:
    """
    Writes an import plan synchronously.

    Inserts go in chunks, one chunk at a time, with processed_lines
    updated after each. Updates are row by row, matched on the stored row's
    key columns. A failure marks the batch failed; chunks already written
    stay committed.
    """

    def __init__(
        self,
        batch_service: Optional[ImportBatchService] = None,
        chunk_size: Optional[int] = None,
    ):
        self.db = get_supabase_client()
        self.batches = batch_service or get_import_batch_service()
        self.chunk_size = chunk_size or settings.import_chunk_size

    def execute(self, plan: ImportPlan) -> ApplyResult:
        config = get_dataset_config(plan.dataset_type)
        to_insert, to_update, skipped = partition_items(plan.items, plan.resolutions)

        batch = self.batches.create(_new_batch(plan, skipped))
        batch_id = batch.id

        logger.info(
            "direct_import_started",
            batch_id=batch_id,
            dataset_type=plan.dataset_type.value,
            creates=len(to_insert),
            updates=len(to_update),
            skipped=skipped,
        )

        processed = 0
        try:
            self.batches.transition(batch_id, BatchStatus.PROCESSING)

            with AuditSession(batch_id, config.change_reason, config.batch_column, client=self.db) as audit:
                insert_chunks = chunked(to_insert, self.chunk_size)
                for chunk_number, chunk in enumerate(insert_chunks, start=1):
                    audit.insert(config.table, [_insert_payload(r, config, plan.user_id) for r in chunk])
                    processed += len(chunk)
                    self.batches.update_progress(batch_id, processed)
                    logger.info(
                        "import_chunk_written",
                        batch_id=batch_id,
                        chunk_number=chunk_number,
                        chunks=len(insert_chunks),
                        processed_so_far=processed,
                    )

                for chunk in chunked(to_update, self.chunk_size):
                    for item, merged in chunk:
                        audit.update(config.table, strip_generated(merged), _match_existing(item, config))
                    processed += len(chunk)
                    self.batches.update_progress(batch_id, processed)

            self.batches.transition(
                batch_id,
                BatchStatus.COMPLETED,
                processed_lines=processed,
                created_count=len(to_insert),
                updated_count=len(to_update),
                skipped_count=skipped,
            )

        except Exception as e:
            logger.error(
                "direct_import_failed",
                batch_id=batch_id,
                processed_so_far=processed,
                error=str(e),
                error_type=type(e).__name__
            )
            self.batches.mark_failed(batch_id, str(e))
            if isinstance(e, AppError):
                raise
            raise DatabaseError("import", str(e), details={"batch_id": batch_id})

        logger.info(
            "direct_import_completed",
            batch_id=batch_id,
            created=len(to_insert),
            updated=len(to_update),
            skipped=skipped,
        )
        return ApplyResult(
            batch_id=batch_id,
            mode=ApplyMode.DIRECT,
            status=BatchStatus.COMPLETED.value,
            created=len(to_insert),
            updated=len(to_update),
            skipped=skipped,
        )


# ===================
# REMOTE
# ===================

def storage_path(dataset_type: str, batch_id: str, file_name: str) -> str:
    """Object path of an uploaded import file inside the imports bucket."""
    return f"{dataset_type}/{batch_id}/{file_name}"


def run_process_import_job(payload: dict[str, Any]) -> None:
    """
    Background task body: call the job, marking the batch failed if the
    call itself does not go through.
    """
    try:
        invoke_process_import(payload)
    except JobInvocationError as e:
        get_import_batch_service().mark_failed(payload["batch_id"], str(e))


class RemoteExecutor:
    """
    Hands an import plan to the process-import job.

    The file is uploaded first, then the pending batch is recorded with the
    file location and mapping, then the job call is scheduled. The caller
    gets the batch id back immediately.
    """

    def __init__(self, batch_service: Optional[ImportBatchService] = None):
        self.db = get_supabase_client()
        self.batches = batch_service or get_import_batch_service()
        self.bucket = settings.imports_bucket

    def execute(self, plan: ImportPlan, background_tasks: BackgroundTasks) -> ApplyResult:
        if not plan.file_content:
            raise BatchIntegrityError(
                "Async import requires the original file",
                details={"file_name": plan.file_name}
            )

        _, _, skipped = partition_items(plan.items, plan.resolutions)
        batch_id = str(uuid.uuid4())
        dataset_type = plan.dataset_type.value
        path = storage_path(dataset_type, batch_id, plan.file_name)

        # Validates user_id before anything is uploaded
        batch_data = _new_batch(plan, skipped, id=batch_id, file_url=path)

        try:
            self.db.storage.from_(self.bucket).upload(path, plan.file_content)
        except Exception as e:
            logger.error("import_file_upload_failed", batch_id=batch_id, path=path, error=str(e))
            raise ExternalServiceError("storage", f"Failed to upload import file: {str(e)}", details={"path": path})

        logger.info("import_file_uploaded", batch_id=batch_id, bucket=self.bucket, path=path)

        batch = self.batches.create(batch_data)

        payload = build_process_import_payload(
            batch_id=batch.id,
            dataset_type=dataset_type,
            file_path=path,
            mapping=plan.column_mapping,
        )
        background_tasks.add_task(run_process_import_job, payload)

        logger.info("remote_import_scheduled", batch_id=batch.id, dataset_type=dataset_type)
        return ApplyResult(
            batch_id=batch.id,
            mode=ApplyMode.ASYNC,
            status=BatchStatus.PENDING.value,
            skipped=skipped,
        )
