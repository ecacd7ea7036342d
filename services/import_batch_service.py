"""
Import batch service.

An import batch is the durable record of one import attempt. It is created
before any row is written and moves pending -> processing -> completed or
failed. Rows written by the import are traced back to it through the audit
context.
"""

from datetime import datetime
from typing import Any, Optional

import structlog

from config import get_supabase_client
from exceptions import (
    BatchIntegrityError,
    BatchNotFoundError,
    DatabaseError,
    InvalidStatusTransitionError,
)
from models.batch import (
    BatchStatus,
    ImportBatchCreate,
    ImportBatchResponse,
    TERMINAL_STATUSES,
    is_valid_batch_status_transition,
)

logger = structlog.get_logger(__name__)


class ImportBatchService:
    """
    Import batch business logic.

    Handles creation, status transitions and progress of import_batches.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "import_batches"

    # ===================
    # READ OPERATIONS
    # ===================

    def get(self, batch_id: str) -> ImportBatchResponse:
        """
        Get a single batch by ID.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
        """
        logger.debug("getting_import_batch", batch_id=batch_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", batch_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_import_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise BatchNotFoundError(batch_id)

        return self._row_to_response(result.data[0])

    def get_all(
        self,
        dataset_type: Optional[str] = None,
        status: Optional[BatchStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[ImportBatchResponse], int]:
        """
        List batches, newest first.

        Returns:
            Tuple of (batches, total count)
        """
        logger.info(
            "listing_import_batches",
            dataset_type=dataset_type,
            status=status,
            page=page,
        )

        try:
            query = self.db.table(self.table).select("*", count="exact")
            if dataset_type:
                query = query.eq("dataset_type", dataset_type)
            if status:
                query = query.eq("status", BatchStatus(status).value)

            offset = (page - 1) * page_size
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
        except Exception as e:
            logger.error("list_import_batches_failed", error=str(e))
            raise DatabaseError("select", str(e))

        batches = [self._row_to_response(row) for row in result.data]
        return batches, result.count or len(batches)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ImportBatchCreate) -> ImportBatchResponse:
        """
        Create a pending batch.

        Raises:
            BatchIntegrityError: If the batch has no user
            DatabaseError: If the insert fails
        """
        if not data.user_id:
            raise BatchIntegrityError("Import batch requires a user_id")

        row: dict[str, Any] = {
            "filename": data.filename,
            "user_id": data.user_id,
            "dataset_type": data.dataset_type,
            "status": BatchStatus.PENDING.value,
            "total_lines": data.total_lines,
            "processed_lines": 0,
            "error_lines": data.error_lines,
            "skipped_count": data.skipped_count,
            "template_id": data.template_id,
            "diff_summary": data.diff_summary,
            "mapping": data.mapping,
            "file_url": data.file_url,
            "comment": data.comment,
        }
        if data.id:
            row["id"] = data.id

        try:
            result = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("create_import_batch_failed", filename=data.filename, error=str(e))
            raise DatabaseError("insert", str(e), details={"table": self.table})

        if not result.data:
            raise DatabaseError("insert", "no batch row returned", details={"table": self.table})

        batch = self._row_to_response(result.data[0])
        logger.info(
            "import_batch_created",
            batch_id=batch.id,
            dataset_type=data.dataset_type,
            total_lines=data.total_lines,
        )
        return batch

    def transition(
        self,
        batch_id: str,
        new_status: BatchStatus,
        **fields: Any,
    ) -> ImportBatchResponse:
        """
        Move a batch to a new status, writing extra columns alongside.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
            InvalidStatusTransitionError: If the move is not allowed
        """
        current = self.get(batch_id)
        new_status = BatchStatus(new_status)

        if not is_valid_batch_status_transition(current.status, new_status):
            raise InvalidStatusTransitionError(
                current_status=current.status.value,
                new_status=new_status.value,
            )

        payload = {**fields, "status": new_status.value, "updated_at": datetime.utcnow().isoformat()}
        try:
            self.db.table(self.table).update(payload).eq("id", batch_id).execute()
        except Exception as e:
            logger.error(
                "import_batch_transition_failed",
                batch_id=batch_id,
                to_status=new_status.value,
                error=str(e)
            )
            raise DatabaseError("update", str(e), details={"batch_id": batch_id})

        logger.info(
            "import_batch_status_updated",
            batch_id=batch_id,
            from_status=current.status.value,
            to_status=new_status.value,
        )
        known = {k: v for k, v in fields.items() if k in ImportBatchResponse.model_fields}
        return current.model_copy(update={**known, "status": new_status})

    def update_progress(self, batch_id: str, processed_lines: int) -> None:
        """Record how many lines have been written so far."""
        try:
            self.db.table(self.table).update({
                "processed_lines": processed_lines,
                "updated_at": datetime.utcnow().isoformat(),
            }).eq("id", batch_id).execute()
        except Exception as e:
            logger.error("import_batch_progress_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("update", str(e), details={"batch_id": batch_id})

        logger.debug("import_batch_progress", batch_id=batch_id, processed_lines=processed_lines)

    def mark_failed(self, batch_id: str, error: str = "") -> None:
        """
        Best-effort move to failed.

        Used on error paths; a failure here is logged and never masks the
        original error.
        """
        try:
            current = self.get(batch_id)
            if current.status in TERMINAL_STATUSES:
                return
            self.transition(batch_id, BatchStatus.FAILED, comment=error[:2000])
        except Exception as mark_err:
            logger.warning(
                "import_batch_mark_failed_error",
                batch_id=batch_id,
                error=str(mark_err),
            )

    def rollback(self, batch_id: str) -> ImportBatchResponse:
        """
        Undo the row changes of a completed batch (rollback_import_batch RPC).

        Raises:
            BatchNotFoundError: If the batch doesn't exist
            InvalidStatusTransitionError: If the batch is not completed
        """
        batch = self.get(batch_id)
        if batch.status != BatchStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                current_status=batch.status.value,
                new_status="rolled_back",
            )

        logger.info("rolling_back_import_batch", batch_id=batch_id)
        try:
            self.db.rpc("rollback_import_batch", {"p_batch_id": batch_id}).execute()
        except Exception as e:
            logger.error("rollback_import_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("rpc", str(e), details={"function": "rollback_import_batch"})

        logger.info("import_batch_rolled_back", batch_id=batch_id)
        return self.get(batch_id)

    def _row_to_response(self, row: dict) -> ImportBatchResponse:
        """Convert database row to ImportBatchResponse."""
        return ImportBatchResponse(
            id=str(row["id"]),
            filename=row.get("filename") or "",
            user_id=row.get("user_id"),
            dataset_type=row.get("dataset_type"),
            status=row.get("status") or BatchStatus.PENDING.value,
            total_lines=row.get("total_lines") or 0,
            processed_lines=row.get("processed_lines") or 0,
            error_lines=row.get("error_lines") or 0,
            created_count=row.get("created_count"),
            updated_count=row.get("updated_count"),
            skipped_count=row.get("skipped_count"),
            diff_summary=row.get("diff_summary"),
            template_id=row.get("template_id"),
            mapping=row.get("mapping"),
            file_url=row.get("file_url"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


# Singleton instance
_import_batch_service: Optional[ImportBatchService] = None


def get_import_batch_service() -> ImportBatchService:
    """Get or create ImportBatchService instance."""
    global _import_batch_service
    if _import_batch_service is None:
        _import_batch_service = ImportBatchService()
    return _import_batch_service
