"""
Import batch API routes.

History of import attempts, their progress and rollback.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from exceptions import AppError
from models.batch import BatchStatus, ImportBatchListResponse, ImportBatchResponse
from models.rows import DatasetType
from services.import_batch_service import get_import_batch_service

logger = structlog.get_logger(__name__)

router = APIRouter()


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


@router.get("", response_model=ImportBatchListResponse)
async def list_batches(
    dataset_type: Optional[DatasetType] = Query(None, description="Filter by dataset"),
    status: Optional[BatchStatus] = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """List import batches, newest first."""
    try:
        batches, total = get_import_batch_service().get_all(
            dataset_type=dataset_type.value if dataset_type else None,
            status=status,
            page=page,
            page_size=page_size,
        )
        return ImportBatchListResponse(data=batches, total=total)

    except Exception as e:
        return handle_error(e)


@router.get("/{batch_id}", response_model=ImportBatchResponse)
async def get_batch(batch_id: str):
    """
    Get a batch with its progress counters.

    Raises:
        404: Batch not found
    """
    try:
        return get_import_batch_service().get(batch_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{batch_id}/rollback", response_model=ImportBatchResponse)
async def rollback_batch(batch_id: str):
    """
    Undo the row changes of a completed batch.

    Raises:
        404: Batch not found
        422: Batch is not completed
    """
    try:
        return get_import_batch_service().rollback(batch_id)

    except Exception as e:
        return handle_error(e)
