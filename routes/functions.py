"""
Function endpoints.

Server-to-server calls authenticated with the shared webhook secret:
the process-import job and the admin replace-all imports.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Header
from fastapi.responses import JSONResponse

from exceptions import AppError
from models.functions import (
    BulkReplaceRequest,
    BulkReplaceResponse,
    ProcessImportAccepted,
    ProcessImportRequest,
)
from models.rows import DatasetType
from services.bulk_replace_service import get_bulk_replace_service
from services.function_auth import ensure_admin, verify_webhook_secret
from services.process_import_service import get_process_import_service

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


@router.post("/process-import", response_model=ProcessImportAccepted, status_code=202)
async def process_import(
    data: ProcessImportRequest,
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Header(None),
):
    """
    Queue a pending import batch (called by the async apply path).

    Returns 202 once the batch is found; the import runs afterwards and
    its outcome is recorded on the batch.

    Raises:
        401: Webhook secret missing or wrong
        404: Batch not found
    """
    try:
        verify_webhook_secret(authorization)
        return get_process_import_service().accept(data, background_tasks)

    except Exception as e:
        return handle_error(e)


def _replace_all(
    dataset_type: DatasetType,
    data: BulkReplaceRequest,
    authorization: Optional[str],
    user_authorization: Optional[str],
):
    try:
        verify_webhook_secret(authorization)
        ensure_admin(user_authorization)
        return get_bulk_replace_service().replace_all(dataset_type, data)

    except Exception as e:
        return handle_error(e)


@router.post("/import-cir-classifications", response_model=BulkReplaceResponse)
async def import_cir_classifications(
    data: BulkReplaceRequest,
    authorization: Optional[str] = Header(None),
    x_user_authorization: Optional[str] = Header(None),
):
    """
    Replace every CIR classification with the payload rows.

    Raises:
        401: Webhook secret missing or wrong
        403: Caller is not an admin
    """
    return _replace_all(DatasetType.CLASSIFICATION, data, authorization, x_user_authorization)


@router.post("/import-cir-segments", response_model=BulkReplaceResponse)
async def import_cir_segments(
    data: BulkReplaceRequest,
    authorization: Optional[str] = Header(None),
    x_user_authorization: Optional[str] = Header(None),
):
    """
    Replace every brand/category mapping with the payload rows.

    Raises:
        401: Webhook secret missing or wrong
        403: Caller is not an admin
    """
    return _replace_all(DatasetType.MAPPING, data, authorization, x_user_authorization)
