"""
Import wizard API routes.

Upload a file, adjust the column mapping, analyze, resolve conflicts and
apply. Every step works on a server-side draft identified by draft_id.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, File, Form, Header, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from exceptions import AppError
from models.draft import DraftSummary
from models.imports import (
    AnalyzeResponse,
    ApplyMode,
    ApplyResult,
    BulkResolveRequest,
    ColumnMappingUpdate,
    Resolution,
)
from models.rows import DatasetType
from services.import_wizard_service import get_import_wizard_service

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

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


# ===================
# DRAFTS
# ===================

@router.post("/drafts", response_model=DraftSummary, status_code=201)
async def create_draft(
    file: UploadFile = File(..., description="CSV or Excel file"),
    dataset_type: DatasetType = Form(...),
    template_id: Optional[str] = Form(None),
):
    """
    Upload a file and open an import draft.

    The column mapping is pre-filled from the template when given,
    otherwise guessed from the headers.

    Raises:
        422: File unreadable or template of another dataset
        404: Template not found
    """
    logger.info(
        "import_upload_started",
        filename=file.filename,
        dataset_type=dataset_type.value,
        template_id=template_id
    )

    try:
        content = await file.read()
        service = get_import_wizard_service()
        draft = service.create_draft(
            file_name=file.filename or "import.xlsx",
            content=content,
            dataset_type=dataset_type,
            template_id=template_id or None,
        )
        return service.summarize(draft)

    except Exception as e:
        return handle_error(e)


@router.get("/drafts/{draft_id}", response_model=DraftSummary)
async def get_draft(draft_id: str):
    """
    Get a draft.

    Raises:
        404: Draft not found or expired
    """
    try:
        service = get_import_wizard_service()
        return service.summarize(service.get_draft(draft_id))

    except Exception as e:
        return handle_error(e)


@router.delete("/drafts/{draft_id}", status_code=204)
async def discard_draft(draft_id: str):
    """Drop a draft."""
    try:
        get_import_wizard_service().discard_draft(draft_id)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)


@router.put("/drafts/{draft_id}/mapping", response_model=DraftSummary)
async def update_mapping(draft_id: str, data: ColumnMappingUpdate):
    """
    Replace the column mapping ({field: header}).

    Clears any previous analysis and resolutions.
    """
    try:
        service = get_import_wizard_service()
        draft = service.update_mapping(draft_id, data.mapping)
        return service.summarize(draft)

    except Exception as e:
        return handle_error(e)


# ===================
# ANALYSIS
# ===================

@router.post("/drafts/{draft_id}/analyze", response_model=AnalyzeResponse)
async def analyze_draft(draft_id: str):
    """
    Validate every row and diff valid rows against stored data.

    Raises:
        422: Required fields unmapped
    """
    try:
        return get_import_wizard_service().analyze(draft_id)

    except Exception as e:
        return handle_error(e)


@router.get("/drafts/{draft_id}/errors.csv")
async def download_errors(draft_id: str):
    """Row errors of the last analysis as a CSV file."""
    try:
        csv_text = get_import_wizard_service().errors_csv(draft_id)
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="import-errors-{draft_id}.csv"'}
        )

    except Exception as e:
        return handle_error(e)


# ===================
# RESOLUTIONS
# ===================

@router.put("/drafts/{draft_id}/resolutions/{key:path}", response_model=DraftSummary)
async def set_resolution(draft_id: str, key: str, resolution: Resolution):
    """Record how one diff item is applied (keep, replace or merge)."""
    try:
        service = get_import_wizard_service()
        draft = service.set_resolution(draft_id, key, resolution)
        return service.summarize(draft)

    except Exception as e:
        return handle_error(e)


@router.post("/drafts/{draft_id}/resolutions/bulk")
async def bulk_resolve(draft_id: str, data: BulkResolveRequest):
    """Apply one action to every diff item of a status ("all" for every item)."""
    try:
        touched = get_import_wizard_service().bulk_resolve(draft_id, data)
        return {"touched": touched}

    except Exception as e:
        return handle_error(e)


# ===================
# APPLY
# ===================

@router.post("/drafts/{draft_id}/apply", response_model=ApplyResult)
async def apply_draft(
    draft_id: str,
    background_tasks: BackgroundTasks,
    mode: ApplyMode = Query(ApplyMode.DIRECT, description="direct or async"),
    x_user_id: Optional[str] = Header(None, description="Authenticated user id"),
):
    """
    Commit an analyzed draft.

    direct: rows are written now, the batch is completed on return.
    async: the file is stored and the process-import job is scheduled;
    the batch is returned pending.

    Raises:
        422: Draft not analyzed or batch without user
        500: Write failed (batch marked failed)
    """
    try:
        return get_import_wizard_service().apply(
            draft_id,
            mode=mode,
            user_id=x_user_id,
            background_tasks=background_tasks,
        )

    except Exception as e:
        return handle_error(e)
