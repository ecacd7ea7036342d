"""
Mapping template API routes.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from exceptions import AppError
from models.rows import DatasetType
from models.template import (
    MappingTemplateCreate,
    MappingTemplateListResponse,
    MappingTemplateResponse,
)
from services.template_service import get_template_service

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


@router.get("", response_model=MappingTemplateListResponse)
async def list_templates(
    dataset_type: DatasetType = Query(..., description="Dataset the templates map"),
    include_archived: bool = Query(False),
):
    """List templates of a dataset."""
    try:
        templates = get_template_service().get_all(dataset_type, include_archived=include_archived)
        return MappingTemplateListResponse(data=templates, total=len(templates))

    except Exception as e:
        return handle_error(e)


@router.get("/{template_id}", response_model=MappingTemplateResponse)
async def get_template(template_id: str):
    try:
        return get_template_service().get_by_id(template_id)

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=MappingTemplateResponse, status_code=201)
async def create_template(
    data: MappingTemplateCreate,
    x_user_id: Optional[str] = Header(None),
):
    """
    Save a column mapping as a template.

    Raises:
        422: Mapping names fields the dataset doesn't have
    """
    try:
        return get_template_service().create(data, created_by=x_user_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{template_id}/archive", response_model=MappingTemplateResponse)
async def archive_template(template_id: str):
    try:
        return get_template_service().archive(template_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{template_id}/restore", response_model=MappingTemplateResponse)
async def restore_template(template_id: str):
    try:
        return get_template_service().restore(template_id)

    except Exception as e:
        return handle_error(e)


@router.delete("/{template_id}", status_code=204)
async def delete_template(template_id: str):
    try:
        get_template_service().delete(template_id)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)
