"""
Mapping template schemas (saved column mappings).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.base import BaseSchema
from models.rows import DatasetType


class MappingTemplateCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    dataset_type: DatasetType
    mapping: dict[str, str] = Field(..., min_length=1)
    is_default: bool = False


class MappingTemplateResponse(BaseSchema):
    id: str
    name: str
    description: Optional[str] = None
    dataset_type: DatasetType
    mapping: dict[str, str]
    is_default: bool = False
    is_system: bool = False
    is_archived: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None


class MappingTemplateListResponse(BaseModel):
    data: list[MappingTemplateResponse]
    total: int
