"""
Mapping template service.

Saved column mappings ({field: header}) that pre-fill the wizard for
recurring file layouts.
"""

from datetime import datetime
from typing import Optional

import structlog

from config import get_supabase_client
from exceptions import (
    DatabaseError,
    MappingValidationError,
    TemplateNotFoundError,
    ValidationError,
)
from models.rows import DatasetType
from models.template import MappingTemplateCreate, MappingTemplateResponse
from parsers.header_matcher import unknown_fields

logger = structlog.get_logger(__name__)


class TemplateService:
    """
    Mapping template business logic.

    Handles CRUD and archiving for mapping_templates.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "mapping_templates"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        dataset_type: DatasetType,
        include_archived: bool = False,
    ) -> list[MappingTemplateResponse]:
        """
        List templates of a dataset: system first, then defaults, then by name.
        """
        logger.info("getting_templates", dataset_type=dataset_type, include_archived=include_archived)

        try:
            query = (
                self.db.table(self.table)
                .select("*")
                .eq("dataset_type", DatasetType(dataset_type).value)
            )
            if not include_archived:
                query = query.eq("is_archived", False)

            result = (
                query.order("is_system", desc=True)
                .order("is_default", desc=True)
                .order("name")
                .execute()
            )
        except Exception as e:
            logger.error("get_templates_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [MappingTemplateResponse(**row) for row in result.data]

    def get_by_id(self, template_id: str) -> MappingTemplateResponse:
        """
        Raises:
            TemplateNotFoundError: If the template doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", template_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_template_failed", template_id=template_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise TemplateNotFoundError(template_id)
        return MappingTemplateResponse(**result.data[0])

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: MappingTemplateCreate, created_by: Optional[str] = None) -> MappingTemplateResponse:
        """
        Save a new template.

        Raises:
            MappingValidationError: If the mapping names non-canonical fields
        """
        unknown = unknown_fields(data.mapping, data.dataset_type)
        if unknown:
            raise MappingValidationError(missing=[], unknown=unknown)

        row = {
            "name": data.name,
            "description": data.description,
            "dataset_type": data.dataset_type.value,
            "mapping": data.mapping,
            "transforms": None,
            "is_default": data.is_default,
            "created_by": created_by,
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("create_template_failed", name=data.name, error=str(e))
            raise DatabaseError("insert", str(e))

        template = MappingTemplateResponse(**result.data[0])
        logger.info("template_created", template_id=template.id, dataset_type=data.dataset_type.value)
        return template

    def archive(self, template_id: str) -> MappingTemplateResponse:
        """Hide a template from the wizard; an archived template is never default."""
        return self._set_archived(template_id, archived=True)

    def restore(self, template_id: str) -> MappingTemplateResponse:
        return self._set_archived(template_id, archived=False)

    def _set_archived(self, template_id: str, archived: bool) -> MappingTemplateResponse:
        template = self.get_by_id(template_id)
        if template.is_system:
            raise ValidationError("System templates cannot be archived", code="TEMPLATE_LOCKED")

        if archived:
            payload = {"is_archived": True, "archived_at": datetime.utcnow().isoformat(), "is_default": False}
        else:
            payload = {"is_archived": False, "archived_at": None}

        try:
            self.db.table(self.table).update(payload).eq("id", template_id).execute()
        except Exception as e:
            logger.error("archive_template_failed", template_id=template_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("template_archive_toggled", template_id=template_id, archived=archived)
        return template.model_copy(update={
            "is_archived": archived,
            "is_default": False if archived else template.is_default,
            "archived_at": datetime.utcnow() if archived else None,
        })

    def delete(self, template_id: str) -> bool:
        """
        Raises:
            TemplateNotFoundError: If the template doesn't exist
            ValidationError: If the template is a system template
        """
        template = self.get_by_id(template_id)
        if template.is_system:
            raise ValidationError("System templates cannot be deleted", code="TEMPLATE_LOCKED")

        try:
            self.db.table(self.table).delete().eq("id", template_id).execute()
        except Exception as e:
            logger.error("delete_template_failed", template_id=template_id, error=str(e))
            raise DatabaseError("delete", str(e))

        logger.info("template_deleted", template_id=template_id)
        return True


# Singleton instance
_template_service: Optional[TemplateService] = None


def get_template_service() -> TemplateService:
    """Get or create TemplateService instance."""
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
