"""
Custom exception classes for the application.

Every error raised by services carries an error code, an HTTP status and
a details dict so routes can return it as-is.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "BATCH_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class AuthorizationError(AppError):
    """Caller could not be authenticated (401)."""

    def __init__(
        self,
        message: str,
        code: str = "UNAUTHORIZED",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=401,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# AUTH ERRORS
# ===================

class WebhookAuthError(AuthorizationError):
    """Missing or invalid webhook shared secret."""

    def __init__(self, reason: str):
        super().__init__(
            code="WEBHOOK_AUTH_FAILED",
            message=reason
        )


class AdminRequiredError(AppError):
    """Caller is authenticated but not an admin (403)."""

    def __init__(self, message: str = "Access denied: unable to verify admin role"):
        super().__init__(
            code="ADMIN_REQUIRED",
            message=message,
            status_code=403
        )


# ===================
# IMPORT FILE / ROW ERRORS
# ===================

class ImportFileParseError(ValidationError):
    """Uploaded file could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="IMPORT_FILE_PARSE_ERROR",
            message=message,
            details=details
        )


class MappingValidationError(ValidationError):
    """Column mapping is incomplete or references unknown fields."""

    def __init__(self, missing: list[str], unknown: list[str]):
        parts = []
        if missing:
            parts.append(f"unmapped required fields: {', '.join(missing)}")
        if unknown:
            parts.append(f"unknown fields: {', '.join(unknown)}")
        super().__init__(
            code="INVALID_COLUMN_MAPPING",
            message="Invalid column mapping (" + "; ".join(parts) + ")",
            details={"missing": missing, "unknown": unknown}
        )


class RowValidationError(ValidationError):
    """One or more rows failed schema validation; nothing was written."""

    def __init__(self, errors: list[dict], total_errors: int):
        super().__init__(
            code="ROW_VALIDATION_FAILED",
            message=f"{total_errors} row(s) failed validation",
            details={"validation_errors": errors, "total_errors": total_errors}
        )


# ===================
# BATCH ERRORS
# ===================

class BatchNotFoundError(NotFoundError):
    """Import batch not found."""

    def __init__(self, batch_id: str):
        super().__init__(
            resource="Import batch",
            identifier=batch_id,
            code="BATCH_NOT_FOUND"
        )


class BatchIntegrityError(ValidationError):
    """Batch cannot be created or used because required metadata is missing."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="BATCH_INTEGRITY_ERROR",
            message=message,
            details=details
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid batch status transition."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
                "reason": "Status only moves forward; completed and failed are terminal"
            }
        )


# ===================
# TEMPLATE / DRAFT ERRORS
# ===================

class TemplateNotFoundError(NotFoundError):
    """Mapping template not found."""

    def __init__(self, template_id: str):
        super().__init__(
            resource="Mapping template",
            identifier=template_id,
            code="TEMPLATE_NOT_FOUND"
        )


class DraftNotFoundError(NotFoundError):
    """Import draft not found or expired."""

    def __init__(self, draft_id: str):
        super().__init__(
            resource="Import draft",
            identifier=draft_id,
            code="DRAFT_NOT_FOUND"
        )
