"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    AuthorizationError,
    ExternalServiceError,
    DatabaseError,

    # Auth
    WebhookAuthError,
    AdminRequiredError,

    # Import files and rows
    ImportFileParseError,
    MappingValidationError,
    RowValidationError,

    # Batches
    BatchNotFoundError,
    BatchIntegrityError,
    InvalidStatusTransitionError,

    # Templates / drafts
    TemplateNotFoundError,
    DraftNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "AuthorizationError",
    "ExternalServiceError",
    "DatabaseError",

    # Auth
    "WebhookAuthError",
    "AdminRequiredError",

    # Import files and rows
    "ImportFileParseError",
    "MappingValidationError",
    "RowValidationError",

    # Batches
    "BatchNotFoundError",
    "BatchIntegrityError",
    "InvalidStatusTransitionError",

    # Templates / drafts
    "TemplateNotFoundError",
    "DraftNotFoundError",
]
