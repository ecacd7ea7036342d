"""
API route modules.

Each module defines routes for one area of the import workflow.
"""

from routes.imports import router as imports_router
from routes.batches import router as batches_router
from routes.templates import router as templates_router
from routes.functions import router as functions_router

__all__ = [
    "imports_router",
    "batches_router",
    "templates_router",
    "functions_router",
]
