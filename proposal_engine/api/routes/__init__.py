"""
API routes for the proposal engine.
"""

from .documents import router as documents_router
from .sections import router as sections_router
from .generate import router as generate_router
from .export import router as export_router

__all__ = [
    "documents_router",
    "sections_router",
    "generate_router",
    "export_router",
]
