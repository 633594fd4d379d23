"""
Proposal engine FastAPI API.

Provides REST endpoints for documents, sections, generation and export.
"""

from .main import app

__all__ = ["app"]
