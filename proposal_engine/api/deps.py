"""
Dependencies for the proposal engine API.

Provides dependency injection for FastAPI routes. The store and
orchestrator are process-wide singletons; tests swap them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from ..config.settings import get_settings
from ..generation.pipeline import GenerationOrchestrator
from ..generation.service import OpenAIGenerationService
from ..workspace.store import DocumentStore
from ..workspace.templates import StaticTemplateResolver, TemplateResolver


@lru_cache
def get_document_store() -> DocumentStore:
    return DocumentStore()


@lru_cache
def get_orchestrator() -> GenerationOrchestrator:
    settings = get_settings()
    return GenerationOrchestrator(
        store=get_document_store(),
        service=OpenAIGenerationService(settings),
        settings=settings,
    )


def get_template_resolver() -> TemplateResolver:
    return StaticTemplateResolver()


# Type aliases for dependency injection
Orchestrator = Annotated[GenerationOrchestrator, Depends(get_orchestrator)]
Resolver = Annotated[TemplateResolver, Depends(get_template_resolver)]
