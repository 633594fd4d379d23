"""
Generation module for proposal documents.

Exposes the tagged result types and the text generation service boundary.
The orchestrator lives in ``proposal_engine.generation.pipeline``.
"""

from .results import (
    ErrorKind,
    GenerationResult,
    GenerationServiceError,
    ProviderError,
    TransportError,
    classify_legacy_text,
    sentinel_text,
)
from .service import (
    GenerationRequestContext,
    OpenAIGenerationService,
    TextGenerationService,
    build_section_prompt,
)

__all__ = [
    "ErrorKind",
    "GenerationResult",
    "GenerationServiceError",
    "ProviderError",
    "TransportError",
    "classify_legacy_text",
    "sentinel_text",
    "GenerationRequestContext",
    "OpenAIGenerationService",
    "TextGenerationService",
    "build_section_prompt",
]
