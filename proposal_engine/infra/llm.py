"""OpenAI client factory for the section generation service."""

from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from proposal_engine.config.settings import Settings, get_settings
from proposal_engine.infra.oauth import resolve_credentials

logger = logging.getLogger(__name__)


def get_openai_client(settings: Settings | None = None) -> AsyncOpenAI:
    """Create an async OpenAI client with retry and timeout policy from settings."""
    settings = settings or get_settings()

    token, base_url, mode = resolve_credentials(settings)
    logger.info("Initializing OpenAI client (mode=%s, base_url=%s)", mode, base_url)
    return AsyncOpenAI(
        api_key=token,
        base_url=base_url,
        max_retries=settings.GENERATION_MAX_RETRIES,
        timeout=float(settings.GENERATION_TIMEOUT_SECONDS),
    )


def resolve_generation_runtime(settings: Settings | None = None) -> tuple[str, Optional[int], float]:
    """Resolve (model, max_tokens, temperature) for section generation calls."""
    settings = settings or get_settings()

    model = settings.OPENAI_MODEL.strip() or "gpt-4o"
    max_tokens = settings.GENERATION_MAX_TOKENS
    if max_tokens is not None and max_tokens <= 0:
        raise ValueError("GENERATION_MAX_TOKENS must be a positive integer")

    temperature = settings.GENERATION_TEMPERATURE
    if not 0.0 <= temperature <= 2.0:
        raise ValueError("GENERATION_TEMPERATURE must be between 0 and 2")

    return model, max_tokens, temperature

