"""
Text generation service boundary.

The orchestrator only depends on the TextGenerationService protocol. The
OpenAI-backed implementation builds a per-section prompt and maps SDK
failures onto tagged GenerationResults instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

import openai

from ..config.settings import Settings, get_settings
from ..infra.llm import get_openai_client, resolve_generation_runtime
from .results import ErrorKind, GenerationResult

logger = logging.getLogger(__name__)

_OUTAGE_STATUS_CODES = {503, 529}
_SIGNAL_LABELS = {
    "grant_name": "Grant",
    "funder": "Funder",
    "programme_type": "Programme type",
    "focus": "Focus areas",
    "location": "Location",
    "funder_budget": "Funder budget",
    "notes": "Programme notes",
    "fit_score": "Fit score",
    "research": "Funder research",
}


@dataclass
class GenerationRequestContext:
    section_name: str
    ordinal: int
    total_sections: int
    prior_sections: list[tuple[str, str]] = field(default_factory=list)
    custom_instructions: str = ""
    signals: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class TextGenerationService(Protocol):
    async def generate(self, context: GenerationRequestContext) -> GenerationResult:
        ...


def _format_signal(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _build_signals_brief(signals: dict[str, Any]) -> str:
    lines = []
    for key, value in signals.items():
        if value in (None, "", [], {}):
            continue
        label = _SIGNAL_LABELS.get(key, key.replace("_", " ").capitalize())
        lines.append(f"- {label}: {_format_signal(value)}")
    if not lines:
        return ""
    return "## Proposal Context\n" + "\n".join(lines)


def _build_prior_context(prior_sections: list[tuple[str, str]], char_limit: int) -> str:
    """Build context string from the sections written before this one."""
    if not prior_sections:
        return ""

    lines = ["## Previously Written Sections (for coherence)"]
    for name, text in prior_sections:
        excerpt = text if char_limit <= 0 or len(text) <= char_limit else text[:char_limit] + "..."
        lines.append(f"\n### {name}")
        lines.append(excerpt)
    return "\n".join(lines)


def build_section_prompt(
    context: GenerationRequestContext,
    prior_context_char_limit: int = 4000,
    ask_keyword: str = "budget",
) -> tuple[str, str]:
    """Return (system_prompt, user_message) for one section."""
    position = f"{context.ordinal + 1} of {context.total_sections}"
    signals_brief = _build_signals_brief(context.signals)
    prior_context = _build_prior_context(context.prior_sections, prior_context_char_limit)

    system_prompt = f"""You are writing one section of a funding proposal.

## Section: {context.section_name} ({position})

{signals_brief}

{prior_context}

## Your Task
Write only the body of this section. The content should be:
- Two to four substantive paragraphs in a warm, confident, specific voice
- Consistent with the sections already written, without repeating them
- Plain text; use numbered headings, bullets or "Label:  value" lines only where they help
- Free of a heading that repeats the section name (the renderer prints it)"""

    if ask_keyword and ask_keyword.lower() in context.section_name.lower():
        system_prompt += """

At the very end of this section add one line in exactly this form:
ASK_RECOMMENDATION: Type [programme type number], [count] cohort(s), R[total amount as integer]"""

    user_message = f"Write the \"{context.section_name}\" section."
    if context.custom_instructions.strip():
        user_message += f"""

## Additional Instructions
{context.custom_instructions.strip()}"""

    return system_prompt, user_message


def _classify_api_error(exc: openai.APIError) -> ErrorKind:
    if isinstance(exc, openai.APIConnectionError):
        return ErrorKind.TRANSPORT
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    status_code = getattr(exc, "status_code", None)
    if status_code in _OUTAGE_STATUS_CODES or "overloaded" in str(exc).lower():
        return ErrorKind.PROVIDER_OUTAGE
    return ErrorKind.PROVIDER_ERROR


class OpenAIGenerationService:
    """Generates section text through the OpenAI chat completions API."""

    def __init__(self, settings: Settings | None = None, client: Any = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_openai_client(self.settings)
        return self._client

    async def generate(self, context: GenerationRequestContext) -> GenerationResult:
        model, max_tokens, temperature = resolve_generation_runtime(self.settings)
        system_prompt, user_message = build_section_prompt(
            context,
            prior_context_char_limit=self.settings.PRIOR_CONTEXT_CHAR_LIMIT,
            ask_keyword=self.settings.ASK_SECTION_KEYWORD,
        )

        request: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": temperature,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**request)
        except openai.APIError as exc:
            kind = _classify_api_error(exc)
            logger.warning(
                "Generation for section '%s' failed (%s): %s", context.section_name, kind.value, exc
            )
            return GenerationResult.failure(kind, str(exc))

        content: Optional[str] = None
        if getattr(response, "choices", None):
            content = response.choices[0].message.content
        return GenerationResult.success(content or "")
