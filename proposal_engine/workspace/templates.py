"""Section structure resolution for new proposals."""

from typing import Protocol, runtime_checkable

DEFAULT_STRUCTURE: tuple[str, ...] = (
    "Executive Summary",
    "Programme",
    "Impact",
    "Budget",
    "The Ask",
)


@runtime_checkable
class TemplateResolver(Protocol):
    """Maps funder/grant context to an ordered list of section names."""

    def resolve(self, context: dict) -> list[str]:
        ...


class StaticTemplateResolver:
    """Returns the same structure for every context, unless the context names one."""

    def __init__(self, structure: list[str] | tuple[str, ...] | None = None):
        self._structure = [name for name in (structure or DEFAULT_STRUCTURE) if str(name).strip()]
        if not self._structure:
            raise ValueError("Template structure must name at least one section")

    def resolve(self, context: dict | None = None) -> list[str]:
        override = (context or {}).get("structure")
        if isinstance(override, (list, tuple)) and any(str(name).strip() for name in override):
            return [str(name).strip() for name in override if str(name).strip()]
        return list(self._structure)
