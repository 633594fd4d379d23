"""
Funding-ask extraction from generated proposal text.

Strategies are tried in order and the first one whose pattern appears in
the text decides the outcome, even when that outcome is "no
recommendation". The structured marker line therefore always wins over the
multiplier heuristic. Extraction is best-effort and returns None rather
than raising.
"""

import logging
import re
from typing import Optional, Protocol

from ..workspace.models import AskRecommendation, Document
from ..workspace.sections import is_authoritative
from .programmes import ProgrammeCatalogue, UnitCostLookup

logger = logging.getLogger(__name__)

_AMOUNT = r"(\d{1,3}(?:[, \u00a0]\d{3})+|\d+)"

_MARKER_RE = re.compile(
    r"(?:ASK|BUDGET)_RECOMMENDATION[*\s]*:[*\s]*"
    r"Type\s*(\d+)\s*,\s*(\d+)\s*cohort(?:\(s\)|s)?\s*,\s*R\s?" + _AMOUNT,
    re.IGNORECASE,
)
_MARKER_KEYWORD_RE = re.compile(r"(?:ASK|BUDGET)_RECOMMENDATION", re.IGNORECASE)

_MULTIPLIER_RE = re.compile(
    r"\b(\d+)\s*(?:[×x*]\s*)?(?:programme\s+)?type\s*(\d+)\b",
    re.IGNORECASE,
)
_TYPE_RE = re.compile(r"\btype\s*(\d+)\b", re.IGNORECASE)
_COHORTS_RE = re.compile(r"\b(\d+)\s*cohorts?\b", re.IGNORECASE)

COHORT_WINDOW_CHARS = 80


def parse_amount(raw: str) -> Optional[int]:
    digits = re.sub(r"[, \u00a0]", "", raw or "")
    if not digits.isdigit():
        return None
    return int(digits)


class AskStrategy(Protocol):
    """A pattern matcher that can recognise and decode one ask convention."""

    name: str

    def matches(self, text: str) -> bool:
        ...

    def extract(self, text: str, lookup: UnitCostLookup) -> Optional[AskRecommendation]:
        ...


class MarkerStrategy:
    """The explicit ``ASK_RECOMMENDATION: Type T, N cohort(s), R<amount>`` line."""

    name = "marker"

    def matches(self, text: str) -> bool:
        return bool(_MARKER_KEYWORD_RE.search(text))

    def extract(self, text: str, lookup: UnitCostLookup) -> Optional[AskRecommendation]:
        match = _MARKER_RE.search(text)
        if not match:
            return None

        type_id = int(match.group(1))
        cohorts = int(match.group(2))
        amount = parse_amount(match.group(3))
        if not lookup.is_known(type_id) or not amount or amount <= 0:
            return None

        return AskRecommendation(
            amount=amount,
            programme_type_id=type_id,
            cohort_multiplier=cohorts,
            source=self.name,
        )


class MultiplierHeuristicStrategy:
    """
    Prose mentions such as "3 × Type 1" or "Type 3 ... 2 cohorts".

    The amount is the cohort count times the programme's unit cost, so
    programmes without a cohort cost yield nothing.
    """

    name = "heuristic"

    def __init__(self, window: int = COHORT_WINDOW_CHARS):
        self.window = window

    def _find(self, text: str) -> Optional[tuple[int, int]]:
        match = _MULTIPLIER_RE.search(text)
        if match:
            return int(match.group(1)), int(match.group(2))

        for type_match in _TYPE_RE.finditer(text):
            start = max(0, type_match.start() - self.window)
            end = min(len(text), type_match.end() + self.window)
            cohorts = _COHORTS_RE.search(text, start, end)
            if cohorts:
                return int(cohorts.group(1)), int(type_match.group(1))
        return None

    def matches(self, text: str) -> bool:
        return self._find(text) is not None

    def extract(self, text: str, lookup: UnitCostLookup) -> Optional[AskRecommendation]:
        found = self._find(text)
        if found is None:
            return None

        cohorts, type_id = found
        if cohorts <= 0 or not lookup.is_known(type_id):
            return None
        unit_cost = lookup.unit_cost(type_id)
        if not unit_cost:
            return None

        return AskRecommendation(
            amount=cohorts * unit_cost,
            programme_type_id=type_id,
            cohort_multiplier=cohorts,
            source=self.name,
        )


DEFAULT_STRATEGIES: tuple[AskStrategy, ...] = (MarkerStrategy(), MultiplierHeuristicStrategy())


def extract_ask(
    text: Optional[str],
    lookup: Optional[UnitCostLookup] = None,
    strategies: tuple[AskStrategy, ...] | list[AskStrategy] = DEFAULT_STRATEGIES,
) -> Optional[AskRecommendation]:
    """Return the ask recommended by ``text``, or None."""
    if not isinstance(text, str) or not text.strip():
        return None
    lookup = lookup or ProgrammeCatalogue()

    for strategy in strategies:
        try:
            if not strategy.matches(text):
                continue
            return strategy.extract(text, lookup)
        except Exception:
            logger.warning("Ask strategy %s failed; treating as no recommendation",
                           getattr(strategy, "name", strategy), exc_info=True)
            return None
    return None


def find_ask_section(document: Document, keyword: str = "budget") -> Optional[str]:
    """First section (in structure order) whose name contains ``keyword``."""
    needle = (keyword or "").strip().lower()
    if not needle:
        return None
    for name in document.structure:
        if needle in name.lower():
            return name
    return None


def extract_document_ask(
    document: Document,
    keyword: str = "budget",
    lookup: Optional[UnitCostLookup] = None,
) -> Optional[AskRecommendation]:
    """Run extraction on the keyword section, ignoring non-authoritative text."""
    name = find_ask_section(document, keyword)
    if name is None:
        return None
    record = document.sections.get(name)
    if not is_authoritative(record):
        return None
    return extract_ask(record.text, lookup)
