"""
Funding-ask extraction for proposal documents.

Provides pluggable strategies that mine a structured funding
recommendation from generated text, and the programme unit-cost catalogue.
"""

from .ask import (
    AskStrategy,
    DEFAULT_STRATEGIES,
    MarkerStrategy,
    MultiplierHeuristicStrategy,
    extract_ask,
    extract_document_ask,
    find_ask_section,
)
from .programmes import DEFAULT_PROGRAMME_TYPES, ProgrammeCatalogue, ProgrammeType

__all__ = [
    "AskStrategy",
    "DEFAULT_STRATEGIES",
    "MarkerStrategy",
    "MultiplierHeuristicStrategy",
    "extract_ask",
    "extract_document_ask",
    "find_ask_section",
    "DEFAULT_PROGRAMME_TYPES",
    "ProgrammeCatalogue",
    "ProgrammeType",
]
