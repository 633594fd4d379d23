"""
Proposal workspace: documents, section records and their revision history.

Provides the section state store, the history helpers that are the only
mutators of section text, template resolution and legacy draft migration.
"""

from .models import (
    AskRecommendation,
    Document,
    HistoryEntry,
    SectionRecord,
    HISTORY_LIMIT,
    utc_now_iso,
)
from .sections import (
    SectionState,
    apply_structure,
    describe_section,
    get_progress,
    get_section,
    is_authoritative,
    list_sections,
    section_state,
    upsert_section,
)
from .history import (
    apply_generated_text,
    apply_generation_failure,
    apply_manual_edit,
    apply_result,
    push_history,
    restore_version,
)
from .store import DocumentStore
from .templates import DEFAULT_STRUCTURE, StaticTemplateResolver, TemplateResolver
from .legacy import migrate_legacy_draft, split_legacy_draft

__all__ = [
    # Models
    "AskRecommendation",
    "Document",
    "HistoryEntry",
    "SectionRecord",
    "HISTORY_LIMIT",
    "utc_now_iso",
    # Sections
    "SectionState",
    "apply_structure",
    "describe_section",
    "get_progress",
    "get_section",
    "is_authoritative",
    "list_sections",
    "section_state",
    "upsert_section",
    # History
    "apply_generated_text",
    "apply_generation_failure",
    "apply_manual_edit",
    "apply_result",
    "push_history",
    "restore_version",
    # Store
    "DocumentStore",
    # Templates
    "DEFAULT_STRUCTURE",
    "StaticTemplateResolver",
    "TemplateResolver",
    # Legacy drafts
    "migrate_legacy_draft",
    "split_legacy_draft",
]
