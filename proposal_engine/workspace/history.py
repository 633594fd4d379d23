"""
Bounded revision history for section records.

These helpers are the only code that replaces a record's text. Each keeps
the history at HISTORY_LIMIT entries, evicting the oldest first, and only
ever stores authoritative text.
"""

import logging
from typing import Optional

from ..generation.results import GenerationResult
from .models import HISTORY_LIMIT, HistoryEntry, SectionRecord, utc_now_iso
from .sections import is_authoritative

logger = logging.getLogger(__name__)


def _trim(history: list[HistoryEntry]) -> list[HistoryEntry]:
    while len(history) > HISTORY_LIMIT:
        history.pop(0)
    return history


def push_history(record: SectionRecord, timestamp: Optional[str] = None) -> bool:
    """
    Push the record's current text onto its history if it is authoritative.

    The entry keeps the text's own timestamp (edited for a manual edit,
    generated otherwise), and falls back to ``timestamp`` or the current time.
    Returns whether anything was pushed.
    """
    if not is_authoritative(record):
        return False

    own_ts = record.edited_at if record.is_manual_edit else record.generated_at
    entry_ts = own_ts or record.generated_at or record.edited_at or timestamp or utc_now_iso()
    record.history.append(HistoryEntry(timestamp=entry_ts, text=record.text))
    _trim(record.history)
    return True


def apply_generated_text(record: SectionRecord, text: str, now: Optional[str] = None) -> SectionRecord:
    now = now or utc_now_iso()
    push_history(record, now)
    record.text = text
    record.generated_at = now
    record.edited_at = None
    record.is_manual_edit = False
    record.error_kind = None
    return record


def apply_generation_failure(
    record: SectionRecord,
    result: GenerationResult,
    now: Optional[str] = None,
) -> SectionRecord:
    """Store the failure marker as current text. History is left alone."""
    record.text = result.text
    record.error_kind = result.error_kind
    record.generated_at = now or utc_now_iso()
    record.is_manual_edit = False
    return record


def apply_result(record: SectionRecord, result: GenerationResult, now: Optional[str] = None) -> SectionRecord:
    if result.ok:
        return apply_generated_text(record, result.text, now)
    return apply_generation_failure(record, result, now)


def apply_manual_edit(record: SectionRecord, text: str, now: Optional[str] = None) -> SectionRecord:
    now = now or utc_now_iso()
    push_history(record, now)
    record.text = text
    record.edited_at = now
    record.is_manual_edit = True
    record.error_kind = None
    return record


def restore_version(record: SectionRecord, index: int, now: Optional[str] = None) -> dict:
    """
    Promote history[index] to the current text.

    The restored entry leaves the history before the replaced text is pushed,
    so the same snapshot is never held twice. The result counts as a manual
    edit.
    """
    if not isinstance(index, int) or index < 0 or index >= len(record.history):
        return {"error": f"History index {index} out of range for section '{record.name}'"}

    now = now or utc_now_iso()
    entry = record.history.pop(index)
    push_history(record, now)

    record.text = entry.text
    record.edited_at = now
    record.is_manual_edit = True
    record.error_kind = None
    logger.info("Restored version %d of section '%s'", index, record.name)
    return {"section": record}
