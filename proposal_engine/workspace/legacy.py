"""
Migration of single-blob proposal drafts into per-section records.

Older documents stored the whole proposal as one text. Each section name is
located as a heading line (optionally numbered or marked up with ``#``, in
any case); the text up to the next known heading becomes that section.
"""

import logging
import re
from typing import Optional

from .history import apply_generated_text
from .models import Document, utc_now_iso
from .sections import is_authoritative, list_sections

logger = logging.getLogger(__name__)

_LEADING_NOISE = re.compile(r"^[\s=\-]+")


def _heading_pattern(name: str) -> re.Pattern:
    return re.compile(
        r"^[ \t]*(?:#+[ \t]*)?(?:\d+[.)]?[ \t]*)?" + re.escape(name) + r"[ \t]*:?[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    )


def split_legacy_draft(text: str, structure: list[str]) -> dict[str, str]:
    """Return {section name: text} for every section whose heading is found."""
    if not text or not structure:
        return {}

    patterns = {name: _heading_pattern(name) for name in structure}
    found: dict[str, str] = {}

    for index, name in enumerate(structure):
        match = patterns[name].search(text)
        if not match:
            continue
        start = match.end()

        end = len(text)
        for next_name in structure[index + 1:]:
            next_match = patterns[next_name].search(text, start)
            if next_match:
                end = next_match.start()
                break

        section_text = _LEADING_NOISE.sub("", text[start:end]).strip()
        if section_text:
            found[name] = section_text

    return found


def migrate_legacy_draft(document: Document, text: str, drafted_at: Optional[str] = None) -> dict:
    """
    Fill sections from a legacy draft. Sections that already hold text are left alone.

    Returns the names that were filled and those the draft had no heading for.
    """
    if any(is_authoritative(record) for record in document.sections.values()):
        return {"error": "Document already has section content; migration would overwrite it"}

    split = split_legacy_draft(text, document.structure)
    drafted_at = drafted_at or utc_now_iso()

    migrated = []
    for record in list_sections(document):
        section_text = split.get(record.name)
        if section_text is None:
            continue
        apply_generated_text(record, section_text, drafted_at)
        record.history = []
        migrated.append(record.name)

    missing = [name for name in document.structure if name not in split]
    logger.info(
        "Migrated legacy draft for document %s: %d sections matched, %d missing",
        document.id, len(migrated), len(missing),
    )
    return {"migrated": migrated, "missing": missing}
