"""
Section state store operations on a proposal Document.

Records are keyed by section name; the Document's structure list fixes
their order. A record's text is authoritative only when it is non-empty
and carries no error tag.
"""

from enum import Enum
from typing import Optional

from .models import Document, SectionRecord


class SectionState(str, Enum):
    EMPTY = "empty"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"
    MANUALLY_EDITED = "manually_edited"


_MUTABLE_FIELDS = {
    "text",
    "generated_at",
    "edited_at",
    "is_manual_edit",
    "custom_instructions",
    "history",
    "error_kind",
}


def is_authoritative(record: Optional[SectionRecord]) -> bool:
    """Whether a record's text is real content rather than empty or an error marker."""
    if record is None or record.error_kind is not None:
        return False
    return isinstance(record.text, str) and record.text.strip() != ""


def section_state(record: Optional[SectionRecord], generating: bool = False) -> SectionState:
    if generating:
        return SectionState.GENERATING
    if record is None:
        return SectionState.EMPTY
    if record.error_kind is not None:
        return SectionState.ERROR
    if not is_authoritative(record):
        return SectionState.EMPTY
    if record.is_manual_edit:
        return SectionState.MANUALLY_EDITED
    return SectionState.READY


def get_section(document: Document, name: str) -> Optional[SectionRecord]:
    return document.sections.get(name)


def upsert_section(document: Document, name: str, **partial) -> SectionRecord:
    """
    Create or update a section record in place.

    Unknown names are appended to the structure. Only record fields may be
    passed; anything else raises TypeError the way a bad keyword would.
    """
    unknown = set(partial) - _MUTABLE_FIELDS
    if unknown:
        raise TypeError(f"Unknown section fields: {', '.join(sorted(unknown))}")

    if name not in document.structure:
        document.structure.append(name)

    record = document.sections.get(name)
    if record is None:
        record = SectionRecord(name=name, ordinal=document.structure.index(name))
        document.sections[name] = record

    for key, value in partial.items():
        setattr(record, key, value)
    return record


def list_sections(document: Document) -> list[SectionRecord]:
    """Return one record per structure entry, creating empty ones for gaps."""
    records = []
    for ordinal, name in enumerate(document.structure):
        record = document.sections.get(name)
        if record is None:
            record = SectionRecord(name=name, ordinal=ordinal)
            document.sections[name] = record
        record.ordinal = ordinal
        records.append(record)
    return records


def apply_structure(document: Document, structure: list[str]) -> Document:
    """
    Reconcile the document with a new ordered section list.

    Surviving names keep their text and history, new names start empty,
    ordinals are renumbered and records for dropped names are discarded.
    """
    ordered: list[str] = []
    for name in structure:
        name = str(name).strip()
        if name and name not in ordered:
            ordered.append(name)

    sections: dict[str, SectionRecord] = {}
    for ordinal, name in enumerate(ordered):
        record = document.sections.get(name) or SectionRecord(name=name, ordinal=ordinal)
        record.ordinal = ordinal
        sections[name] = record

    document.structure = ordered
    document.sections = sections
    return document


def get_progress(document: Document) -> dict:
    """Completion counters over authoritative sections only."""
    total = len(document.structure)
    pending = [
        name for name in document.structure
        if not is_authoritative(document.sections.get(name))
    ]
    completed = total - len(pending)
    percent = round(completed / total * 100) if total else 0
    return {
        "completed": completed,
        "total": total,
        "percent": percent,
        "all_done": total > 0 and completed == total,
        "pending": pending,
    }


def describe_section(record: SectionRecord, generating: bool = False) -> dict:
    """Serialize a record for API responses, including its derived state."""
    payload = record.to_dict()
    payload["state"] = section_state(record, generating=generating).value
    payload["is_authoritative"] = is_authoritative(record)
    return payload
