"""
Proposal document data model.

A Document is an ordered structure of section names plus one SectionRecord
per name. Documents round-trip through plain dicts (to_dict/from_dict) so the
host application can persist snapshots however it likes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..generation.results import ErrorKind, classify_legacy_text

HISTORY_LIMIT = 3


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class HistoryEntry:
    timestamp: str
    text: str

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        # Older snapshots stored the timestamp under "ts".
        timestamp = data.get("timestamp") or data.get("ts") or utc_now_iso()
        return cls(timestamp=str(timestamp), text=str(data.get("text") or ""))


@dataclass
class SectionRecord:
    name: str
    ordinal: int
    text: Optional[str] = None
    generated_at: Optional[str] = None
    edited_at: Optional[str] = None
    is_manual_edit: bool = False
    custom_instructions: str = ""
    history: list[HistoryEntry] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ordinal": self.ordinal,
            "text": self.text,
            "generated_at": self.generated_at,
            "edited_at": self.edited_at,
            "is_manual_edit": self.is_manual_edit,
            "custom_instructions": self.custom_instructions,
            "history": [entry.to_dict() for entry in self.history],
            "error_kind": self.error_kind.value if self.error_kind else None,
        }

    @classmethod
    def from_dict(cls, data: dict, *, name: str | None = None, ordinal: int = 0) -> "SectionRecord":
        text = data.get("text")
        raw_kind = data.get("error_kind")
        if raw_kind:
            error_kind = ErrorKind(raw_kind)
        elif "error_kind" in data:
            error_kind = None
        else:
            error_kind = classify_legacy_text(text)

        history = [
            HistoryEntry.from_dict(entry)
            for entry in (data.get("history") or [])
            if isinstance(entry, dict)
        ]
        return cls(
            name=data.get("name") or name or "",
            ordinal=int(data.get("ordinal", ordinal)),
            text=text,
            generated_at=data.get("generated_at") or data.get("generatedAt"),
            edited_at=data.get("edited_at") or data.get("editedAt"),
            is_manual_edit=bool(data.get("is_manual_edit", data.get("isManualEdit", False))),
            custom_instructions=(
                data.get("custom_instructions") or data.get("customInstructions") or ""
            ),
            history=history[-HISTORY_LIMIT:],
            error_kind=error_kind,
        )


@dataclass
class AskRecommendation:
    amount: int
    programme_type_id: int
    cohort_multiplier: int
    source: str = "marker"
    provenance: str = "ai-draft"

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "programme_type_id": self.programme_type_id,
            "cohort_multiplier": self.cohort_multiplier,
            "source": self.source,
            "provenance": self.provenance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AskRecommendation":
        return cls(
            amount=int(data["amount"]),
            programme_type_id=int(data["programme_type_id"]),
            cohort_multiplier=int(data["cohort_multiplier"]),
            source=data.get("source", "marker"),
            provenance=data.get("provenance", "ai-draft"),
        )


@dataclass
class Document:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    structure: list[str] = field(default_factory=list)
    sections: dict[str, SectionRecord] = field(default_factory=dict)
    last_full_run_at: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    ask: Optional[AskRecommendation] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "structure": list(self.structure),
            "sections": {name: record.to_dict() for name, record in self.sections.items()},
            "last_full_run_at": self.last_full_run_at,
            "context": dict(self.context),
            "ask": self.ask.to_dict() if self.ask else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        structure = [str(name) for name in (data.get("structure") or data.get("order") or [])]
        raw_sections = data.get("sections") or {}
        sections: dict[str, SectionRecord] = {}
        for name, raw in raw_sections.items():
            if not isinstance(raw, dict):
                continue
            ordinal = structure.index(name) if name in structure else len(structure)
            sections[name] = SectionRecord.from_dict(raw, name=name, ordinal=ordinal)

        raw_ask = data.get("ask")
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            structure=structure,
            sections=sections,
            last_full_run_at=data.get("last_full_run_at"),
            context=dict(data.get("context") or {}),
            ask=AskRecommendation.from_dict(raw_ask) if isinstance(raw_ask, dict) else None,
        )
