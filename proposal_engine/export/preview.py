"""Data shared by every renderer: title, cover metadata and the block list."""

import re
from datetime import date

from ..workspace.models import Document
from .assembler import assemble_text
from .blocks import structure_text

DEFAULT_TITLE = "Funding Proposal"

# Machine-readable ask lines are for extraction, not for readers.
_MARKER_LINE = re.compile(r"^[ \t*]*(?:ASK|BUDGET)_RECOMMENDATION\b.*(?:\n|$)", re.IGNORECASE | re.MULTILINE)


def format_rand(amount: int | float | None) -> str:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        return ""
    return f"R{int(amount):,}"


def build_meta(document: Document) -> dict:
    """Cover metadata pulled from the document context and its ask."""
    context = document.context or {}
    ask_amount = document.ask.amount if document.ask else context.get("ask")
    return {
        "grant_name": context.get("grant_name") or "",
        "funder": context.get("funder") or "",
        "organisation": context.get("organisation") or "",
        "programme_type": context.get("programme_type") or "",
        "ask": format_rand(ask_amount),
        "date": date.today().strftime("%d %B %Y"),
    }


def get_preview_data(document: Document) -> dict:
    """
    Get everything needed to preview or export a document.

    Returns:
        title, cover metadata, the assembled text and its block list
    """
    meta = build_meta(document)
    assembled = assemble_text(document, include_headings=True, heading_prefix="# ")
    assembled = _MARKER_LINE.sub("", assembled).rstrip()
    blocks = structure_text(assembled)
    title = meta["grant_name"] or DEFAULT_TITLE
    return {
        "document_id": document.id,
        "title": title,
        "meta": meta,
        "assembled_text": assembled,
        "blocks": blocks,
    }


def safe_filename(name: str, extension: str) -> str:
    safe_name = "".join(c if c.isalnum() or c in " -_" else "_" for c in (name or "proposal")).strip()
    return f"{safe_name or 'proposal'}.{extension}"
