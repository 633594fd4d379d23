"""Flatten a proposal Document into one text in structure order."""

import re

from ..workspace.models import Document
from ..workspace.sections import is_authoritative

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _normalize(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def assemble_text(
    document: Document,
    include_headings: bool = False,
    heading_prefix: str = "",
) -> str:
    """
    Join the authoritative text of every section with one blank line.

    Empty and errored sections contribute nothing. With ``include_headings``
    each section is prefixed by its name on its own line, after
    ``heading_prefix`` (renderers pass ``"# "`` to get heading blocks).
    """
    parts = []
    for name in document.structure:
        record = document.sections.get(name)
        if not is_authoritative(record):
            continue
        body = _normalize(record.text)
        if not body:
            continue
        parts.append(f"{heading_prefix}{name}\n{body}" if include_headings else body)
    return "\n\n".join(parts)
