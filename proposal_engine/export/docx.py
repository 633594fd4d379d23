"""
Word export for proposal documents.

Builds a python-docx Document from the structured block list: a cover
block with the proposal metadata, then one paragraph (or table row for
key-value pairs) per non-break block.
"""

import io

from docx import Document as WordDocument
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor

from ..workspace.models import Document
from .blocks import (
    BREAK,
    BULLET,
    FIELD,
    HEADING,
    KEY_VALUE,
    PART,
    RULE,
    SPAN_AMOUNT,
    SPAN_BOLD,
    SPAN_PERCENT,
    SUBHEADING,
    Block,
    Span,
)
from .preview import get_preview_data, safe_filename

NAVY = RGBColor(0x1A, 0x1F, 0x36)
RED = RGBColor(0xD0, 0x32, 0x28)
GREY_800 = RGBColor(0x1F, 0x29, 0x37)
GREY_600 = RGBColor(0x4B, 0x55, 0x63)

BODY_FONT = "Calibri"
AMOUNT_FONT = "Consolas"


def set_run_font(run, size=11, bold=False, color=None, name=BODY_FONT):
    run.font.size = Pt(size)
    run.font.bold = bold
    run.font.name = name
    if color is not None:
        run.font.color.rgb = color


def add_runs(paragraph, spans: list[Span], size=11, color=GREY_800):
    """Add one styled run per inline span."""
    for span in spans:
        if not span.text:
            continue
        run = paragraph.add_run(span.text)
        if span.kind == SPAN_BOLD:
            set_run_font(run, size=size, bold=True, color=NAVY)
        elif span.kind == SPAN_AMOUNT:
            set_run_font(run, size=size, bold=True, color=NAVY, name=AMOUNT_FONT)
        elif span.kind == SPAN_PERCENT:
            set_run_font(run, size=size, bold=True, color=RED)
        else:
            set_run_font(run, size=size, color=color)
    return paragraph


def add_rule(doc):
    """Empty paragraph with a bottom border."""
    paragraph = doc.add_paragraph()
    p_pr = paragraph._p.get_or_add_pPr()
    border = OxmlElement("w:pBdr")
    bottom = OxmlElement("w:bottom")
    bottom.set(qn("w:val"), "single")
    bottom.set(qn("w:sz"), "6")
    bottom.set(qn("w:space"), "1")
    bottom.set(qn("w:color"), "E5E7EB")
    border.append(bottom)
    p_pr.append(border)
    return paragraph


def add_heading(doc, text, level, color=NAVY, size=None):
    heading = doc.add_heading(text, level=level)
    for run in heading.runs:
        run.font.color.rgb = color
        if size:
            run.font.size = Pt(size)
    return heading


def add_cover(doc, title: str, meta: dict):
    add_heading(doc, title, 0, size=24)
    rows = [
        ("Funder", meta.get("funder")),
        ("Organisation", meta.get("organisation")),
        ("Programme", meta.get("programme_type")),
        ("Request", meta.get("ask")),
        ("Date", meta.get("date")),
    ]
    for label, value in rows:
        if not value:
            continue
        paragraph = doc.add_paragraph()
        set_run_font(paragraph.add_run(f"{label}: "), bold=True, color=GREY_600)
        set_run_font(paragraph.add_run(str(value)), color=GREY_800)
    add_rule(doc)


def build_docx(title: str, blocks: list[Block], meta: dict | None = None) -> WordDocument:
    """
    Build a Word document from a block list.

    Consecutive key-value blocks share one two-column table.
    """
    doc = WordDocument()
    style = doc.styles["Normal"]
    style.font.name = BODY_FONT
    style.font.size = Pt(11)

    add_cover(doc, title, meta or {})

    table = None
    for block in blocks:
        if block.kind != KEY_VALUE:
            table = None

        if block.kind == BREAK:
            continue
        if block.kind == RULE:
            add_rule(doc)
        elif block.kind == PART:
            add_heading(doc, block.text, 1, color=RED, size=16)
        elif block.kind == HEADING:
            add_heading(doc, block.text, min(max(block.level, 2), 4))
        elif block.kind == SUBHEADING:
            add_heading(doc, block.text, 4, color=GREY_800)
        elif block.kind == FIELD:
            paragraph = doc.add_paragraph()
            set_run_font(paragraph.add_run(f"{block.key}: "), bold=True, color=GREY_600)
            set_run_font(paragraph.add_run(block.value or ""), color=GREY_800)
        elif block.kind == BULLET:
            add_runs(doc.add_paragraph(style="List Bullet"), block.spans)
        elif block.kind == KEY_VALUE:
            if table is None:
                table = doc.add_table(rows=0, cols=2)
                table.alignment = WD_TABLE_ALIGNMENT.CENTER
                table.style = "Table Grid"
            cells = table.add_row().cells
            cells[0].text = block.key or ""
            for run in cells[0].paragraphs[0].runs:
                set_run_font(run, size=10, bold=True, color=NAVY)
            add_runs(cells[1].paragraphs[0], block.spans, size=10)
        else:
            paragraph = add_runs(doc.add_paragraph(), block.spans)
            paragraph.paragraph_format.space_after = Pt(6)

    return doc


def generate_docx(document: Document) -> tuple[bytes, str]:
    """
    Generate a .docx file from a proposal document.

    Returns:
        Tuple of (docx_bytes, filename)
    """
    preview_data = get_preview_data(document)
    if not preview_data["blocks"]:
        raise ValueError("Document has no content to export")

    word_document = build_docx(preview_data["title"], preview_data["blocks"], preview_data["meta"])
    buffer = io.BytesIO()
    word_document.save(buffer)
    return buffer.getvalue(), safe_filename(preview_data["title"], "docx")
