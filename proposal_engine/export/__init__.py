"""
Export module for proposal documents.

Provides text assembly, prose-to-block structuring, and PDF/DOCX
renderers that consume the block list.
"""

from .assembler import assemble_text
from .blocks import Block, Span, group_by_part, structure_text, DEFAULT_RULES
from .preview import get_preview_data
from .pdf import generate_pdf, render_html
from .docx import build_docx, generate_docx

__all__ = [
    "assemble_text",
    "Block",
    "Span",
    "group_by_part",
    "structure_text",
    "DEFAULT_RULES",
    "get_preview_data",
    "generate_pdf",
    "render_html",
    "build_docx",
    "generate_docx",
]
