"""
PDF export for proposal documents.

Uses WeasyPrint to convert the rendered HTML to PDF. The HTML is built from
the structured block list, one element per non-break block, with inline
spans styled by kind.
"""

import io
from html import escape

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

ACCENT_COLOR = "#d03228"
HEADING_COLOR = "#1a1f36"
BODY_COLOR = "#1f2937"
MUTED_COLOR = "#6b7280"


def render_spans(spans: list[Span]) -> str:
    """Render inline spans as escaped HTML."""
    parts = []
    for span in spans:
        text = escape(span.text)
        if span.kind == SPAN_BOLD:
            parts.append(f"<strong>{text}</strong>")
        elif span.kind == SPAN_AMOUNT:
            parts.append(f'<span class="amount">{text}</span>')
        elif span.kind == SPAN_PERCENT:
            parts.append(f'<span class="percent">{text}</span>')
        else:
            parts.append(text)
    return "".join(parts)


def render_block(block: Block) -> str:
    """Render one non-break block as a single HTML element."""
    css = f"block block-{block.kind}"
    if block.kind == RULE:
        return f'<hr class="{css}">'
    if block.kind == PART:
        return f'<h1 class="{css}">{escape(block.text)}</h1>'
    if block.kind == HEADING:
        level = min(max(block.level, 2), 4)
        return f'<h{level} class="{css}">{escape(block.text)}</h{level}>'
    if block.kind == SUBHEADING:
        return f'<h5 class="{css}">{escape(block.text)}</h5>'
    if block.kind == FIELD:
        return (
            f'<p class="{css}"><span class="field-key">{escape(block.key or "")}:</span> '
            f"{escape(block.value or '')}</p>"
        )
    if block.kind == BULLET:
        return f'<li class="{css}">{render_spans(block.spans)}</li>'
    if block.kind == KEY_VALUE:
        return (
            f'<tr class="{css}"><th>{escape(block.key or "")}</th>'
            f"<td>{render_spans(block.spans)}</td></tr>"
        )
    return f'<p class="{css}">{render_spans(block.spans)}</p>'


def render_body(blocks: list[Block]) -> str:
    """
    Render blocks in order, wrapping runs of bullets in a list and runs of
    key-value pairs in a table. Breaks produce no markup.
    """
    html_parts: list[str] = []
    container: str | None = None

    def close_container() -> None:
        nonlocal container
        if container == BULLET:
            html_parts.append("</ul>")
        elif container == KEY_VALUE:
            html_parts.append("</table>")
        container = None

    for block in blocks:
        if block.kind == BREAK:
            continue
        if block.kind in (BULLET, KEY_VALUE):
            if container != block.kind:
                close_container()
                html_parts.append('<ul class="bullets">' if block.kind == BULLET else '<table class="key-values">')
                container = block.kind
        else:
            close_container()
        html_parts.append(render_block(block))

    close_container()
    return "\n".join(html_parts)


def render_cover(title: str, meta: dict) -> str:
    rows = [
        ("Funder", meta.get("funder")),
        ("Organisation", meta.get("organisation")),
        ("Programme", meta.get("programme_type")),
        ("Request", meta.get("ask")),
        ("Date", meta.get("date")),
    ]
    details = "".join(
        f'<div class="cover-row"><span class="cover-label">{label}</span> {escape(str(value))}</div>'
        for label, value in rows
        if value
    )
    return f"""
    <div class="cover">
        <div class="cover-title">{escape(title)}</div>
        {details}
    </div>
"""


def render_html(title: str, blocks: list[Block], meta: dict | None = None) -> str:
    """
    Render a block list as a complete HTML document.

    Args:
        title: Document title for the cover and <title>
        blocks: Output of structure_text()
        meta: Cover metadata (funder, organisation, ask, date)

    Returns:
        Complete HTML document string
    """
    meta = meta or {}

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{escape(title)}</title>
    <style>
        @page {{
            size: A4;
            margin: 0.9in 0.8in 1in 0.8in;

            @bottom-center {{
                content: counter(page);
                font-size: 9pt;
                color: {MUTED_COLOR};
            }}
        }}

        body {{
            font-family: Calibri, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            font-size: 11pt;
            line-height: 1.6;
            color: {BODY_COLOR};
        }}

        .cover {{
            margin-bottom: 0.4in;
            padding-bottom: 0.2in;
            border-bottom: 3px solid {ACCENT_COLOR};
        }}

        .cover-title {{
            font-size: 24pt;
            font-weight: 700;
            color: {HEADING_COLOR};
            margin-bottom: 0.15in;
        }}

        .cover-label {{
            color: {MUTED_COLOR};
            font-weight: 600;
            display: inline-block;
            width: 1.3in;
        }}

        h1.block-part {{
            font-size: 18pt;
            color: {ACCENT_COLOR};
            page-break-before: always;
            margin: 0 0 0.2in 0;
        }}

        h1.block-part:first-of-type {{
            page-break-before: avoid;
        }}

        h2.block-heading, h3.block-heading, h4.block-heading {{
            color: {HEADING_COLOR};
            margin: 0.25in 0 0.1in 0;
            padding-bottom: 0.05in;
            border-bottom: 1px solid #e5e7eb;
            page-break-after: avoid;
        }}

        h5.block-subheading {{
            font-size: 11.5pt;
            color: {HEADING_COLOR};
            margin: 0.15in 0 0.05in 0;
            page-break-after: avoid;
        }}

        p.block-paragraph {{
            margin: 0 0 0.6em 0;
            text-align: justify;
            orphans: 3;
            widows: 3;
        }}

        p.block-field {{
            margin: 0 0 0.3em 0;
        }}

        .field-key {{
            font-weight: 600;
            color: {MUTED_COLOR};
        }}

        ul.bullets {{
            margin: 0 0 0.6em 1.2em;
        }}

        table.key-values {{
            border-collapse: collapse;
            margin: 0 0 0.6em 0;
            width: 100%;
        }}

        table.key-values th {{
            text-align: left;
            width: 40%;
            padding: 4px 8px;
            background: #f9fafb;
            border-bottom: 1px solid #e5e7eb;
        }}

        table.key-values td {{
            padding: 4px 8px;
            border-bottom: 1px solid #e5e7eb;
        }}

        hr.block-rule {{
            border: none;
            border-top: 1px solid #e5e7eb;
        }}

        .amount {{
            font-family: Consolas, 'Courier New', monospace;
            font-weight: 700;
            color: {HEADING_COLOR};
        }}

        .percent {{
            font-weight: 700;
            color: {ACCENT_COLOR};
        }}
    </style>
</head>
<body>
    {render_cover(title, meta)}
    {render_body(blocks)}
</body>
</html>"""


def generate_pdf(document: Document) -> tuple[bytes, str]:
    """
    Generate PDF from a proposal document.

    Returns:
        Tuple of (pdf_bytes, filename)
    """
    # Imported here so the rest of the package works without WeasyPrint's native libraries.
    from weasyprint import HTML

    preview_data = get_preview_data(document)
    if not preview_data["blocks"]:
        raise ValueError("Document has no content to export")

    html_content = render_html(preview_data["title"], preview_data["blocks"], preview_data["meta"])

    html = HTML(string=html_content)
    pdf_buffer = io.BytesIO()
    html.write_pdf(pdf_buffer)
    pdf_bytes = pdf_buffer.getvalue()

    return pdf_bytes, safe_filename(preview_data["title"], "pdf")
