"""
Export API routes.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ...export import generate_docx, generate_pdf, get_preview_data, group_by_part
from .documents import load_or_404
from ..deps import Orchestrator

router = APIRouter(prefix="/documents/{document_id}", tags=["Export"])

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@router.get("/preview")
def get_preview_endpoint(document_id: str, orchestrator: Orchestrator) -> dict:
    """
    Get the structured block list for preview.

    Returns cover metadata, the flat blocks and the same blocks grouped by
    document part, ready for rendering in the frontend preview.
    """
    preview_data = get_preview_data(load_or_404(orchestrator, document_id))
    blocks = preview_data["blocks"]
    return {
        "document_id": preview_data["document_id"],
        "title": preview_data["title"],
        "meta": preview_data["meta"],
        "blocks": [block.to_dict() for block in blocks],
        "parts": [
            {"title": group.title, "blocks": [block.to_dict() for block in group.blocks]}
            for group in group_by_part(blocks)
        ],
    }


def _file_response(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )


@router.post("/export/pdf")
def export_pdf_endpoint(document_id: str, orchestrator: Orchestrator) -> Response:
    """
    Generate and download a PDF of the proposal.

    Returns PDF file as binary response.
    """
    document = load_or_404(orchestrator, document_id)
    try:
        pdf_bytes, filename = generate_pdf(document)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"PDF generation failed: {str(e)}")

    return _file_response(pdf_bytes, "application/pdf", filename)


@router.post("/export/docx")
def export_docx_endpoint(document_id: str, orchestrator: Orchestrator) -> Response:
    """
    Generate and download a Word document of the proposal.
    """
    document = load_or_404(orchestrator, document_id)
    try:
        docx_bytes, filename = generate_docx(document)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"DOCX generation failed: {str(e)}")

    return _file_response(docx_bytes, DOCX_MEDIA_TYPE, filename)
