"""
Generation API routes.
"""

from fastapi import APIRouter, HTTPException

from ..deps import Orchestrator
from ..models import GenerateSectionRequest, GenerationStartResponse, StartGenerationRequest
from .documents import check_error

router = APIRouter(prefix="/documents/{document_id}", tags=["Generation"])


@router.post("/sections/{section_name}/generate")
async def generate_section_endpoint(
    document_id: str,
    section_name: str,
    orchestrator: Orchestrator,
    request: GenerateSectionRequest | None = None,
) -> dict:
    """
    Generate (or regenerate) one section.

    A failed generation is not an HTTP error: the section comes back in the
    error state with its error kind. Returns 409 while another generation
    holds the document.
    """
    result = await orchestrator.generate_section(
        document_id,
        section_name,
        custom_instructions=request.custom_instructions if request else None,
        signals=request.signals if request else None,
    )
    check_error(result)
    return result


@router.post("/generate", response_model=GenerationStartResponse)
async def start_generation_endpoint(
    document_id: str,
    orchestrator: Orchestrator,
    request: StartGenerationRequest | None = None,
) -> dict:
    """
    Start generate-all for the document.

    Returns a job_id that can be used to poll for progress.
    """
    result = await orchestrator.start_generate_all(
        document_id, signals=request.signals if request else None
    )
    check_error(result)
    return result


@router.post("/generate/cancel")
def cancel_generation_endpoint(document_id: str, orchestrator: Orchestrator) -> dict:
    """Stop the running generate-all before its next section."""
    result = orchestrator.cancel(document_id)
    check_error(result)
    return result


@router.get("/generate/status/{job_id}")
def get_generation_status_endpoint(
    document_id: str,
    job_id: str,
    orchestrator: Orchestrator,
) -> dict:
    """
    Get the current status of a generation job.

    Poll this endpoint to track progress of generate-all.
    """
    status = orchestrator.get_generation_status(job_id)

    if not status:
        raise HTTPException(status_code=404, detail="Generation job not found")

    if status["document_id"] != document_id:
        raise HTTPException(status_code=404, detail="Job not found for this document")

    return status
