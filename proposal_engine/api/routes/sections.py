"""
Section API routes.
"""

from fastapi import APIRouter

from ..deps import Orchestrator
from ..models import (
    CustomInstructionsRequest,
    HistoryEntryResponse,
    SectionEditRequest,
    SectionResponse,
    SectionRestoreRequest,
)
from .documents import check_error, load_or_404

router = APIRouter(prefix="/documents/{document_id}/sections", tags=["Sections"])


@router.put("/{section_name}", response_model=SectionResponse)
def edit_section_endpoint(
    document_id: str,
    section_name: str,
    request: SectionEditRequest,
    orchestrator: Orchestrator,
) -> dict:
    """
    Replace a section's text by hand.

    The section becomes manually edited, so generate-all skips it. The text
    it replaces goes into the section history.
    """
    result = orchestrator.edit_section(document_id, section_name, request.text)
    check_error(result)
    return result["section"]


@router.post("/{section_name}/restore", response_model=SectionResponse)
def restore_section_endpoint(
    document_id: str,
    section_name: str,
    request: SectionRestoreRequest,
    orchestrator: Orchestrator,
) -> dict:
    """Promote a history entry back to the section's current text."""
    result = orchestrator.restore_section(document_id, section_name, request.index)
    check_error(result)
    return result["section"]


@router.get("/{section_name}/history", response_model=list[HistoryEntryResponse])
def get_section_history_endpoint(
    document_id: str,
    section_name: str,
    orchestrator: Orchestrator,
) -> list[dict]:
    """Get up to three earlier versions of a section, oldest first."""
    document = load_or_404(orchestrator, document_id)
    record = document.sections.get(section_name)
    if record is None:
        check_error({"error": f"Section '{section_name}' not found"})
    return [entry.to_dict() for entry in record.history]


@router.put("/{section_name}/instructions", response_model=SectionResponse)
def update_instructions_endpoint(
    document_id: str,
    section_name: str,
    request: CustomInstructionsRequest,
    orchestrator: Orchestrator,
) -> dict:
    """Set the custom instructions sent with every generation of this section."""
    result = orchestrator.set_custom_instructions(document_id, section_name, request.instructions)
    check_error(result)
    return result["section"]
