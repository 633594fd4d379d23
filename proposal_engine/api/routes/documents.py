"""
Document API routes.
"""

from fastapi import APIRouter, HTTPException, Query

from ..deps import Orchestrator, Resolver
from ..models import (
    AskResponse,
    AssembledTextResponse,
    DocumentCreateRequest,
    LegacyMigrationRequest,
    ProgressResponse,
    StructureUpdateRequest,
)
from ...export.assembler import assemble_text
from ...workspace.sections import get_progress

router = APIRouter(prefix="/documents", tags=["Documents"])


def check_error(result: dict) -> None:
    """Check for error in an engine result and raise HTTPException."""
    if "error" in result:
        error_msg = result["error"]
        if result.get("code") == "busy":
            raise HTTPException(status_code=409, detail=error_msg)
        if "not found" in error_msg.lower():
            raise HTTPException(status_code=404, detail=error_msg)
        raise HTTPException(status_code=400, detail=error_msg)


def load_or_404(orchestrator, document_id: str):
    document = orchestrator.store.load(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document '{document_id}' not found")
    return document


@router.post("", status_code=201)
def create_document_endpoint(
    request: DocumentCreateRequest,
    orchestrator: Orchestrator,
    resolver: Resolver,
) -> dict:
    """
    Create a proposal document.

    The section structure comes from the request, or from the template
    resolver for the given context. A legacy single-blob draft, when given,
    is split into the new sections.
    """
    context = request.context or {}
    structure = request.structure or resolver.resolve(context)
    if not any(str(name).strip() for name in structure):
        raise HTTPException(status_code=400, detail="Structure must name at least one section")

    document = orchestrator.store.create(structure, context=context)
    if request.legacy_draft:
        check_error(orchestrator.migrate_legacy(document.id, request.legacy_draft))

    return orchestrator.describe(document.id)


@router.get("")
def list_documents_endpoint(orchestrator: Orchestrator) -> list[str]:
    """List the ids of all documents held by this process."""
    return orchestrator.store.list_ids()


@router.get("/{document_id}")
def get_document_endpoint(document_id: str, orchestrator: Orchestrator) -> dict:
    """Get a document with every section's derived state and overall progress."""
    result = orchestrator.describe(document_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Document '{document_id}' not found")
    return result


@router.delete("/{document_id}")
def delete_document_endpoint(document_id: str, orchestrator: Orchestrator) -> dict:
    if orchestrator.is_busy(document_id):
        raise HTTPException(status_code=409, detail="Document is being generated")
    if not orchestrator.store.delete(document_id):
        raise HTTPException(status_code=404, detail=f"Document '{document_id}' not found")
    return {"deleted": document_id}


@router.put("/{document_id}/structure")
def update_structure_endpoint(
    document_id: str,
    request: StructureUpdateRequest,
    orchestrator: Orchestrator,
) -> dict:
    """
    Replace the ordered section list.

    New names start empty, surviving sections keep their text and history,
    and dropped sections are discarded.
    """
    result = orchestrator.update_structure(document_id, request.structure)
    check_error(result)
    return result


@router.get("/{document_id}/progress", response_model=ProgressResponse)
def get_progress_endpoint(document_id: str, orchestrator: Orchestrator) -> dict:
    return get_progress(load_or_404(orchestrator, document_id))


@router.get("/{document_id}/assembled", response_model=AssembledTextResponse)
def get_assembled_text_endpoint(
    document_id: str,
    orchestrator: Orchestrator,
    include_headings: bool = Query(False, description="Prefix each section with its name"),
) -> dict:
    """Get the flat proposal text built from every authoritative section."""
    document = load_or_404(orchestrator, document_id)
    return {
        "document_id": document.id,
        "text": assemble_text(document, include_headings=include_headings),
    }


@router.get("/{document_id}/ask", response_model=AskResponse | None)
def get_ask_endpoint(document_id: str, orchestrator: Orchestrator) -> dict | None:
    """Get the funding ask extracted by the last generate-all run, if any."""
    document = load_or_404(orchestrator, document_id)
    return document.ask.to_dict() if document.ask else None


@router.post("/{document_id}/migrate-legacy")
def migrate_legacy_endpoint(
    document_id: str,
    request: LegacyMigrationRequest,
    orchestrator: Orchestrator,
) -> dict:
    """Split a single-blob legacy draft into this document's sections."""
    result = orchestrator.migrate_legacy(document_id, request.text, request.drafted_at)
    check_error(result)
    return result
