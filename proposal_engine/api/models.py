"""
Pydantic models for the proposal engine API.

Request/response models for all API endpoints.
"""

from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


# ============================================================
# Literal Types (Enums)
# ============================================================

SectionStateName = Literal["empty", "generating", "ready", "error", "manually_edited"]
AskSource = Literal["marker", "heuristic"]


# ============================================================
# Document Models
# ============================================================

class DocumentCreateRequest(BaseModel):
    """Request model for creating a proposal document."""
    structure: Optional[list[str]] = None
    context: Optional[dict[str, Any]] = None
    legacy_draft: Optional[str] = None


class StructureUpdateRequest(BaseModel):
    """Replace the ordered section list; surviving sections keep their history."""
    structure: list[str] = Field(min_length=1)


class LegacyMigrationRequest(BaseModel):
    """Split a single-blob draft into the document's sections."""
    text: str
    drafted_at: Optional[str] = None


class ProgressResponse(BaseModel):
    completed: int
    total: int
    percent: int
    all_done: bool
    pending: list[str]


class AskResponse(BaseModel):
    amount: int
    programme_type_id: int
    cohort_multiplier: int
    source: AskSource
    provenance: str


class AssembledTextResponse(BaseModel):
    document_id: str
    text: str


# ============================================================
# Section Models
# ============================================================

class SectionEditRequest(BaseModel):
    """Manual edit of a section's text."""
    text: str


class SectionRestoreRequest(BaseModel):
    """Restore a history entry by index (0 is the oldest)."""
    index: int = Field(ge=0)


class CustomInstructionsRequest(BaseModel):
    instructions: str = ""


class HistoryEntryResponse(BaseModel):
    timestamp: str
    text: str


class SectionResponse(BaseModel):
    name: str
    ordinal: int
    text: Optional[str] = None
    generated_at: Optional[str] = None
    edited_at: Optional[str] = None
    is_manual_edit: bool = False
    custom_instructions: str = ""
    history: list[HistoryEntryResponse] = []
    error_kind: Optional[str] = None
    state: SectionStateName
    is_authoritative: bool


# ============================================================
# Generation Models
# ============================================================

class GenerateSectionRequest(BaseModel):
    custom_instructions: Optional[str] = None
    signals: Optional[dict[str, Any]] = None


class StartGenerationRequest(BaseModel):
    signals: Optional[dict[str, Any]] = None


class GenerationStartResponse(BaseModel):
    job_id: str
    total_sections: int
