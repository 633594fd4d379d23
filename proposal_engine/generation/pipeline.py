"""
Generation pipeline for proposal documents.

Handles:
- Single-section generation with prior-section context
- Sequential generate-all runs folded over a working copy of the document
- Cooperative cancellation at section boundaries
- Per-document locking so only one generation touches a document at a time
- Progress tracking for UI polling
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from ..config.settings import Settings, get_settings
from ..export.assembler import assemble_text
from ..extraction.ask import extract_document_ask
from ..extraction.programmes import ProgrammeCatalogue, UnitCostLookup
from ..workspace.history import apply_manual_edit, apply_result, restore_version
from ..workspace.legacy import migrate_legacy_draft
from ..workspace.models import Document, utc_now_iso
from ..workspace.sections import (
    apply_structure,
    describe_section,
    get_progress,
    is_authoritative,
    list_sections,
)
from ..workspace.store import DocumentStore
from .results import GenerationResult
from .service import GenerationRequestContext, TextGenerationService

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "A generation run is already in progress for this document"

# Finished generate-all jobs kept for status polling, oldest dropped first.
FINISHED_JOB_LIMIT = 50


class GenerationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SectionProgress:
    name: str
    ordinal: int
    status: GenerationStatus = GenerationStatus.PENDING
    error: Optional[str] = None
    error_kind: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class GenerationJob:
    job_id: str
    document_id: str
    status: GenerationStatus = GenerationStatus.PENDING
    sections: list[SectionProgress] = field(default_factory=list)
    current_index: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    result: Optional[dict] = None


class GenerationLock:
    """Non-blocking per-document lock: a second caller is turned away, never queued."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._held = False

    def try_acquire(self) -> bool:
        with self._mutex:
            if self._held:
                return False
            self._held = True
            return True

    def release(self) -> None:
        with self._mutex:
            self._held = False

    @property
    def locked(self) -> bool:
        return self._held


class GenerationOrchestrator:
    """
    Drives the section lifecycle of the documents held in a DocumentStore.

    Every operation that rewrites section text goes through here so it can
    respect the document's generation lock. Caller errors come back as
    ``{"error": ...}`` dicts; a held lock adds ``"code": "busy"``.
    """

    def __init__(
        self,
        store: DocumentStore,
        service: TextGenerationService,
        settings: Settings | None = None,
        lookup: UnitCostLookup | None = None,
    ):
        self.store = store
        self.service = service
        self.settings = settings or get_settings()
        self.lookup = lookup or ProgrammeCatalogue()
        self._locks: dict[str, GenerationLock] = {}
        self._locks_mutex = threading.Lock()
        self._cancel_requested: set[str] = set()
        self._batch_runs: set[str] = set()
        self._in_flight: dict[str, str] = {}
        self._jobs: dict[str, GenerationJob] = {}
        self._tasks: set[asyncio.Task] = set()
        self.finished_job_limit = FINISHED_JOB_LIMIT

    # ------------------------------------------------------------------
    # Locking and state helpers
    # ------------------------------------------------------------------

    def _lock_for(self, document_id: str) -> GenerationLock:
        with self._locks_mutex:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = GenerationLock()
                self._locks[document_id] = lock
            return lock

    def is_busy(self, document_id: str) -> bool:
        return self._lock_for(document_id).locked

    def section_in_flight(self, document_id: str) -> Optional[str]:
        return self._in_flight.get(document_id)

    @staticmethod
    def _busy_error() -> dict:
        return {"error": BUSY_MESSAGE, "code": "busy"}

    def _load(self, document_id: str) -> tuple[Optional[Document], Optional[dict]]:
        document = self.store.load(document_id)
        if document is None:
            return None, {"error": f"Document '{document_id}' not found"}
        return document, None

    @staticmethod
    def _missing_section(name: str) -> dict:
        return {"error": f"Section '{name}' not found"}

    def _build_context(
        self,
        document: Document,
        name: str,
        signals: dict | None = None,
    ) -> GenerationRequestContext:
        """Context from strictly-prior sections that hold authoritative text."""
        ordinal = document.structure.index(name)
        prior_sections = []
        for prior_name in document.structure[:ordinal]:
            record = document.sections.get(prior_name)
            if is_authoritative(record):
                prior_sections.append((prior_name, record.text.strip()))

        record = document.sections[name]
        return GenerationRequestContext(
            section_name=name,
            ordinal=ordinal,
            total_sections=len(document.structure),
            prior_sections=prior_sections,
            custom_instructions=record.custom_instructions or "",
            signals={**document.context, **(signals or {})},
        )

    async def _invoke(self, context: GenerationRequestContext) -> GenerationResult:
        try:
            return await self.service.generate(context)
        except Exception as exc:
            logger.exception("Generation service raised for section '%s'", context.section_name)
            return GenerationResult.from_exception(exc)

    async def _generate_into(
        self,
        document: Document,
        name: str,
        signals: dict | None = None,
    ) -> GenerationResult:
        """Generate one section into ``document`` (not persisted)."""
        context = self._build_context(document, name, signals)
        self._in_flight[document.id] = name
        logger.info(
            "Generating section '%s' (%d/%d) for document %s",
            name, context.ordinal + 1, context.total_sections, document.id,
        )
        try:
            result = await self._invoke(context)
        finally:
            self._in_flight.pop(document.id, None)

        apply_result(document.sections[name], result)
        if result.ok:
            logger.info("Section '%s' generated (%d chars)", name, len(result.text))
        else:
            logger.warning(
                "Section '%s' failed with %s: %s", name, result.error_kind.value, result.message
            )
        return result

    # ------------------------------------------------------------------
    # Single section
    # ------------------------------------------------------------------

    async def generate_section(
        self,
        document_id: str,
        name: str,
        custom_instructions: str | None = None,
        signals: dict | None = None,
    ) -> dict:
        """Generate (or regenerate) one section and persist the document once."""
        document, error = self._load(document_id)
        if error:
            return error
        if name not in document.structure:
            return self._missing_section(name)

        lock = self._lock_for(document_id)
        if not lock.try_acquire():
            return self._busy_error()

        try:
            list_sections(document)
            record = document.sections[name]
            if custom_instructions is not None:
                record.custom_instructions = custom_instructions

            result = await self._generate_into(document, name, signals)
            self.store.save(document)
            return {
                "ok": result.ok,
                "error_kind": result.error_kind.value if result.error_kind else None,
                "section": describe_section(record),
            }
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Generate all
    # ------------------------------------------------------------------

    def _new_job(self, document: Document) -> GenerationJob:
        job = GenerationJob(
            job_id=str(uuid.uuid4()),
            document_id=document.id,
            sections=[
                SectionProgress(name=name, ordinal=ordinal)
                for ordinal, name in enumerate(document.structure)
            ],
        )
        self._prune_jobs()
        self._jobs[job.job_id] = job
        return job

    def _prune_jobs(self) -> None:
        finished = [
            job_id for job_id, job in self._jobs.items()
            if job.status in (GenerationStatus.COMPLETED, GenerationStatus.CANCELLED, GenerationStatus.FAILED)
        ]
        for job_id in finished[: max(len(finished) - self.finished_job_limit, 0)]:
            del self._jobs[job_id]

    def _begin_batch(self, document_id: str) -> None:
        # Caller has just taken the document lock.
        self._cancel_requested.discard(document_id)
        self._batch_runs.add(document_id)

    def _end_batch(self, document_id: str, lock: GenerationLock) -> None:
        self._batch_runs.discard(document_id)
        self._cancel_requested.discard(document_id)
        lock.release()

    async def _run_batch(self, document: Document, job: GenerationJob, signals: dict | None) -> dict:
        """
        Fold over the structure, carrying ``document`` as the working snapshot.

        Caller holds the document lock.
        """
        job.status = GenerationStatus.IN_PROGRESS
        job.started_at = _now()

        generated: list[str] = []
        failed: list[str] = []
        skipped: list[str] = []
        cancelled = False

        for index, record in enumerate(list_sections(document)):
            progress = job.sections[index]
            job.current_index = index

            if document.id in self._cancel_requested:
                cancelled = True
                for remaining in job.sections[index:]:
                    remaining.status = GenerationStatus.CANCELLED
                logger.info(
                    "Generate-all for document %s cancelled before section '%s'",
                    document.id, record.name,
                )
                break

            if record.is_manual_edit:
                progress.status = GenerationStatus.SKIPPED
                skipped.append(record.name)
                continue

            progress.status = GenerationStatus.IN_PROGRESS
            progress.started_at = _now()

            result = await self._generate_into(document, record.name, signals)
            self.store.save(document)

            progress.completed_at = _now()
            if result.ok:
                progress.status = GenerationStatus.COMPLETED
                generated.append(record.name)
            else:
                progress.status = GenerationStatus.FAILED
                progress.error = result.message
                progress.error_kind = result.error_kind.value
                failed.append(record.name)

        assembled = assemble_text(document)
        ask = extract_document_ask(document, self.settings.ASK_SECTION_KEYWORD, self.lookup)
        if ask is not None:
            document.ask = ask
        document.last_full_run_at = utc_now_iso()
        self.store.save(document)

        job.status = GenerationStatus.CANCELLED if cancelled else GenerationStatus.COMPLETED
        job.completed_at = _now()
        job.result = {
            "document_id": document.id,
            "job_id": job.job_id,
            "generated": generated,
            "failed": failed,
            "skipped": skipped,
            "cancelled": cancelled,
            "assembled_text": assembled,
            "ask": document.ask.to_dict() if document.ask else None,
            "last_full_run_at": document.last_full_run_at,
            "progress": get_progress(document),
        }
        logger.info(
            "Generate-all for document %s finished: %d generated, %d failed, %d skipped%s",
            document.id, len(generated), len(failed), len(skipped),
            " (cancelled)" if cancelled else "",
        )
        return job.result

    async def generate_all(self, document_id: str, signals: dict | None = None) -> dict:
        """Generate every non-manually-edited section in order and wait for the result."""
        document, error = self._load(document_id)
        if error:
            return error

        lock = self._lock_for(document_id)
        if not lock.try_acquire():
            return self._busy_error()
        self._begin_batch(document_id)

        job = self._new_job(document)
        try:
            return await self._run_batch(document, job, signals)
        except Exception as exc:
            job.status = GenerationStatus.FAILED
            job.error = str(exc)
            job.completed_at = _now()
            raise
        finally:
            self._end_batch(document_id, lock)

    async def start_generate_all(self, document_id: str, signals: dict | None = None) -> dict:
        """
        Start a generate-all run in the background.

        Returns job_id for status polling.
        """
        document, error = self._load(document_id)
        if error:
            return error
        if not document.structure:
            return {"error": "Document has no sections"}

        lock = self._lock_for(document_id)
        if not lock.try_acquire():
            return self._busy_error()
        self._begin_batch(document_id)

        job = self._new_job(document)
        task = asyncio.create_task(self._run_job(document, job, lock, signals))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return {
            "job_id": job.job_id,
            "total_sections": len(job.sections),
        }

    async def _run_job(
        self,
        document: Document,
        job: GenerationJob,
        lock: GenerationLock,
        signals: dict | None,
    ) -> None:
        try:
            await self._run_batch(document, job, signals)
        except Exception as exc:
            logger.exception("Generate-all job %s failed", job.job_id)
            job.status = GenerationStatus.FAILED
            job.error = str(exc)
            job.completed_at = _now()
        finally:
            self._end_batch(document.id, lock)

    def cancel(self, document_id: str) -> dict:
        """Ask the running generate-all to stop before its next section."""
        if document_id not in self._batch_runs:
            return {"error": "No generate-all run in progress for this document"}
        self._cancel_requested.add(document_id)
        logger.info("Cancellation requested for document %s", document_id)
        return {"cancelled": True, "document_id": document_id}

    def get_generation_status(self, job_id: str) -> Optional[dict]:
        """Get the current status of a generation job."""
        job = self._jobs.get(job_id)
        if not job:
            return None

        return {
            "job_id": job.job_id,
            "document_id": job.document_id,
            "status": job.status.value,
            "current_index": job.current_index,
            "total_sections": len(job.sections),
            "started_at": job.started_at.isoformat() if job.started_at else None,
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
            "error": job.error,
            "result": job.result,
            "sections": [
                {
                    "name": s.name,
                    "ordinal": s.ordinal,
                    "status": s.status.value,
                    "error": s.error,
                    "error_kind": s.error_kind,
                }
                for s in job.sections
            ],
        }

    # ------------------------------------------------------------------
    # Document-level edits that must not race a generation run
    # ------------------------------------------------------------------

    def _mutate(self, document_id: str, mutation) -> dict:
        document, error = self._load(document_id)
        if error:
            return error
        if self.is_busy(document_id):
            return self._busy_error()
        outcome = mutation(document)
        if "error" not in outcome:
            self.store.save(document)
        return outcome

    def edit_section(self, document_id: str, name: str, text: str) -> dict:
        def mutation(document: Document) -> dict:
            if name not in document.structure:
                return self._missing_section(name)
            list_sections(document)
            record = apply_manual_edit(document.sections[name], text)
            return {"section": describe_section(record)}

        return self._mutate(document_id, mutation)

    def restore_section(self, document_id: str, name: str, index: int) -> dict:
        def mutation(document: Document) -> dict:
            if name not in document.structure:
                return self._missing_section(name)
            list_sections(document)
            outcome = restore_version(document.sections[name], index)
            if "error" in outcome:
                return outcome
            return {"section": describe_section(outcome["section"])}

        return self._mutate(document_id, mutation)

    def set_custom_instructions(self, document_id: str, name: str, instructions: str) -> dict:
        def mutation(document: Document) -> dict:
            if name not in document.structure:
                return self._missing_section(name)
            list_sections(document)
            record = document.sections[name]
            record.custom_instructions = instructions or ""
            return {"section": describe_section(record)}

        return self._mutate(document_id, mutation)

    def update_structure(self, document_id: str, structure: list[str]) -> dict:
        def mutation(document: Document) -> dict:
            if not any(str(name).strip() for name in structure):
                return {"error": "Structure must name at least one section"}
            apply_structure(document, structure)
            return {"structure": list(document.structure)}

        return self._mutate(document_id, mutation)

    def migrate_legacy(self, document_id: str, text: str, drafted_at: str | None = None) -> dict:
        return self._mutate(
            document_id, lambda document: migrate_legacy_draft(document, text, drafted_at)
        )

    def describe(self, document_id: str) -> Optional[dict[str, Any]]:
        """Document snapshot with derived section states, for API responses."""
        document = self.store.load(document_id)
        if document is None:
            return None
        in_flight = self.section_in_flight(document_id)
        payload = document.to_dict()
        payload["sections"] = [
            describe_section(record, generating=record.name == in_flight)
            for record in list_sections(document)
        ]
        payload["progress"] = get_progress(document)
        payload["busy"] = self.is_busy(document_id)
        return payload
