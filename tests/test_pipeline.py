from __future__ import annotations

import asyncio
import unittest

from proposal_engine.config.settings import Settings
from proposal_engine.generation.pipeline import BUSY_MESSAGE, GenerationOrchestrator
from proposal_engine.generation.results import ErrorKind, GenerationResult, TransportError
from proposal_engine.workspace.models import AskRecommendation
from proposal_engine.workspace.sections import SectionState, section_state
from proposal_engine.workspace.store import DocumentStore


class ScriptedService:
    """Returns scripted results per section name and records every request."""

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.contexts = []

    async def generate(self, context):
        self.contexts.append(context)
        outcome = self.outcomes.get(context.section_name)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, GenerationResult):
            return outcome
        if isinstance(outcome, str):
            return GenerationResult.success(outcome)
        return GenerationResult.success(f"{context.section_name} body")

    def context_for(self, name):
        return next(context for context in self.contexts if context.section_name == name)


class BlockingService(ScriptedService):
    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, context):
        self.started.set()
        await self.release.wait()
        return await super().generate(context)


class HoldingService(BlockingService):
    """Blocks only on the section named ``Held``."""

    async def generate(self, context):
        if context.section_name == "Held":
            return await super().generate(context)
        return await ScriptedService.generate(self, context)


class GenerationOrchestratorTests(unittest.IsolatedAsyncioTestCase):
    def _orchestrator(self, service, structure=("Summary", "Programme", "Impact", "Budget")):
        store = DocumentStore()
        orchestrator = GenerationOrchestrator(store, service, settings=Settings())
        document = store.create(list(structure), context={"funder": "Acme Trust"})
        return orchestrator, store, document

    async def _wait_for_job(self, orchestrator, job_id):
        for _ in range(200):
            status = orchestrator.get_generation_status(job_id)
            if status["status"] in ("completed", "cancelled", "failed"):
                return status
            await asyncio.sleep(0.01)
        self.fail("generation job did not finish")

    async def test_generate_all_fills_every_section_in_order(self):
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service)

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["generated"], ["Summary", "Programme", "Impact", "Budget"])
        self.assertEqual(result["failed"], [])
        self.assertFalse(result["cancelled"])
        self.assertTrue(result["progress"]["all_done"])
        self.assertIsNotNone(result["last_full_run_at"])
        self.assertEqual(
            result["assembled_text"],
            "Summary body\n\nProgramme body\n\nImpact body\n\nBudget body",
        )
        self.assertEqual([context.section_name for context in service.contexts], document.structure)
        self.assertEqual(
            service.context_for("Impact").prior_sections,
            [("Summary", "Summary body"), ("Programme", "Programme body")],
        )
        self.assertEqual(service.context_for("Summary").signals, {"funder": "Acme Trust"})
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Budget"].text, "Budget body")
        self.assertFalse(orchestrator.is_busy(document.id))

    async def test_manually_edited_section_is_skipped_but_used_as_context(self):
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service)
        orchestrator.edit_section(document.id, "Programme", "Hand-written programme")
        edited_at = store.load(document.id).sections["Programme"].edited_at

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["skipped"], ["Programme"])
        self.assertEqual(result["generated"], ["Summary", "Impact", "Budget"])
        self.assertNotIn("Programme", [context.section_name for context in service.contexts])
        self.assertIn(("Programme", "Hand-written programme"), service.context_for("Impact").prior_sections)
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Programme"].text, "Hand-written programme")
        self.assertEqual(saved.sections["Programme"].edited_at, edited_at)
        self.assertIsNone(saved.sections["Programme"].generated_at)
        self.assertEqual(section_state(saved.sections["Programme"]), SectionState.MANUALLY_EDITED)

    async def test_cancel_stops_before_the_next_section(self):
        structure = ("One", "Two", "Three", "Four", "Five")
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service, structure)

        original_generate = service.generate

        async def generate_then_cancel(context):
            result = await original_generate(context)
            if len(service.contexts) == 2:
                orchestrator.cancel(document.id)
            return result

        service.generate = generate_then_cancel

        start = await orchestrator.start_generate_all(document.id)
        status = await self._wait_for_job(orchestrator, start["job_id"])

        self.assertEqual(status["status"], "cancelled")
        self.assertEqual(status["result"]["generated"], ["One", "Two"])
        self.assertTrue(status["result"]["cancelled"])
        self.assertEqual(
            [section["status"] for section in status["sections"]],
            ["completed", "completed", "cancelled", "cancelled", "cancelled"],
        )
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Two"].text, "Two body")
        self.assertIsNone(saved.sections["Three"].text)
        self.assertIsNotNone(saved.last_full_run_at)
        self.assertFalse(orchestrator.is_busy(document.id))

    async def test_cancel_right_after_start_stops_before_first_section(self):
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service)

        start = await orchestrator.start_generate_all(document.id)
        cancelled = orchestrator.cancel(document.id)
        status = await self._wait_for_job(orchestrator, start["job_id"])

        self.assertEqual(cancelled, {"cancelled": True, "document_id": document.id})
        self.assertEqual(status["status"], "cancelled")
        self.assertEqual(status["result"]["generated"], [])
        self.assertEqual(service.contexts, [])
        self.assertEqual({section["status"] for section in status["sections"]}, {"cancelled"})
        self.assertIsNone(store.load(document.id).sections["Summary"].text)
        self.assertFalse(orchestrator.is_busy(document.id))
        self.assertIn("error", orchestrator.cancel(document.id))

    async def test_cancel_without_running_batch_is_an_error(self):
        orchestrator, _, document = self._orchestrator(ScriptedService())

        self.assertIn("error", orchestrator.cancel(document.id))

    async def test_finished_jobs_are_pruned_but_running_job_is_kept(self):
        service = HoldingService()
        orchestrator, store, document = self._orchestrator(service, ("Held",))
        orchestrator.finished_job_limit = 2
        running = await orchestrator.start_generate_all(document.id)
        await asyncio.wait_for(service.started.wait(), timeout=1)

        finished_ids = []
        for _ in range(4):
            other = store.create(["Summary"])
            finished_ids.append((await orchestrator.generate_all(other.id))["job_id"])

        self.assertIsNone(orchestrator.get_generation_status(finished_ids[0]))
        self.assertEqual(orchestrator.get_generation_status(finished_ids[3])["status"], "completed")
        self.assertEqual(orchestrator.get_generation_status(running["job_id"])["status"], "in_progress")

        service.release.set()
        status = await self._wait_for_job(orchestrator, running["job_id"])
        self.assertEqual(status["status"], "completed")

    async def test_failure_does_not_abort_the_batch_and_is_not_prior_context(self):
        service = ScriptedService({
            "Programme": GenerationResult.failure(ErrorKind.RATE_LIMITED, "429"),
        })
        orchestrator, store, document = self._orchestrator(service)

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["failed"], ["Programme"])
        self.assertEqual(result["generated"], ["Summary", "Impact", "Budget"])
        self.assertNotIn("Programme", [name for name, _ in service.context_for("Impact").prior_sections])
        self.assertNotIn("Rate limit", result["assembled_text"])
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Programme"].error_kind, ErrorKind.RATE_LIMITED)
        self.assertEqual(result["progress"]["pending"], ["Programme"])

    async def test_service_exception_becomes_tagged_failure(self):
        service = ScriptedService({
            "Summary": RuntimeError("boom"),
            "Impact": TransportError("timed out"),
        })
        orchestrator, store, document = self._orchestrator(service)

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["failed"], ["Summary", "Impact"])
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Summary"].error_kind, ErrorKind.PROVIDER_ERROR)
        self.assertEqual(saved.sections["Impact"].error_kind, ErrorKind.TRANSPORT)
        self.assertFalse(orchestrator.is_busy(document.id))

    async def test_ask_is_extracted_from_budget_section(self):
        service = ScriptedService({
            "Budget": "Costs are modest.\nBUDGET_RECOMMENDATION: Type 3, 2 cohort(s), R2,472,000",
        })
        orchestrator, store, document = self._orchestrator(service)

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["ask"]["amount"], 2_472_000)
        self.assertEqual(result["ask"]["programme_type_id"], 3)
        self.assertEqual(result["ask"]["cohort_multiplier"], 2)
        self.assertEqual(store.load(document.id).ask.amount, 2_472_000)

    async def test_previous_ask_is_kept_when_nothing_is_found(self):
        service = ScriptedService({"Budget": "No figures this time."})
        orchestrator, store, document = self._orchestrator(service)
        document.ask = AskRecommendation(amount=516_000, programme_type_id=1, cohort_multiplier=1)
        store.save(document)

        result = await orchestrator.generate_all(document.id)

        self.assertEqual(result["ask"]["amount"], 516_000)

    async def test_second_run_is_rejected_while_the_first_holds_the_lock(self):
        service = BlockingService()
        orchestrator, _, document = self._orchestrator(service)

        start = await orchestrator.start_generate_all(document.id)
        await asyncio.wait_for(service.started.wait(), timeout=1)

        self.assertTrue(orchestrator.is_busy(document.id))
        self.assertEqual(orchestrator.section_in_flight(document.id), "Summary")
        busy = await orchestrator.start_generate_all(document.id)
        self.assertEqual(busy, {"error": BUSY_MESSAGE, "code": "busy"})
        self.assertEqual((await orchestrator.generate_section(document.id, "Impact"))["code"], "busy")
        self.assertEqual(orchestrator.edit_section(document.id, "Impact", "manual")["code"], "busy")
        self.assertEqual(orchestrator.update_structure(document.id, ["A"])["code"], "busy")

        describe = orchestrator.describe(document.id)
        self.assertTrue(describe["busy"])
        self.assertEqual(describe["sections"][0]["state"], "generating")

        service.release.set()
        status = await self._wait_for_job(orchestrator, start["job_id"])

        self.assertEqual(status["status"], "completed")
        self.assertFalse(orchestrator.is_busy(document.id))
        self.assertNotIn("error", orchestrator.edit_section(document.id, "Impact", "manual"))

    async def test_generate_section_regenerates_one_section(self):
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service)
        await orchestrator.generate_all(document.id)
        service.outcomes["Impact"] = "Sharper impact"

        result = await orchestrator.generate_section(document.id, "Impact", custom_instructions="Be concise")

        self.assertTrue(result["ok"])
        self.assertEqual(result["section"]["text"], "Sharper impact")
        self.assertEqual([entry["text"] for entry in result["section"]["history"]], ["Impact body"])
        self.assertEqual(service.contexts[-1].custom_instructions, "Be concise")
        self.assertEqual(store.load(document.id).sections["Impact"].custom_instructions, "Be concise")

    async def test_generate_section_reports_failure_tag(self):
        service = ScriptedService({"Summary": GenerationResult.failure(ErrorKind.PROVIDER_OUTAGE, "503")})
        orchestrator, _, document = self._orchestrator(service)

        result = await orchestrator.generate_section(document.id, "Summary")

        self.assertFalse(result["ok"])
        self.assertEqual(result["error_kind"], "provider_outage")
        self.assertEqual(result["section"]["state"], "error")

    async def test_unknown_document_and_section(self):
        orchestrator, _, document = self._orchestrator(ScriptedService())

        self.assertIn("not found", (await orchestrator.generate_all("missing"))["error"])
        self.assertIn("not found", (await orchestrator.generate_section(document.id, "Nope"))["error"])
        self.assertIn("not found", orchestrator.edit_section(document.id, "Nope", "x")["error"])
        self.assertIsNone(orchestrator.get_generation_status("missing-job"))

    async def test_restore_and_structure_edits_persist(self):
        service = ScriptedService()
        orchestrator, store, document = self._orchestrator(service)
        await orchestrator.generate_all(document.id)
        orchestrator.edit_section(document.id, "Summary", "Edited summary")

        restored = orchestrator.restore_section(document.id, "Summary", 0)
        bad_index = orchestrator.restore_section(document.id, "Summary", 5)
        structure = orchestrator.update_structure(document.id, ["Budget", "Summary"])

        self.assertEqual(restored["section"]["text"], "Summary body")
        self.assertIn("error", bad_index)
        self.assertEqual(structure["structure"], ["Budget", "Summary"])
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Summary"].text, "Summary body")
        self.assertEqual(list(saved.sections), ["Budget", "Summary"])

    async def test_legacy_migration_through_orchestrator(self):
        orchestrator, store, document = self._orchestrator(ScriptedService(), ("Summary", "Budget"))

        outcome = orchestrator.migrate_legacy(document.id, "Summary\nOld summary\n\nBudget\nOld budget")

        self.assertEqual(outcome["migrated"], ["Summary", "Budget"])
        saved = store.load(document.id)
        self.assertEqual(saved.sections["Budget"].text, "Old budget")
        self.assertIn("error", orchestrator.migrate_legacy(document.id, "Summary\nagain"))


if __name__ == "__main__":
    unittest.main()
