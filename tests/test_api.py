from __future__ import annotations

import time
import unittest

from fastapi.testclient import TestClient

from proposal_engine.api.deps import get_orchestrator
from proposal_engine.api.main import app
from proposal_engine.config.settings import Settings
from proposal_engine.generation.pipeline import GenerationOrchestrator
from proposal_engine.generation.results import ErrorKind, GenerationResult
from proposal_engine.workspace.store import DocumentStore

API = "/api/v1"


class EchoService:
    """Writes a fixed body per section, failing for names listed in ``failures``."""

    def __init__(self):
        self.failures = {}

    async def generate(self, context):
        if context.section_name in self.failures:
            return GenerationResult.failure(self.failures[context.section_name], "upstream")
        if "budget" in context.section_name.lower():
            return GenerationResult.success(
                "Costs are modest.\nBUDGET_RECOMMENDATION: Type 1, 2 cohort(s), R1,032,000"
            )
        return GenerationResult.success(f"{context.section_name} body")


class ProposalApiTests(unittest.TestCase):
    def setUp(self):
        self.service = EchoService()
        self.orchestrator = GenerationOrchestrator(DocumentStore(), self.service, settings=Settings())
        app.dependency_overrides[get_orchestrator] = lambda: self.orchestrator
        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)
        self.addCleanup(app.dependency_overrides.clear)

    def _create(self, **payload):
        payload.setdefault("structure", ["Summary", "Programme", "Budget"])
        response = self.client.post(f"{API}/documents", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _wait_for_job(self, document_id, job_id):
        url = f"{API}/documents/{document_id}/generate/status/{job_id}"
        for _ in range(200):
            status = self.client.get(url).json()
            if status["status"] in ("completed", "cancelled", "failed"):
                return status
            time.sleep(0.01)
        self.fail("generation job did not finish")

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "healthy"})

    def test_create_uses_template_when_no_structure_is_given(self):
        response = self.client.post(f"{API}/documents", json={"context": {"funder": "Acme"}})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["structure"], ["Executive Summary", "Programme", "Impact", "Budget", "The Ask"])
        self.assertEqual(body["progress"]["completed"], 0)
        self.assertEqual({section["state"] for section in body["sections"]}, {"empty"})
        self.assertIn(body["id"], self.client.get(f"{API}/documents").json())

    def test_create_with_legacy_draft(self):
        body = self._create(legacy_draft="Summary\nOld summary.\n\nBudget\nOld budget.")

        sections = {section["name"]: section for section in body["sections"]}
        self.assertEqual(sections["Summary"]["text"], "Old summary.")
        self.assertEqual(sections["Programme"]["state"], "empty")
        self.assertEqual(body["progress"]["completed"], 2)

    def test_edit_restore_and_history(self):
        document_id = self._create()["id"]
        sections_url = f"{API}/documents/{document_id}/sections"

        self.client.put(f"{sections_url}/Summary", json={"text": "First"})
        edited = self.client.put(f"{sections_url}/Summary", json={"text": "Second"})

        self.assertEqual(edited.status_code, 200)
        self.assertEqual(edited.json()["state"], "manually_edited")
        history = self.client.get(f"{sections_url}/Summary/history").json()
        self.assertEqual([entry["text"] for entry in history], ["First"])

        restored = self.client.post(f"{sections_url}/Summary/restore", json={"index": 0})

        self.assertEqual(restored.json()["text"], "First")
        self.assertEqual(restored.json()["history"][0]["text"], "Second")
        self.assertEqual(
            self.client.post(f"{sections_url}/Summary/restore", json={"index": 4}).status_code, 400
        )
        self.assertEqual(
            self.client.post(f"{sections_url}/Summary/restore", json={"index": -1}).status_code, 422
        )

    def test_generate_one_section_and_failure_state(self):
        document_id = self._create()["id"]
        self.service.failures["Programme"] = ErrorKind.RATE_LIMITED

        ok = self.client.post(f"{API}/documents/{document_id}/sections/Summary/generate")
        failed = self.client.post(
            f"{API}/documents/{document_id}/sections/Programme/generate",
            json={"custom_instructions": "Short please"},
        )

        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["section"]["text"], "Summary body")
        self.assertEqual(failed.status_code, 200)
        self.assertFalse(failed.json()["ok"])
        self.assertEqual(failed.json()["error_kind"], "rate_limited")
        self.assertEqual(failed.json()["section"]["state"], "error")
        self.assertEqual(failed.json()["section"]["custom_instructions"], "Short please")

    def test_generate_all_job_then_read_results(self):
        document_id = self._create()["id"]

        start = self.client.post(f"{API}/documents/{document_id}/generate")

        self.assertEqual(start.status_code, 200)
        self.assertEqual(start.json()["total_sections"], 3)
        status = self._wait_for_job(document_id, start.json()["job_id"])
        self.assertEqual(status["status"], "completed")

        progress = self.client.get(f"{API}/documents/{document_id}/progress").json()
        self.assertTrue(progress["all_done"])
        ask = self.client.get(f"{API}/documents/{document_id}/ask").json()
        self.assertEqual(ask["amount"], 1_032_000)
        self.assertEqual(ask["source"], "marker")
        assembled = self.client.get(
            f"{API}/documents/{document_id}/assembled", params={"include_headings": True}
        ).json()
        self.assertTrue(assembled["text"].startswith("Summary\nSummary body"))

    def test_busy_document_returns_conflict(self):
        document_id = self._create()["id"]
        lock = self.orchestrator._lock_for(document_id)
        self.assertTrue(lock.try_acquire())
        try:
            responses = [
                self.client.post(f"{API}/documents/{document_id}/generate"),
                self.client.post(f"{API}/documents/{document_id}/sections/Summary/generate"),
                self.client.put(f"{API}/documents/{document_id}/sections/Summary", json={"text": "x"}),
                self.client.put(f"{API}/documents/{document_id}/structure", json={"structure": ["A"]}),
                self.client.delete(f"{API}/documents/{document_id}"),
            ]
        finally:
            lock.release()

        self.assertEqual([response.status_code for response in responses], [409] * 5)
        self.assertEqual(self.client.get(f"{API}/documents/{document_id}").status_code, 200)

    def test_not_found_responses(self):
        document_id = self._create()["id"]

        self.assertEqual(self.client.get(f"{API}/documents/missing").status_code, 404)
        self.assertEqual(self.client.get(f"{API}/documents/missing/progress").status_code, 404)
        self.assertEqual(
            self.client.put(f"{API}/documents/{document_id}/sections/Nope", json={"text": "x"}).status_code,
            404,
        )
        self.assertEqual(self.client.get(f"{API}/documents/{document_id}/sections/Nope/history").status_code, 404)
        self.assertEqual(
            self.client.get(f"{API}/documents/{document_id}/generate/status/unknown-job").status_code, 404
        )
        self.assertEqual(self.client.post(f"{API}/documents/{document_id}/generate/cancel").status_code, 400)

    def test_structure_update_and_delete(self):
        document_id = self._create()["id"]
        self.client.put(f"{API}/documents/{document_id}/sections/Budget", json={"text": "Costs"})

        response = self.client.put(
            f"{API}/documents/{document_id}/structure", json={"structure": ["Budget", "Impact"]}
        )

        self.assertEqual(response.json(), {"structure": ["Budget", "Impact"]})
        document = self.client.get(f"{API}/documents/{document_id}").json()
        self.assertEqual(document["sections"][0]["text"], "Costs")
        self.assertEqual(
            self.client.put(f"{API}/documents/{document_id}/structure", json={"structure": []}).status_code,
            422,
        )
        self.assertEqual(self.client.delete(f"{API}/documents/{document_id}").json(), {"deleted": document_id})
        self.assertEqual(self.client.get(f"{API}/documents/{document_id}").status_code, 404)

    def test_preview_and_docx_export(self):
        document_id = self._create(context={"grant_name": "Youth Fund"})["id"]
        self.client.put(f"{API}/documents/{document_id}/sections/Summary", json={"text": "Overview text."})
        self.client.put(
            f"{API}/documents/{document_id}/sections/Budget",
            json={"text": "- Stipends\nASK_RECOMMENDATION: Type 1, 1 cohort, R516000"},
        )

        preview = self.client.get(f"{API}/documents/{document_id}/preview").json()

        self.assertEqual(preview["title"], "Youth Fund")
        self.assertEqual(
            [block["kind"] for block in preview["blocks"]],
            ["heading", "paragraph", "break", "heading", "bullet"],
        )
        self.assertEqual(len(preview["parts"]), 1)

        exported = self.client.post(f"{API}/documents/{document_id}/export/docx")

        self.assertEqual(exported.status_code, 200)
        self.assertTrue(exported.content.startswith(b"PK"))
        self.assertIn('filename="Youth Fund.docx"', exported.headers["content-disposition"])

    def test_export_of_empty_document_is_rejected(self):
        document_id = self._create()["id"]

        response = self.client.post(f"{API}/documents/{document_id}/export/docx")

        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
