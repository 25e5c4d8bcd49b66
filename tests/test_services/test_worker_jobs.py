"""
Tests for the RQ job entry points.
"""

from unittest.mock import MagicMock

from compliance_engine.compliance.frameworks import seed_default_frameworks
from compliance_engine.pipeline.orchestrator import DocumentPipeline
from compliance_engine.schemas.audit import SYSTEM_ACTOR
from compliance_engine.schemas.documents import DocumentIn
from compliance_engine.worker import jobs


class TestEnqueue:

    def test_enqueue_passes_arguments(self, monkeypatch):
        queue = MagicMock()
        queue.enqueue.return_value.id = "job-123"
        monkeypatch.setattr(jobs, "get_queue", lambda: queue)

        job_id = jobs.enqueue_reprocess("doc-1", {"weekend_transactions": True}, "auditor-1")

        assert job_id == "job-123"
        args, kwargs = queue.enqueue.call_args
        assert args == (jobs.process_document_job, "doc-1", {"weekend_transactions": True}, "auditor-1")
        assert kwargs["job_timeout"] == jobs.settings.JOB_TIMEOUT_SECONDS


class TestProcessDocumentJob:

    async def test_rescores_and_runs_active_frameworks(self, session_factory, sample_invoice_text):
        async with session_factory() as session:
            await seed_default_frameworks(session, SYSTEM_ACTOR)
            await session.commit()

        pipeline = DocumentPipeline(session_factory=session_factory)
        ingested = await pipeline.ingest(DocumentIn(raw_text=sample_invoice_text))

        result = await jobs._process_document_async(
            str(ingested["document_id"]), session_factory=session_factory,
        )

        assert result["risk_score"] == 55
        assert result["assessment_id"] != str(ingested["assessment_id"])
        assert len(result["compliance"]["checks"]) == 4
        assert result["compliance"]["failures"] == []
