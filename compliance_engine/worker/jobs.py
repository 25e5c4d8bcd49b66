"""
RQ job functions for re-scoring stored documents.
These are the entry points that the worker calls.
"""

import uuid
from typing import Optional

import structlog
from redis import Redis
from rq import Queue

from compliance_engine.config import settings
from compliance_engine.observability.logging import bind_actor

logger = structlog.get_logger(__name__)


def get_queue() -> Queue:
    """Get the scoring job queue."""
    conn = Redis.from_url(settings.REDIS_URL)
    return Queue(settings.QUEUE_NAME, connection=conn)


def enqueue_reprocess(document_id: str, signals: Optional[dict] = None, user_id: Optional[str] = None) -> str:
    """
    Enqueue a document for re-extraction, re-scoring and compliance evaluation.
    Returns the job ID.
    """
    q = get_queue()
    job = q.enqueue(
        process_document_job,
        document_id,
        signals,
        user_id,
        job_timeout=settings.JOB_TIMEOUT_SECONDS,
        result_ttl=86400,
        failure_ttl=604800,
    )
    logger.info("job_enqueued", document_id=document_id, job_id=job.id)
    return job.id


def process_document_job(document_id: str, signals: Optional[dict] = None, user_id: Optional[str] = None) -> dict:
    """
    Main job function: run the pipeline and every active framework for one document.
    This runs inside the RQ worker process.
    """
    import asyncio

    bind_actor(user_id or "worker")
    logger.info("job_started", document_id=document_id)

    try:
        result = asyncio.run(_process_document_async(document_id, signals, user_id))
        logger.info(
            "job_completed",
            document_id=document_id,
            risk_score=result["risk_score"],
            compliance_failures=len(result["compliance"]["failures"]),
        )
        return result
    except Exception as e:
        logger.error("job_failed", document_id=document_id, error=str(e))
        raise


async def _process_document_async(
    document_id: str,
    signals: Optional[dict] = None,
    user_id: Optional[str] = None,
    session_factory=None,
) -> dict:
    """Pipeline run followed by a compliance pass over all active frameworks."""
    from compliance_engine.compliance.checks import run_compliance_checks
    from compliance_engine.compliance.frameworks import list_frameworks
    from compliance_engine.models.database import async_session_factory
    from compliance_engine.pipeline.orchestrator import DocumentPipeline
    from compliance_engine.schemas.audit import ActorContext

    session_factory = session_factory or async_session_factory
    actor = ActorContext(user_id=user_id or "worker", role="system")
    doc_uuid = uuid.UUID(document_id)

    pipeline = DocumentPipeline(session_factory=session_factory)
    summary = await pipeline.process(doc_uuid, actor=actor, signal_overrides=signals)

    async with session_factory() as session:
        frameworks = await list_frameworks(session, active_only=True)
        outcome = await run_compliance_checks(
            session, doc_uuid, [f.framework_id for f in frameworks], actor
        )
        await session.commit()

    return {
        "document_id": document_id,
        "risk_score": summary["risk_score"],
        "assessment_id": str(summary["assessment_id"]),
        "compliance": {
            "checks": [
                {"check_id": str(c.check_id), "score": c.score, "status": c.status}
                for c in outcome["checks"]
            ],
            "failures": [f.model_dump() for f in outcome["failures"]],
        },
    }
