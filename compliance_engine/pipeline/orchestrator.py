"""
Pipeline orchestrator: ingest -> extract -> derive signals -> score risk.

Extraction always completes before scoring. Every recomputation appends a new
entity set and a new risk assessment pointing at the rows they supersede.
"""

import time
import uuid
from typing import Optional

import structlog
from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.config import settings
from compliance_engine.errors import (
    DuplicateRecordError,
    EngineError,
    PipelineError,
    RecordNotFoundError,
)
from compliance_engine.models.database import async_session_factory
from compliance_engine.models.enums import AssessmentStatus, AuditAction, EntityCategory, RiskLevel
from compliance_engine.models.tables import Document, ExtractedEntitySet, RiskAssessment
from compliance_engine.observability import metrics
from compliance_engine.pipeline.entity_extractor import extract_entities
from compliance_engine.pipeline.risk_analyzer import analyze_risk, derive_signals, risk_level_for_score
from compliance_engine.schemas.audit import SYSTEM_ACTOR, ActorContext
from compliance_engine.schemas.documents import DocumentIn

logger = structlog.get_logger(__name__)


class DocumentPipeline:
    """
    Runs one document through extraction and risk scoring.
    Each public call opens its own session and commits once.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session_factory

    async def ingest(self, document_in: DocumentIn, actor: Optional[ActorContext] = None) -> dict:
        """Persist a new document, then extract and score it in the same transaction."""
        actor = actor or SYSTEM_ACTOR
        started_at = time.time()

        async with self.session_factory() as session:
            try:
                if document_in.id is not None and await session.get(Document, document_in.id):
                    raise DuplicateRecordError(f"Document {document_in.id} already exists")

                document = Document(
                    document_id=document_in.id or uuid.uuid4(),
                    raw_text=document_in.raw_text,
                    tags=list(document_in.metadata.tags),
                    mime_type=document_in.metadata.mime_type,
                    file_size=document_in.metadata.file_size,
                    created_at=document_in.created_at,
                )
                session.add(document)
                await session.flush()

                await audit_recorder.record(
                    session,
                    table_name="documents",
                    record_id=document.document_id,
                    action_type=AuditAction.CREATE,
                    actor=actor,
                    new_values={
                        "tags": document.tags,
                        "mime_type": document.mime_type,
                        "file_size": document.file_size,
                        "created_at": document.created_at,
                        "text_length": len(document.raw_text),
                    },
                    compliance_tags=document.tags,
                    document_id=document.document_id,
                )
                metrics.documents_ingested_total.labels(
                    mime_type=document.mime_type or "unknown"
                ).inc()

                summary = await self._extract_and_score(
                    session, document, actor, document_in.signals, started_at
                )
                await session.commit()
            except EngineError:
                await session.rollback()
                raise
            except Exception as e:
                await session.rollback()
                logger.error("pipeline_failed", document_id=str(document_in.id), error=str(e), exc_info=True)
                raise PipelineError(str(e)) from e

        logger.info("document_ingested", **_log_fields(summary))
        return summary

    async def process(
        self,
        document_id: uuid.UUID,
        actor: Optional[ActorContext] = None,
        signal_overrides: Optional[dict] = None,
    ) -> dict:
        """Re-run extraction and scoring for a stored document."""
        actor = actor or SYSTEM_ACTOR
        started_at = time.time()
        logger.info("pipeline_started", document_id=str(document_id))

        async with self.session_factory() as session:
            try:
                document = await session.get(Document, document_id)
                if document is None:
                    raise RecordNotFoundError(f"Document {document_id} not found")

                summary = await self._extract_and_score(
                    session, document, actor, signal_overrides, started_at
                )
                await session.commit()
            except EngineError:
                await session.rollback()
                raise
            except Exception as e:
                await session.rollback()
                logger.error("pipeline_failed", document_id=str(document_id), error=str(e), exc_info=True)
                raise PipelineError(str(e)) from e

        logger.info("pipeline_completed", **_log_fields(summary))
        return summary

    # ── Stages ───────────────────────────────────────────────

    async def _extract_and_score(
        self,
        session: AsyncSession,
        document: Document,
        actor: ActorContext,
        signal_overrides: Optional[dict],
        started_at: float,
    ) -> dict:
        # ── Stage 1: EXTRACT ──
        extraction = extract_entities(document.raw_text, {"tags": document.tags})
        previous_set = await latest_entity_set(session, document.document_id)

        entity_set = ExtractedEntitySet(
            document_id=document.document_id,
            overall_confidence=extraction.overall_confidence,
            validation_status=extraction.validation_status,
            engine_version=settings.ENGINE_VERSION,
            supersedes_id=previous_set.entity_set_id if previous_set else None,
            **extraction.category_lists(),
        )
        session.add(entity_set)
        await session.flush()

        entity_counts = {c.value: len(getattr(extraction, c.value)) for c in EntityCategory}
        await audit_recorder.record(
            session,
            table_name="extracted_entity_sets",
            record_id=entity_set.entity_set_id,
            action_type=AuditAction.CREATE,
            actor=actor,
            new_values={
                "entity_counts": entity_counts,
                "overall_confidence": entity_set.overall_confidence,
                "validation_status": entity_set.validation_status,
                "supersedes_id": entity_set.supersedes_id,
            },
            document_id=document.document_id,
        )
        for category, count in entity_counts.items():
            if count:
                metrics.entities_extracted_total.labels(category=category).inc(count)
        metrics.extraction_confidence.observe(extraction.overall_confidence)

        # ── Stage 2: SIGNALS ──
        signals = derive_signals(extraction, document.raw_text, signal_overrides)

        # ── Stage 3: SCORE ──
        analysis = analyze_risk(extraction, signals)
        previous_assessment = await self._latest_assessment(session, document.document_id)

        assessment = RiskAssessment(
            document_id=document.document_id,
            entity_set_id=entity_set.entity_set_id,
            risk_score=analysis.risk_score,
            risk_category=analysis.risk_category.value,
            factors=analysis.factors,
            signals=signals.model_dump(),
            anomalies=[a.model_dump(mode="json") for a in analysis.anomalies],
            ai_confidence=extraction.overall_confidence,
            human_review_required=analysis.human_review_required,
            status=AssessmentStatus.PENDING.value,
            supersedes_id=previous_assessment.assessment_id if previous_assessment else None,
        )
        session.add(assessment)
        await session.flush()

        risk_level = risk_level_for_score(assessment.risk_score)
        await audit_recorder.record(
            session,
            table_name="risk_assessments",
            record_id=assessment.assessment_id,
            action_type=AuditAction.CREATE,
            actor=actor,
            new_values={
                "risk_score": assessment.risk_score,
                "risk_category": assessment.risk_category,
                "anomalies": [a["type"] for a in assessment.anomalies],
                "human_review_required": assessment.human_review_required,
                "supersedes_id": assessment.supersedes_id,
            },
            risk_level=risk_level,
            document_id=document.document_id,
        )
        metrics.risk_assessments_total.labels(
            risk_category=assessment.risk_category,
            human_review_required=str(assessment.human_review_required).lower(),
        ).inc()
        metrics.risk_scores.observe(assessment.risk_score)
        logger.info(
            "risk_assessed",
            document_id=str(document.document_id),
            assessment_id=str(assessment.assessment_id),
            risk_score=assessment.risk_score,
            raw_score=analysis.raw_score,
            anomalies=len(assessment.anomalies),
        )

        duration = time.time() - started_at
        metrics.pipeline_duration_seconds.observe(duration)

        if risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            logger.warning(
                "high_risk_document",
                document_id=str(document.document_id),
                risk_score=assessment.risk_score,
                risk_category=assessment.risk_category,
            )

        return {
            "document_id": document.document_id,
            "entity_set_id": entity_set.entity_set_id,
            "assessment_id": assessment.assessment_id,
            "overall_confidence": entity_set.overall_confidence,
            "validation_status": entity_set.validation_status,
            "entity_counts": entity_counts,
            "risk_score": assessment.risk_score,
            "risk_category": assessment.risk_category,
            "human_review_required": assessment.human_review_required,
            "anomalies": assessment.anomalies,
            "duration_ms": int(duration * 1000),
        }

    async def _latest_assessment(self, session: AsyncSession, document_id: uuid.UUID) -> Optional[RiskAssessment]:
        newer = aliased(RiskAssessment)
        result = await session.execute(
            select(RiskAssessment)
            .where(
                RiskAssessment.document_id == document_id,
                ~exists().where(newer.supersedes_id == RiskAssessment.assessment_id),
            )
            .order_by(RiskAssessment.created_at.desc(), RiskAssessment.assessment_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


def _log_fields(summary: dict) -> dict:
    return {
        "document_id": str(summary["document_id"]),
        "risk_score": summary["risk_score"],
        "overall_confidence": summary["overall_confidence"],
        "duration_ms": summary["duration_ms"],
    }


async def latest_entity_set(session: AsyncSession, document_id: uuid.UUID) -> Optional[ExtractedEntitySet]:
    """The head of the supersedes chain; rows sharing a timestamp still resolve to one set."""
    newer = aliased(ExtractedEntitySet)
    result = await session.execute(
        select(ExtractedEntitySet)
        .where(
            ExtractedEntitySet.document_id == document_id,
            ~exists().where(newer.supersedes_id == ExtractedEntitySet.entity_set_id),
        )
        .order_by(ExtractedEntitySet.created_at.desc(), ExtractedEntitySet.entity_set_id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_entity_sets(session: AsyncSession, document_id: uuid.UUID) -> list[ExtractedEntitySet]:
    """Every entity set for a document, newest first."""
    result = await session.execute(
        select(ExtractedEntitySet)
        .where(ExtractedEntitySet.document_id == document_id)
        .order_by(ExtractedEntitySet.created_at.desc(), ExtractedEntitySet.entity_set_id.desc())
    )
    return list(result.scalars().all())
