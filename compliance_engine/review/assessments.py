"""
Human review of risk assessments.
Status is the only mutable column; every transition is audited.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.errors import InvalidTransitionError, RecordNotFoundError
from compliance_engine.models.enums import AssessmentStatus, AuditAction
from compliance_engine.models.tables import RiskAssessment, utcnow
from compliance_engine.observability import metrics
from compliance_engine.pipeline.risk_analyzer import risk_level_for_score
from compliance_engine.schemas.audit import ActorContext

logger = structlog.get_logger(__name__)


ALLOWED_REVIEW_TRANSITIONS = {
    AssessmentStatus.PENDING: {AssessmentStatus.REVIEWED, AssessmentStatus.FLAGGED},
    AssessmentStatus.REVIEWED: {AssessmentStatus.APPROVED, AssessmentStatus.FLAGGED},
    AssessmentStatus.APPROVED: set(),
    AssessmentStatus.FLAGGED: set(),
}

REVIEW_AUDIT_ACTION = {
    AssessmentStatus.REVIEWED: AuditAction.UPDATE,
    AssessmentStatus.APPROVED: AuditAction.APPROVE,
    AssessmentStatus.FLAGGED: AuditAction.REJECT,
}


def _review_snapshot(assessment: RiskAssessment) -> dict:
    return {
        "status": assessment.status,
        "reviewer_notes": assessment.reviewer_notes,
        "reviewed_by": assessment.reviewed_by,
        "reviewed_at": assessment.reviewed_at,
    }


async def review_assessment(
    session: AsyncSession,
    assessment_id: uuid.UUID,
    target_status: AssessmentStatus,
    actor: ActorContext,
    notes: Optional[str] = None,
) -> RiskAssessment:
    """
    Move an assessment along PENDING -> REVIEWED -> APPROVED | FLAGGED.
    Raises RecordNotFoundError or InvalidTransitionError.
    """
    assessment = await session.get(RiskAssessment, assessment_id)
    if assessment is None:
        raise RecordNotFoundError(f"Risk assessment {assessment_id} not found")

    target = AssessmentStatus(target_status)
    current = AssessmentStatus(assessment.status)
    if target not in ALLOWED_REVIEW_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move assessment from {current.value} to {target.value}"
        )

    before = _review_snapshot(assessment)
    assessment.status = target.value
    assessment.reviewer_notes = notes
    assessment.reviewed_by = actor.user_id
    assessment.reviewed_at = utcnow()
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="risk_assessments",
        record_id=assessment.assessment_id,
        action_type=REVIEW_AUDIT_ACTION[target],
        actor=actor,
        old_values=before,
        new_values=_review_snapshot(assessment),
        risk_level=risk_level_for_score(assessment.risk_score),
        document_id=assessment.document_id,
    )
    metrics.risk_reviews_total.labels(status=target.value).inc()
    logger.info(
        "risk_assessment_reviewed",
        assessment_id=str(assessment.assessment_id),
        from_status=current.value,
        to_status=target.value,
        reviewed_by=actor.user_id,
    )
    return assessment


async def list_assessments(
    session: AsyncSession,
    document_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[RiskAssessment]:
    """Assessment history for a document, newest first."""
    result = await session.execute(
        select(RiskAssessment)
        .where(RiskAssessment.document_id == document_id)
        .order_by(RiskAssessment.created_at.desc(), RiskAssessment.assessment_id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_pending_assessments(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[RiskAssessment]:
    """Assessments awaiting a reviewer, highest score first."""
    result = await session.execute(
        select(RiskAssessment)
        .where(
            RiskAssessment.status == AssessmentStatus.PENDING.value,
            RiskAssessment.human_review_required.is_(True),
        )
        .order_by(RiskAssessment.risk_score.desc(), RiskAssessment.created_at)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
