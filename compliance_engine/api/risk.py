"""
/api/v1/risk-assessments endpoints: reviewer queue and status transitions.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.dependencies import get_db, require_user, verify_api_key
from compliance_engine.review.assessments import get_pending_assessments, review_assessment
from compliance_engine.schemas.audit import ActorContext
from compliance_engine.schemas.risk import ReviewRequest, RiskAssessmentResponse

router = APIRouter(
    prefix="/api/v1/risk-assessments",
    tags=["risk"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/pending", response_model=list[RiskAssessmentResponse])
async def pending_assessments(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    """Assessments flagged for human review that nobody has touched yet."""
    return await get_pending_assessments(session, limit=limit, offset=offset)


@router.post("/{assessment_id}/review", response_model=RiskAssessmentResponse)
async def review(
    assessment_id: uuid.UUID,
    body: ReviewRequest,
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    return await review_assessment(session, assessment_id, body.status, actor, notes=body.notes)
