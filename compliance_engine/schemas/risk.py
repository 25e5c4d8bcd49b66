"""
Risk assessment schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from compliance_engine.models.enums import AssessmentStatus


class RiskAssessmentResponse(BaseModel):
    assessment_id: uuid.UUID
    document_id: uuid.UUID
    entity_set_id: Optional[uuid.UUID] = None
    risk_score: int
    risk_category: str
    factors: dict
    signals: dict = {}
    anomalies: list[dict]
    ai_confidence: int
    human_review_required: bool
    status: str
    reviewer_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    supersedes_id: Optional[uuid.UUID] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReviewRequest(BaseModel):
    status: AssessmentStatus
    notes: Optional[str] = None
