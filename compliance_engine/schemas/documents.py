"""
Pydantic request/response schemas for the /api/v1/documents endpoints.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from compliance_engine.config import settings


# ── Request Schemas ──────────────────────────────────────────

class DocumentMetadata(BaseModel):
    tags: list[str] = []
    mime_type: Optional[str] = None
    file_size: int = Field(default=0, ge=0)


class DocumentIn(BaseModel):
    """A document as handed over by the upstream text-extraction step."""
    id: Optional[uuid.UUID] = None
    raw_text: str = ""
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    created_at: Optional[datetime] = None
    # Explicit risk signal overrides, e.g. {"weekend_transactions": true}
    signals: Optional[dict[str, bool]] = None

    @field_validator("raw_text")
    @classmethod
    def check_length(cls, v: str) -> str:
        if len(v) > settings.MAX_RAW_TEXT_CHARS:
            raise ValueError(f"raw_text exceeds {settings.MAX_RAW_TEXT_CHARS} characters")
        return v


class ReprocessRequest(BaseModel):
    signals: Optional[dict[str, bool]] = None


# ── Response Schemas ─────────────────────────────────────────

class PipelineResult(BaseModel):
    """Summary of one extract-and-score run."""
    document_id: uuid.UUID
    entity_set_id: uuid.UUID
    assessment_id: uuid.UUID
    overall_confidence: int
    validation_status: str
    entity_counts: dict[str, int]
    risk_score: int
    risk_category: str
    human_review_required: bool
    anomalies: list[dict]
    duration_ms: int


class EntitySetResponse(BaseModel):
    entity_set_id: uuid.UUID
    document_id: uuid.UUID
    amounts: list[dict]
    dates: list[dict]
    account_numbers: list[dict]
    entity_names: list[dict]
    tax_ids: list[dict]
    overall_confidence: int
    validation_status: str
    engine_version: str
    supersedes_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReprocessResponse(BaseModel):
    document_id: uuid.UUID
    mode: str
    job_id: Optional[str] = None
    result: Optional[PipelineResult] = None
