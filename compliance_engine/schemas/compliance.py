"""
Compliance framework and check schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from compliance_engine.pipeline.compliance_scorer import FrameworkAdjustment, NoAdjustment


class FrameworkCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    requirements: dict[str, str] = {}
    adjustment: FrameworkAdjustment = Field(default_factory=NoAdjustment)
    is_active: bool = True


class FrameworkResponse(BaseModel):
    framework_id: uuid.UUID
    name: str
    description: Optional[str] = None
    requirements: dict
    adjustment: dict
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ComplianceCheckRequest(BaseModel):
    document_id: uuid.UUID
    # Empty means every active framework
    framework_ids: list[uuid.UUID] = []


class ComplianceCheckResponse(BaseModel):
    check_id: uuid.UUID
    document_id: uuid.UUID
    framework_id: uuid.UUID
    check_name: str
    score: int
    status: str
    details: dict
    exceptions: list[str]
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    supersedes_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ComplianceFailureResponse(BaseModel):
    framework_id: str
    error_code: str
    message: str


class ComplianceRunResponse(BaseModel):
    checks: list[ComplianceCheckResponse]
    failures: list[ComplianceFailureResponse]


class FrameworkAverage(BaseModel):
    average_score: float
    check_count: int


class ComplianceSummaryResponse(BaseModel):
    frameworks: dict[str, FrameworkAverage]
    overall_average: Optional[float] = None
    total_checks: int
