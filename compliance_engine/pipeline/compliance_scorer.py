"""
Compliance scoring - structural signals plus one framework adjustment,
banded into PASSED / MANUAL_REVIEW / FAILED.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from compliance_engine.config import settings
from compliance_engine.models.enums import ComplianceStatus


class NoAdjustment(BaseModel):
    kind: Literal["none"] = "none"

    def apply(self, tags: list[str]) -> int:
        return 0


class FixedBonus(BaseModel):
    kind: Literal["fixed_bonus"] = "fixed_bonus"
    points: int

    def apply(self, tags: list[str]) -> int:
        return self.points


class TagPenalty(BaseModel):
    kind: Literal["tag_penalty"] = "tag_penalty"
    tag: str
    points: int

    def apply(self, tags: list[str]) -> int:
        return -self.points if self.tag in tags else 0


FrameworkAdjustment = Annotated[
    Union[NoAdjustment, FixedBonus, TagPenalty],
    Field(discriminator="kind"),
]


class ComplianceSubject(BaseModel):
    """The structural facts about a document that scoring looks at."""
    tags: list[str] = []
    ocr_text: str = ""
    has_entities: bool = False
    created_at: Optional[datetime] = None
    file_size: int = 0


class ComplianceScore(BaseModel):
    score: int
    raw_score: int
    status: ComplianceStatus
    signals: dict[str, int] = {}
    adjustment: dict = {}


# ── Signal points ────────────────────────────────────────────
SIGNAL_POINTS = {
    "tagged": 10,
    "ocr_complete": 10,
    "entities_extracted": 10,
    "timestamped": 5,
    "valid_file": 5,
}


def band_score(score: int) -> ComplianceStatus:
    """Exact contract: >=80 PASSED, 60-79 MANUAL_REVIEW, <60 FAILED."""
    if score >= settings.COMPLIANCE_PASS_THRESHOLD:
        return ComplianceStatus.PASSED
    if score >= settings.COMPLIANCE_REVIEW_THRESHOLD:
        return ComplianceStatus.MANUAL_REVIEW
    return ComplianceStatus.FAILED


def structural_signals(subject: ComplianceSubject) -> dict[str, int]:
    present = {
        "tagged": bool(subject.tags),
        "ocr_complete": len(subject.ocr_text or "") > settings.COMPLIANCE_MIN_OCR_CHARS,
        "entities_extracted": subject.has_entities,
        "timestamped": subject.created_at is not None,
        "valid_file": (subject.file_size or 0) > 0,
    }
    return {name: (SIGNAL_POINTS[name] if hit else 0) for name, hit in present.items()}


def score_compliance(
    subject: ComplianceSubject,
    adjustment: Optional[FrameworkAdjustment] = None,
) -> ComplianceScore:
    """Score one document against one framework's adjustment strategy."""
    adjustment = adjustment or NoAdjustment()
    signals = structural_signals(subject)

    adjustment_points = adjustment.apply(subject.tags)
    raw = settings.COMPLIANCE_BASE_SCORE + sum(signals.values()) + adjustment_points
    score = max(0, min(100, raw))

    return ComplianceScore(
        score=score,
        raw_score=raw,
        status=band_score(score),
        signals=signals,
        adjustment={**adjustment.model_dump(), "points_applied": adjustment_points},
    )
