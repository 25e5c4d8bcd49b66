"""
Risk factor analysis - four independent detectors with fixed weights.

Each triggered detector adds its weight and exactly one anomaly record.
The raw sum can reach 110, the final score is clamped to [0, 100].
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from compliance_engine.config import settings
from compliance_engine.models.enums import AnomalyType, RiskCategory, RiskLevel
from compliance_engine.pipeline.amount_parser import is_round_amount
from compliance_engine.pipeline.date_parser import is_weekend
from compliance_engine.pipeline.entity_extractor import ExtractionResult


class RiskSignals(BaseModel):
    """Auxiliary flags. The defaults describe a clean, complete document."""
    weekend_transactions: bool = False
    round_numbers: bool = False
    date_format_issues: bool = False
    currency_issues: bool = False
    has_date: bool = True
    has_amount: bool = True
    has_description: bool = True


class Anomaly(BaseModel):
    type: AnomalyType
    details: dict


class RiskAnalysis(BaseModel):
    risk_score: int = 0
    raw_score: int = 0
    risk_category: RiskCategory = RiskCategory.FINANCIAL
    factors: dict = {}
    anomalies: list[Anomaly] = []
    human_review_required: bool = False


# Detector -> (anomaly type, category it implies)
DETECTORS = {
    "large_amounts": (AnomalyType.LARGE_AMOUNT, RiskCategory.FINANCIAL),
    "unusual_pattern": (AnomalyType.UNUSUAL_PATTERN, RiskCategory.FRAUD),
    "missing_data": (AnomalyType.MISSING_DATA, RiskCategory.DATA_QUALITY),
    "inconsistency": (AnomalyType.INCONSISTENCY, RiskCategory.DATA_QUALITY),
}


def detector_weights() -> dict[str, int]:
    return {
        "large_amounts": settings.WEIGHT_LARGE_AMOUNTS,
        "unusual_pattern": settings.WEIGHT_UNUSUAL_PATTERN,
        "missing_data": settings.WEIGHT_MISSING_DATA,
        "inconsistency": settings.WEIGHT_INCONSISTENCY,
    }


def clamp_score(value: int) -> int:
    return max(0, min(100, int(value)))


def requires_human_review(score: int) -> bool:
    # Strict: a score of exactly the threshold does not need review
    return score > settings.HUMAN_REVIEW_THRESHOLD


def risk_level_for_score(score: int) -> RiskLevel:
    if score >= 90:
        return RiskLevel.CRITICAL
    if score > settings.HUMAN_REVIEW_THRESHOLD:
        return RiskLevel.HIGH
    if score >= 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


# ── Detectors ────────────────────────────────────────────────

def detect_large_amounts(entities: ExtractionResult) -> dict:
    threshold = Decimal(str(settings.LARGE_AMOUNT_THRESHOLD))
    large = [
        e.parsed_value for e in entities.amounts
        if e.parsed_value is not None and Decimal(e.parsed_value) > threshold
    ]
    return {"detected": bool(large), "amounts": [str(a) for a in large]}


def detect_unusual_patterns(signals: RiskSignals) -> dict:
    patterns = []
    if signals.weekend_transactions:
        patterns.append("weekend_transactions")
    if signals.round_numbers:
        patterns.append("round_number_amounts")
    return {"detected": bool(patterns), "patterns": patterns}


def detect_missing_data(signals: RiskSignals) -> dict:
    missing = [
        name for name, present in (
            ("date", signals.has_date),
            ("amount", signals.has_amount),
            ("description", signals.has_description),
        )
        if not present
    ]
    return {"detected": bool(missing), "missing_fields": missing}


def detect_inconsistencies(signals: RiskSignals) -> dict:
    issues = []
    if signals.date_format_issues:
        issues.append("inconsistent_date_formats")
    if signals.currency_issues:
        issues.append("multiple_currencies")
    return {"detected": bool(issues), "inconsistencies": issues}


def analyze_risk(
    entities: Optional[ExtractionResult] = None,
    signals: Optional[RiskSignals] = None,
) -> RiskAnalysis:
    """
    Run all four detectors and aggregate a clamped score.
    Total: missing inputs are treated as an empty entity set and clean signals.
    """
    entities = entities or ExtractionResult()
    signals = signals or RiskSignals()
    weights = detector_weights()

    factors = {
        "large_amounts": detect_large_amounts(entities),
        "unusual_pattern": detect_unusual_patterns(signals),
        "missing_data": detect_missing_data(signals),
        "inconsistency": detect_inconsistencies(signals),
    }

    raw_score = 0
    anomalies = []
    heaviest = None
    for name, (anomaly_type, _category) in DETECTORS.items():
        result = factors[name]
        if not result["detected"]:
            continue
        raw_score += weights[name]
        anomalies.append(Anomaly(type=anomaly_type, details=result))
        if heaviest is None or weights[name] > weights[heaviest]:
            heaviest = name

    score = clamp_score(raw_score)
    category = DETECTORS[heaviest][1] if heaviest else RiskCategory.FINANCIAL

    return RiskAnalysis(
        risk_score=score,
        raw_score=raw_score,
        risk_category=category,
        factors=factors,
        anomalies=anomalies,
        human_review_required=requires_human_review(score),
    )


# ── Signal derivation ────────────────────────────────────────

DESCRIPTION_WORD = re.compile(r"[A-Za-z]{3,}")


def _text_outside_entities(text: str, entities: ExtractionResult) -> str:
    spans = sorted(
        (e.character_offset, e.character_offset + len(e.raw_text))
        for category in ("amounts", "dates", "account_numbers", "entity_names", "tax_ids")
        for e in getattr(entities, category)
    )
    pieces = []
    cursor = 0
    for start, end in spans:
        if start > cursor:
            pieces.append(text[cursor:start])
        cursor = max(cursor, end)
    pieces.append(text[cursor:])
    return " ".join(pieces)


def derive_signals(
    entities: ExtractionResult,
    raw_text: Optional[str] = None,
    overrides: Optional[dict] = None,
) -> RiskSignals:
    """
    Derive the auxiliary flags from an entity set.
    Explicit `overrides` from the caller win over derived values.
    """
    parsed_dates = []
    for e in entities.dates:
        if e.parsed_value:
            parsed_dates.append(date.fromisoformat(str(e.parsed_value)))

    date_formats = {e.format_detected for e in entities.dates if e.format_detected}
    currencies = {e.currency for e in entities.amounts if e.currency}
    text = raw_text if isinstance(raw_text, str) else ""

    derived = {
        "weekend_transactions": any(is_weekend(d) for d in parsed_dates),
        "round_numbers": any(
            is_round_amount(
                Decimal(e.parsed_value) if e.parsed_value is not None else None,
                settings.ROUND_AMOUNT_UNIT,
            )
            for e in entities.amounts
        ),
        "date_format_issues": len(date_formats) > 1,
        "currency_issues": len(currencies) > 1,
        "has_date": bool(entities.dates),
        "has_amount": bool(entities.amounts),
        "has_description": bool(DESCRIPTION_WORD.search(_text_outside_entities(text, entities))),
    }
    if overrides:
        derived.update({k: bool(v) for k, v in overrides.items() if k in RiskSignals.model_fields})
    return RiskSignals(**derived)
