"""
Pattern-based financial/compliance entity extraction.

Five independent scanners, each a single left-to-right pass over the text.
Categories are not deduplicated against each other: a span may appear as
both an amount and part of an account number.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel

from compliance_engine.models.enums import EntityCategory, ExtractionValidationStatus
from compliance_engine.pipeline.amount_parser import parse_amount
from compliance_engine.pipeline.date_parser import parse_numeric_date


class ExtractedEntity(BaseModel):
    category: EntityCategory
    raw_text: str
    parsed_value: Any = None
    character_offset: int
    confidence: float
    currency: Optional[str] = None
    format_detected: Optional[str] = None


class ExtractionResult(BaseModel):
    amounts: list[ExtractedEntity] = []
    dates: list[ExtractedEntity] = []
    account_numbers: list[ExtractedEntity] = []
    entity_names: list[ExtractedEntity] = []
    tax_ids: list[ExtractedEntity] = []
    overall_confidence: int = 0

    def has_entities(self) -> bool:
        return any(getattr(self, c.value) for c in EntityCategory)

    @property
    def validation_status(self) -> str:
        if self.overall_confidence > 80:
            return ExtractionValidationStatus.VALIDATED.value
        return ExtractionValidationStatus.MANUAL_REVIEW.value

    def category_lists(self) -> dict[str, list[dict]]:
        """JSON-safe per-category lists for persistence."""
        return {
            c.value: [e.model_dump(mode="json", exclude={"category"}) for e in getattr(self, c.value)]
            for c in EntityCategory
        }


# ── Scanner patterns ─────────────────────────────────────────
AMOUNT_PATTERN = re.compile(r"[$£€¥]\s*((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?)")
DATE_PATTERN = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")
ACCOUNT_PATTERN = re.compile(r"\b(?:Account|Acct|A/C)[:\s]*(\d{8,20})", re.IGNORECASE)
ENTITY_NAME_PATTERN = re.compile(r"[A-Z][a-z]+ (?:[A-Z][a-z]+ )*(?:Inc|Corp|LLC|Ltd|Company)\b")
TAX_ID_PATTERN = re.compile(r"\b(?:EIN|Tax ID|TIN)[:\s]*(\d{2}-\d{7})", re.IGNORECASE)

# ── Fixed per-category confidences ───────────────────────────
DATE_CONFIDENCE = 0.8
ACCOUNT_CONFIDENCE = 0.9
ENTITY_NAME_CONFIDENCE = 0.7
TAX_ID_CONFIDENCE = 0.95

# ── Coverage weights for overall confidence ──────────────────
COVERAGE_WEIGHTS = {
    EntityCategory.AMOUNTS: 30,
    EntityCategory.DATES: 25,
    EntityCategory.ACCOUNT_NUMBERS: 20,
    EntityCategory.ENTITY_NAMES: 15,
    EntityCategory.TAX_IDS: 10,
}


def scan_amounts(text: str) -> list[ExtractedEntity]:
    found = []
    for m in AMOUNT_PATTERN.finditer(text):
        parsed = parse_amount(m.group(0))
        found.append(ExtractedEntity(
            category=EntityCategory.AMOUNTS,
            raw_text=m.group(0),
            parsed_value=parsed.amount,
            character_offset=m.start(),
            confidence=parsed.confidence,
            currency=parsed.currency,
        ))
    return found


def scan_dates(text: str) -> list[ExtractedEntity]:
    found = []
    for m in DATE_PATTERN.finditer(text):
        parsed = parse_numeric_date(m.group(0))
        found.append(ExtractedEntity(
            category=EntityCategory.DATES,
            raw_text=m.group(0),
            parsed_value=parsed.parsed_date.isoformat() if parsed.parsed_date else None,
            character_offset=m.start(),
            confidence=DATE_CONFIDENCE,
            format_detected=parsed.format_detected,
        ))
    return found


def scan_account_numbers(text: str) -> list[ExtractedEntity]:
    return [
        ExtractedEntity(
            category=EntityCategory.ACCOUNT_NUMBERS,
            raw_text=m.group(0),
            parsed_value=m.group(1),
            character_offset=m.start(),
            confidence=ACCOUNT_CONFIDENCE,
        )
        for m in ACCOUNT_PATTERN.finditer(text)
    ]


def scan_entity_names(text: str) -> list[ExtractedEntity]:
    return [
        ExtractedEntity(
            category=EntityCategory.ENTITY_NAMES,
            raw_text=m.group(0),
            parsed_value=m.group(0),
            character_offset=m.start(),
            confidence=ENTITY_NAME_CONFIDENCE,
        )
        for m in ENTITY_NAME_PATTERN.finditer(text)
    ]


def scan_tax_ids(text: str) -> list[ExtractedEntity]:
    return [
        ExtractedEntity(
            category=EntityCategory.TAX_IDS,
            raw_text=m.group(0),
            parsed_value=m.group(1),
            character_offset=m.start(),
            confidence=TAX_ID_CONFIDENCE,
        )
        for m in TAX_ID_PATTERN.finditer(text)
    ]


def coverage_confidence(result: ExtractionResult) -> int:
    """Sum of category weights for every non-empty category (0-100)."""
    return sum(
        weight for category, weight in COVERAGE_WEIGHTS.items()
        if getattr(result, category.value)
    )


def extract_entities(raw_text: Optional[str], metadata: Optional[dict] = None) -> ExtractionResult:
    """
    Scan raw text for amounts, dates, account numbers, entity names and tax ids.

    Total: never raises, returns an all-empty result for empty or non-string
    input. `metadata` is accepted from the ingest payload; the scanners only
    read the text.
    """
    text = raw_text if isinstance(raw_text, str) else ""

    result = ExtractionResult(
        amounts=scan_amounts(text),
        dates=scan_dates(text),
        account_numbers=scan_account_numbers(text),
        entity_names=scan_entity_names(text),
        tax_ids=scan_tax_ids(text),
    )
    result.overall_confidence = coverage_confidence(result)
    return result
