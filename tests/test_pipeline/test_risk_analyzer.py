"""
Tests for the risk factor analyzer and signal derivation.
"""

from decimal import Decimal

import pytest

from compliance_engine.models.enums import AnomalyType, EntityCategory, RiskCategory, RiskLevel
from compliance_engine.pipeline.entity_extractor import ExtractedEntity, ExtractionResult, extract_entities
from compliance_engine.pipeline.risk_analyzer import (
    RiskSignals,
    analyze_risk,
    clamp_score,
    derive_signals,
    requires_human_review,
    risk_level_for_score,
)


def _amounts(*values: str) -> ExtractionResult:
    return ExtractionResult(amounts=[
        ExtractedEntity(
            category=EntityCategory.AMOUNTS,
            raw_text=f"${v}",
            parsed_value=Decimal(v),
            character_offset=0,
            confidence=0.95,
            currency="USD",
        )
        for v in values
    ])


class TestAnalyzeRisk:

    def test_large_amount_on_weekend(self):
        analysis = analyze_risk(_amounts("150000"), RiskSignals(weekend_transactions=True))
        assert analysis.risk_score == 55
        assert not analysis.human_review_required
        assert len(analysis.anomalies) == 2
        assert {a.type for a in analysis.anomalies} == {
            AnomalyType.LARGE_AMOUNT, AnomalyType.UNUSUAL_PATTERN,
        }

    def test_every_detector_clamps_to_100(self):
        signals = RiskSignals(
            weekend_transactions=True,
            date_format_issues=True,
            has_description=False,
        )
        analysis = analyze_risk(_amounts("150000"), signals)
        assert analysis.raw_score == 110
        assert analysis.risk_score == 100
        assert analysis.human_review_required
        assert len(analysis.anomalies) == 4

    def test_clean_document_scores_zero(self):
        analysis = analyze_risk(_amounts("250.00"), RiskSignals())
        assert analysis.risk_score == 0
        assert analysis.anomalies == []
        assert analysis.risk_category == RiskCategory.FINANCIAL

    def test_threshold_is_strictly_greater(self):
        analysis = analyze_risk(_amounts("100000"), RiskSignals())
        assert not analysis.factors["large_amounts"]["detected"]

    def test_missing_inputs_are_total(self):
        analysis = analyze_risk(None, None)
        assert analysis.risk_score == 0
        assert set(analysis.factors) == {
            "large_amounts", "unusual_pattern", "missing_data", "inconsistency",
        }

    def test_one_anomaly_per_detector(self):
        signals = RiskSignals(weekend_transactions=True, round_numbers=True)
        analysis = analyze_risk(ExtractionResult(), signals)
        assert len(analysis.anomalies) == 1
        assert analysis.anomalies[0].details["patterns"] == [
            "weekend_transactions", "round_number_amounts",
        ]

    def test_missing_data_lists_fields(self):
        analysis = analyze_risk(ExtractionResult(), RiskSignals(has_date=False, has_amount=False))
        assert analysis.risk_score == 20
        assert analysis.factors["missing_data"]["missing_fields"] == ["date", "amount"]

    @pytest.mark.parametrize("signals, expected", [
        (RiskSignals(weekend_transactions=True), RiskCategory.FRAUD),
        (RiskSignals(currency_issues=True), RiskCategory.DATA_QUALITY),
        (RiskSignals(has_description=False), RiskCategory.FINANCIAL),
        (RiskSignals(has_description=False, round_numbers=True), RiskCategory.FRAUD),
    ])
    def test_category_follows_heaviest_detector(self, signals, expected):
        assert analyze_risk(_amounts("150000"), signals).risk_category == expected

    def test_large_amount_alone_is_financial(self):
        assert analyze_risk(_amounts("150000"), RiskSignals()).risk_category == RiskCategory.FINANCIAL


class TestThresholds:

    def test_review_boundary(self):
        assert not requires_human_review(70)
        assert requires_human_review(71)

    def test_clamp(self):
        assert clamp_score(110) == 100
        assert clamp_score(-5) == 0
        assert clamp_score(55) == 55

    def test_risk_levels(self):
        assert risk_level_for_score(95) == RiskLevel.CRITICAL
        assert risk_level_for_score(71) == RiskLevel.HIGH
        assert risk_level_for_score(70) == RiskLevel.MEDIUM
        assert risk_level_for_score(39) == RiskLevel.LOW


class TestDeriveSignals:

    def test_weekend_round_amount(self, sample_weekend_text):
        signals = derive_signals(extract_entities(sample_weekend_text), sample_weekend_text)
        assert signals.weekend_transactions
        assert signals.round_numbers
        assert signals.has_date and signals.has_amount and signals.has_description
        assert not signals.date_format_issues
        assert not signals.currency_issues

    def test_mixed_date_formats(self):
        text = "Paid $10.50 on 15/03/2024 and again on 18-03-24"
        assert derive_signals(extract_entities(text), text).date_format_issues

    def test_mixed_currencies(self):
        text = "Charged $100.25 and €200.10 for services"
        assert derive_signals(extract_entities(text), text).currency_issues

    def test_entities_only_has_no_description(self):
        text = "$1,234.56"
        signals = derive_signals(extract_entities(text), text)
        assert not signals.has_description
        assert not signals.has_date

    def test_overrides_win(self):
        text = "Invoice for $250.10 issued 14/03/2024"
        signals = derive_signals(
            extract_entities(text), text, {"weekend_transactions": True, "not_a_signal": True},
        )
        assert signals.weekend_transactions
        assert not hasattr(signals, "not_a_signal")

    def test_end_to_end_score(self, sample_weekend_text):
        entities = extract_entities(sample_weekend_text)
        analysis = analyze_risk(entities, derive_signals(entities, sample_weekend_text))
        assert analysis.risk_score == 30
        assert analysis.risk_category == RiskCategory.FRAUD
