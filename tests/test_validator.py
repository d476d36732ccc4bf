"""
Tests for draft validation rules.
"""

from datetime import date
from decimal import Decimal

import pytest

from receipt_extractor.config import ExtractionSettings
from receipt_extractor.models import (
    CandidateOrigin,
    DiagnosticKind,
    DiagnosticSeverity,
    DirectionSource,
    NormalizedRecord,
)
from receipt_extractor.validation import DraftValidator


def make_record(**overrides) -> NormalizedRecord:
    data = {
        "record_index": 0,
        "origin": CandidateOrigin.BARE_ARRAY,
        "amount": Decimal("45.99"),
        "amount_raw": "45.99",
        "is_expense": True,
        "direction_source": DirectionSource.FLAG,
        "note": "Groceries",
        "category": "Food",
        "date": date(2025, 1, 15),
    }
    data.update(overrides)
    return NormalizedRecord(**data)


@pytest.fixture
def validator():
    return DraftValidator(ExtractionSettings())


class TestRejectionRules:
    """Tests for record rejection."""

    def test_valid_record(self, validator):
        """Test that a complete record becomes a draft with no findings."""
        outcome = validator.validate(make_record())
        assert outcome.rejected is False
        assert outcome.diagnostics == []
        assert outcome.draft.amount == Decimal("45.99")
        assert outcome.draft.note == "Groceries"
        assert outcome.draft.date == date(2025, 1, 15)

    def test_missing_amount(self, validator):
        """Test that a missing amount is rejected with the normalizer's reason."""
        outcome = validator.validate(make_record(
            amount=None, amount_raw=None, amount_issue="amount is missing",
        ))
        assert outcome.rejected is True
        assert len(outcome.diagnostics) == 1
        diagnostic = outcome.diagnostics[0]
        assert diagnostic.kind == DiagnosticKind.INVALID_AMOUNT
        assert diagnostic.severity == DiagnosticSeverity.ERROR
        assert diagnostic.field == "amount"
        assert "amount is missing" in diagnostic.message

    def test_unparseable_amount_keeps_raw(self, validator):
        """Test that the raw value is carried into the diagnostic."""
        outcome = validator.validate(make_record(
            amount=None, amount_raw='"abc"', amount_issue="no digits in amount",
        ))
        assert outcome.diagnostics[0].raw_value == '"abc"'
        assert "no digits in amount" in outcome.diagnostics[0].message

    def test_negative_amount(self, validator):
        """Test that a negative amount is invalid, not zero."""
        outcome = validator.validate(make_record(amount=Decimal("-3"), amount_raw="-3"))
        assert outcome.rejected is True
        assert outcome.diagnostics[0].kind == DiagnosticKind.INVALID_AMOUNT
        assert "negative" in outcome.diagnostics[0].message

    def test_zero_amount(self, validator):
        """Test that a zero amount is rejected as zero_amount."""
        outcome = validator.validate(make_record(amount=Decimal("0"), amount_raw="0"))
        assert outcome.rejected is True
        assert [d.kind for d in outcome.diagnostics] == [DiagnosticKind.ZERO_AMOUNT]

    def test_optional_fields_never_reject(self, validator):
        """Test that missing note, category and date are fine."""
        outcome = validator.validate(make_record(note=None, category=None, date=None))
        assert outcome.rejected is False
        assert outcome.draft.date is None

    def test_rejection_carries_context(self, validator):
        """Test that the record index and origin are attached."""
        outcome = validator.validate(make_record(
            record_index=4,
            origin=CandidateOrigin.FENCED_BLOCK,
            amount=Decimal("0"),
        ))
        assert outcome.diagnostics[0].record_index == 4
        assert outcome.diagnostics[0].origin == CandidateOrigin.FENCED_BLOCK


class TestSanityChecks:
    """Tests for warnings that keep the record."""

    def test_suspicious_amount(self):
        """Test that a large amount is kept with a warning."""
        validator = DraftValidator(ExtractionSettings(max_reasonable_amount=100))
        outcome = validator.validate(make_record(amount=Decimal("150"), amount_raw="150"))
        assert outcome.rejected is False
        assert outcome.draft.amount == Decimal("150")
        assert [d.kind for d in outcome.diagnostics] == [DiagnosticKind.SUSPICIOUS_AMOUNT]
        assert outcome.diagnostics[0].severity == DiagnosticSeverity.WARNING

    def test_amount_at_threshold(self):
        """Test that the threshold itself is not suspicious."""
        validator = DraftValidator(ExtractionSettings(max_reasonable_amount=100))
        outcome = validator.validate(make_record(amount=Decimal("100")))
        assert outcome.diagnostics == []
