"""
Tests for the extraction pipeline end to end.

Raw model responses are inline strings; no model is ever called.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from receipt_extractor import extract
from receipt_extractor.audit import AuditSink, AuditSinkError, ExtractionAuditLogger
from receipt_extractor.config import ExtractionSettings
from receipt_extractor.errors import ConfigurationError, ExtractionFailedError
from receipt_extractor.models import (
    AuditEventType,
    CandidateOrigin,
    DiagnosticKind,
    ExtractionFailure,
    ExtractionFailureKind,
)
from receipt_extractor.orchestrator import (
    RESPONSE_SEPARATOR,
    ExtractionPipeline,
    describe_failure,
)


class TestScenarios:
    """The reference input/output pairs."""

    def test_complete_record(self, pipeline):
        """Test a plain array with every field present."""
        result = pipeline.extract(
            '[{"amount":45.99,"isExpense":true,"note":"Groceries",'
            '"category":"Food","date":"2025-01-15"}]'
        )
        assert result.succeeded
        assert len(result.drafts) == 1
        draft = result.drafts[0]
        assert draft.amount == Decimal("45.99")
        assert draft.is_expense is True
        assert draft.note == "Groceries"
        assert draft.category == "Food"
        assert draft.date == date(2025, 1, 15)
        assert result.diagnostics == ()
        assert result.origin == CandidateOrigin.BARE_ARRAY
        assert result.strategy == "direct_array"

    def test_fenced_block_in_prose(self, pipeline):
        """Test a fenced block with a currency string and a type keyword."""
        result = pipeline.extract(
            "Here is what I found on the receipt:\n"
            '```json\n[{"amount":"$10.99","type":"income"}]\n```\n'
            "Let me know if anything looks off."
        )
        assert result.succeeded
        draft = result.drafts[0]
        assert draft.amount == Decimal("10.99")
        assert draft.is_expense is False
        assert draft.note is None
        assert draft.date is None
        assert result.origin == CandidateOrigin.FENCED_BLOCK
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.MISSING_DATE]

    def test_wrapped_object(self, pipeline):
        """Test a wrapper object with only an amount."""
        result = pipeline.extract('{"transactions":[{"amount":5}]}')
        assert result.succeeded
        draft = result.drafts[0]
        assert draft.amount == Decimal("5")
        assert draft.is_expense is True
        assert draft.date is None
        assert result.origin == CandidateOrigin.BARE_OBJECT
        assert result.strategy == "wrapped_object"
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.DEFAULTED_DIRECTION,
            DiagnosticKind.MISSING_DATE,
        ]

    def test_no_structure(self, pipeline):
        """Test prose with no structured data."""
        text = "I see a receipt for coffee."
        result = pipeline.extract(text)
        assert not result.succeeded
        assert result.drafts == ()
        assert result.failure.kind == ExtractionFailureKind.NO_STRUCTURE
        assert result.failure.raw_text == text

    def test_all_rejected(self, pipeline):
        """Test that zero and negative amounts give two diagnostics and a failure."""
        result = pipeline.extract('[{"amount":0},{"amount":-3}]')
        assert result.failure.kind == ExtractionFailureKind.ALL_REJECTED
        assert result.drafts == ()
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.ZERO_AMOUNT,
            DiagnosticKind.INVALID_AMOUNT,
        ]
        assert [d.record_index for d in result.diagnostics] == [0, 1]


class TestPipelineBehaviour:
    """Tests for ordering, partial success and failure boundaries."""

    def test_fenced_block_beats_bare_array(self, pipeline):
        """Test that fenced content wins over an earlier bare array."""
        result = pipeline.extract(
            'Draft: [{"amount": 99}]\n```json\n[{"amount": 1}]\n```'
        )
        assert [d.amount for d in result.drafts] == [Decimal("1")]
        assert result.origin == CandidateOrigin.FENCED_BLOCK

    def test_prose_does_not_change_result(self, pipeline):
        """Test that surrounding prose gives the same drafts as the bare array."""
        payload = '[{"amount": 12.5, "note": "Taxi", "date": "2025-03-01"}]'
        plain = pipeline.extract(payload)
        wrapped = pipeline.extract(f"Sure! Here you go: {payload} Hope this helps.")
        assert plain.drafts == wrapped.drafts

    def test_footnote_before_payload(self, pipeline):
        """Test that a bracketed footnote marker doesn't hide the records."""
        result = pipeline.extract('see [1]: [{"amount":5}]')
        assert result.succeeded
        assert [d.amount for d in result.drafts] == [Decimal("5")]
        assert result.origin == CandidateOrigin.BARE_ARRAY

    def test_later_array_used_when_first_is_broken(self, pipeline):
        """Test that a template-like array falls through to the real one."""
        result = pipeline.extract(
            'Format: [{"amount": <number>}] Actual: [{"amount": 7, "note": "Tea"}]'
        )
        assert result.succeeded
        assert [d.note for d in result.drafts] == ["Tea"]

    def test_source_order_preserved(self, pipeline):
        """Test that drafts come out in source order."""
        result = pipeline.extract(
            '[{"amount": 3, "note": "c"}, {"amount": 1, "note": "a"}, {"amount": 2, "note": "b"}]'
        )
        assert [d.note for d in result.drafts] == ["c", "a", "b"]

    def test_missing_dates_are_reported_not_invented(self, pipeline):
        """Test that each dateless record gets None and a diagnostic."""
        result = pipeline.extract('[{"amount": 1, "isExpense": true}, {"amount": 2, "isExpense": false}]')
        assert all(d.date is None for d in result.drafts)
        missing = [d for d in result.diagnostics if d.kind == DiagnosticKind.MISSING_DATE]
        assert [d.record_index for d in missing] == [0, 1]

    def test_partial_success(self, pipeline):
        """Test that bad siblings don't sink a good record."""
        result = pipeline.extract(
            '[{"amount": 5, "isExpense": true, "date": "2025-01-15"}, "junk", {"amount": 0}]'
        )
        assert result.succeeded
        assert len(result.drafts) == 1
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.NOT_A_RECORD,
            DiagnosticKind.ZERO_AMOUNT,
        ]
        assert result.rejected_count == 2

    def test_unparseable(self, pipeline):
        """Test that a trailing comma is an unparseable structure."""
        result = pipeline.extract('[{"amount": 5},]')
        assert result.failure.kind == ExtractionFailureKind.UNPARSEABLE
        assert result.diagnostics == ()

    def test_empty_array_is_all_rejected(self, pipeline):
        """Test that an empty array is never an empty success."""
        result = pipeline.extract("[]")
        assert result.failure.kind == ExtractionFailureKind.ALL_REJECTED

    def test_unreadable_receipt_sentinel(self, pipeline):
        """Test that the zero-amount sentinel record is rejected."""
        result = pipeline.extract('[{"amount": 0, "note": "Unable to read receipt"}]')
        assert result.failure.kind == ExtractionFailureKind.ALL_REJECTED
        assert result.diagnostics[0].kind == DiagnosticKind.ZERO_AMOUNT

    @pytest.mark.parametrize("value", [None, 42, ["[1]"]])
    def test_non_string_input(self, pipeline, value):
        """Test that non-str input is a failure value, not an exception."""
        result = pipeline.extract(value)
        assert result.failure.kind == ExtractionFailureKind.NO_STRUCTURE

    def test_idempotent(self, pipeline):
        """Test that the same input gives an equal result."""
        text = '```json\n[{"amount": "₹450", "type": "UPI purchase", "date": "15/01/2025"}]\n```'
        assert pipeline.extract(text) == pipeline.extract(text)

    def test_custom_default_direction(self, audit_sink):
        """Test that the direction default follows settings."""
        pipeline = ExtractionPipeline(
            settings=ExtractionSettings(default_is_expense=False),
            audit_logger=ExtractionAuditLogger(sink=audit_sink),
        )
        result = pipeline.extract('[{"amount": 5}]')
        assert result.drafts[0].is_expense is False

    def test_concurrent_calls(self, pipeline):
        """Test that a shared pipeline gives the same results across threads."""
        texts = [f'[{{"amount": {n}, "note": "item {n}"}}]' for n in range(1, 21)]
        sequential = [pipeline.extract(t) for t in texts]
        with ThreadPoolExecutor(max_workers=4) as executor:
            concurrent = list(executor.map(pipeline.extract, texts))
        assert [r.drafts for r in concurrent] == [r.drafts for r in sequential]

    def test_module_level_extract(self):
        """Test the default-settings convenience function."""
        result = extract('[{"amount": 5, "isExpense": false}]')
        assert result.drafts[0].is_expense is False


class TestFailureReporting:
    """Tests for exceptions and user-facing messages."""

    def test_raise_for_failure(self, pipeline):
        """Test that raise_for_failure carries the failure and diagnostics."""
        result = pipeline.extract('[{"amount": 0}]')
        with pytest.raises(ExtractionFailedError) as exc_info:
            result.raise_for_failure()
        assert exc_info.value.failure.kind == ExtractionFailureKind.ALL_REJECTED
        assert len(exc_info.value.diagnostics) == 1

    def test_raise_for_failure_on_success(self, pipeline):
        """Test that a successful result returns its drafts."""
        drafts = pipeline.extract('[{"amount": 5}]').raise_for_failure()
        assert len(drafts) == 1

    def test_describe_failure_messages_are_distinct(self):
        """Test that each failure kind gets its own message."""
        messages = {
            describe_failure(ExtractionFailure(kind=kind, message=""))
            for kind in ExtractionFailureKind
        }
        assert len(messages) == len(ExtractionFailureKind)


class TestConfiguration:
    """Tests for pipeline construction errors."""

    def test_empty_strategies(self):
        """Test that a pipeline needs at least one strategy."""
        with pytest.raises(ConfigurationError):
            ExtractionPipeline(settings=ExtractionSettings(), strategies=())

    def test_invalid_environment(self, monkeypatch):
        """Test that bad environment settings raise ConfigurationError."""
        monkeypatch.setenv("EXTRACTION_WRAPPER_KEYS", " , ")
        with pytest.raises(ConfigurationError):
            ExtractionPipeline()

    def test_custom_strategies(self, audit_sink):
        """Test that the strategy list can be narrowed."""
        from receipt_extractor.strategies import direct_array
        pipeline = ExtractionPipeline(
            settings=ExtractionSettings(),
            audit_logger=ExtractionAuditLogger(sink=audit_sink),
            strategies=(("direct_array", direct_array),),
        )
        result = pipeline.extract('{"transactions": [{"amount": 5}]}')
        assert result.failure.kind == ExtractionFailureKind.UNPARSEABLE


class TestAuditTrail:
    """Tests for the audit events one extraction emits."""

    def test_success_trail(self, pipeline, audit_sink):
        """Test the event sequence of a successful call."""
        pipeline.extract('[{"amount": 5}]')
        types = [e.event_type for e in audit_sink.events]
        assert types[0] == AuditEventType.EXTRACTION_STARTED
        assert types[-1] == AuditEventType.EXTRACTION_SUCCEEDED
        assert AuditEventType.STRUCTURE_PARSED in types
        assert len({e.correlation_id for e in audit_sink.events}) == 1

    def test_rejection_trail(self, pipeline, audit_sink):
        """Test that each rejected record gets its own event."""
        pipeline.extract('[{"amount":0},{"amount":-3}]')
        assert len(audit_sink.events_of_type(AuditEventType.RECORD_REJECTED)) == 2
        assert audit_sink.events[-1].event_type == AuditEventType.EXTRACTION_FAILED
        assert audit_sink.events[-1].details["failure_kind"] == "all_rejected"

    def test_no_structure_trail(self, pipeline, audit_sink):
        """Test that a no-structure failure keeps a raw preview."""
        pipeline.extract("I see a receipt for coffee.")
        event = audit_sink.events_of_type(AuditEventType.NO_STRUCTURE)[0]
        assert event.details["raw_preview"] == "I see a receipt for coffee."

    def test_calls_have_distinct_correlation_ids(self, pipeline, audit_sink):
        """Test that two calls are traceable separately."""
        pipeline.extract('[{"amount": 1}]')
        pipeline.extract('[{"amount": 2}]')
        starts = audit_sink.events_of_type(AuditEventType.EXTRACTION_STARTED)
        assert starts[0].correlation_id != starts[1].correlation_id
        assert len(audit_sink.events_for(starts[0].correlation_id)) < len(audit_sink.events)

    def test_failing_sink_does_not_break_extraction(self):
        """Test that sink errors are logged, not raised."""

        class BrokenSink(AuditSink):
            def append_event(self, event):
                raise AuditSinkError("sink offline")

        pipeline = ExtractionPipeline(
            settings=ExtractionSettings(),
            audit_logger=ExtractionAuditLogger(sink=BrokenSink()),
        )
        result = pipeline.extract('[{"amount": 5}]')
        assert result.succeeded


class TestExtractMany:
    """Tests for merging several responses."""

    def test_duplicates_across_responses_are_dropped(self, pipeline, audit_sink):
        """Test that the same transaction in two chunks is kept once."""
        result = pipeline.extract_many([
            '[{"amount": 5, "note": "Cafe", "date": "2025-01-15"}]',
            '[{"amount": "5.00", "note": "cafe ", "date": "2025-01-15"}, {"amount": 7}]',
        ])
        assert result.succeeded
        assert [d.amount for d in result.drafts] == [Decimal("5"), Decimal("7")]
        event = audit_sink.events_of_type(AuditEventType.BATCH_DEDUPLICATED)[0]
        assert event.details["duplicate_count"] == 1

    def test_one_failed_response_is_tolerated(self, pipeline):
        """Test that a failing chunk doesn't sink the batch."""
        result = pipeline.extract_many(["no data here", '[{"amount": 5}]'])
        assert len(result.drafts) == 1

    def test_failure_precedence(self, pipeline):
        """Test that the furthest-reaching failure kind is reported."""
        unparseable = pipeline.extract_many(["no data here", '[{"amount": 1},]'])
        assert unparseable.failure.kind == ExtractionFailureKind.UNPARSEABLE

        rejected = pipeline.extract_many(["no data here", '[{"amount": 1},]', '[{"amount": 0}]'])
        assert rejected.failure.kind == ExtractionFailureKind.ALL_REJECTED

    def test_failure_keeps_all_raw_text(self, pipeline):
        """Test that the raw responses are joined for diagnostics."""
        result = pipeline.extract_many(["first", "second"])
        assert result.failure.kind == ExtractionFailureKind.NO_STRUCTURE
        assert result.failure.raw_text == f"first{RESPONSE_SEPARATOR}second"

    def test_empty_batch(self, pipeline):
        """Test that no responses is a no-structure failure."""
        result = pipeline.extract_many([])
        assert result.failure.kind == ExtractionFailureKind.NO_STRUCTURE
