"""
Draft Validation

DESIGN DECISION: Validation runs on one normalized record at a time and is
split the same way as the checks it performs:

REJECTION RULES (first failing rule wins, record is dropped):
1. Amount must be present, parseable and non-negative -> invalid_amount
2. Amount must be strictly greater than zero           -> zero_amount

SANITY CHECKS (record kept, warning attached):
- Amount above the configured reasonable maximum      -> suspicious_amount

Every other field is optional. A missing note, category or date never
rejects a record.

IMPORTANT: Validation NEVER fixes values. A rejected record produces exactly
one diagnostic naming the reason; its sibling records are unaffected.
"""

from decimal import Decimal
from typing import NamedTuple, Optional

from receipt_extractor.config import ExtractionSettings
from receipt_extractor.models.diagnostics import (
    DiagnosticKind,
    DiagnosticSeverity,
    ExtractionDiagnostic,
)
from receipt_extractor.models.transaction import NormalizedRecord, TransactionDraft


class ValidationOutcome(NamedTuple):
    """A draft (or None when rejected) plus what the validator found."""
    draft: Optional[TransactionDraft]
    diagnostics: list[ExtractionDiagnostic]

    @property
    def rejected(self) -> bool:
        return self.draft is None


class DraftValidator:
    """
    Turns a NormalizedRecord into a TransactionDraft, or rejects it.

    The only place a TransactionDraft is constructed.
    """

    def __init__(self, settings: ExtractionSettings):
        self._max_amount = Decimal(str(settings.max_reasonable_amount))

    def _reject(
        self,
        record: NormalizedRecord,
        kind: DiagnosticKind,
        message: str,
    ) -> ValidationOutcome:
        return ValidationOutcome(None, [ExtractionDiagnostic(
            kind=kind,
            severity=DiagnosticSeverity.ERROR,
            field="amount",
            raw_value=record.amount_raw,
            origin=record.origin,
            record_index=record.record_index,
            message=message,
        )])

    def validate(self, record: NormalizedRecord) -> ValidationOutcome:
        """
        Apply the rejection rules in order, then the sanity checks.

        Args:
            record: One normalized record

        Returns:
            ValidationOutcome with either a draft or one rejection diagnostic
        """
        # Rule 1: present, parseable, non-negative
        if record.amount is None:
            return self._reject(
                record,
                DiagnosticKind.INVALID_AMOUNT,
                f"Record {record.record_index}: {record.amount_issue or 'amount is missing'}",
            )
        if record.amount < 0:
            return self._reject(
                record,
                DiagnosticKind.INVALID_AMOUNT,
                f"Record {record.record_index}: amount {record.amount} is negative",
            )

        # Rule 2: strictly positive
        if record.amount == 0:
            return self._reject(
                record,
                DiagnosticKind.ZERO_AMOUNT,
                f"Record {record.record_index}: amount is zero",
            )

        draft = TransactionDraft(
            amount=record.amount,
            is_expense=record.is_expense,
            note=record.note,
            category=record.category,
            date=record.date,
        )

        warnings = []
        if record.amount > self._max_amount:
            warnings.append(ExtractionDiagnostic(
                kind=DiagnosticKind.SUSPICIOUS_AMOUNT,
                severity=DiagnosticSeverity.WARNING,
                field="amount",
                raw_value=record.amount_raw,
                origin=record.origin,
                record_index=record.record_index,
                message=(
                    f"Record {record.record_index}: amount {record.amount} "
                    f"exceeds {self._max_amount}; please verify"
                ),
            ))

        return ValidationOutcome(draft, warnings)
