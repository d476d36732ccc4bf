"""
Diagnostic and Result Models

Every rejected record, every softfailed field and every defaulted decision
leaves an ExtractionDiagnostic behind. Diagnostics are meant for logging and
telemetry collaborators - they are never shown to end users directly.
End users get describe_failure() text keyed off ExtractionFailureKind.

DESIGN DECISION: The pipeline returns an ExtractionResult instead of raising.
Callers can still opt in to an exception with raise_for_failure().
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from receipt_extractor.errors import ExtractionFailedError
from receipt_extractor.models.transaction import CandidateOrigin, TransactionDraft


class DiagnosticKind(str, Enum):
    """What went wrong (or what was assumed) for one record or field."""
    # Record rejections (fatal to the record, never to the batch)
    INVALID_AMOUNT = "invalid_amount"
    ZERO_AMOUNT = "zero_amount"
    NOT_A_RECORD = "not_a_record"
    
    # Field softfails (record kept, field degraded)
    MISSING_DATE = "missing_date"
    UNPARSEABLE_DATE = "unparseable_date"
    INVALID_FIELD_TYPE = "invalid_field_type"
    DEFAULTED_DIRECTION = "defaulted_direction"
    
    # Sanity warnings (record kept as-is)
    SUSPICIOUS_AMOUNT = "suspicious_amount"


REJECTION_KINDS = frozenset({
    DiagnosticKind.INVALID_AMOUNT,
    DiagnosticKind.ZERO_AMOUNT,
    DiagnosticKind.NOT_A_RECORD,
})


class DiagnosticSeverity(str, Enum):
    """Severity of a diagnostic."""
    ERROR = "error"      # record dropped
    WARNING = "warning"  # field degraded or value suspicious
    INFO = "info"        # documented default applied


class ExtractionDiagnostic(BaseModel):
    """A single per-record or per-field finding."""
    model_config = ConfigDict(frozen=True)
    
    kind: DiagnosticKind
    severity: DiagnosticSeverity
    field: Optional[str] = Field(
        default=None,
        description="Raw key the finding is about, if any"
    )
    raw_value: Optional[str] = Field(
        default=None,
        description="Rendered offending value"
    )
    origin: Optional[CandidateOrigin] = Field(
        default=None,
        description="Candidate the record came from"
    )
    record_index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Position of the record in the parsed structure"
    )
    message: str = Field(
        ...,
        description="Human-readable description for logs"
    )
    
    @property
    def is_rejection(self) -> bool:
        return self.kind in REJECTION_KINDS
    
    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "field": self.field,
            "raw_value": self.raw_value,
            "origin": self.origin.value if self.origin else None,
            "record_index": self.record_index,
            "message": self.message,
        }


class ExtractionFailureKind(str, Enum):
    """
    Why an extraction produced no drafts.
    
    NO_STRUCTURE: nothing in the text resembled structured data
    UNPARSEABLE: structure found, but no strategy could parse it
    ALL_REJECTED: records parsed, but every one failed validation
    """
    NO_STRUCTURE = "no_structure"
    UNPARSEABLE = "unparseable"
    ALL_REJECTED = "all_rejected"


class ExtractionFailure(BaseModel):
    """Terminal failure of one extraction call."""
    model_config = ConfigDict(frozen=True)
    
    kind: ExtractionFailureKind
    message: str
    raw_text: str = Field(
        default="",
        description="The raw response, kept for diagnostics"
    )


class ExtractionResult(BaseModel):
    """
    Outcome of one extraction call.
    
    Exactly one of these holds:
    - drafts is non-empty and failure is None (success)
    - drafts is empty and failure is set
    
    diagnostics is populated either way.
    """
    model_config = ConfigDict(frozen=True)
    
    drafts: tuple[TransactionDraft, ...] = ()
    failure: Optional[ExtractionFailure] = None
    diagnostics: tuple[ExtractionDiagnostic, ...] = ()
    
    # Which candidate/strategy pair produced the records, if any did
    origin: Optional[CandidateOrigin] = None
    strategy: Optional[str] = None
    
    @model_validator(mode='after')
    def validate_outcome(self) -> 'ExtractionResult':
        """Never an empty success, never a failure carrying drafts."""
        if self.failure is None and not self.drafts:
            raise ValueError("A successful result needs at least one draft")
        if self.failure is not None and self.drafts:
            raise ValueError("A failed result cannot carry drafts")
        return self
    
    @property
    def succeeded(self) -> bool:
        return self.failure is None
    
    @property
    def rejected_count(self) -> int:
        """Number of records dropped by validation."""
        return sum(1 for d in self.diagnostics if d.is_rejection)
    
    @property
    def error_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.ERROR
        )
    
    @property
    def warnings(self) -> list[str]:
        return [
            d.message for d in self.diagnostics
            if d.severity == DiagnosticSeverity.WARNING
        ]
    
    def raise_for_failure(self) -> list[TransactionDraft]:
        """Return the drafts, or raise ExtractionFailedError."""
        if self.failure is not None:
            raise ExtractionFailedError(self.failure, self.diagnostics)
        return list(self.drafts)
