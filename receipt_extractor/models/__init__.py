"""
Data Models Package

This package contains all Pydantic models used by the extraction pipeline.
All data flowing through the pipeline must conform to these schemas.
"""

from receipt_extractor.models.transaction import (
    Candidate,
    CandidateOrigin,
    DirectionSource,
    NormalizedRecord,
    RawRecord,
    RawValueKind,
    TransactionDraft,
    classify_value,
    render_raw,
)
from receipt_extractor.models.diagnostics import (
    REJECTION_KINDS,
    DiagnosticKind,
    DiagnosticSeverity,
    ExtractionDiagnostic,
    ExtractionFailure,
    ExtractionFailureKind,
    ExtractionResult,
)
from receipt_extractor.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Pipeline models
    "Candidate",
    "CandidateOrigin",
    "DirectionSource",
    "NormalizedRecord",
    "RawRecord",
    "RawValueKind",
    "TransactionDraft",
    "classify_value",
    "render_raw",
    # Diagnostics and results
    "REJECTION_KINDS",
    "DiagnosticKind",
    "DiagnosticSeverity",
    "ExtractionDiagnostic",
    "ExtractionFailure",
    "ExtractionFailureKind",
    "ExtractionResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
