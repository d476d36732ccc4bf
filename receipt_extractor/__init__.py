"""
Receipt Extractor - Source Package

Turns the free-form text a generative model returns for a receipt photo
(or a chunk of bank-statement text) into validated transaction drafts.

DESIGN PRINCIPLES:
1. Never fabricate data - a missing field stays missing
2. Partial success - one bad record never sinks its siblings
3. Fail with a precise reason, never with an empty success
4. Every extraction is a pure function of its input text
"""

from receipt_extractor.errors import (
    ConfigurationError,
    ExtractionFailedError,
    ExtractorError,
)
from receipt_extractor.models import (
    ExtractionDiagnostic,
    ExtractionFailure,
    ExtractionFailureKind,
    ExtractionResult,
    TransactionDraft,
)
from receipt_extractor.orchestrator import (
    ExtractionPipeline,
    describe_failure,
    extract,
)

__version__ = "1.0.0"
__author__ = "Receipt Extractor Team"

__all__ = [
    "ConfigurationError",
    "ExtractionDiagnostic",
    "ExtractionFailedError",
    "ExtractionFailure",
    "ExtractionFailureKind",
    "ExtractionPipeline",
    "ExtractionResult",
    "ExtractorError",
    "TransactionDraft",
    "describe_failure",
    "extract",
]
