"""
Exceptions for Receipt Extractor

DESIGN DECISION: Malformed model output is NOT exceptional - the pipeline
reports it as an ExtractionResult value. Exceptions are reserved for
programmer and configuration mistakes, plus an explicit opt-in for callers
that prefer raising over inspecting the result.
"""

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from receipt_extractor.models.diagnostics import (
        ExtractionDiagnostic,
        ExtractionFailure,
    )


class ExtractorError(Exception):
    """Base exception for receipt extractor errors."""
    pass


class ConfigurationError(ExtractorError):
    """Extraction settings are unusable (e.g. no wrapper keys configured)."""
    pass


class ExtractionFailedError(ExtractorError):
    """Raised by ExtractionResult.raise_for_failure() when no draft survived."""
    
    def __init__(
        self,
        failure: "ExtractionFailure",
        diagnostics: Sequence["ExtractionDiagnostic"] = (),
    ):
        self.failure = failure
        self.diagnostics = tuple(diagnostics)
        super().__init__(f"{failure.kind.value}: {failure.message}")
