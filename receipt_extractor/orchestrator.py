"""
Main Orchestrator for Receipt Extractor

This module ties the pipeline stages together:

    raw text -> scan -> strategy chain -> normalize -> validate -> result

State machine for one extract() call:

    Start -> Scanning -> no candidates        -> Failed(no_structure)
             Scanning -> StructuralParse      -> Failed(unparseable)
             StructuralParse -> Normalizing -> Validating -> Collecting
             Collecting -> at least one draft -> Succeeded
             Collecting -> zero drafts        -> Failed(all_rejected)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Malformed input never raises; it becomes a typed failure value
- An empty list of drafts is never reported as success
- Failure is terminal; retrying (re-asking the model) is the caller's job
- Nothing is kept between calls

This is the "glue" that keeps the result honest even when the model's
output is not.
"""

from typing import Iterable, Optional
from uuid import UUID

from receipt_extractor.audit import ExtractionAuditLogger, create_correlation_id
from receipt_extractor.config import ExtractionSettings, get_settings
from receipt_extractor.errors import ConfigurationError
from receipt_extractor.models.diagnostics import (
    DiagnosticKind,
    DiagnosticSeverity,
    ExtractionDiagnostic,
    ExtractionFailure,
    ExtractionFailureKind,
    ExtractionResult,
)
from receipt_extractor.models.transaction import TransactionDraft, render_raw
from receipt_extractor.normalization import RecordNormalizer
from receipt_extractor.scanning import scan
from receipt_extractor.strategies import STRATEGIES, Strategy, StructuralParse, run_chain
from receipt_extractor.validation import DraftValidator


# Separator used when several raw responses are kept together for diagnostics
RESPONSE_SEPARATOR = "\n---\n"

_FAILURE_MESSAGES = {
    ExtractionFailureKind.NO_STRUCTURE: (
        "❌ Could not find any transaction data in the response. "
        "Please try a clearer photo of the receipt."
    ),
    ExtractionFailureKind.UNPARSEABLE: (
        "❌ The response looked like transaction data but could not be read. "
        "Please scan the receipt again."
    ),
    ExtractionFailureKind.ALL_REJECTED: (
        "❌ Transactions were found, but none had a usable amount. "
        "Please check the receipt total is visible and try again."
    ),
}


def describe_failure(failure: ExtractionFailure) -> str:
    """
    User-facing message for a failed extraction.

    Keyed off the failure kind so the confirmation UI can say what
    actually went wrong instead of a generic "something failed".
    """
    return _FAILURE_MESSAGES[failure.kind]


class ExtractionPipeline:
    """
    Orchestrates one extraction per call.

    Flow:
    1. Scan    -> candidate spans, most trusted first
    2. Parse   -> first (candidate, strategy) pair that yields records
    3. Normalize each record's fields (softfails recorded, never fatal)
    4. Validate each record (rejections recorded, siblings unaffected)
    5. Collect -> drafts or a typed failure, diagnostics attached either way

    Instances hold only read-only collaborators, so one pipeline can be
    shared between threads.
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        audit_logger: Optional[ExtractionAuditLogger] = None,
        strategies: tuple[tuple[str, Strategy], ...] = STRATEGIES,
    ):
        if settings is None:
            try:
                settings = get_settings().extraction
            except ValueError as e:
                raise ConfigurationError(f"Invalid extraction settings: {e}") from e
        if not strategies:
            raise ConfigurationError("At least one extraction strategy is required")

        self._settings = settings
        self._strategies = strategies
        self._normalizer = RecordNormalizer(settings)
        self._validator = DraftValidator(settings)
        self._audit_logger = audit_logger or ExtractionAuditLogger()

    @property
    def settings(self) -> ExtractionSettings:
        return self._settings

    def extract(self, raw_text: str) -> ExtractionResult:
        """
        Extract transaction drafts from one model response.

        Args:
            raw_text: The model's textual response

        Returns:
            ExtractionResult - drafts in source order, or a failure.
            Never raises on malformed input.
        """
        return self._extract(raw_text, create_correlation_id())

    def extract_many(self, raw_texts: Iterable[str]) -> ExtractionResult:
        """
        Extract and merge drafts from several responses.

        Long statements are sent to the model in chunks, and neighbouring
        chunks often repeat a transaction. Drafts with the same amount,
        day, note and direction are kept once, first occurrence wins.

        Returns:
            One ExtractionResult covering every response. When nothing
            survives, the failure kind is the "furthest" any response got:
            all_rejected > unparseable > no_structure.
        """
        correlation_id = create_correlation_id()
        texts = [t if isinstance(t, str) else "" for t in raw_texts]
        results = [self._extract(text, correlation_id) for text in texts]

        seen: set[str] = set()
        drafts: list[TransactionDraft] = []
        diagnostics: list[ExtractionDiagnostic] = []
        duplicates = 0

        for result in results:
            diagnostics.extend(result.diagnostics)
            for draft in result.drafts:
                key = draft.dedupe_key()
                if key in seen:
                    duplicates += 1
                    continue
                seen.add(key)
                drafts.append(draft)

        self._audit_logger.log_batch_deduplicated(
            response_count=len(results),
            draft_count=len(drafts),
            duplicate_count=duplicates,
            correlation_id=correlation_id,
        )

        if drafts:
            return ExtractionResult(drafts=tuple(drafts), diagnostics=tuple(diagnostics))

        kinds = {r.failure.kind for r in results if r.failure is not None}
        for kind in (
            ExtractionFailureKind.ALL_REJECTED,
            ExtractionFailureKind.UNPARSEABLE,
        ):
            if kind in kinds:
                break
        else:
            kind = ExtractionFailureKind.NO_STRUCTURE

        failure = ExtractionFailure(
            kind=kind,
            message=f"No transactions extracted from {len(results)} response(s)",
            raw_text=RESPONSE_SEPARATOR.join(texts),
        )
        return ExtractionResult(failure=failure, diagnostics=tuple(diagnostics))

    def _fail(
        self,
        kind: ExtractionFailureKind,
        message: str,
        raw_text: str,
        diagnostics: list[ExtractionDiagnostic],
        correlation_id: UUID,
        parse: Optional[StructuralParse] = None,
    ) -> ExtractionResult:
        self._audit_logger.log_extraction_failed(
            failure_kind=kind.value,
            message=message,
            diagnostic_count=len(diagnostics),
            correlation_id=correlation_id,
        )
        return ExtractionResult(
            failure=ExtractionFailure(kind=kind, message=message, raw_text=raw_text),
            diagnostics=tuple(diagnostics),
            origin=parse.candidate.origin if parse else None,
            strategy=parse.strategy if parse else None,
        )

    def _extract(self, raw_text: str, correlation_id: UUID) -> ExtractionResult:
        text = raw_text if isinstance(raw_text, str) else ""
        self._audit_logger.log_extraction_started(len(text), correlation_id)

        # Scanning
        candidates = scan(text)
        if not candidates:
            self._audit_logger.log_no_structure(text, correlation_id)
            return self._fail(
                ExtractionFailureKind.NO_STRUCTURE,
                "No structured data found in response",
                text,
                [],
                correlation_id,
            )
        origins = [c.origin.value for c in candidates]
        self._audit_logger.log_candidates_scanned(origins, correlation_id)

        # Structural parse
        parse = run_chain(candidates, self._settings, self._strategies)
        if parse is None:
            self._audit_logger.log_structure_unparseable(origins, text, correlation_id)
            return self._fail(
                ExtractionFailureKind.UNPARSEABLE,
                f"No strategy could parse any of {len(candidates)} candidate(s)",
                text,
                [],
                correlation_id,
            )
        self._audit_logger.log_structure_parsed(
            origin=parse.candidate.origin.value,
            strategy=parse.strategy,
            record_count=len(parse.elements),
            correlation_id=correlation_id,
        )

        # Normalizing / validating / collecting
        drafts, diagnostics = self._collect(parse)
        for diagnostic in diagnostics:
            self._audit_logger.log_diagnostic(diagnostic, correlation_id)

        if not drafts:
            return self._fail(
                ExtractionFailureKind.ALL_REJECTED,
                f"All {len(parse.elements)} record(s) were rejected",
                text,
                diagnostics,
                correlation_id,
                parse,
            )

        rejected = sum(1 for d in diagnostics if d.is_rejection)
        self._audit_logger.log_extraction_succeeded(len(drafts), rejected, correlation_id)
        return ExtractionResult(
            drafts=tuple(drafts),
            diagnostics=tuple(diagnostics),
            origin=parse.candidate.origin,
            strategy=parse.strategy,
        )

    def _collect(
        self,
        parse: StructuralParse,
    ) -> tuple[list[TransactionDraft], list[ExtractionDiagnostic]]:
        """
        Normalize and validate every parsed element, in source order.

        A rejected record contributes exactly one diagnostic (the reason);
        its field softfails are dropped with it.
        """
        origin = parse.candidate.origin
        drafts: list[TransactionDraft] = []
        diagnostics: list[ExtractionDiagnostic] = []

        for index, element in enumerate(parse.elements):
            if not isinstance(element, dict):
                diagnostics.append(ExtractionDiagnostic(
                    kind=DiagnosticKind.NOT_A_RECORD,
                    severity=DiagnosticSeverity.ERROR,
                    raw_value=render_raw(element),
                    origin=origin,
                    record_index=index,
                    message=f"Record {index}: expected an object, got {type(element).__name__}",
                ))
                continue

            normalized, softfails = self._normalizer.normalize(element, index, origin)
            outcome = self._validator.validate(normalized)
            if outcome.rejected:
                diagnostics.extend(outcome.diagnostics)
                continue

            drafts.append(outcome.draft)
            diagnostics.extend(softfails)
            diagnostics.extend(outcome.diagnostics)

        return drafts, diagnostics


def extract(raw_text: str) -> ExtractionResult:
    """Extract drafts with the default settings. See ExtractionPipeline.extract."""
    return ExtractionPipeline().extract(raw_text)
