"""
Field Normalizer

Coerces the heterogeneous encodings a model uses for each field into one
canonical typed value:

- amount:    45.99 | "45.99" | "$1,234.50" | "-₹450" | "12,50 €"
- direction: true | "false" | {"type": "Debit Card Purchase"} | "-5.00" | {"note": "SALARY"}
- note:      first string under note/description/merchant/...
- date:      "2025-01-15" | "2025-01-15T10:00:00Z" | "01/15/2025" | null

DESIGN DECISION: Every normalizer is total. A bad field degrades to "absent"
(a softfail) and leaves a diagnostic behind; it never aborts the record.
Whether a missing field is fatal is decided by the validator, not here.

IMPORTANT: Nothing is invented. A missing date stays None, an unreadable
amount stays None. The only assumption made is the configured direction
default, and that one is always recorded as a diagnostic.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple, Optional

from receipt_extractor.config import ISO_TIMESTAMP_FORMAT, ExtractionSettings
from receipt_extractor.models.diagnostics import (
    DiagnosticKind,
    DiagnosticSeverity,
    ExtractionDiagnostic,
)
from receipt_extractor.models.transaction import (
    CandidateOrigin,
    DirectionSource,
    NormalizedRecord,
    RawRecord,
    RawValueKind,
    classify_value,
    render_raw,
)


# First run of digits. A space, apostrophe or (narrow) NBSP only groups when
# exactly three digits follow it, so "12.50 2 items" stops at "12.50".
_NUMBER_RUN_RE = re.compile(
    r"[0-9]+(?:['\u00a0\u202f ][0-9]{3}(?![0-9]))*(?:[.,][0-9]+)*"
)
_GROUPING_CHARS_RE = re.compile(r"['\u00a0\u202f ]")
_MINUS_SIGNS = ("-", "\u2212")

_TRUE_WORDS = {"true", "yes", "y", "1"}
_FALSE_WORDS = {"false", "no", "n", "0"}


# =============================================================================
# PURE PARSERS - no settings, no diagnostics
# =============================================================================

class ParsedAmount(NamedTuple):
    """Result of parsing an amount string."""
    value: Optional[Decimal]
    negative_hint: bool
    issue: Optional[str]


def _resolve_separators(number: str) -> Optional[str]:
    """
    Turn "1,234.50" / "1.234,50" / "12,50" / "1,23,456" into "1234.50"-style.

    Rules:
    - both "." and "," present: the last one is the decimal separator
    - only ",": a single comma followed by 1-2 digits is a decimal comma,
      otherwise commas group thousands
    - only ".": a single dot is decimal, repeated dots group thousands
    """
    last_dot = number.rfind(".")
    last_comma = number.rfind(",")

    if last_dot >= 0 and last_comma >= 0:
        decimal_sep = "." if last_dot > last_comma else ","
        group_sep = "," if decimal_sep == "." else "."
        if number.count(decimal_sep) > 1:
            return None
        return number.replace(group_sep, "").replace(decimal_sep, ".")

    if last_comma >= 0:
        if number.count(",") == 1 and len(number) - last_comma - 1 in (1, 2):
            return number.replace(",", ".")
        return number.replace(",", "")

    if number.count(".") > 1:
        return number.replace(".", "")

    return number


def parse_amount_text(text: str) -> ParsedAmount:
    """
    Parse an amount string into a non-negative magnitude.

    Currency symbols, codes and grouping characters are dropped. A leading
    minus (or accounting parentheses) is reported as negative_hint and is
    NOT carried into the value. A minus right after the number is not a
    sign convention we accept, so the amount is invalid.
    """
    stripped = text.strip()
    match = _NUMBER_RUN_RE.search(stripped)
    if match is None:
        return ParsedAmount(None, False, "no digits in amount")

    prefix = stripped[:match.start()]
    suffix = stripped[match.end():].lstrip()

    negative_hint = (
        any(sign in prefix for sign in _MINUS_SIGNS)
        or ("(" in prefix and suffix.endswith(")"))
    )
    if suffix.startswith(_MINUS_SIGNS):
        return ParsedAmount(None, negative_hint, "trailing minus sign in amount")

    number = _GROUPING_CHARS_RE.sub("", match.group())
    resolved = _resolve_separators(number)
    if resolved is None:
        return ParsedAmount(None, negative_hint, "ambiguous decimal separators")

    try:
        value = Decimal(resolved)
    except InvalidOperation:
        return ParsedAmount(None, negative_hint, "amount is not a number")

    return ParsedAmount(value, negative_hint, None)


def parse_number(value: Any) -> Optional[Decimal]:
    """Convert a JSON number to Decimal; NaN/Infinity give None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        # str() keeps 45.99 as 45.99 instead of the binary float expansion
        return Decimal(str(value))
    except InvalidOperation:
        return None


def parse_bool_text(text: str) -> Optional[bool]:
    """Accept "true"/"false"/"yes"/"no" encodings of a boolean flag."""
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def match_direction_keyword(
    text: str,
    expense_keywords: list[str],
    income_keywords: list[str],
) -> Optional[bool]:
    """
    Map a free-text transaction type to is_expense.

    Expense keywords are checked first, so "credit card purchase"
    is an expense. Returns None if nothing matches.
    """
    lowered = text.strip().lower()
    if not lowered:
        return None
    if any(kw in lowered for kw in expense_keywords):
        return True
    if any(kw in lowered for kw in income_keywords):
        return False
    return None


def _parse_iso(text: str) -> Optional[date]:
    candidate = text
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        # The calendar date is kept as written; no timezone conversion
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        return None


def parse_date_text(text: str, formats: list[str]) -> Optional[date]:
    """Try each format in order; the first that parses wins."""
    stripped = text.strip()
    if not stripped:
        return None
    for fmt in formats:
        if fmt == ISO_TIMESTAMP_FORMAT:
            parsed = _parse_iso(stripped)
            if parsed is not None:
                return parsed
            continue
        try:
            return datetime.strptime(stripped, fmt).date()
        except ValueError:
            continue
    return None


# =============================================================================
# RECORD NORMALIZER - applies settings, collects diagnostics
# =============================================================================

class _AmountOutcome(NamedTuple):
    value: Optional[Decimal]
    raw: Optional[str]
    issue: Optional[str]
    direction_hint: Optional[bool]


class RecordNormalizer:
    """
    Normalizes one RawRecord at a time.

    Holds only read-only settings; safe to share across threads.
    """

    def __init__(self, settings: ExtractionSettings):
        self._settings = settings
        self._amount_keys = settings.amount_keys_list
        self._debit_keys = settings.debit_keys_list
        self._credit_keys = settings.credit_keys_list
        self._direction_keys = settings.direction_keys_list
        self._type_keys = settings.type_keys_list
        self._note_keys = settings.note_keys_list
        self._category_keys = settings.category_keys_list
        self._date_keys = settings.date_keys_list
        self._expense_keywords = settings.expense_keywords_list
        self._income_keywords = settings.income_keywords_list

    def normalize(
        self,
        record: RawRecord,
        record_index: int,
        origin: Optional[CandidateOrigin] = None,
    ) -> tuple[NormalizedRecord, list[ExtractionDiagnostic]]:
        """
        Normalize every field of one record.

        Returns:
            (normalized_record, softfail_diagnostics)
        """
        findings: list[ExtractionDiagnostic] = []

        def note_finding(
            kind: DiagnosticKind,
            severity: DiagnosticSeverity,
            field: Optional[str],
            raw: Any,
            message: str,
        ) -> None:
            findings.append(ExtractionDiagnostic(
                kind=kind,
                severity=severity,
                field=field,
                raw_value=None if raw is None else render_raw(raw),
                origin=origin,
                record_index=record_index,
                message=message,
            ))

        amount = self._normalize_amount(record)
        note = self._first_text(record, self._note_keys, note_finding, keep_empty=True)
        is_expense, source = self._normalize_direction(record, amount, note, note_finding)

        normalized = NormalizedRecord(
            record_index=record_index,
            origin=origin,
            amount=amount.value,
            amount_raw=amount.raw,
            amount_issue=amount.issue,
            is_expense=is_expense,
            direction_source=source,
            note=note,
            category=self._first_text(record, self._category_keys, note_finding, keep_empty=False),
            date=self._normalize_date(record, note_finding),
        )
        return normalized, findings

    # -------------------------------------------------------------------------
    # Amount
    # -------------------------------------------------------------------------

    def _normalize_amount(self, record: RawRecord) -> _AmountOutcome:
        """
        Take the first usable amount column.

        amount_keys are tried first, then debit columns (imply expense),
        then credit columns (imply income). Null and blank values count as
        "not this column"; so does zero in a debit or credit column.
        """
        columns = (
            [(key, None) for key in self._amount_keys]
            + [(key, True) for key in self._debit_keys]
            + [(key, False) for key in self._credit_keys]
        )

        for key, column_hint in columns:
            if key not in record:
                continue
            value = record[key]
            kind = classify_value(value)
            raw = render_raw(value)

            if kind == RawValueKind.NULL:
                continue
            if kind == RawValueKind.TEXT and not value.strip():
                continue

            if kind == RawValueKind.NUMBER:
                number = parse_number(value)
                if number is None:
                    return _AmountOutcome(None, raw, "amount is not a finite number", None)
                if column_hint is not None and number == 0:
                    continue
                if number < 0:
                    return _AmountOutcome(number, raw, "negative amount", None)
                return _AmountOutcome(number, raw, None, column_hint)

            if kind == RawValueKind.TEXT:
                parsed = parse_amount_text(value)
                if parsed.value is None:
                    return _AmountOutcome(None, raw, parsed.issue, None)
                if column_hint is not None and parsed.value == 0:
                    continue
                hint = True if parsed.negative_hint else column_hint
                return _AmountOutcome(parsed.value, raw, None, hint)

            # BOOL / NESTED: fail closed
            return _AmountOutcome(None, raw, f"amount has unsupported type ({kind.value})", None)

        return _AmountOutcome(None, None, "amount is missing", None)

    # -------------------------------------------------------------------------
    # Direction
    # -------------------------------------------------------------------------

    def _normalize_direction(
        self,
        record: RawRecord,
        amount: _AmountOutcome,
        note: Optional[str],
        note_finding,
    ) -> tuple[bool, DirectionSource]:
        """
        Decide is_expense from the strongest signal present.

        Order: boolean flag, type keyword, amount sign or column, keyword in
        the note ("SALARY", "ATM withdrawal"), then the configured default.
        """
        for key in self._direction_keys:
            if key not in record:
                continue
            value = record[key]
            kind = classify_value(value)
            if kind == RawValueKind.BOOL:
                return value, DirectionSource.FLAG
            if kind == RawValueKind.TEXT:
                flag = parse_bool_text(value)
                if flag is not None:
                    return flag, DirectionSource.FLAG
            if kind != RawValueKind.NULL:
                note_finding(
                    DiagnosticKind.INVALID_FIELD_TYPE,
                    DiagnosticSeverity.WARNING,
                    key,
                    value,
                    f"Ignored non-boolean direction flag under '{key}'",
                )

        unmatched_type = None
        for key in self._type_keys:
            if key not in record:
                continue
            value = record[key]
            kind = classify_value(value)
            if kind == RawValueKind.TEXT:
                matched = match_direction_keyword(
                    value, self._expense_keywords, self._income_keywords
                )
                if matched is not None:
                    return matched, DirectionSource.TYPE
                if unmatched_type is None:
                    unmatched_type = (key, value)
            elif kind != RawValueKind.NULL:
                note_finding(
                    DiagnosticKind.INVALID_FIELD_TYPE,
                    DiagnosticSeverity.WARNING,
                    key,
                    value,
                    f"Ignored non-text transaction type under '{key}'",
                )

        if amount.direction_hint is not None:
            return amount.direction_hint, DirectionSource.AMOUNT

        if note:
            matched = match_direction_keyword(
                note, self._expense_keywords, self._income_keywords
            )
            if matched is not None:
                return matched, DirectionSource.NOTE

        default = self._settings.default_is_expense
        label = "expense" if default else "income"
        if unmatched_type is not None:
            key, value = unmatched_type
            message = f"Type '{value}' matched no keyword; defaulted to {label}"
        else:
            key, value = None, None
            message = f"No direction signal; defaulted to {label}"
        note_finding(
            DiagnosticKind.DEFAULTED_DIRECTION,
            DiagnosticSeverity.INFO,
            key,
            value,
            message,
        )
        return default, DirectionSource.DEFAULT

    # -------------------------------------------------------------------------
    # Note / category
    # -------------------------------------------------------------------------

    def _first_text(
        self,
        record: RawRecord,
        keys: list[str],
        note_finding,
        keep_empty: bool,
    ) -> Optional[str]:
        """First string under the given keys, trimmed."""
        for key in keys:
            if key not in record:
                continue
            value = record[key]
            kind = classify_value(value)
            if kind == RawValueKind.TEXT:
                text = value.strip()
                if text or keep_empty:
                    return text
                return None
            if kind != RawValueKind.NULL:
                note_finding(
                    DiagnosticKind.INVALID_FIELD_TYPE,
                    DiagnosticSeverity.WARNING,
                    key,
                    value,
                    f"Ignored non-text value under '{key}'",
                )
        return None

    # -------------------------------------------------------------------------
    # Date
    # -------------------------------------------------------------------------

    def _normalize_date(self, record: RawRecord, note_finding) -> Optional[date]:
        """
        First date key whose string parses wins.

        Never fatal: anything else ends as None plus one diagnostic.
        """
        rejected = None
        for key in self._date_keys:
            if key not in record:
                continue
            value = record[key]
            kind = classify_value(value)
            if kind == RawValueKind.NULL:
                continue
            if kind == RawValueKind.TEXT:
                if not value.strip():
                    continue
                parsed = parse_date_text(value, self._settings.date_formats)
                if parsed is not None:
                    return parsed
            if rejected is None:
                rejected = (key, value)

        if rejected is not None:
            key, value = rejected
            note_finding(
                DiagnosticKind.UNPARSEABLE_DATE,
                DiagnosticSeverity.WARNING,
                key,
                value,
                f"Date under '{key}' matched no accepted format; left empty",
            )
        else:
            note_finding(
                DiagnosticKind.MISSING_DATE,
                DiagnosticSeverity.INFO,
                None,
                None,
                "No date in record; caller must supply one",
            )
        return None


def normalize_record(
    record: RawRecord,
    settings: ExtractionSettings,
    record_index: int = 0,
    origin: Optional[CandidateOrigin] = None,
) -> tuple[NormalizedRecord, list[ExtractionDiagnostic]]:
    """Normalize a single record without keeping a RecordNormalizer around."""
    return RecordNormalizer(settings).normalize(record, record_index, origin)
