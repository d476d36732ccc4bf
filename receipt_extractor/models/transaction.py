"""
Core Data Models for Receipt Extractor

These models define the shapes that flow through the extraction pipeline:

    raw text -> Candidate -> RawRecord -> NormalizedRecord -> TransactionDraft

DESIGN DECISION: Everything the pipeline produces is frozen. A draft handed
to the confirmation UI can't be mutated behind its back, and two runs over the
same text compare equal field for field.
"""

import datetime
import json
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# CANDIDATES - Spans of raw text that look like structured data
# =============================================================================

class CandidateOrigin(str, Enum):
    """
    Where in the raw response a candidate came from.
    
    Declared in descending confidence order.
    """
    FENCED_BLOCK = "fenced-block"
    BARE_ARRAY = "bare-array"
    BARE_OBJECT = "bare-object"


class Candidate(BaseModel):
    """A substring of the raw response believed to contain JSON."""
    model_config = ConfigDict(frozen=True)
    
    text: str = Field(
        ...,
        description="The candidate substring"
    )
    start: int = Field(
        ...,
        ge=0,
        description="Offset of the first character in the raw text"
    )
    end: int = Field(
        ...,
        ge=0,
        description="Offset one past the last character in the raw text"
    )
    origin: CandidateOrigin
    
    @model_validator(mode='after')
    def validate_span(self) -> 'Candidate':
        if self.end < self.start:
            raise ValueError("Candidate span end cannot be before start")
        return self
    
    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end


# =============================================================================
# RAW RECORDS - Loosely typed output of the structural parse
# =============================================================================

# One element of a parsed JSON array (or a lone parsed object)
RawRecord = dict[str, Any]


class RawValueKind(str, Enum):
    """
    Closed set of shapes a raw field value can take.
    
    Every normalizer dispatches over this enum. A value that fits none of the
    expected kinds for its field degrades to a missing value with a diagnostic.
    A key that is not in the record is never classified; it is skipped.
    """
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    NULL = "null"
    NESTED = "nested"


def classify_value(value: Any) -> RawValueKind:
    """Classify a raw JSON value. bool is checked before int on purpose."""
    if value is None:
        return RawValueKind.NULL
    if isinstance(value, bool):
        return RawValueKind.BOOL
    if isinstance(value, (int, float)):
        return RawValueKind.NUMBER
    if isinstance(value, str):
        return RawValueKind.TEXT
    return RawValueKind.NESTED


def render_raw(value: Any, limit: int = 200) -> str:
    """Render a raw value for diagnostics (JSON where possible, truncated)."""
    try:
        text = json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


# =============================================================================
# NORMALIZED RECORD - Typed fields, not yet validated
# =============================================================================

class DirectionSource(str, Enum):
    """Which signal decided is_expense."""
    FLAG = "flag"          # boolean (or boolean-like string) field
    TYPE = "type"          # free-text type keyword
    AMOUNT = "amount"      # leading minus or debit/credit column
    NOTE = "note"          # direction keyword inside the note text
    DEFAULT = "default"    # configured default, nothing else matched


class NormalizedRecord(BaseModel):
    """
    One raw record after per-field coercion.
    
    CRITICAL: amount may still be missing or negative here.
    Deciding whether that is fatal is the validator's job.
    """
    model_config = ConfigDict(frozen=True)
    
    record_index: int = Field(
        ...,
        ge=0,
        description="Position of the record in the parsed structure"
    )
    origin: Optional[CandidateOrigin] = None
    
    amount: Optional[Decimal] = Field(
        default=None,
        description="Parsed amount, None when missing or unparseable"
    )
    amount_raw: Optional[str] = Field(
        default=None,
        description="Rendered raw amount value, for diagnostics"
    )
    amount_issue: Optional[str] = Field(
        default=None,
        description="Why the amount could not be parsed"
    )
    
    is_expense: bool
    direction_source: DirectionSource
    
    note: Optional[str] = None
    category: Optional[str] = None
    date: Optional[datetime.date] = None


# =============================================================================
# TRANSACTION DRAFT - The pipeline's output
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A validated transaction proposal.
    
    CRITICAL: This is PROPOSED data. The confirmation UI decides whether
    it becomes a real transaction; the pipeline keeps no reference to it.
    
    A draft with an unparseable amount is never constructed.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)
    
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Currency-agnostic magnitude"
    )
    is_expense: bool = Field(
        ...,
        description="True = money out, False = money in"
    )
    note: Optional[str] = Field(
        default=None,
        description="Trimmed description, may be empty"
    )
    category: Optional[str] = Field(
        default=None,
        description="Category label, not matched against any taxonomy"
    )
    date: Optional[datetime.date] = Field(
        default=None,
        description="Calendar date; None means the caller must default it"
    )
    
    def dedupe_key(self) -> str:
        """Key used to drop the same transaction seen in two responses."""
        day = self.date.isoformat() if self.date else ""
        note = (self.note or "").strip().lower()
        direction = "D" if self.is_expense else "C"
        return f"{self.amount:.2f}|{day}|{note}|{direction}"
    
    def to_dict(self) -> dict:
        """Plain-dict form for callers that hand drafts to a UI or JSON API."""
        return {
            "amount": str(self.amount),
            "is_expense": self.is_expense,
            "note": self.note,
            "category": self.category,
            "date": self.date.isoformat() if self.date else None,
        }
