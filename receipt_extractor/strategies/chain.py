"""
Strategy Chain

Each strategy takes one Candidate and tries one structural reading of it.
A strategy answers "is this valid JSON of the shape I expect?" - never "is
this a valid transaction?". That question belongs to the validator.

DESIGN DECISION: The strategies are plain functions in an explicit ordered
tuple, evaluated by an early-exit fold. Priority and short-circuit behaviour
are visible in one place and each strategy can be tested on its own.

Order per candidate:
1. direct_array    - the candidate is a JSON array of records
2. wrapped_object  - the candidate is an object holding the array under a
                     known wrapper key ({"transactions": [...]})
3. single_object   - the candidate is one record on its own

Candidates are tried in scanner order; the first (candidate, strategy) pair
that succeeds wins and nothing after it is attempted.
"""

import json
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict

from receipt_extractor.config import ExtractionSettings
from receipt_extractor.models.transaction import Candidate


# A strategy returns the parsed elements, or None if the shape doesn't fit.
# Elements are usually dicts; anything else is dropped later with a diagnostic.
Strategy = Callable[[Candidate, ExtractionSettings], Optional[list[Any]]]


def _load(candidate: Candidate) -> Any:
    """json.loads, with any decode error turned into None."""
    try:
        return json.loads(candidate.text)
    except (json.JSONDecodeError, ValueError, RecursionError):
        return None


def direct_array(
    candidate: Candidate,
    settings: ExtractionSettings,
) -> Optional[list[Any]]:
    parsed = _load(candidate)
    if isinstance(parsed, list):
        return parsed
    return None


def wrapped_object(
    candidate: Candidate,
    settings: ExtractionSettings,
) -> Optional[list[Any]]:
    """Find the record array under the first accepted wrapper key."""
    parsed = _load(candidate)
    if not isinstance(parsed, dict):
        return None
    for key in settings.wrapper_keys_list:
        value = parsed.get(key)
        if isinstance(value, list):
            return value
    return None


def single_object(
    candidate: Candidate,
    settings: ExtractionSettings,
) -> Optional[list[Any]]:
    parsed = _load(candidate)
    if isinstance(parsed, dict):
        return [parsed]
    return None


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct_array", direct_array),
    ("wrapped_object", wrapped_object),
    ("single_object", single_object),
)


class StructuralParse(BaseModel):
    """The winning (candidate, strategy) pair and what it produced."""
    model_config = ConfigDict(frozen=True)
    
    candidate: Candidate
    strategy: str
    elements: tuple[Any, ...]


def run_chain(
    candidates: list[Candidate],
    settings: ExtractionSettings,
    strategies: tuple[tuple[str, Strategy], ...] = STRATEGIES,
) -> Optional[StructuralParse]:
    """
    Try every strategy on every candidate until one succeeds.
    
    Returns:
        The first structural success, or None if the chain is exhausted.
    """
    for candidate in candidates:
        for name, strategy in strategies:
            elements = strategy(candidate, settings)
            if elements is not None:
                return StructuralParse(
                    candidate=candidate,
                    strategy=name,
                    elements=tuple(elements),
                )
    return None
