"""
Candidate Scanner

Finds the substrings of a model response that might hold JSON.

The scanner never parses and never raises. It only answers "where could the
data be?", ordered by how much we trust each location:

1. FENCED BLOCKS - the body of every ``` fenced block, in order
2. BARE ARRAYS - every top-level balanced [...] span, first one first.
   Later spans only matter when an earlier one fails to parse
3. BARE OBJECT - the first top-level balanced {...} span, only when
   there is no bare array

DESIGN DECISION: Bracket matching is string-literal-aware. A "]" inside a
note such as "Item [2]" must not close the array early. "Top-level" means
not nested inside another balanced span, so an array that is a
field of a single object ({"tags": ["a"], "amount": 5}) is not mistaken for
the record list.

Brackets are matched in a single pass: a scan is linear in the length of
the text, even when nothing in it ever closes.
"""

import re
from typing import Optional

from receipt_extractor.models.transaction import Candidate, CandidateOrigin


_FENCE_RE = re.compile(r"```([A-Za-z0-9_+.-]*)[ \t]*\n?(.*?)```", re.DOTALL)

_CLOSERS = {"[": "]", "{": "}"}
_OPENERS = {"]": "[", "}": "{"}

# A record list opens with an object (or is empty); "[1]" or "[Receipt]"
# in prose is not one
_TOP_ARRAY_START_RE = re.compile(r'[\s]*[{\]]')
# Any JSON value may follow "[" once we are inside a structure
_NESTED_ARRAY_START_RE = re.compile(r'[\s]*(?:[\[{"\]\-0-9]|true\b|false\b|null\b)')
# First token allowed after "{"
_OBJECT_START_RE = re.compile(r'[\s]*["}]')


def _looks_like_json(text: str, start: int, nested: bool) -> bool:
    """Cheap check that skips prose like "[Receipt]", "see [1]" or "{sic}"."""
    if text[start] == "{":
        pattern = _OBJECT_START_RE
    elif nested:
        pattern = _NESTED_ARRAY_START_RE
    else:
        pattern = _TOP_ARRAY_START_RE
    return pattern.match(text, start + 1) is not None


def _match_brackets(text: str) -> dict[int, int]:
    """
    Map each opener's offset to the offset one past its closer, in one pass.
    
    Openers are kept on a stack. Characters inside JSON string literals
    (including escaped quotes) are ignored while a structure is open; quotes
    in surrounding prose are not strings. A closer that doesn't match the
    innermost opener is ignored, and openers that never close (truncated
    output) are simply absent from the result.
    """
    matches: dict[int, int] = {}
    stack: list[int] = []
    in_string = False
    escape = False
    
    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        
        if ch == '"':
            in_string = bool(stack)
        elif ch in _CLOSERS:
            if _looks_like_json(text, i, nested=bool(stack)):
                stack.append(i)
        elif ch in _OPENERS:
            if stack and text[stack[-1]] == _OPENERS[ch]:
                matches[stack.pop()] = i + 1
    
    return matches


def _top_level_spans(
    text: str,
) -> tuple[list[tuple[int, int]], Optional[tuple[int, int]]]:
    """
    Return (array_spans, first_object_span) at the top level.
    
    Top-level means not nested inside another balanced span, so an array
    that is a field of an object is never returned. Arrays come back in
    source order.
    """
    matches = _match_brackets(text)
    arrays = []
    first_object = None
    covered_until = 0
    
    for start in sorted(matches):
        if start < covered_until:
            continue
        end = matches[start]
        covered_until = end
        if text[start] == "[":
            arrays.append((start, end))
        elif first_object is None:
            first_object = (start, end)
    
    return arrays, first_object


def _fenced_candidates(text: str) -> list[Candidate]:
    candidates = []
    for match in _FENCE_RE.finditer(text):
        body = match.group(2)
        if not body.strip():
            continue
        candidates.append(Candidate(
            text=body,
            start=match.start(2),
            end=match.end(2),
            origin=CandidateOrigin.FENCED_BLOCK,
        ))
    return candidates


def scan(text: str) -> list[Candidate]:
    """
    Locate candidate JSON spans in a model response.
    
    Args:
        text: The raw response. Anything that isn't a str yields no candidates.
        
    Returns:
        Candidates in descending confidence order, deduplicated by span.
        An empty list means "no structure at all".
    """
    if not isinstance(text, str) or not text.strip():
        return []
    
    candidates = _fenced_candidates(text)
    
    array_spans, object_span = _top_level_spans(text)
    for start, end in array_spans:
        candidates.append(Candidate(
            text=text[start:end],
            start=start,
            end=end,
            origin=CandidateOrigin.BARE_ARRAY,
        ))
    if not array_spans and object_span is not None:
        start, end = object_span
        candidates.append(Candidate(
            text=text[start:end],
            start=start,
            end=end,
            origin=CandidateOrigin.BARE_OBJECT,
        ))
    
    seen: set[tuple[int, int]] = set()
    unique = []
    for candidate in candidates:
        if candidate.span in seen:
            continue
        seen.add(candidate.span)
        unique.append(candidate)
    
    return unique
