"""Field normalization package."""

from receipt_extractor.normalization.fields import (
    ParsedAmount,
    RecordNormalizer,
    match_direction_keyword,
    normalize_record,
    parse_amount_text,
    parse_bool_text,
    parse_date_text,
    parse_number,
)

__all__ = [
    "ParsedAmount",
    "RecordNormalizer",
    "match_direction_keyword",
    "normalize_record",
    "parse_amount_text",
    "parse_bool_text",
    "parse_date_text",
    "parse_number",
]
