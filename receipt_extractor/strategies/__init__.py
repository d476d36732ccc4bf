"""Structural parsing strategies."""

from receipt_extractor.strategies.chain import (
    STRATEGIES,
    Strategy,
    StructuralParse,
    direct_array,
    run_chain,
    single_object,
    wrapped_object,
)

__all__ = [
    "STRATEGIES",
    "Strategy",
    "StructuralParse",
    "direct_array",
    "run_chain",
    "single_object",
    "wrapped_object",
]
