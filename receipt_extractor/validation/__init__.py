"""Draft validation package."""

from receipt_extractor.validation.validator import DraftValidator, ValidationOutcome

__all__ = ["DraftValidator", "ValidationOutcome"]
