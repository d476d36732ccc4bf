"""Candidate scanning package."""

from receipt_extractor.scanning.scanner import scan

__all__ = ["scan"]
