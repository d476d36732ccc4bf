"""Configuration package."""

from receipt_extractor.config.settings import (
    ISO_TIMESTAMP_FORMAT,
    AppSettings,
    ExtractionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "ISO_TIMESTAMP_FORMAT",
    "AppSettings",
    "ExtractionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
