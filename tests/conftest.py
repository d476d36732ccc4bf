"""Shared fixtures for the receipt extractor tests."""

import pytest

from receipt_extractor.audit import ExtractionAuditLogger, InMemoryAuditSink
from receipt_extractor.config import ExtractionSettings, get_settings
from receipt_extractor.orchestrator import ExtractionPipeline


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; every test starts from the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def pipeline(audit_sink):
    return ExtractionPipeline(
        settings=ExtractionSettings(),
        audit_logger=ExtractionAuditLogger(sink=audit_sink),
    )
