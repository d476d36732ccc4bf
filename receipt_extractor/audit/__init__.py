"""Audit logging package."""

from receipt_extractor.audit.logger import (
    ExtractionAuditLogger,
    configure_logging,
    create_correlation_id,
)
from receipt_extractor.audit.sink import AuditSink, AuditSinkError, InMemoryAuditSink

__all__ = [
    "AuditSink",
    "AuditSinkError",
    "ExtractionAuditLogger",
    "InMemoryAuditSink",
    "configure_logging",
    "create_correlation_id",
]
