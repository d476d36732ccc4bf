"""
Audit Models for Receipt Extractor

Every extraction call leaves a trail of events:
1. What the scanner found
2. Which strategy parsed it
3. Which records were rejected and why
4. How the call ended

DESIGN DECISION: Audit events are append-only and carry a correlation ID,
so all events of one extraction call can be pulled back together.
Audit data lives beside the ExtractionResult, never inside it - the result
stays a pure function of the input text.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    
    Every stage of the extraction pipeline has its own event type.
    """
    # Call lifecycle
    EXTRACTION_STARTED = "extraction_started"
    EXTRACTION_SUCCEEDED = "extraction_succeeded"
    EXTRACTION_FAILED = "extraction_failed"
    
    # Scanning / structural parse
    CANDIDATES_SCANNED = "candidates_scanned"
    NO_STRUCTURE = "no_structure"
    STRUCTURE_PARSED = "structure_parsed"
    STRUCTURE_UNPARSEABLE = "structure_unparseable"
    
    # Per-record findings
    RECORD_REJECTED = "record_rejected"
    FIELD_SOFTFAIL = "field_softfail"
    
    # Multi-response aggregation
    BATCH_DEDUPLICATED = "batch_deduplicated"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of the audit trail.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Identifier of this event"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Emission time, UTC"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Pipeline stage that emitted the event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="How loudly the local log reports it"
    )
    
    # Correlation - all events of one extract() call share this
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one extraction call"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for log readers"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Stage-specific payload (counts, origins, diagnostic)"
    )
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.extraction_started(text_length, correlation_id)
        event = AuditEventBuilder.record_rejected(diagnostic, correlation_id)
    """
    
    @staticmethod
    def extraction_started(
        text_length: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_STARTED,
            correlation_id=correlation_id,
            description=f"Extraction started on {text_length} characters",
            details={"text_length": text_length},
        )
    
    @staticmethod
    def candidates_scanned(
        origins: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATES_SCANNED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Scanner found {len(origins)} candidate(s)",
            details={"origins": origins},
        )
    
    @staticmethod
    def no_structure(
        raw_preview: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NO_STRUCTURE,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="No structured data found in response",
            details={"raw_preview": raw_preview},
        )
    
    @staticmethod
    def structure_parsed(
        origin: str,
        strategy: str,
        record_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STRUCTURE_PARSED,
            correlation_id=correlation_id,
            description=f"Strategy {strategy} parsed {record_count} record(s) from {origin}",
            details={
                "origin": origin,
                "strategy": strategy,
                "record_count": record_count,
            },
        )
    
    @staticmethod
    def structure_unparseable(
        origins: list[str],
        raw_preview: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STRUCTURE_UNPARSEABLE,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Every strategy failed on every candidate",
            details={
                "origins": origins,
                "raw_preview": raw_preview,
            },
        )
    
    @staticmethod
    def record_rejected(
        diagnostic: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Record rejected: {diagnostic.get('kind')}",
            details=diagnostic,
        )
    
    @staticmethod
    def field_softfail(
        diagnostic: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIELD_SOFTFAIL,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Field degraded: {diagnostic.get('kind')}",
            details=diagnostic,
        )
    
    @staticmethod
    def extraction_succeeded(
        draft_count: int,
        rejected_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_SUCCEEDED,
            correlation_id=correlation_id,
            description=f"Extracted {draft_count} draft(s), rejected {rejected_count}",
            details={
                "draft_count": draft_count,
                "rejected_count": rejected_count,
            },
        )
    
    @staticmethod
    def extraction_failed(
        failure_kind: str,
        message: str,
        diagnostic_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Extraction failed: {failure_kind}",
            details={
                "failure_kind": failure_kind,
                "message": message,
                "diagnostic_count": diagnostic_count,
            },
        )
    
    @staticmethod
    def batch_deduplicated(
        response_count: int,
        draft_count: int,
        duplicate_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_DEDUPLICATED,
            correlation_id=correlation_id,
            description=(
                f"Merged {response_count} response(s) into {draft_count} draft(s), "
                f"dropped {duplicate_count} duplicate(s)"
            ),
            details={
                "response_count": response_count,
                "draft_count": draft_count,
                "duplicate_count": duplicate_count,
            },
        )
