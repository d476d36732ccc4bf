"""
Audit Sink Interface

DESIGN DECISION: The pipeline does not decide where audit events end up.
A telemetry collaborator plugs in an AuditSink; this allows us to:
1. Forward events to whatever log store the host app uses
2. Use in-memory collection for testing
3. Keep the pipeline free of any storage dependency
"""

from abc import ABC, abstractmethod
from uuid import UUID

from receipt_extractor.errors import ExtractorError
from receipt_extractor.models.audit import AuditEvent, AuditEventType


class AuditSinkError(ExtractorError):
    """A sink failed to accept an event."""
    pass


class AuditSink(ABC):
    """
    Abstract destination for audit events.
    
    Implementations must be safe to call from the thread running extract().
    """
    
    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.
        
        Args:
            event: The event to store
            
        Returns:
            True if stored successfully
            
        Raises:
            AuditSinkError: If the event could not be stored
        """
        pass


class InMemoryAuditSink(AuditSink):
    """Keeps events in a list. Intended for tests and debugging."""
    
    def __init__(self):
        self.events: list[AuditEvent] = []
    
    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
    
    def events_of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]
    
    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]
