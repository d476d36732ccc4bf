"""
Audit Logger

DESIGN DECISION: Every extraction call is logged. This provides:
1. Traceability from a failed import back to the raw model response
2. Debugging capability for prompt tuning
3. Per-record rejection reasons for telemetry

The audit logger:
- Is synchronous, like the pipeline it observes
- Gracefully handles sink failures (never breaks an extraction)
- Supports correlation IDs to trace the events of one call
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from receipt_extractor.config import AppSettings, get_settings
from receipt_extractor.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from receipt_extractor.models.diagnostics import ExtractionDiagnostic
from receipt_extractor.audit.sink import AuditSink


# How much of a raw response goes into an audit event
RAW_PREVIEW_CHARS = 300

# Parent of every stdlib logger this package creates
PACKAGE_LOGGER = "receipt_extractor"


def configure_logging(
    app_settings: Optional[AppSettings] = None,
    install_handler: bool = False,
) -> None:
    """
    Configure structlog for local logging.
    
    Leaves an existing configuration alone, so a host application
    that set up structlog itself keeps its processors. Only the
    "receipt_extractor" logger gets a level; the root logger and its
    handlers belong to the host unless install_handler is passed.
    """
    if structlog.is_configured():
        return
    
    app_settings = app_settings or get_settings().app
    level = logging.DEBUG if app_settings.debug_mode else getattr(logging, app_settings.log_level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    if install_handler:
        logging.basicConfig(format="%(message)s", level=level)
    
    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def raw_preview(text: str) -> str:
    if len(text) <= RAW_PREVIEW_CHARS:
        return text
    return text[:RAW_PREVIEW_CHARS] + "..."


class ExtractionAuditLogger:
    """
    Central audit logging for the extraction pipeline.
    
    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional AuditSink (for telemetry collaborators)
    """
    
    def __init__(
        self,
        sink: Optional[AuditSink] = None,
    ):
        """
        Initialize audit logger.
        
        Args:
            sink: Destination for events.
                  If None, only logs locally.
        """
        configure_logging()
        self._sink = sink
        self._logger = structlog.get_logger(f"{PACKAGE_LOGGER}.audit")
    
    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.
        
        Always logs locally. Forwards to the sink if one is configured.
        
        Returns True if the sink accepted the event (or no sink is configured).
        """
        log_dict = event.to_log_dict()
        
        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)
        
        if self._sink:
            try:
                return self._sink.append_event(event)
            except Exception as e:
                # Never let telemetry break an extraction
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
        
        return True
    
    def log_extraction_started(self, text_length: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.extraction_started(
            text_length=text_length,
            correlation_id=correlation_id,
        ))
    
    def log_candidates_scanned(self, origins: list[str], correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.candidates_scanned(
            origins=origins,
            correlation_id=correlation_id,
        ))
    
    def log_no_structure(self, raw_text: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.no_structure(
            raw_preview=raw_preview(raw_text),
            correlation_id=correlation_id,
        ))
    
    def log_structure_parsed(
        self,
        origin: str,
        strategy: str,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.structure_parsed(
            origin=origin,
            strategy=strategy,
            record_count=record_count,
            correlation_id=correlation_id,
        ))
    
    def log_structure_unparseable(
        self,
        origins: list[str],
        raw_text: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.structure_unparseable(
            origins=origins,
            raw_preview=raw_preview(raw_text),
            correlation_id=correlation_id,
        ))
    
    def log_diagnostic(
        self,
        diagnostic: ExtractionDiagnostic,
        correlation_id: UUID,
    ) -> None:
        """Record rejections and field softfails get different event types."""
        if diagnostic.is_rejection:
            event = AuditEventBuilder.record_rejected(
                diagnostic=diagnostic.to_log_dict(),
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.field_softfail(
                diagnostic=diagnostic.to_log_dict(),
                correlation_id=correlation_id,
            )
        self.log(event)
    
    def log_extraction_succeeded(
        self,
        draft_count: int,
        rejected_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.extraction_succeeded(
            draft_count=draft_count,
            rejected_count=rejected_count,
            correlation_id=correlation_id,
        ))
    
    def log_extraction_failed(
        self,
        failure_kind: str,
        message: str,
        diagnostic_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.extraction_failed(
            failure_kind=failure_kind,
            message=message,
            diagnostic_count=diagnostic_count,
            correlation_id=correlation_id,
        ))
    
    def log_batch_deduplicated(
        self,
        response_count: int,
        draft_count: int,
        duplicate_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.batch_deduplicated(
            response_count=response_count,
            draft_count=draft_count,
            duplicate_count=duplicate_count,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.
    
    One per extract() / extract_many() call.
    """
    return uuid4()
