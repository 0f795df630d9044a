"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Traceability of goal balances
2. Debugging capability when storage or AI calls fail
3. A history of the user's actions in a session

The audit logger:
- Gracefully handles failures (logging never breaks a save)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional sink (e.g. an activity panel in the UI)
    """

    def __init__(
        self,
        sink: Optional[Callable[[AuditEvent], None]] = None,
    ):
        """
        Initialize audit logger.

        Args:
            sink: Called with every event after it is logged.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("finance_tracker.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Forwards to the sink if available.

        Returns True if the sink accepted the event (or no sink is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink:
            try:
                self._sink(event)
            except Exception as e:
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_transaction_saved(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        is_new: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            is_new=is_new,
            correlation_id=correlation_id,
        ))

    def log_transaction_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        transaction_id: str,
        retracted_from_goal: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            retracted_from_goal=retracted_from_goal,
            correlation_id=correlation_id,
        ))

    def log_goal_saved(self, goal_id: str, name: str, is_new: bool) -> None:
        self.log(AuditEventBuilder.goal_saved(goal_id=goal_id, name=name, is_new=is_new))

    def log_goal_deleted(self, goal_id: str) -> None:
        self.log(AuditEventBuilder.goal_deleted(goal_id=goal_id))

    def log_goal_synced(
        self,
        goal_id: str,
        previous_amount: str,
        new_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a goal balance moved by a linked investment."""
        self.log(AuditEventBuilder.goal_synced(
            goal_id=goal_id,
            previous_amount=previous_amount,
            new_amount=new_amount,
            correlation_id=correlation_id,
        ))

    def log_backup_exported(self, transaction_count: int, goal_count: int) -> None:
        self.log(AuditEventBuilder.backup_exported(transaction_count, goal_count))

    def log_backup_imported(
        self,
        replaced: list[str],
        transaction_count: Optional[int],
        goal_count: Optional[int],
    ) -> None:
        self.log(AuditEventBuilder.backup_imported(replaced, transaction_count, goal_count))

    def log_backup_import_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.backup_import_failed(error_message))

    def log_advice_generated(
        self,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.advice_generated(transaction_count, correlation_id))

    def log_receipt_extracted(
        self,
        mime_type: str,
        fields_found: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_extracted(mime_type, fields_found, correlation_id))

    def log_persistence_failed(
        self,
        operation: str,
        key: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.persistence_failed(operation, key, error_message))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. saving an investment)
    and pass it through all subsequent operations.
    """
    return uuid4()
