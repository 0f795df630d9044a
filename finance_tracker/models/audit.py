"""
Audit Models for Finance Tracker

Every ledger mutation and every call to an external service produces an
audit event. This provides:
1. Traceability of how a goal balance got to its current value
2. Debugging information when storage or AI calls fail
3. Ability to reconstruct what the user did in a session

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Goals
    GOAL_ADDED = "goal_added"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    GOAL_SYNCED = "goal_synced"

    # Backups
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_IMPORT_FAILED = "backup_import_failed"

    # AI services
    ADVICE_GENERATED = "advice_generated"
    RECEIPT_EXTRACTED = "receipt_extracted"

    # System events
    PERSISTENCE_FAILED = "persistence_failed"
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'backup')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a save and the goal sync it caused)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
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
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(tx_id, "12.50", is_new=True)
        event = AuditEventBuilder.goal_synced(goal_id, "200.00", "500.00")
    """

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        is_new: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_ADDED if is_new
                else AuditEventType.TRANSACTION_UPDATED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {'added' if is_new else 'updated'}: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        retracted_from_goal: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={"retracted_from_goal": retracted_from_goal},
            is_user_action=True,
        )

    @staticmethod
    def goal_saved(
        goal_id: str,
        name: str,
        is_new: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ADDED if is_new else AuditEventType.GOAL_UPDATED,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal {'added' if is_new else 'updated'}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(goal_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            description="Goal deleted",
            is_user_action=True,
        )

    @staticmethod
    def goal_synced(
        goal_id: str,
        previous_amount: str,
        new_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_SYNCED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal balance moved from {previous_amount} to {new_amount}",
            details={
                "previous_amount": previous_amount,
                "new_amount": new_amount,
            },
        )

    @staticmethod
    def backup_exported(transaction_count: int, goal_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported: {transaction_count} transactions, {goal_count} goals",
            details={
                "transaction_count": transaction_count,
                "goal_count": goal_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        replaced: list[str],
        transaction_count: Optional[int],
        goal_count: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="backup",
            description=f"Backup imported, replaced: {', '.join(replaced) or 'nothing'}",
            details={
                "replaced": replaced,
                "transaction_count": transaction_count,
                "goal_count": goal_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_import_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup import rejected",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            entity_type="advice",
            correlation_id=correlation_id,
            description=f"Financial advice generated from {transaction_count} transactions",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def receipt_extracted(
        mime_type: str,
        fields_found: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt read, fields found: {', '.join(fields_found) or 'none'}",
            details={
                "mime_type": mime_type,
                "fields_found": fields_found,
            },
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        key: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            entity_id=key,
            description=f"Storage {operation} failed for {key}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
