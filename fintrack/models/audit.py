"""
Audit Models for the Finance Tracker

Every mutation and every computed aggregate is recorded as an audit event.
This provides:
1. Traceability of who changed which record
2. Debugging information when a figure looks wrong
3. Ability to reconstruct the history of a budget

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_ITEM_ADDED = "budget_item_added"
    BUDGET_ITEM_REMOVED = "budget_item_removed"

    # Categories
    CATEGORIES_SEEDED = "categories_seeded"

    # Engine
    AGGREGATE_COMPUTED = "aggregate_computed"
    PROJECTION_COMPUTED = "projection_computed"
    SUMMARY_COMPUTED = "summary_computed"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    RECORD_NOT_FOUND = "record_not_found"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    STORE_UNAVAILABLE = "store_unavailable"


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
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'user')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who caused it, if known
    user_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

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
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.user_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(txn_id, user_id, ...)
        event = AuditEventBuilder.budget_item_added(budget_id, ...)
    """

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}: {transaction_id}",
            details=details or {},
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        budget_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1].replace("_", " ")
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=budget_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Budget {verb}: {budget_id}",
            details=details or {},
        )

    @staticmethod
    def categories_seeded(
        count: int,
        previous_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            description=f"Category count mismatch ({previous_count} found), reseeded {count}",
            details={
                "seeded": count,
                "previous_count": previous_count,
            },
        )

    @staticmethod
    def computed(
        event_type: AuditEventType,
        operation: str,
        user_id: Optional[str],
        result: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.DEBUG,
            entity_type="user" if user_id else None,
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} = {result}",
            details={"operation": operation, "result": result, **(details or {})},
        )

    @staticmethod
    def failure(
        event_type: AuditEventType,
        error_message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.ERROR
            if event_type == AuditEventType.STORE_UNAVAILABLE
            else AuditSeverity.WARNING
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}",
            error_message=error_message,
            details=details or {},
        )
