"""
Audit Logger

DESIGN DECISION: Every mutation and computed aggregate is logged.
This provides:
1. Complete traceability
2. Debugging capability when a figure looks wrong

The audit logger:
- Is injected into services and engines, never reached through a global
- Gracefully handles storage failures (doesn't break the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from fintrack.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for local JSON logging.

    Called once by the component factory at startup.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
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


class AuditLogger:
    """
    Observability hook handed to services and engines.

    Each event goes to the structlog logger at the level matching its
    severity, then to the audit store when one is configured.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            logger: structlog logger to emit to. Defaults to a module logger.
        """
        self._storage = storage
        self._logger = logger or structlog.get_logger("fintrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one audit event.

        Returns False only when the audit store rejected the write; the
        failure is logged and never raised.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_changed(
        self,
        event_type: AuditEventType,
        transaction_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a transaction create/update/delete."""
        await self.log(AuditEventBuilder.transaction_changed(
            event_type=event_type,
            transaction_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_budget_changed(
        self,
        event_type: AuditEventType,
        budget_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a budget or budget item change."""
        await self.log(AuditEventBuilder.budget_changed(
            event_type=event_type,
            budget_id=budget_id,
            user_id=user_id,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_categories_seeded(self, count: int, previous_count: int) -> None:
        await self.log(AuditEventBuilder.categories_seeded(count, previous_count))

    async def log_computed(
        self,
        event_type: AuditEventType,
        operation: str,
        user_id: Optional[str],
        result: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log an aggregate, projection or summary result."""
        await self.log(AuditEventBuilder.computed(
            event_type=event_type,
            operation=operation,
            user_id=user_id,
            result=result,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_failure(
        self,
        event_type: AuditEventType,
        error_message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a failure that is about to propagate to the caller."""
        await self.log(AuditEventBuilder.failure(
            event_type=event_type,
            error_message=error_message,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            details=details,
        ))


    async def log_store_unavailable(
        self,
        error: Exception,
        entity_type: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a store outage seen by a service or engine before it re-raises."""
        await self.log_failure(
            AuditEventType.STORE_UNAVAILABLE,
            error_message=str(error),
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )


def create_correlation_id() -> UUID:
    """
    New correlation id for one request.

    Every audit event raised while serving the request carries it.
    """
    return uuid4()
