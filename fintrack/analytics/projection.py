"""
Projection Engine

Estimates a future balance by extrapolating the user's recurring
transactions linearly:

    projected = current_net - recurring_total_per_period * periods

How a recurring transaction counts per period is an explicit setting
(RecurrenceMode). The default, FLAT, counts each recurring transaction
once per period and ignores its recurring_rate. Recurring income is
subtracted like recurring expense unless net_recurring_income is set.
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional
from uuid import UUID

from fintrack.audit import AuditLogger
from fintrack.config import ProjectionSettings, RecurrenceMode
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import (
    ZERO,
    Transaction,
    TransactionQuery,
    TransactionType,
    UpcomingRecurring,
    as_utc,
    utc_now,
)
from fintrack.services.storage import LedgerStorageInterface, StoreUnavailableError
from fintrack.validation import RecordValidator


CENT = Decimal("0.01")
ONE = Decimal("1")


class ProjectionEngine:
    """Linear balance projection from recurring transactions."""

    def __init__(
        self,
        ledger: LedgerStorageInterface,
        settings: Optional[ProjectionSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._ledger = ledger
        self._settings = settings or ProjectionSettings()
        self._audit_logger = audit_logger
        self._validator = validator or RecordValidator()

    @property
    def settings(self) -> ProjectionSettings:
        return self._settings

    def occurrences_per_period(self, txn: Transaction) -> Decimal:
        """How many times a recurring transaction lands in one period."""
        if self._settings.recurrence_mode == RecurrenceMode.FLAT or not txn.recurring_rate:
            return ONE
        return Decimal(self._settings.period_days) / Decimal(txn.recurring_rate)

    def _contribution(self, txn: Transaction) -> Decimal:
        amount = txn.amount * self.occurrences_per_period(txn)
        if self._settings.net_recurring_income and txn.type == TransactionType.INCOME:
            return -amount
        return amount

    async def _find(
        self,
        query: TransactionQuery,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        try:
            return await self._ledger.find_transactions(query)
        except StoreUnavailableError as e:
            if self._audit_logger:
                await self._audit_logger.log_store_unavailable(
                    e, "ledger", correlation_id=correlation_id,
                )
            raise

    async def recurring_total(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """Per-period amount drained by the user's recurring transactions."""
        recurring = await self._find(
            TransactionQuery(user_id=user_id, recurring=True), correlation_id,
        )
        total = sum((self._contribution(txn) for txn in recurring), ZERO)
        if self._settings.recurrence_mode == RecurrenceMode.INTERVAL:
            total = total.quantize(CENT, rounding=ROUND_HALF_EVEN)
        return total

    async def project_balance(
        self,
        user_id: str,
        current_net: Decimal,
        months_ahead: int,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Project the balance months_ahead periods from now.

        Args:
            user_id: Owner of the recurring transactions
            current_net: Starting balance (usually the net amount)
            months_ahead: Non-negative number of periods

        Returns:
            current_net - recurring_total * months_ahead;
            exactly current_net when months_ahead is 0

        Raises:
            RecordValidationError: If months_ahead is negative or not an int
        """
        periods = self._validator.validate_horizon(months_ahead)
        if periods == 0:
            return current_net

        recurring_total = await self.recurring_total(user_id, correlation_id)
        projected = current_net - recurring_total * periods

        if self._audit_logger:
            await self._audit_logger.log_computed(
                AuditEventType.PROJECTION_COMPUTED,
                operation="project_balance",
                user_id=user_id,
                result=str(projected),
                correlation_id=correlation_id,
                details={
                    "current_net": str(current_net),
                    "periods": periods,
                    "recurring_total": str(recurring_total),
                    "mode": self._settings.recurrence_mode.value,
                },
            )
        return projected

    async def upcoming_recurring(
        self,
        user_id: str,
        days_ahead: int,
        as_of: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[UpcomingRecurring]:
        """
        Next occurrence of each recurring expense due within days_ahead.

        Occurrences are created + k * recurring_rate days; transactions
        without a rate are skipped. Soonest first.
        """
        now = as_utc(as_of) if as_of else utc_now()
        horizon_end = now + timedelta(days=days_ahead)

        recurring = await self._find(TransactionQuery(
            user_id=user_id,
            type=TransactionType.EXPENSE,
            recurring=True,
        ), correlation_id)

        upcoming = []
        for txn in recurring:
            if not txn.recurring_rate:
                continue
            interval = timedelta(days=txn.recurring_rate)
            next_date = txn.created
            if next_date < now:
                # Ceiling division on timedeltas
                steps = -(-(now - next_date) // interval)
                next_date = next_date + steps * interval
            if next_date <= horizon_end:
                upcoming.append(UpcomingRecurring(
                    transaction_id=txn.id,
                    description=txn.description or txn.target or "Recurring expense",
                    amount=txn.amount,
                    next_date=next_date,
                    interval_days=txn.recurring_rate,
                ))

        upcoming.sort(key=lambda item: item.next_date)
        return upcoming
