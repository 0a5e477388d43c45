"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and STATELESS.
Every call re-reads the ledger through a TransactionQuery and reduces
the matching set to a Decimal.

GUARANTEES:
- Totals are exact Decimals, independent of input ordering
- An empty matching set sums to Decimal("0"), never None or an error
- An unknown type or category is just an empty matching set
- A missing budget is NotFoundError, never a silent zero
- A store failure is audited and re-raised unchanged
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import (
    ZERO,
    BudgetItemPerformance,
    BudgetPerformanceReport,
    MonthlyTrendPoint,
    Transaction,
    TransactionQuery,
    TransactionType,
)
from fintrack.services.storage import (
    BudgetStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StoreUnavailableError,
)
from fintrack.validation import RecordValidator


def sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    """Exact sum of amounts; zero for an empty iterable."""
    return sum((txn.amount for txn in transactions), ZERO)


class AggregationEngine:
    """
    Reduces sets of transactions to monetary totals.

    Owns no state; safe to share between concurrent requests.
    """

    def __init__(
        self,
        ledger: LedgerStorageInterface,
        budgets: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._ledger = ledger
        self._budgets = budgets
        self._audit_logger = audit_logger
        self._validator = validator or RecordValidator()

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

    async def _total(
        self,
        query: TransactionQuery,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        return sum_amounts(await self._find(query, correlation_id))

    async def _report(
        self,
        operation: str,
        user_id: Optional[str],
        result: Decimal,
        correlation_id: Optional[UUID] = None,
        **details,
    ) -> Decimal:
        if self._audit_logger:
            await self._audit_logger.log_computed(
                AuditEventType.AGGREGATE_COMPUTED,
                operation=operation,
                user_id=user_id,
                result=str(result),
                correlation_id=correlation_id,
                details={k: str(v) for k, v in details.items()},
            )
        return result

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    async def total_by_type(
        self,
        kind: Union[TransactionType, str],
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Sum over every user's transactions of one type.

        Raises:
            RecordValidationError: If kind is None or blank
        """
        kind = self._validator.validate_type_filter(kind)
        total = await self._total(TransactionQuery(type=kind), correlation_id)
        return await self._report(
            "total_by_type", None, total, correlation_id, kind=getattr(kind, "value", kind),
        )

    async def total_by_type_for_user(
        self,
        user_id: str,
        kind: Union[TransactionType, str],
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        kind = self._validator.validate_type_filter(kind)
        total = await self._total(TransactionQuery(user_id=user_id, type=kind), correlation_id)
        return await self._report(
            "total_by_type_for_user", user_id, total, correlation_id, kind=getattr(kind, "value", kind),
        )

    async def total_income(self, user_id: str, correlation_id: Optional[UUID] = None) -> Decimal:
        return await self.total_by_type_for_user(user_id, TransactionType.INCOME, correlation_id)

    async def total_expenses(self, user_id: str, correlation_id: Optional[UUID] = None) -> Decimal:
        return await self.total_by_type_for_user(user_id, TransactionType.EXPENSE, correlation_id)

    async def net_amount(self, user_id: str, correlation_id: Optional[UUID] = None) -> Decimal:
        """Income minus expenses over everything the user owns."""
        income = await self.total_income(user_id, correlation_id)
        expenses = await self.total_expenses(user_id, correlation_id)
        return await self._report("net_amount", user_id, income - expenses, correlation_id)

    async def total_for_period(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """Spending (EXPENSE only) created in [start, end)."""
        total = await self._total(TransactionQuery(
            user_id=user_id,
            type=TransactionType.EXPENSE,
            created_from=start,
            created_before=end,
        ), correlation_id)
        return await self._report(
            "total_for_period", user_id, total, correlation_id, start=start, end=end,
        )

    async def total_by_category_for_period(
        self,
        user_id: str,
        category: str,
        start: datetime,
        end: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """Any-type total for one category in [start, end)."""
        total = await self._total(TransactionQuery(
            user_id=user_id,
            categories=(category,),
            created_from=start,
            created_before=end,
        ), correlation_id)
        return await self._report(
            "total_by_category_for_period", user_id, total, correlation_id,
            category=category, start=start, end=end,
        )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def _get_budget(self, budget_id: str, correlation_id: Optional[UUID]):
        try:
            budget = await self._budgets.get_budget_by_id(budget_id)
        except StoreUnavailableError as e:
            if self._audit_logger:
                await self._audit_logger.log_store_unavailable(
                    e, "budget", entity_id=budget_id, correlation_id=correlation_id,
                )
            raise

        if budget is None:
            error = NotFoundError("budget", budget_id)
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.RECORD_NOT_FOUND,
                    error_message=str(error),
                    entity_type="budget",
                    entity_id=budget_id,
                    correlation_id=correlation_id,
                )
            raise error
        return budget

    async def budget_performance_report(
        self,
        budget_id: str,
        start: datetime,
        end: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetPerformanceReport:
        """
        Spending against each item's allowance in [start, end).

        Only EXPENSE transactions of the budget's owner count. Each item is
        summed independently, so two items for the same category both see
        the same spending.

        Raises:
            NotFoundError: If the budget id does not resolve
        """
        budget = await self._get_budget(budget_id, correlation_id)

        rows = []
        for item in budget.items:
            spent = await self._total(TransactionQuery(
                user_id=budget.user_id,
                type=TransactionType.EXPENSE,
                categories=item.category_labels,
                created_from=start,
                created_before=end,
            ), correlation_id)
            rows.append(BudgetItemPerformance(
                category_id=item.category.id,
                category_name=item.category.name,
                allowance=item.amount,
                frequency=item.frequency,
                spent=spent,
            ))

        return BudgetPerformanceReport(
            budget_id=budget.id,
            user_id=budget.user_id,
            start=start,
            end=end,
            items=rows,
            total_spent=sum((row.spent for row in rows), ZERO),
            total_allowance=budget.total_allowance,
        )

    async def budget_performance(
        self,
        budget_id: str,
        start: datetime,
        end: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """Total spent across all of a budget's items in [start, end)."""
        report = await self.budget_performance_report(budget_id, start, end, correlation_id)
        return await self._report(
            "budget_performance", report.user_id, report.total_spent, correlation_id,
            budget_id=budget_id,
        )

    # -------------------------------------------------------------------------
    # Breakdowns
    # -------------------------------------------------------------------------

    async def spending_by_category(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, Decimal]:
        """EXPENSE totals per category label, largest first."""
        transactions = await self._find(TransactionQuery(
            user_id=user_id,
            type=TransactionType.EXPENSE,
            created_from=start,
            created_before=end,
        ), correlation_id)
        groups: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for txn in transactions:
            groups[txn.category] += txn.amount
        return dict(sorted(groups.items(), key=lambda kv: (-kv[1], kv[0])))

    async def monthly_trend(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[MonthlyTrendPoint]:
        """Income and expenses per calendar month (UTC), oldest first."""
        transactions = await self._find(TransactionQuery(
            user_id=user_id,
            created_from=start,
            created_before=end,
        ), correlation_id)
        points: dict[str, MonthlyTrendPoint] = {}
        for txn in transactions:
            key = txn.created.strftime("%Y-%m")
            point = points.setdefault(key, MonthlyTrendPoint(month=key))
            if txn.is_income:
                point.income += txn.amount
            else:
                point.expenses += txn.amount
        return [points[key] for key in sorted(points)]
