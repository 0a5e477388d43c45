"""
In-Memory Storage Implementation

Dict-backed documents keyed by id. Used by the test suite and as the
default backend for local development.

Every read and write goes through a deep copy, so callers can never
mutate stored state by holding on to a returned object.
"""

from typing import Optional
from uuid import UUID

from fintrack.models.ledger import (
    Budget,
    Category,
    Transaction,
    TransactionQuery,
)
from fintrack.models.audit import AuditEvent
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Transactions held in a dict."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {}
        for txn in transactions or []:
            self._transactions[txn.id] = txn

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        # Transactions are frozen, no copy needed
        self._transactions[transaction.id] = transaction
        return transaction

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._transactions:
            raise NotFoundError("transaction", transaction.id)
        self._transactions[transaction.id] = transaction
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    async def find_transactions(self, query: TransactionQuery) -> list[Transaction]:
        return query.apply(self._transactions.values())


class InMemoryBudgetStorage(BudgetStorageInterface):
    """Budgets held in a dict, items embedded."""

    def __init__(self):
        self._budgets: dict[str, Budget] = {}

    async def save_budget(self, budget: Budget) -> Budget:
        self._budgets[budget.id] = budget.model_copy(deep=True)
        return budget.model_copy(deep=True)

    async def get_budget_by_id(self, budget_id: str) -> Optional[Budget]:
        budget = self._budgets.get(budget_id)
        return budget.model_copy(deep=True) if budget else None

    async def update_budget(self, budget: Budget) -> Budget:
        if budget.id not in self._budgets:
            raise NotFoundError("budget", budget.id)
        return await self.save_budget(budget)

    async def delete_budget(self, budget_id: str) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    async def list_budgets(self, user_id: str) -> list[Budget]:
        budgets = [
            b.model_copy(deep=True)
            for b in self._budgets.values()
            if b.user_id == user_id
        ]
        budgets.sort(key=lambda b: b.updated_at, reverse=True)
        return budgets


class InMemoryCategoryStorage(CategoryStorageInterface):
    """Category catalog held in a dict."""

    def __init__(self, categories: Optional[list[Category]] = None):
        self._categories: dict[str, Category] = {}
        for category in categories or []:
            self._categories[category.id] = category

    async def save_category(self, category: Category) -> Category:
        self._categories[category.id] = category.model_copy()
        return category

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def list_categories(self) -> list[Category]:
        return [c.model_copy() for c in self._categories.values()]

    async def count_categories(self) -> int:
        return len(self._categories)

    async def clear_categories(self) -> None:
        self._categories.clear()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
