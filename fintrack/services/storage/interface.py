"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep the aggregation engine decoupled from storage technology

Transactions are retrieved through ONE method taking a TransactionQuery
filter object rather than a family of named finders. Every backend must
return exactly what TransactionQuery.apply would return.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from fintrack.models.ledger import (
    Budget,
    Category,
    Transaction,
    TransactionQuery,
)
from fintrack.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation (Google Sheets, MongoDB, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The stored transaction

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction (matched by id).

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def find_transactions(self, query: TransactionQuery) -> list[Transaction]:
        """
        Retrieve all transactions matching a query.

        Args:
            query: Filter object; unset filters match everything

        Returns:
            Matching transactions ordered by creation time
            (newest first if query.newest_first), possibly empty
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budget storage. Items are stored inside their budget."""

    @abstractmethod
    async def save_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def get_budget_by_id(self, budget_id: str) -> Optional[Budget]:
        """Return the budget, or None if the id does not resolve."""
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        """
        Replace a stored budget (matched by id).

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: str) -> bool:
        pass

    @abstractmethod
    async def list_budgets(self, user_id: str) -> list[Budget]:
        """All budgets owned by a user, most recently updated first."""
        pass


class CategoryStorageInterface(ABC):
    """Abstract interface for the category catalog (simple key-value records)."""

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def count_categories(self) -> int:
        pass

    @abstractmethod
    async def clear_categories(self) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Related events in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Referenced budget, category or transaction does not exist."""

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type.capitalize()} not found: {entity_id}")


class StoreUnavailableError(StorageError):
    """Could not reach or use the storage backend."""
    pass
