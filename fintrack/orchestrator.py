"""
Main Orchestrator for the Finance Tracker

This module ties the components together and exposes the operations
the HTTP layer consumes, already in response shape:

1. summary(identity)                         -> {income, expenses, net, projectedSpending}
2. budget_performance(budget_id, start, end) -> Decimal total spent
3. add_budget_item(...)                      -> updated budget
4. remove_budget_item(...)                   -> updated budget

DESIGN DECISION: The orchestrator enforces the boundaries:
- Identity is an explicit argument, never read from a session
- Every request gets a correlation id that flows into the audit log
- Errors propagate unchanged; status-code mapping belongs to the caller
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from fintrack.analytics import AggregationEngine, ProjectionEngine, SummaryComposer
from fintrack.audit import AuditLogger, configure_logging, create_correlation_id
from fintrack.config import StorageBackend, get_settings
from fintrack.models.ledger import AuthenticatedIdentity, Budget
from fintrack.services.budgets import BudgetService
from fintrack.services.categories import CategoryCatalog
from fintrack.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from fintrack.services.transactions import TransactionService


logger = structlog.get_logger(__name__)


def budget_to_response(budget: Budget) -> dict[str, Any]:
    """Budget in the shape the web client reads: camelCase, ISO times, decimal strings."""
    return {
        "id": budget.id,
        "userId": budget.user_id,
        "name": budget.name,
        "description": budget.description,
        "items": [
            {
                "category": {
                    "id": item.category.id,
                    "name": item.category.name,
                    "color": item.category.color,
                    "icon": item.category.icon,
                },
                "amount": str(item.amount),
                "frequency": item.frequency,
            }
            for item in budget.items
        ],
        "createdAt": budget.created_at.isoformat(),
        "updatedAt": budget.updated_at.isoformat(),
    }


class FinanceAPI:
    """
    Boundary facade over the engines and services.

    One instance is shared by every request; it holds no per-request state.
    """

    def __init__(
        self,
        summary_composer: SummaryComposer,
        aggregation: AggregationEngine,
        budget_service: BudgetService,
        categories: Optional[CategoryCatalog] = None,
    ):
        self._summary = summary_composer
        self._aggregation = aggregation
        self._budgets = budget_service
        self._categories = categories

    async def startup(self) -> None:
        """Seed the default categories if the catalog has drifted."""
        if self._categories is not None:
            await self._categories.ensure_defaults()

    async def summary(
        self,
        identity: Optional[AuthenticatedIdentity],
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, str]:
        """
        Income, expenses, net and projected spending for the caller.

        Raises:
            UnauthorizedError: If no identity is supplied
        """
        correlation_id = correlation_id or create_correlation_id()
        result = await self._summary.summarize(identity, correlation_id=correlation_id)
        return result.to_response()

    async def budget_performance(
        self,
        budget_id: str,
        start: datetime,
        end: datetime,
    ) -> Decimal:
        """
        Total EXPENSE spending against a budget's categories in [start, end).

        Raises:
            NotFoundError: If the budget does not exist
        """
        return await self._aggregation.budget_performance(budget_id, start, end)

    async def add_budget_item(
        self,
        budget_id: str,
        category_id: str,
        amount: Union[Decimal, str, int],
        frequency_days: int,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        correlation_id = correlation_id or create_correlation_id()
        budget = await self._budgets.add_budget_item(
            budget_id,
            category_id,
            amount,
            frequency_days,
            correlation_id=correlation_id,
        )
        return budget_to_response(budget)

    async def remove_budget_item(
        self,
        budget_id: str,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        correlation_id = correlation_id or create_correlation_id()
        budget = await self._budgets.remove_budget_item(
            budget_id,
            category_id,
            correlation_id=correlation_id,
        )
        return budget_to_response(budget)


@dataclass
class AppComponents:
    """Everything create_app_components wires up."""

    api: FinanceAPI
    transactions: TransactionService
    budgets: BudgetService
    categories: CategoryCatalog
    aggregation: AggregationEngine
    projection: ProjectionEngine
    summary: SummaryComposer
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def _memory_stores() -> tuple[
    LedgerStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    AuditStorageInterface,
]:
    return (
        InMemoryLedgerStorage(),
        InMemoryBudgetStorage(),
        InMemoryCategoryStorage(),
        InMemoryAuditStorage(),
    )


def create_app_components(
    backend: Optional[StorageBackend] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: Storage backend to use. Defaults to STORAGE_BACKEND
                from settings. If Google Sheets is selected but not
                configured, falls back to in-memory storage.

    Returns:
        AppComponents with every service and engine wired together
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    backend = StorageBackend(backend or app_settings.storage_backend)
    sheets_client = None

    if backend == StorageBackend.GOOGLE_SHEETS:
        try:
            sheets_client = GoogleSheetsClient()
            ledger = GoogleSheetsLedgerStorage(sheets_client)
            budget_store = GoogleSheetsBudgetStorage(sheets_client)
            category_store = GoogleSheetsCategoryStorage(sheets_client)
            audit_store = GoogleSheetsAuditStorage(sheets_client)
        except ValueError as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend=backend.value, error=str(e))
            sheets_client = None
            ledger, budget_store, category_store, audit_store = _memory_stores()
    else:
        ledger, budget_store, category_store, audit_store = _memory_stores()

    audit_logger = AuditLogger(audit_store)
    projection_settings = settings.projection

    categories = CategoryCatalog(category_store, audit_logger=audit_logger)
    transactions = TransactionService(ledger, audit_logger=audit_logger)
    budgets = BudgetService(budget_store, categories, audit_logger=audit_logger)
    aggregation = AggregationEngine(ledger, budget_store, audit_logger=audit_logger)
    projection = ProjectionEngine(ledger, settings=projection_settings, audit_logger=audit_logger)
    summary = SummaryComposer(
        aggregation,
        projection,
        settings=projection_settings,
        audit_logger=audit_logger,
    )

    api = FinanceAPI(summary, aggregation, budgets, categories=categories)

    logger.info("app_components_created", backend=backend.value)

    return AppComponents(
        api=api,
        transactions=transactions,
        budgets=budgets,
        categories=categories,
        aggregation=aggregation,
        projection=projection,
        summary=summary,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
