"""Shared fixtures: in-memory stores, a small category catalog, engines."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fintrack.analytics import AggregationEngine, ProjectionEngine
from fintrack.audit import AuditLogger
from fintrack.models.ledger import Category, Transaction
from fintrack.services.categories import CategoryCatalog
from fintrack.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryLedgerStorage,
    StoreUnavailableError,
)


JUNE_1 = datetime(2024, 6, 1, tzinfo=timezone.utc)
JUNE_15 = datetime(2024, 6, 15, tzinfo=timezone.utc)
JULY_1 = datetime(2024, 7, 1, tzinfo=timezone.utc)


class UnavailableLedger(InMemoryLedgerStorage):
    """Ledger whose reads fail the way an exhausted store client does."""

    async def find_transactions(self, query):
        raise StoreUnavailableError("ledger offline")


class UnavailableBudgetStore(InMemoryBudgetStorage):

    async def get_budget_by_id(self, budget_id):
        raise StoreUnavailableError("budget store offline")


@pytest.fixture
def make_txn():
    """Factory for transactions with sensible defaults."""
    def _make(amount, type="EXPENSE", category="Food", user_id="user-1", created=JUNE_15, **kwargs):
        return Transaction(
            user_id=user_id,
            amount=Decimal(str(amount)),
            type=type,
            category=category,
            created=created,
            **kwargs,
        )
    return _make


@pytest.fixture
def food():
    return Category(id="cat-food", name="Food", color="#FF6B6B", icon="🍽️")


@pytest.fixture
def rent():
    return Category(id="cat-rent", name="Rent", color="#98D8C8", icon="🏠")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger():
    return InMemoryLedgerStorage()


@pytest.fixture
def budget_store():
    return InMemoryBudgetStorage()


@pytest.fixture
def category_store(food, rent):
    return InMemoryCategoryStorage([food, rent])


@pytest.fixture
def catalog(category_store, audit_logger):
    return CategoryCatalog(category_store, audit_logger=audit_logger)


@pytest.fixture
def aggregation(ledger, budget_store, audit_logger):
    return AggregationEngine(ledger, budget_store, audit_logger=audit_logger)


@pytest.fixture
def projection(ledger, audit_logger):
    return ProjectionEngine(ledger, audit_logger=audit_logger)
