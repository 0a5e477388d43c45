"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a Google Sheets backend.
"""

from fintrack.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryLedgerStorage,
)
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryCategoryStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
