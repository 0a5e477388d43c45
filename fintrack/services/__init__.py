"""
Services package.

The CRUD services (transactions, budgets, categories) are imported from
their own modules; this package only re-exports storage, which the audit
logger depends on.
"""

from fintrack.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)

__all__ = [
    # Storage interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "LedgerStorageInterface",
    # Storage exceptions
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
]
