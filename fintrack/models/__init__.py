"""
Data Models Package

This package contains all Pydantic models used by the finance tracker.
All data flowing through the engine must conform to these schemas.
"""

from fintrack.models.ledger import (
    DEFAULT_CATEGORY_SPECS,
    ZERO,
    AuthenticatedIdentity,
    Budget,
    BudgetItem,
    BudgetItemPerformance,
    BudgetPerformanceReport,
    Category,
    FinancialSummary,
    MonthlyTrendPoint,
    Transaction,
    TransactionQuery,
    TransactionType,
    UpcomingRecurring,
    default_categories,
    utc_now,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORY_SPECS",
    "ZERO",
    "AuthenticatedIdentity",
    "Budget",
    "BudgetItem",
    "BudgetItemPerformance",
    "BudgetPerformanceReport",
    "Category",
    "FinancialSummary",
    "MonthlyTrendPoint",
    "Transaction",
    "TransactionQuery",
    "TransactionType",
    "UpcomingRecurring",
    "default_categories",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
