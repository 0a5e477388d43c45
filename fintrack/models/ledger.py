"""
Core Data Models for the Finance Tracker

These models define the strict schemas for all data flowing through the engine.
They are designed to:
1. Enforce the record invariants at construction time
2. Keep every monetary value a Decimal
3. Be serializable for storage and logging

DESIGN DECISION: Storage and transport never see a half-valid record.
A Transaction with a missing or non-positive amount cannot be built,
so the aggregation code never has to guard against it.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


ZERO = Decimal("0")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    A single recorded income or expense event for a user.

    Transactions are immutable: an update is a full replace by id.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_id,
        description="Opaque unique transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user ID"
    )
    target: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Counterparty (merchant, payee, employer)"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-text description"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Transaction amount, always positive"
    )
    type: TransactionType = Field(
        ...,
        description="INCOME or EXPENSE"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category label"
    )
    created: datetime = Field(
        default_factory=utc_now,
        description="When the transaction happened (UTC)"
    )
    recurring: bool = Field(
        default=False,
        description="Subscription / repeating flag"
    )
    recurring_rate: Optional[int] = Field(
        default=None,
        ge=1,
        description="Days between occurrences, only meaningful when recurring"
    )

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str) and not isinstance(v, TransactionType):
            return v.strip().upper()
        return v

    @field_validator('created')
    @classmethod
    def normalize_created(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE


class Category(BaseModel):
    """A labeled, colored, iconified tag. Color and icon are display hints."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)


# (name, color, icon) of the categories expected at steady state
DEFAULT_CATEGORY_SPECS: tuple[tuple[str, str, str], ...] = (
    ("Food & Dining", "#FF6B6B", "🍽️"),
    ("Transportation", "#4ECDC4", "🚗"),
    ("Shopping", "#45B7D1", "🛍️"),
    ("Entertainment", "#96CEB4", "🎬"),
    ("Healthcare", "#FFEAA7", "🏥"),
    ("Utilities", "#DDA0DD", "💡"),
    ("Housing", "#98D8C8", "🏠"),
    ("Education", "#F7DC6F", "📚"),
    ("Travel", "#BB8FCE", "✈️"),
    ("Salary", "#82E0AA", "💰"),
    ("Freelance", "#F8C471", "💼"),
    ("Investment", "#85C1E9", "📈"),
)


def default_categories() -> list[Category]:
    """Fresh Category records for the default set."""
    return [
        Category(name=name, color=color, icon=icon)
        for name, color, icon in DEFAULT_CATEGORY_SPECS
    ]


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetItem(BaseModel):
    """
    One category's allowance within a Budget.

    This is a LIMIT, not a transaction. It has no identity of its own and
    lives only inside its Budget; the category is an embedded snapshot.
    """
    model_config = ConfigDict(frozen=True)

    category: Category
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Allowance for the category"
    )
    frequency: int = Field(
        ...,
        ge=1,
        description="Allowance period in days"
    )

    @property
    def category_labels(self) -> tuple[str, ...]:
        """Transactions may carry either the category id or its name."""
        return (self.category.id, self.category.name)


class Budget(BaseModel):
    """A named spending plan for a user: an ordered list of BudgetItems."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    items: list[BudgetItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)

    def touch(self) -> None:
        """Refresh updated_at; it strictly increases even within one clock tick."""
        now = utc_now()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now

    def add_item(self, category: Category, amount: Decimal, frequency: int) -> BudgetItem:
        item = BudgetItem(category=category, amount=amount, frequency=frequency)
        self.items.append(item)
        self.touch()
        return item

    def remove_item(self, category_id: str) -> int:
        """Remove every item for the category. Returns how many were removed."""
        kept = [item for item in self.items if item.category.id != category_id]
        removed = len(self.items) - len(kept)
        self.items = kept
        self.touch()
        return removed

    @property
    def total_allowance(self) -> Decimal:
        return sum((item.amount for item in self.items), ZERO)


# =============================================================================
# QUERY / IDENTITY
# =============================================================================

class TransactionQuery(BaseModel):
    """
    Filter object for retrieving transactions.

    Every storage backend honours exactly these semantics; `apply` is the
    reference implementation. All filters are ANDed, unset filters match
    everything. The time window is [created_from, created_before).
    """
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    # Free string: an unknown type matches nothing rather than failing
    type: Optional[str] = None
    categories: Optional[tuple[str, ...]] = None
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None
    amount_greater_than: Optional[Decimal] = None
    amount_at_most: Optional[Decimal] = None
    recurring: Optional[bool] = None
    newest_first: bool = False
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, TransactionType):
            return v.value
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator('created_from', 'created_before')
    @classmethod
    def normalize_window(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def matches(self, txn: Transaction) -> bool:
        if self.user_id is not None and txn.user_id != self.user_id:
            return False
        if self.type is not None and txn.type.value != self.type:
            return False
        if self.categories is not None and txn.category not in self.categories:
            return False
        if self.created_from is not None and txn.created < self.created_from:
            return False
        if self.created_before is not None and txn.created >= self.created_before:
            return False
        if self.amount_greater_than is not None and txn.amount <= self.amount_greater_than:
            return False
        if self.amount_at_most is not None and txn.amount > self.amount_at_most:
            return False
        if self.recurring is not None and txn.recurring != self.recurring:
            return False
        return True

    def apply(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """Filter, order by created, then truncate to limit."""
        matched = [txn for txn in transactions if self.matches(txn)]
        matched.sort(key=lambda t: t.created, reverse=self.newest_first)
        if self.limit is not None:
            matched = matched[:self.limit]
        return matched


class AuthenticatedIdentity(BaseModel):
    """
    Explicit identity token for identity-scoped engine calls.

    Produced by the (external) authentication layer and passed in;
    the engine never looks identity up from a session.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str
    username: Optional[str] = None


# =============================================================================
# RESULT MODELS (computed on demand, never stored)
# =============================================================================

class FinancialSummary(BaseModel):
    """Aggregate figures for one user."""

    income: Decimal
    expenses: Decimal
    net: Decimal
    projected_spending: Decimal

    def to_response(self) -> dict[str, str]:
        """Response shape expected by the HTTP layer."""
        return {
            "income": str(self.income),
            "expenses": str(self.expenses),
            "net": str(self.net),
            "projectedSpending": str(self.projected_spending),
        }


class BudgetItemPerformance(BaseModel):
    """Spending against one BudgetItem's allowance for a window."""

    category_id: str
    category_name: str
    allowance: Decimal
    frequency: int
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.allowance - self.spent

    @property
    def over_budget(self) -> bool:
        return self.spent > self.allowance


class BudgetPerformanceReport(BaseModel):
    """Per-item breakdown of a budget for [start, end)."""

    budget_id: str
    user_id: str
    start: datetime
    end: datetime
    items: list[BudgetItemPerformance] = Field(default_factory=list)
    total_spent: Decimal = ZERO
    total_allowance: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.total_allowance - self.total_spent


class UpcomingRecurring(BaseModel):
    """Next occurrence of a recurring expense."""

    transaction_id: str
    description: str
    amount: Decimal
    next_date: datetime
    interval_days: int


class MonthlyTrendPoint(BaseModel):
    """Income and expenses for one calendar month (YYYY-MM)."""

    month: str
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses
