"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted document store because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for personal finances)
- No cross-document transactions (the engine never needs them)
- Limited query capabilities (we filter in Python with TransactionQuery)

Retries live here, in the store client, never in the engine.
Exhausted retries surface as StoreUnavailableError.
"""

import asyncio
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import GoogleSheetsSettings, get_settings
from fintrack.models.ledger import (
    Budget,
    BudgetItem,
    Category,
    Transaction,
    TransactionQuery,
)
from fintrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)


logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "target",
    "description",
    "amount",
    "type",
    "category",
    "created",
    "recurring",
    "recurring_rate",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "name",
    "description",
    "created_at",
    "updated_at",
    "items_json",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "color",
    "icon",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


def _row_dict(columns: list[str], row: list) -> dict[str, str]:
    """Map a raw row onto column names; short rows are padded with ''."""
    padded = list(row) + [""] * (len(columns) - len(row))
    return dict(zip(columns, padded))


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and wraps every API call in a retry policy.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
        max_attempts: int = 3,
        wait_min: float = 2,
        wait_max: float = 10,
    ):
        self._settings = settings or get_settings().google_sheets
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
            retry=retry_if_exception_type(StoreUnavailableError),
            reraise=True,
        )

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    async def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = await asyncio.to_thread(self.connect)
            self._spreadsheet = await self.call(
                client.open_by_key,
                self._settings.spreadsheet_id,
            )
        return self._spreadsheet

    async def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run one Sheets API call under the retry policy.

        gspread is blocking, so the call runs in a worker thread and the
        backoff between attempts is an asyncio sleep.
        """
        retrying = self._retrying.copy()
        return await retrying(self._guarded, fn, *args, **kwargs)

    @staticmethod
    async def _guarded(fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (StorageError, gspread.WorksheetNotFound):
            raise
        except (gspread.exceptions.GSpreadException, OSError) as e:
            raise StoreUnavailableError(f"Google Sheets call failed: {e}") from e

    async def worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = await self.get_spreadsheet()
        try:
            return await self.call(spreadsheet.worksheet, title)
        except gspread.WorksheetNotFound:
            sheet = await self.call(
                spreadsheet.add_worksheet,
                title=title,
                rows=1000,
                cols=len(columns),
            )
            await self.call(sheet.append_row, columns)
            return sheet

    async def read_rows(self, title: str, columns: list[str]) -> list[list[str]]:
        """All data rows (header excluded)."""
        sheet = await self.worksheet(title, columns)
        return (await self.call(sheet.get_all_values))[1:]

    async def append_row(self, title: str, columns: list[str], row: list) -> None:
        sheet = await self.worksheet(title, columns)
        await self.call(sheet.append_row, row, value_input_option="RAW")

    async def update_row(self, title: str, columns: list[str], row_number: int, row: list) -> None:
        sheet = await self.worksheet(title, columns)
        await self.call(sheet.update, range_name=f"A{row_number}", values=[row])

    async def delete_rows(self, title: str, columns: list[str], start: int, end: Optional[int] = None) -> None:
        sheet = await self.worksheet(title, columns)
        await self.call(sheet.delete_rows, start, end)

    async def find_row_number(self, title: str, columns: list[str], record_id: str) -> Optional[int]:
        """1-based sheet row number of the record whose first cell is record_id."""
        for row_number, row in enumerate(await self.read_rows(title, columns), start=2):
            if row and row[0] == record_id:
                return row_number
        return None


def _parse_row(entity_type: str, row: list, parse: Callable[[list], Any]) -> Any:
    """
    Build a model from a stored row.

    A row that no longer parses raises StorageError naming its id.
    """
    try:
        return parse(row)
    except (ValueError, ArithmeticError) as e:
        logger.error("malformed_row", entity_type=entity_type, row_id=row[0], error=str(e))
        raise StorageError(f"Malformed {entity_type} row {row[0]!r}: {e}") from e


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Transactions stored one per row.

    Filtering happens in Python through TransactionQuery.apply.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _sheet(self) -> str:
        return self._client.settings.transactions_sheet_name

    def _transaction_to_row(self, txn: Transaction) -> list:
        return [
            txn.id,
            txn.user_id,
            txn.target or "",
            txn.description or "",
            str(txn.amount),
            txn.type.value,
            txn.category,
            txn.created.isoformat(),
            str(txn.recurring),
            str(txn.recurring_rate) if txn.recurring_rate else "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        data = _row_dict(TRANSACTION_COLUMNS, row)
        return Transaction(
            id=data["id"],
            user_id=data["user_id"],
            target=data["target"] or None,
            description=data["description"] or None,
            amount=Decimal(data["amount"]),
            type=data["type"],
            category=data["category"],
            created=datetime.fromisoformat(data["created"]),
            recurring=data["recurring"].lower() == "true",
            recurring_rate=int(data["recurring_rate"]) if data["recurring_rate"] else None,
        )

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        await self._client.append_row(
            self._sheet, TRANSACTION_COLUMNS, self._transaction_to_row(transaction)
        )
        return transaction

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        for row in await self._client.read_rows(self._sheet, TRANSACTION_COLUMNS):
            if row and row[0] == transaction_id:
                return _parse_row("transaction", row, self._row_to_transaction)
        return None

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        row_number = await self._client.find_row_number(
            self._sheet, TRANSACTION_COLUMNS, transaction.id
        )
        if row_number is None:
            raise NotFoundError("transaction", transaction.id)
        await self._client.update_row(
            self._sheet, TRANSACTION_COLUMNS, row_number,
            self._transaction_to_row(transaction),
        )
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        row_number = await self._client.find_row_number(
            self._sheet, TRANSACTION_COLUMNS, transaction_id
        )
        if row_number is None:
            return False
        await self._client.delete_rows(self._sheet, TRANSACTION_COLUMNS, row_number)
        return True

    async def find_transactions(self, query: TransactionQuery) -> list[Transaction]:
        transactions = []
        for row in await self._client.read_rows(self._sheet, TRANSACTION_COLUMNS):
            if not row or not row[0]:  # Skip empty rows
                continue
            transactions.append(_parse_row("transaction", row, self._row_to_transaction))
        return query.apply(transactions)


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Budgets stored one per row.

    Budget items are JSON-serialized into a single column since they
    have no identity outside their budget.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _sheet(self) -> str:
        return self._client.settings.budgets_sheet_name

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            budget.id,
            budget.user_id,
            budget.name,
            budget.description or "",
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
            json.dumps([item.model_dump(mode="json") for item in budget.items]),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        data = _row_dict(BUDGET_COLUMNS, row)
        items_data = json.loads(data["items_json"]) if data["items_json"] else []
        return Budget(
            id=data["id"],
            user_id=data["user_id"],
            name=data["name"],
            description=data["description"] or None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            items=[BudgetItem.model_validate(item) for item in items_data],
        )

    async def save_budget(self, budget: Budget) -> Budget:
        await self._client.append_row(self._sheet, BUDGET_COLUMNS, self._budget_to_row(budget))
        return budget

    async def get_budget_by_id(self, budget_id: str) -> Optional[Budget]:
        for row in await self._client.read_rows(self._sheet, BUDGET_COLUMNS):
            if row and row[0] == budget_id:
                return _parse_row("budget", row, self._row_to_budget)
        return None

    async def update_budget(self, budget: Budget) -> Budget:
        row_number = await self._client.find_row_number(self._sheet, BUDGET_COLUMNS, budget.id)
        if row_number is None:
            raise NotFoundError("budget", budget.id)
        await self._client.update_row(
            self._sheet, BUDGET_COLUMNS, row_number, self._budget_to_row(budget)
        )
        return budget

    async def delete_budget(self, budget_id: str) -> bool:
        row_number = await self._client.find_row_number(self._sheet, BUDGET_COLUMNS, budget_id)
        if row_number is None:
            return False
        await self._client.delete_rows(self._sheet, BUDGET_COLUMNS, row_number)
        return True

    async def list_budgets(self, user_id: str) -> list[Budget]:
        budgets = [
            _parse_row("budget", row, self._row_to_budget)
            for row in await self._client.read_rows(self._sheet, BUDGET_COLUMNS)
            if row and len(row) > 1 and row[1] == user_id
        ]
        budgets.sort(key=lambda b: b.updated_at, reverse=True)
        return budgets


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Category catalog, one row per category."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _sheet(self) -> str:
        return self._client.settings.categories_sheet_name

    def _row_to_category(self, row: list) -> Category:
        data = _row_dict(CATEGORY_COLUMNS, row)
        return Category(
            id=data["id"],
            name=data["name"],
            color=data["color"] or None,
            icon=data["icon"] or None,
        )

    async def save_category(self, category: Category) -> Category:
        await self._client.append_row(
            self._sheet,
            CATEGORY_COLUMNS,
            [category.id, category.name, category.color or "", category.icon or ""],
        )
        return category

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        for row in await self._client.read_rows(self._sheet, CATEGORY_COLUMNS):
            if row and row[0] == category_id:
                return _parse_row("category", row, self._row_to_category)
        return None

    async def list_categories(self) -> list[Category]:
        return [
            _parse_row("category", row, self._row_to_category)
            for row in await self._client.read_rows(self._sheet, CATEGORY_COLUMNS)
            if row and row[0]
        ]

    async def count_categories(self) -> int:
        return len(await self.list_categories())

    async def clear_categories(self) -> None:
        count = len(await self._client.read_rows(self._sheet, CATEGORY_COLUMNS))
        if count:
            await self._client.delete_rows(self._sheet, CATEGORY_COLUMNS, 2, count + 1)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _sheet(self) -> str:
        return self._client.settings.audit_sheet_name

    def _row_to_event(self, row: list) -> AuditEvent:
        data = _row_dict(AUDIT_COLUMNS, row)
        return AuditEvent(
            event_id=UUID(data["event_id"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=AuditEventType(data["event_type"]),
            severity=AuditSeverity(data["severity"]),
            entity_type=data["entity_type"] or None,
            entity_id=data["entity_id"] or None,
            user_id=data["user_id"] or None,
            correlation_id=UUID(data["correlation_id"]) if data["correlation_id"] else None,
            description=data["description"],
            details=json.loads(data["details_json"]) if data["details_json"] else {},
            error_message=data["error_message"] or None,
        )

    async def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in await self._client.read_rows(self._sheet, AUDIT_COLUMNS):
            if not row or not row[0]:
                continue
            events.append(_parse_row("audit event", row, self._row_to_event))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        await self._client.append_row(self._sheet, AUDIT_COLUMNS, event.to_sheets_row())
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in await self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
