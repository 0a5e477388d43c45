"""
Tests for the Google Sheets backend.

No network: the spreadsheet is an in-memory fake with the slice of the
gspread Worksheet API the client uses, or a MagicMock for failures.
"""

import asyncio
import time
from decimal import Decimal
from unittest.mock import MagicMock

import gspread
import pytest

from fintrack.analytics import AggregationEngine
from fintrack.config import GoogleSheetsSettings
from fintrack.models.audit import AuditEventBuilder, AuditEventType
from fintrack.models.ledger import Budget, Category, TransactionQuery
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)
from fintrack.services.storage.google_sheets import TRANSACTION_COLUMNS

from conftest import JULY_1, JUNE_1


class FakeWorksheet:
    def __init__(self):
        self.rows: list[list[str]] = []

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name, values):
        row_number = int(range_name[1:])
        self.rows[row_number - 1] = [str(v) for v in values[0]]

    def delete_rows(self, start_index, end_index=None):
        end_index = end_index or start_index
        del self.rows[start_index - 1:end_index]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet()
        return self.sheets[title]


@pytest.fixture
def sheets_settings():
    return GoogleSheetsSettings(
        credentials_path="credentials.json",
        spreadsheet_id="spreadsheet-id",
    )


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def client(sheets_settings, spreadsheet):
    return GoogleSheetsClient(settings=sheets_settings, spreadsheet=spreadsheet)


class TestLedgerSheet:

    @pytest.mark.asyncio
    async def test_creates_sheet_with_header(self, client, spreadsheet, make_txn):
        storage = GoogleSheetsLedgerStorage(client)
        await storage.save_transaction(make_txn("10"))

        rows = spreadsheet.sheets["Transactions"].rows
        assert rows[0] == TRANSACTION_COLUMNS
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_find_applies_the_query(self, client, make_txn):
        storage = GoogleSheetsLedgerStorage(client)
        subscription = make_txn("9.99", recurring=True, recurring_rate=30, created=JUNE_1)
        await storage.save_transaction(subscription)
        await storage.save_transaction(make_txn("20", created=JULY_1))
        await storage.save_transaction(make_txn("30", user_id="user-2"))

        found = await storage.find_transactions(TransactionQuery(
            user_id="user-1", created_from=JUNE_1, created_before=JULY_1,
        ))
        assert found == [subscription]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, make_txn):
        storage = GoogleSheetsLedgerStorage(client)
        txn = make_txn("10")
        await storage.save_transaction(txn)

        replaced = txn.model_copy(update={"amount": Decimal("11")})
        await storage.update_transaction(replaced)
        assert (await storage.get_transaction_by_id(txn.id)).amount == Decimal("11")

        assert await storage.delete_transaction(txn.id) is True
        assert await storage.get_transaction_by_id(txn.id) is None
        assert await storage.delete_transaction(txn.id) is False

    @pytest.mark.asyncio
    async def test_update_missing_row_raises(self, client, make_txn):
        storage = GoogleSheetsLedgerStorage(client)
        with pytest.raises(NotFoundError):
            await storage.update_transaction(make_txn("10"))

    @pytest.mark.asyncio
    async def test_malformed_row_raises(self, client, spreadsheet, make_txn):
        storage = GoogleSheetsLedgerStorage(client)
        await storage.save_transaction(make_txn("10"))
        spreadsheet.sheets["Transactions"].rows.append(
            ["bad-1", "user-1", "", "", "not a number", "EXPENSE", "Food", "2024-06-15T00:00:00+00:00", "False", ""]
        )

        with pytest.raises(StorageError, match="bad-1") as exc_info:
            await storage.find_transactions(TransactionQuery())
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_non_positive_amount_row_raises(self, client, spreadsheet):
        storage = GoogleSheetsLedgerStorage(client)
        await storage.find_transactions(TransactionQuery())
        spreadsheet.sheets["Transactions"].rows.append(
            ["bad-2", "user-1", "", "", "0", "EXPENSE", "Food", "2024-06-15T00:00:00+00:00", "False", ""]
        )

        with pytest.raises(StorageError, match="bad-2"):
            await storage.get_transaction_by_id("bad-2")

    @pytest.mark.asyncio
    async def test_corrupt_amount_fails_the_total(self, client, spreadsheet, make_txn, budget_store):
        storage = GoogleSheetsLedgerStorage(client)
        await storage.save_transaction(make_txn("20.00"))
        await storage.save_transaction(make_txn("30.00"))
        spreadsheet.sheets["Transactions"].rows[2][4] = "30,00"

        engine = AggregationEngine(storage, budget_store)
        with pytest.raises(StorageError):
            await engine.total_expenses("user-1")


class TestBudgetSheet:

    @pytest.mark.asyncio
    async def test_items_survive_storage(self, client):
        storage = GoogleSheetsBudgetStorage(client)
        budget = Budget(user_id="user-1", name="Monthly")
        budget.add_item(Category(id="cat-food", name="Food", icon="🍽️"), Decimal("200.00"), 30)
        await storage.save_budget(budget)

        stored = await storage.get_budget_by_id(budget.id)
        assert stored.items == budget.items
        assert stored.updated_at == budget.updated_at

    @pytest.mark.asyncio
    async def test_update_and_list(self, client):
        storage = GoogleSheetsBudgetStorage(client)
        budget = await storage.save_budget(Budget(user_id="user-1", name="Monthly"))
        budget.name = "Renamed"
        budget.touch()
        await storage.update_budget(budget)

        budgets = await storage.list_budgets("user-1")
        assert [b.name for b in budgets] == ["Renamed"]
        assert await storage.list_budgets("user-2") == []

    @pytest.mark.asyncio
    async def test_update_missing_budget_raises(self, client):
        storage = GoogleSheetsBudgetStorage(client)
        with pytest.raises(NotFoundError):
            await storage.update_budget(Budget(user_id="user-1", name="Ghost"))


class TestCategorySheet:

    @pytest.mark.asyncio
    async def test_clear_keeps_header(self, client, spreadsheet):
        storage = GoogleSheetsCategoryStorage(client)
        await storage.save_category(Category(name="Food"))
        await storage.save_category(Category(name="Rent"))
        assert await storage.count_categories() == 2

        await storage.clear_categories()
        assert await storage.count_categories() == 0
        assert len(spreadsheet.sheets["Categories"].rows) == 1


class TestAuditSheet:

    @pytest.mark.asyncio
    async def test_events_read_back_by_entity(self, client):
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_ITEM_ADDED,
            budget_id="b-1",
            user_id="user-1",
            details={"category_id": "cat-food"},
        )
        await storage.append_event(event)

        events = await storage.get_events_by_entity("budget", "b-1")
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == {"category_id": "cat-food"}


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_api_failure_becomes_store_unavailable(self, sheets_settings):
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = gspread.exceptions.GSpreadException("quota exceeded")
        client = GoogleSheetsClient(
            settings=sheets_settings,
            spreadsheet=spreadsheet,
            max_attempts=1,
            wait_min=0,
            wait_max=0,
        )

        with pytest.raises(StoreUnavailableError):
            await client.read_rows("Transactions", TRANSACTION_COLUMNS)

    @pytest.mark.asyncio
    async def test_failures_are_retried_by_the_client(self, sheets_settings):
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = OSError("connection reset")
        client = GoogleSheetsClient(
            settings=sheets_settings,
            spreadsheet=spreadsheet,
            max_attempts=3,
            wait_min=0,
            wait_max=0,
        )

        with pytest.raises(StoreUnavailableError):
            await client.read_rows("Transactions", TRANSACTION_COLUMNS)
        assert spreadsheet.worksheet.call_count == 3

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, sheets_settings):
        sheet = FakeWorksheet()
        sheet.rows = [list(TRANSACTION_COLUMNS)]
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = [OSError("connection reset"), sheet]
        client = GoogleSheetsClient(
            settings=sheets_settings,
            spreadsheet=spreadsheet,
            wait_min=0,
            wait_max=0,
        )

        assert await client.read_rows("Transactions", TRANSACTION_COLUMNS) == []

    @pytest.mark.asyncio
    async def test_storage_surfaces_store_unavailable(self, sheets_settings):
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = OSError("connection reset")
        client = GoogleSheetsClient(
            settings=sheets_settings,
            spreadsheet=spreadsheet,
            max_attempts=1,
            wait_min=0,
            wait_max=0,
        )

        with pytest.raises(StoreUnavailableError):
            await GoogleSheetsLedgerStorage(client).find_transactions(TransactionQuery())

    @pytest.mark.asyncio
    async def test_retry_backoff_does_not_block_the_event_loop(self, sheets_settings):
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = OSError("connection reset")
        client = GoogleSheetsClient(
            settings=sheets_settings,
            spreadsheet=spreadsheet,
            max_attempts=3,
            wait_min=0.3,
            wait_max=0.3,
        )
        gaps = []

        async def heartbeat():
            last = time.monotonic()
            while True:
                await asyncio.sleep(0.02)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        ticker = asyncio.create_task(heartbeat())
        try:
            with pytest.raises(StoreUnavailableError):
                await GoogleSheetsLedgerStorage(client).find_transactions(TransactionQuery())
        finally:
            ticker.cancel()

        assert spreadsheet.worksheet.call_count == 3
        assert len(gaps) > 10
        assert max(gaps) < 0.2
