"""Tests for the AggregationEngine."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fintrack.analytics import AggregationEngine
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import Budget, TransactionType
from fintrack.services.storage import InMemoryLedgerStorage, NotFoundError
from fintrack.validation import RecordValidationError

from conftest import JULY_1, JUNE_1, JUNE_15


async def _budget_for(budget_store, *categories, user_id="user-1"):
    budget = Budget(user_id=user_id, name="Monthly")
    for category in categories:
        budget.add_item(category, Decimal("100.00"), 30)
    return await budget_store.save_budget(budget)


class TestTotals:

    @pytest.mark.asyncio
    async def test_empty_ledger_sums_to_zero(self, aggregation):
        """Every total over an empty set is the zero decimal, never None."""
        assert await aggregation.total_by_type(TransactionType.INCOME) == Decimal("0")
        assert await aggregation.total_income("user-1") == Decimal("0")
        assert await aggregation.total_expenses("user-1") == Decimal("0")
        assert await aggregation.net_amount("user-1") == Decimal("0")
        assert await aggregation.total_for_period("user-1", JUNE_1, JULY_1) == Decimal("0")
        assert await aggregation.total_by_category_for_period("user-1", "Food", JUNE_1, JULY_1) == Decimal("0")

    @pytest.mark.asyncio
    async def test_total_by_type_spans_users(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("100", type="INCOME", user_id="user-1"))
        await ledger.save_transaction(make_txn("50", type="INCOME", user_id="user-2"))
        await ledger.save_transaction(make_txn("30"))

        assert await aggregation.total_by_type(TransactionType.INCOME) == Decimal("150")
        assert await aggregation.total_by_type_for_user("user-2", "INCOME") == Decimal("50")

    @pytest.mark.asyncio
    async def test_unknown_type_and_category_sum_to_zero(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("30"))

        assert await aggregation.total_by_type("TRANSFER") == Decimal("0")
        assert await aggregation.total_by_category_for_period(
            "user-1", "No Such Category", JUNE_1, JULY_1
        ) == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [None, "", "   "])
    async def test_missing_type_is_rejected(self, ledger, aggregation, make_txn, kind):
        await ledger.save_transaction(make_txn("100", type="INCOME"))
        await ledger.save_transaction(make_txn("30"))

        with pytest.raises(RecordValidationError):
            await aggregation.total_by_type(kind)
        with pytest.raises(RecordValidationError):
            await aggregation.total_by_type_for_user("user-1", kind)

    @pytest.mark.asyncio
    async def test_net_is_income_minus_expenses(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("5000.00", type="INCOME", category="Salary"))
        await ledger.save_transaction(make_txn("1200.50", category="Rent"))
        await ledger.save_transaction(make_txn("799.25"))

        income = await aggregation.total_income("user-1")
        expenses = await aggregation.total_expenses("user-1")
        assert await aggregation.net_amount("user-1") == income - expenses
        assert income - expenses == Decimal("3000.25")

    @pytest.mark.asyncio
    async def test_totals_are_order_independent(self, budget_store, make_txn):
        amounts = ["0.10", "0.20", "0.30", "1000000.01", "3.33"]
        forward = [make_txn(a) for a in amounts]

        totals = []
        for txns in (forward, list(reversed(forward))):
            engine = AggregationEngine(InMemoryLedgerStorage(txns), budget_store)
            totals.append(await engine.total_expenses("user-1"))

        assert totals[0] == totals[1] == Decimal("1000003.94")

    @pytest.mark.asyncio
    async def test_total_for_period_counts_expenses_in_half_open_window(
        self, ledger, aggregation, make_txn,
    ):
        await ledger.save_transaction(make_txn("10", created=JUNE_1))       # on start: in
        await ledger.save_transaction(make_txn("20", created=JUNE_15))      # in
        await ledger.save_transaction(make_txn("40", created=JULY_1))       # on end: out
        await ledger.save_transaction(make_txn("80", type="INCOME"))        # income: out

        assert await aggregation.total_for_period("user-1", JUNE_1, JULY_1) == Decimal("30")

    @pytest.mark.asyncio
    async def test_reversed_window_is_empty(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("10"))
        assert await aggregation.total_for_period("user-1", JULY_1, JUNE_1) == Decimal("0")

    @pytest.mark.asyncio
    async def test_total_by_category_includes_any_type(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("20"))
        await ledger.save_transaction(make_txn("5", type="INCOME"))
        await ledger.save_transaction(make_txn("99", category="Rent"))

        total = await aggregation.total_by_category_for_period("user-1", "Food", JUNE_1, JULY_1)
        assert total == Decimal("25")

    @pytest.mark.asyncio
    async def test_totals_are_audited(self, ledger, aggregation, audit_storage, make_txn):
        await ledger.save_transaction(make_txn("30"))
        await aggregation.total_expenses("user-1")

        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.AGGREGATE_COMPUTED
        assert events[0].details["kind"] == "EXPENSE"
        assert events[0].details["result"] == "30"


class TestBudgetPerformance:

    @pytest.mark.asyncio
    async def test_counts_only_expenses_in_category_and_window(
        self, ledger, budget_store, aggregation, make_txn, food,
    ):
        """EXPENSE 20 + EXPENSE 30 count, INCOME 10 in the same category does not."""
        budget = await _budget_for(budget_store, food)
        await ledger.save_transaction(make_txn("20.00"))
        await ledger.save_transaction(make_txn("30.00"))
        await ledger.save_transaction(make_txn("10.00", type="INCOME"))
        # Outside the window, another category, another user
        await ledger.save_transaction(make_txn("500.00", created=JULY_1))
        await ledger.save_transaction(make_txn("500.00", category="Rent"))
        await ledger.save_transaction(make_txn("500.00", user_id="user-2"))

        total = await aggregation.budget_performance(budget.id, JUNE_1, JULY_1)
        assert total == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_category_id_label_also_matches(
        self, ledger, budget_store, aggregation, make_txn, food,
    ):
        budget = await _budget_for(budget_store, food)
        await ledger.save_transaction(make_txn("12.00", category="cat-food"))
        await ledger.save_transaction(make_txn("8.00", category="Food"))

        assert await aggregation.budget_performance(budget.id, JUNE_1, JULY_1) == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_report_breaks_down_per_item(
        self, ledger, budget_store, aggregation, make_txn, food, rent,
    ):
        budget = await _budget_for(budget_store, food, rent)
        await ledger.save_transaction(make_txn("150.00"))
        await ledger.save_transaction(make_txn("40.00", category="Rent"))

        report = await aggregation.budget_performance_report(budget.id, JUNE_1, JULY_1)

        by_name = {row.category_name: row for row in report.items}
        assert by_name["Food"].spent == Decimal("150.00")
        assert by_name["Food"].over_budget is True
        assert by_name["Rent"].remaining == Decimal("60.00")
        assert report.total_spent == Decimal("190.00")
        assert report.total_allowance == Decimal("200.00")
        assert report.remaining == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_duplicate_items_are_summed_independently(
        self, ledger, budget_store, aggregation, make_txn, food,
    ):
        budget = await _budget_for(budget_store, food, food)
        await ledger.save_transaction(make_txn("25.00"))

        assert await aggregation.budget_performance(budget.id, JUNE_1, JULY_1) == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_budget_without_items_is_zero(self, budget_store, aggregation):
        budget = await _budget_for(budget_store)
        assert await aggregation.budget_performance(budget.id, JUNE_1, JULY_1) == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_budget_raises_not_found(self, aggregation, audit_storage):
        with pytest.raises(NotFoundError) as exc_info:
            await aggregation.budget_performance("missing", JUNE_1, JULY_1)

        assert exc_info.value.entity_type == "budget"
        assert str(exc_info.value) == "Budget not found: missing"

        events = await audit_storage.get_events_by_entity("budget", "missing")
        assert [e.event_type for e in events] == [AuditEventType.RECORD_NOT_FOUND]


class TestBreakdowns:

    @pytest.mark.asyncio
    async def test_spending_by_category_largest_first(self, ledger, aggregation, make_txn):
        await ledger.save_transaction(make_txn("10"))
        await ledger.save_transaction(make_txn("15"))
        await ledger.save_transaction(make_txn("100", category="Rent"))
        await ledger.save_transaction(make_txn("999", type="INCOME", category="Salary"))

        breakdown = await aggregation.spending_by_category("user-1")
        assert list(breakdown.items()) == [
            ("Rent", Decimal("100")),
            ("Food", Decimal("25")),
        ]

    @pytest.mark.asyncio
    async def test_monthly_trend_oldest_first(self, ledger, aggregation, make_txn):
        may = datetime(2024, 5, 20, tzinfo=timezone.utc)
        await ledger.save_transaction(make_txn("100", type="INCOME", created=JUNE_15))
        await ledger.save_transaction(make_txn("30", created=JUNE_15 + timedelta(days=3)))
        await ledger.save_transaction(make_txn("50", created=may))

        trend = await aggregation.monthly_trend("user-1")
        assert [p.month for p in trend] == ["2024-05", "2024-06"]
        assert trend[0].expenses == Decimal("50")
        assert trend[1].income == Decimal("100")
        assert trend[1].net == Decimal("70")
