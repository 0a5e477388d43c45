"""Tests for RecordValidator."""

from decimal import Decimal

import pytest

from fintrack.models.ledger import Budget, TransactionType
from fintrack.validation import RecordValidationError, RecordValidator, ValidationIssue


@pytest.fixture
def validator():
    return RecordValidator()


class TestTransactionValidation:

    def test_valid_payload(self, validator):
        txn = validator.validate_transaction({
            "userId": "user-1",
            "amount": 12,
            "type": "INCOME",
            "category": "Salary",
        })
        assert txn.type == TransactionType.INCOME
        assert txn.amount == Decimal("12")

    def test_forced_id_wins(self, validator):
        txn = validator.validate_transaction(
            {"id": "from-payload", "userId": "u", "amount": "1", "type": "EXPENSE", "category": "Food"},
            transaction_id="from-path",
        )
        assert txn.id == "from-path"

    def test_schema_errors_are_wrapped(self, validator):
        """Business rules pass but the schema does not (negative recurring rate)."""
        with pytest.raises(RecordValidationError) as exc_info:
            validator.validate_transaction({
                "userId": "u",
                "amount": "1",
                "type": "EXPENSE",
                "category": "Food",
                "recurringRate": 0,
            })
        assert exc_info.value.issues[0].field == "recurring_rate"

    def test_non_finite_amount_is_rejected(self, validator):
        with pytest.raises(RecordValidationError, match="Amount must be greater than zero"):
            validator.validate_transaction({
                "userId": "u", "amount": "NaN", "type": "EXPENSE", "category": "Food",
            })

    def test_error_is_a_value_error(self, validator):
        with pytest.raises(ValueError):
            validator.validate_transaction({})


class TestBudgetValidation:

    def test_existing_budget_passes_through(self, validator):
        budget = Budget(user_id="user-1", name="Monthly")
        assert validator.validate_budget(budget, budget_id="b-1").id == "b-1"

    def test_budget_item_accepts_numeric_strings(self, validator):
        assert validator.validate_budget_item("0", "30") == (Decimal("0"), 30)

    @pytest.mark.parametrize("frequency", [0, -7, True, "weekly", 1.5, None])
    def test_budget_item_rejects_bad_frequency(self, validator, frequency):
        with pytest.raises(RecordValidationError) as exc_info:
            validator.validate_budget_item("10", frequency)
        assert exc_info.value.issues[0].field == "frequency"

    def test_budget_item_rejects_negative_allowance(self, validator):
        with pytest.raises(RecordValidationError) as exc_info:
            validator.validate_budget_item("-0.01", 30)
        assert exc_info.value.issues[0].field == "amount"


class TestHorizonValidation:

    def test_non_negative_ints_pass(self, validator):
        assert validator.validate_horizon(0) == 0
        assert validator.validate_horizon(12) == 12

    @pytest.mark.parametrize("months", [-1, 1.0, "3", False])
    def test_other_values_fail(self, validator, months):
        with pytest.raises(RecordValidationError):
            validator.validate_horizon(months)


class TestTypeFilterValidation:

    def test_named_types_pass(self, validator):
        assert validator.validate_type_filter(TransactionType.INCOME) == TransactionType.INCOME
        assert validator.validate_type_filter("TRANSFER") == "TRANSFER"

    def test_missing_type_fails(self, validator):
        with pytest.raises(RecordValidationError) as exc_info:
            validator.validate_type_filter(None)
        assert exc_info.value.issues[0].field == "type"


class TestValidationError:

    def test_single_issue_helper(self):
        error = RecordValidationError.single("name", "missing", "Budget name is required")
        assert str(error) == "Budget name is required"
        assert error.issues == [
            ValidationIssue(field="name", issue_type="missing", message="Budget name is required")
        ]
        assert error.issues[0].severity == "error"
