"""
Record Validation

Boundary payloads (plain dicts from the HTTP layer) are turned into
models here. Validation happens in two stages:

STAGE 1 - BUSINESS RULES:
- Amount present and greater than zero
- Type is INCOME or EXPENSE
- Category / user / name present
These produce the messages users actually see.

STAGE 2 - SCHEMA:
- Pydantic model construction (types, lengths, formats)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the caller gets a RecordValidationError.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from fintrack.models.ledger import Budget, Transaction, TransactionType


# camelCase keys used by the web client
PAYLOAD_ALIASES = {
    "transactionId": "id",
    "userId": "user_id",
    "isRecurring": "recurring",
    "recurringRate": "recurring_rate",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        description="'error' blocks the record, 'warning' is informational"
    )


class RecordValidationError(ValueError):
    """Malformed input. Reported to the caller, never retried."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    @classmethod
    def single(cls, field: str, issue_type: str, message: str) -> "RecordValidationError":
        return cls([ValidationIssue(field=field, issue_type=issue_type, message=message)])


def _normalize_keys(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {PAYLOAD_ALIASES.get(key, key): value for key, value in payload.items()}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _issues_from_pydantic(exc: PydanticValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in error["loc"]) or "record",
            issue_type=error["type"],
            message=error["msg"],
        )
        for error in exc.errors()
    ]


class RecordValidator:
    """
    Validates and builds ledger records.

    Stateless; safe to share between requests.
    """

    def _check_amount(self, amount: Any, field: str = "amount") -> list[ValidationIssue]:
        if amount is None:
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount must be greater than zero",
            )]
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            return [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"Amount is not a number: {amount!r}",
            )]
        if not value.is_finite() or value <= 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            )]
        return []

    def validate_transaction(
        self,
        payload: Union[Mapping[str, Any], Transaction],
        transaction_id: Optional[str] = None,
    ) -> Transaction:
        """
        Build a Transaction from a payload.

        Args:
            payload: Dict from the boundary, or an already-built Transaction
            transaction_id: Force this id (used for replace-by-id updates)

        Raises:
            RecordValidationError: With every issue found
        """
        if isinstance(payload, Transaction):
            data = payload.model_dump()
        else:
            data = _normalize_keys(payload)
        if transaction_id is not None:
            data["id"] = transaction_id

        # Stage 1: business rules
        issues = self._check_amount(data.get("amount"))

        kind = data.get("type")
        kind_value = kind.value if isinstance(kind, TransactionType) else str(kind or "").strip().upper()
        if kind_value not in {t.value for t in TransactionType}:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be either 'INCOME' or 'EXPENSE'",
            ))

        if _blank(data.get("category")):
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
            ))

        if _blank(data.get("user_id")):
            issues.append(ValidationIssue(
                field="user_id",
                issue_type="missing",
                message="User ID is required",
            ))

        if issues:
            raise RecordValidationError(issues)

        # Stage 2: schema
        try:
            return Transaction.model_validate(data)
        except PydanticValidationError as e:
            raise RecordValidationError(_issues_from_pydantic(e)) from e

    def validate_budget(
        self,
        payload: Union[Mapping[str, Any], Budget],
        budget_id: Optional[str] = None,
    ) -> Budget:
        """Build a Budget from a payload. userId and name are required."""
        if isinstance(payload, Budget):
            data = payload.model_dump()
        else:
            data = _normalize_keys(payload)
        if budget_id is not None:
            data["id"] = budget_id

        issues = []
        if _blank(data.get("user_id")):
            issues.append(ValidationIssue(
                field="user_id",
                issue_type="missing",
                message="User ID is required",
            ))
        if _blank(data.get("name")):
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Budget name is required",
            ))
        if issues:
            raise RecordValidationError(issues)

        try:
            return Budget.model_validate(data)
        except PydanticValidationError as e:
            raise RecordValidationError(_issues_from_pydantic(e)) from e

    def validate_budget_item(self, amount: Any, frequency: Any) -> tuple[Decimal, int]:
        """Allowance must be >= 0 and frequency a positive number of days."""
        issues = []
        try:
            allowance = Decimal(str(amount))
            if not allowance.is_finite() or allowance < 0:
                raise ValueError(amount)
        except (InvalidOperation, ValueError):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Allowance must be zero or greater",
            ))
        try:
            if isinstance(frequency, bool):
                raise ValueError(frequency)
            days = int(str(frequency).strip())
            if days < 1:
                raise ValueError(frequency)
        except ValueError:
            issues.append(ValidationIssue(
                field="frequency",
                issue_type="invalid_value",
                message="Frequency must be a positive number of days",
            ))
        if issues:
            raise RecordValidationError(issues)
        return allowance, days

    def validate_type_filter(self, kind: Any) -> Any:
        """A type filter must name a type; an unknown name is still allowed."""
        if kind is None or (isinstance(kind, str) and not kind.strip()):
            raise RecordValidationError.single(
                "type",
                "required",
                "Transaction type is required",
            )
        return kind

    def validate_horizon(self, months_ahead: Any) -> int:
        """Projection horizons are non-negative integers."""
        if isinstance(months_ahead, bool) or not isinstance(months_ahead, int) or months_ahead < 0:
            raise RecordValidationError.single(
                "months_ahead",
                "invalid_value",
                "Projection horizon must be a non-negative whole number",
            )
        return months_ahead
