"""
Budget Service

Budgets are created with no items; items are added and removed one at a
time. BudgetItems have no lifecycle of their own: every change goes
through the owning Budget, which refreshes its updated_at.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import Budget
from fintrack.services.categories import CategoryCatalog
from fintrack.services.storage import BudgetStorageInterface, NotFoundError
from fintrack.validation import RecordValidationError, RecordValidator


class BudgetService:
    """Create, read, replace and delete budgets, and edit their items."""

    def __init__(
        self,
        budgets: BudgetStorageInterface,
        categories: CategoryCatalog,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._budgets = budgets
        self._categories = categories
        self._audit_logger = audit_logger
        self._validator = validator or RecordValidator()

    async def _audit(
        self,
        event_type: AuditEventType,
        budget: Budget,
        correlation_id: Optional[UUID],
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_budget_changed(
                event_type,
                budget_id=budget.id,
                user_id=budget.user_id,
                correlation_id=correlation_id,
                details=details,
            )

    async def _validate(
        self,
        payload: Union[Mapping[str, Any], Budget],
        budget_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Budget:
        try:
            return self._validator.validate_budget(payload, budget_id=budget_id)
        except RecordValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.VALIDATION_FAILED,
                    error_message=str(e),
                    entity_type="budget",
                    entity_id=budget_id,
                    correlation_id=correlation_id,
                )
            raise

    async def get_budget(self, budget_id: str, correlation_id: Optional[UUID] = None) -> Budget:
        budget = await self._budgets.get_budget_by_id(budget_id)
        if budget is None:
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.RECORD_NOT_FOUND,
                    error_message=f"Budget not found: {budget_id}",
                    entity_type="budget",
                    entity_id=budget_id,
                    correlation_id=correlation_id,
                )
            raise NotFoundError("budget", budget_id)
        return budget

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return await self._budgets.list_budgets(user_id)

    async def create_budget(
        self,
        payload: Union[Mapping[str, Any], Budget],
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        budget = await self._validate(payload, None, correlation_id)
        saved = await self._budgets.save_budget(budget)
        await self._audit(AuditEventType.BUDGET_CREATED, saved, correlation_id)
        return saved

    async def update_budget(
        self,
        budget_id: str,
        payload: Union[Mapping[str, Any], Budget],
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """Replace the whole budget; the path id wins over any id in the payload."""
        existing = await self.get_budget(budget_id, correlation_id)
        budget = await self._validate(payload, budget_id, correlation_id)
        budget.created_at = existing.created_at
        budget.updated_at = existing.updated_at
        budget.touch()
        saved = await self._budgets.update_budget(budget)
        await self._audit(AuditEventType.BUDGET_UPDATED, saved, correlation_id)
        return saved

    async def delete_budget(self, budget_id: str, correlation_id: Optional[UUID] = None) -> None:
        budget = await self.get_budget(budget_id, correlation_id)
        await self._budgets.delete_budget(budget_id)
        await self._audit(AuditEventType.BUDGET_DELETED, budget, correlation_id)

    async def add_budget_item(
        self,
        budget_id: str,
        category_id: str,
        amount: Union[Decimal, str, int],
        frequency_days: int,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Append an allowance for a category.

        Raises:
            NotFoundError: If the budget or the category does not exist
            RecordValidationError: If amount or frequency is invalid
        """
        budget = await self.get_budget(budget_id, correlation_id)
        category = await self._categories.get_category(category_id)
        allowance, days = self._validator.validate_budget_item(amount, frequency_days)

        budget.add_item(category, allowance, days)
        saved = await self._budgets.update_budget(budget)
        await self._audit(
            AuditEventType.BUDGET_ITEM_ADDED,
            saved,
            correlation_id,
            details={
                "category_id": category.id,
                "amount": str(allowance),
                "frequency": days,
            },
        )
        return saved

    async def remove_budget_item(
        self,
        budget_id: str,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """Remove every allowance for a category. Unknown categories are a no-op."""
        budget = await self.get_budget(budget_id, correlation_id)
        removed = budget.remove_item(category_id)
        saved = await self._budgets.update_budget(budget)
        await self._audit(
            AuditEventType.BUDGET_ITEM_REMOVED,
            saved,
            correlation_id,
            details={"category_id": category_id, "removed": removed},
        )
        return saved
