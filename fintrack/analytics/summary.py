"""
Summary Composer

Combines aggregation and projection into one FinancialSummary:

    income              total INCOME for the user
    expenses            total EXPENSE for the user
    net                 income - expenses
    projected_spending  project_balance(user, net, horizon)

Identity is passed in explicitly as an AuthenticatedIdentity. The
composer never looks a user up from a session.
"""

from typing import Optional
from uuid import UUID

from fintrack.analytics.aggregation import AggregationEngine
from fintrack.analytics.projection import ProjectionEngine
from fintrack.audit import AuditLogger, create_correlation_id
from fintrack.config import ProjectionSettings
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import AuthenticatedIdentity, FinancialSummary


class UnauthorizedError(Exception):
    """No resolvable user identity for an identity-scoped query."""
    pass


class SummaryComposer:
    """Builds the per-user financial summary."""

    def __init__(
        self,
        aggregation: AggregationEngine,
        projection: ProjectionEngine,
        settings: Optional[ProjectionSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._aggregation = aggregation
        self._projection = projection
        self._settings = settings or projection.settings
        self._audit_logger = audit_logger

    @property
    def horizon(self) -> int:
        return self._settings.summary_horizon_periods

    async def summarize(
        self,
        identity: Optional[AuthenticatedIdentity],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSummary:
        """
        Compute income, expenses, net and projected spending.

        Raises:
            UnauthorizedError: If identity is missing or has a blank user id
        """
        correlation_id = correlation_id or create_correlation_id()

        if identity is None or not identity.user_id:
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.UNAUTHORIZED_ACCESS,
                    error_message="Not authenticated",
                    entity_type="summary",
                    correlation_id=correlation_id,
                )
            raise UnauthorizedError("Not authenticated")

        user_id = identity.user_id
        income = await self._aggregation.total_income(user_id, correlation_id)
        expenses = await self._aggregation.total_expenses(user_id, correlation_id)
        net = income - expenses
        projected = await self._projection.project_balance(
            user_id, net, self.horizon, correlation_id,
        )

        summary = FinancialSummary(
            income=income,
            expenses=expenses,
            net=net,
            projected_spending=projected,
        )

        if self._audit_logger:
            await self._audit_logger.log_computed(
                AuditEventType.SUMMARY_COMPUTED,
                operation="summarize",
                user_id=user_id,
                result=str(net),
                correlation_id=correlation_id,
                details=summary.to_response(),
            )
        return summary
