"""
Transaction Service

CRUD plumbing around the ledger store. Transactions are validated before
they are stored, replaced wholesale on update and deleted by id.
"""

from collections.abc import Mapping
from typing import Any, Optional, Union
from uuid import UUID

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import Transaction, TransactionQuery
from fintrack.services.storage import LedgerStorageInterface, NotFoundError
from fintrack.validation import RecordValidationError, RecordValidator


class TransactionService:
    """Create, read, replace and delete transactions."""

    def __init__(
        self,
        ledger: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._validator = validator or RecordValidator()

    async def _validate(
        self,
        payload: Union[Mapping[str, Any], Transaction],
        transaction_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Transaction:
        try:
            return self._validator.validate_transaction(payload, transaction_id=transaction_id)
        except RecordValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.VALIDATION_FAILED,
                    error_message=str(e),
                    entity_type="transaction",
                    entity_id=transaction_id,
                    correlation_id=correlation_id,
                    details={"issues": [i.model_dump() for i in e.issues]},
                )
            raise

    async def _not_found(self, transaction_id: str, correlation_id: Optional[UUID]) -> NotFoundError:
        error = NotFoundError("transaction", transaction_id)
        if self._audit_logger:
            await self._audit_logger.log_failure(
                AuditEventType.RECORD_NOT_FOUND,
                error_message=str(error),
                entity_type="transaction",
                entity_id=transaction_id,
                correlation_id=correlation_id,
            )
        return error

    async def create_transaction(
        self,
        payload: Union[Mapping[str, Any], Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        transaction = await self._validate(payload, None, correlation_id)
        saved = await self._ledger.save_transaction(transaction)

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                AuditEventType.TRANSACTION_CREATED,
                transaction_id=saved.id,
                user_id=saved.user_id,
                correlation_id=correlation_id,
                details={"amount": str(saved.amount), "type": saved.type.value},
            )
        return saved

    async def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self._ledger.get_transaction_by_id(transaction_id)
        if transaction is None:
            raise await self._not_found(transaction_id, None)
        return transaction

    async def update_transaction(
        self,
        transaction_id: str,
        payload: Union[Mapping[str, Any], Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Full replace by id; the stored id always wins over the payload's."""
        if await self._ledger.get_transaction_by_id(transaction_id) is None:
            raise await self._not_found(transaction_id, correlation_id)

        transaction = await self._validate(payload, transaction_id, correlation_id)
        saved = await self._ledger.update_transaction(transaction)

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                AuditEventType.TRANSACTION_UPDATED,
                transaction_id=saved.id,
                user_id=saved.user_id,
                correlation_id=correlation_id,
            )
        return saved

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        existing = await self._ledger.get_transaction_by_id(transaction_id)
        if existing is None or not await self._ledger.delete_transaction(transaction_id):
            raise await self._not_found(transaction_id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                AuditEventType.TRANSACTION_DELETED,
                transaction_id=transaction_id,
                user_id=existing.user_id,
                correlation_id=correlation_id,
            )

    async def list_transactions(self, query: Optional[TransactionQuery] = None) -> list[Transaction]:
        return await self._ledger.find_transactions(query or TransactionQuery())

    async def list_for_user(self, user_id: str) -> list[Transaction]:
        """A user's transactions, latest first."""
        return await self._ledger.find_transactions(
            TransactionQuery(user_id=user_id, newest_first=True)
        )

    async def list_recurring(self, user_id: str) -> list[Transaction]:
        return await self._ledger.find_transactions(
            TransactionQuery(user_id=user_id, recurring=True)
        )
