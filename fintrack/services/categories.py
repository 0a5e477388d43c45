"""
Category Catalog

Categories are simple key-value records. The catalog is expected to hold
exactly the twelve default categories at steady state; `ensure_defaults`
reseeds when the stored count drifts.
"""

from typing import Optional

import structlog

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import DEFAULT_CATEGORY_SPECS, Category, default_categories
from fintrack.services.storage import CategoryStorageInterface, NotFoundError


logger = structlog.get_logger(__name__)

EXPECTED_CATEGORY_COUNT = len(DEFAULT_CATEGORY_SPECS)


class CategoryCatalog:
    """Read access to categories plus default seeding."""

    def __init__(
        self,
        storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def get_category(self, category_id: str) -> Category:
        category = await self._storage.get_category_by_id(category_id)
        if category is None:
            if self._audit_logger:
                await self._audit_logger.log_failure(
                    AuditEventType.RECORD_NOT_FOUND,
                    error_message=f"Category not found: {category_id}",
                    entity_type="category",
                    entity_id=category_id,
                )
            raise NotFoundError("category", category_id)
        return category

    async def list_categories(self) -> list[Category]:
        return await self._storage.list_categories()

    async def ensure_defaults(self) -> bool:
        """
        Reseed the default categories if the count is off.

        Returns True if seeding happened.
        """
        current = await self._storage.count_categories()
        if current == EXPECTED_CATEGORY_COUNT:
            logger.info("categories_already_seeded", count=current)
            return False

        await self._storage.clear_categories()
        for category in default_categories():
            await self._storage.save_category(category)

        if self._audit_logger:
            await self._audit_logger.log_categories_seeded(EXPECTED_CATEGORY_COUNT, current)
        return True
