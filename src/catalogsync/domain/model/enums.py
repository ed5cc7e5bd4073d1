"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    """Kinds of catalog entities synchronised to the remote catalog."""

    CATEGORY = "category"
    METADATA = "metadata"
    PRODUCT = "product"
    VARIANT = "variant"
    PRICE_BOOK = "price_book"
    PRICE = "price"

    @property
    def hierarchical(self) -> bool:
        """Whether entities of this type may reference a parent of the same type."""

        return self in _HIERARCHICAL

    @property
    def max_batch_size(self) -> int:
        return _MAX_BATCH_SIZES[self]


_HIERARCHICAL = frozenset({EntityType.CATEGORY, EntityType.PRICE_BOOK})

# Per-call ceilings imposed by the remote catalog API.
_MAX_BATCH_SIZES: dict[EntityType, int] = {
    EntityType.CATEGORY: 50,
    EntityType.METADATA: 50,
    EntityType.PRODUCT: 100,
    EntityType.VARIANT: 100,
    EntityType.PRICE_BOOK: 100,
    EntityType.PRICE: 100,
}


class OperationKind(StrEnum):
    CREATE = "create"
    DELETE = "delete"


class OutcomeStatus(StrEnum):
    CREATED = "created"
    DELETED = "deleted"
    EXISTING = "existing"
    FAILED = "failed"
    SKIPPED = "skipped"
