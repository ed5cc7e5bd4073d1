"""Port describing the remote, eventually consistent catalog service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from catalogsync.domain.model import Entity, EntityType, NaturalKey


@dataclass(frozen=True, slots=True)
class Rejection:
    key: NaturalKey
    error: str


@dataclass(frozen=True, slots=True)
class CreateResponse:
    """Result of a create call.

    ``rejected`` is ``None`` when the API does not report per-item results.
    """

    accepted_count: int
    rejected: tuple[Rejection, ...] | None = None


@dataclass(frozen=True, slots=True)
class DeleteResponse:
    accepted_count: int


@dataclass(frozen=True, slots=True)
class QueryResponse:
    found: tuple[NaturalKey, ...] = ()


@dataclass(frozen=True, slots=True)
class ScanResponse:
    items: tuple[NaturalKey, ...] = ()
    total_count: int = 0


@runtime_checkable
class CatalogService(Protocol):
    """Shape every remote catalog implementation must honour.

    Writes are accepted asynchronously; reads reflect them only after an
    indexing delay. Callers must respect ``EntityType.max_batch_size``.
    """

    async def create(
        self, entity_type: EntityType, batch: Sequence[Entity]
    ) -> CreateResponse: ...

    async def delete(
        self, entity_type: EntityType, keys: Sequence[NaturalKey]
    ) -> DeleteResponse: ...

    async def query_by_keys(
        self, entity_type: EntityType, keys: Sequence[NaturalKey]
    ) -> QueryResponse: ...

    async def scan(
        self,
        entity_type: EntityType,
        *,
        pattern: str | None = None,
        limit: int = 500,
        offset: int = 0,
    ) -> ScanResponse: ...


__all__ = [
    "CatalogService",
    "CreateResponse",
    "DeleteResponse",
    "QueryResponse",
    "Rejection",
    "ScanResponse",
]
