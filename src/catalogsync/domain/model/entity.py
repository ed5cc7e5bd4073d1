"""Catalog entities and the desired catalog they belong to."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .enums import EntityType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

type NaturalKey = str


def _empty_payload() -> Mapping[str, object]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True, kw_only=True)
class Entity:
    """One locally declared entity.

    ``natural_key`` is the stable external identifier (SKU, category slug,
    price-book id). ``parent_key`` points at another entity of the same type
    and is only set for hierarchical types.
    """

    entity_type: EntityType
    natural_key: NaturalKey
    parent_key: NaturalKey | None = None
    payload: Mapping[str, object] = field(default_factory=_empty_payload, compare=False)

    def __post_init__(self) -> None:
        if not self.natural_key or not self.natural_key.strip():
            raise ValueError(f"{self.entity_type} entity requires a natural key")
        if self.parent_key is not None and not self.entity_type.hierarchical:
            raise ValueError(
                f"{self.entity_type} entities are not hierarchical "
                f"(got parent {self.parent_key!r} for {self.natural_key!r})"
            )


@dataclass(slots=True)
class DesiredCatalog:
    """Locally declared desired state, grouped by entity type in input order."""

    _entities: dict[EntityType, list[Entity]] = field(
        default_factory=dict[EntityType, list[Entity]], repr=False
    )
    _keys: dict[EntityType, set[NaturalKey]] = field(
        default_factory=dict[EntityType, set[NaturalKey]], repr=False
    )

    @classmethod
    def from_entities(cls, entities: Iterable[Entity]) -> DesiredCatalog:
        catalog = cls()
        for entity in entities:
            catalog.add(entity)
        return catalog

    def add(self, entity: Entity) -> None:
        keys = self._keys.setdefault(entity.entity_type, set())
        if entity.natural_key in keys:
            raise ValueError(
                f"Duplicate {entity.entity_type} natural key: {entity.natural_key!r}"
            )
        keys.add(entity.natural_key)
        self._entities.setdefault(entity.entity_type, []).append(entity)

    def entities_for(self, entity_type: EntityType) -> tuple[Entity, ...]:
        return tuple(self._entities.get(entity_type, ()))

    def keys_for(self, entity_type: EntityType) -> frozenset[NaturalKey]:
        return frozenset(self._keys.get(entity_type, ()))

    def count(self, entity_type: EntityType | None = None) -> int:
        if entity_type is None:
            return sum(len(items) for items in self._entities.values())
        return len(self._entities.get(entity_type, ()))

    def __iter__(self) -> Iterator[Entity]:
        for entity_type in EntityType:
            yield from self._entities.get(entity_type, ())

    def __len__(self) -> int:
        return self.count()
