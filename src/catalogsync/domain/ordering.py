"""Dependency ordering for hierarchical entity types.

Parents must be submitted before their children (category trees, price-book
hierarchies). Entities whose parent cannot be resolved are kept and placed
with the roots: attempting an ingest that may fail remotely is preferable to
silently dropping data.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from catalogsync.domain.model import Entity, NaturalKey

log = getLogger(__name__)


def dependency_levels(entities: Sequence[Entity]) -> dict[NaturalKey, int]:
    """Return the depth of every entity in its parent forest.

    Roots are level 0. A parent missing from ``entities`` and a parent that
    would close a cycle are both treated as "no parent" for the offending node.
    """

    by_key: dict[NaturalKey, Entity] = {}
    for entity in entities:
        by_key.setdefault(entity.natural_key, entity)

    levels: dict[NaturalKey, int] = {}

    for start in by_key:
        # Climb towards the root until a known level or a stopping node, then
        # assign levels back down the collected path.
        path: list[NaturalKey] = []
        on_path: set[NaturalKey] = set()
        key = start
        while key not in levels:
            entity = by_key[key]
            parent = entity.parent_key
            path.append(key)
            on_path.add(key)
            if parent is None:
                levels[key] = 0
            elif parent not in by_key:
                log.warning(
                    "Parent %r of %s %r not found in input; treating as root",
                    parent,
                    entity.entity_type,
                    key,
                )
                levels[key] = 0
            elif parent in on_path:
                log.warning(
                    "Cycle detected at %s %r (parent %r); treating as root",
                    entity.entity_type,
                    key,
                    parent,
                )
                levels[key] = 0
            else:
                key = parent

        if path and path[-1] == key:
            path.pop()
        level = levels[key]
        for child in reversed(path):
            level += 1
            levels[child] = level
    return levels


def sort_by_dependency(entities: Sequence[Entity]) -> list[Entity]:
    """Stable-sort ``entities`` so every parent precedes its children."""

    if not entities:
        return []
    levels = dependency_levels(entities)
    # sorted() is stable, so ties keep their input order.
    return sorted(entities, key=lambda entity: levels[entity.natural_key])
