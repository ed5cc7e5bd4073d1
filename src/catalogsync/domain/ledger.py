"""Idempotency ledger: which natural keys have been confirmed-synchronised.

The ledger is the single source of truth for idempotency. A key is added only
once a create has been confirmed, either by a batch response or by a
convergence poll. It is owned by the orchestrator, loaded fully before a run
and saved after each completed phase.
"""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from catalogsync.domain.errors import CorruptLedgerError
from catalogsync.domain.model import EntityType
from catalogsync.domain.ports.ledger import LedgerSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from catalogsync.domain.model import NaturalKey
    from catalogsync.domain.ports.ledger import LedgerStore

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Ledger:
    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._entries: dict[EntityType, set[NaturalKey]] = {
            entity_type: set() for entity_type in EntityType
        }
        self.last_updated: datetime | None = None
        self.loaded = False

    def load(self) -> Ledger:
        """Replace the in-memory index with the persisted document.

        A corrupt document is treated as empty so the run can proceed; every
        entity will then be re-submitted, which the remote side tolerates.
        """

        self._reset()
        try:
            snapshot = self._store.load()
        except CorruptLedgerError as exc:
            log.warning("Ledger document is corrupt, starting from an empty ledger: %s", exc)
            snapshot = None

        if snapshot is None:
            log.debug("No existing ledger found (first run)")
        else:
            for entity_type, keys in snapshot.entries.items():
                self._entries[entity_type].update(keys)
            self.last_updated = snapshot.last_updated
            log.debug("Loaded ledger: %s", self._describe())

        self.loaded = True
        return self

    def save(self) -> None:
        """Persist the whole ledger; ``LedgerPersistenceError`` propagates to the caller."""

        self.last_updated = self._clock()
        self._store.save(self.snapshot())
        log.debug("Saved ledger: %s", self._describe())

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            entries={
                entity_type: sorted(keys)
                for entity_type, keys in self._entries.items()
                if keys
            },
            last_updated=self.last_updated,
        )

    def has(self, entity_type: EntityType, key: NaturalKey) -> bool:
        return key in self._entries[entity_type]

    def add(self, entity_type: EntityType, key: NaturalKey) -> None:
        self._entries[entity_type].add(key)

    def add_all(self, entity_type: EntityType, keys: Iterable[NaturalKey]) -> None:
        self._entries[entity_type].update(keys)

    def remove(self, entity_type: EntityType, key: NaturalKey) -> None:
        self._entries[entity_type].discard(key)

    def remove_all(self, entity_type: EntityType, keys: Iterable[NaturalKey]) -> None:
        self._entries[entity_type].difference_update(keys)

    def clear(self, entity_type: EntityType | None = None) -> None:
        if entity_type is None:
            for keys in self._entries.values():
                keys.clear()
            self.last_updated = None
            return
        self._entries[entity_type].clear()

    def keys(self, entity_type: EntityType) -> frozenset[NaturalKey]:
        """Read-only view handed to collaborators that must not write."""

        return frozenset(self._entries[entity_type])

    def count(self, entity_type: EntityType | None = None) -> int:
        if entity_type is None:
            return sum(len(keys) for keys in self._entries.values())
        return len(self._entries[entity_type])

    def _reset(self) -> None:
        for keys in self._entries.values():
            keys.clear()
        self.last_updated = None

    def _describe(self) -> str:
        parts = [
            f"{len(keys)} {entity_type}" for entity_type, keys in self._entries.items() if keys
        ]
        return ", ".join(parts) or "empty"
