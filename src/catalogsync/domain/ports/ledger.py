"""Persistence port for the idempotency ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from catalogsync.domain.model import EntityType, NaturalKey


@dataclass(slots=True, kw_only=True)
class LedgerSnapshot:
    """Whole-document view of the ledger as handed to and from storage."""

    entries: dict[EntityType, list[NaturalKey]] = field(
        default_factory=dict["EntityType", list["NaturalKey"]]
    )
    last_updated: datetime | None = None


class LedgerStore(Protocol):
    """Loads and atomically replaces the persisted ledger document."""

    def load(self) -> LedgerSnapshot | None:
        """Return the stored snapshot, ``None`` when nothing was persisted yet.

        Raises ``CorruptLedgerError`` when a document exists but cannot be parsed.
        """
        ...

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Replace the stored document; raises ``LedgerPersistenceError`` on failure."""
        ...


__all__ = ["LedgerSnapshot", "LedgerStore"]
