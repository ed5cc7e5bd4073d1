"""JSON file storage for the idempotency ledger, one document per tenant."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime  # noqa: TC003
from logging import getLogger
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from catalogsync.domain.errors import CorruptLedgerError, LedgerPersistenceError
from catalogsync.domain.model import EntityType
from catalogsync.domain.ports.ledger import LedgerSnapshot

log = getLogger(__name__)

LEDGER_VERSION = 1


class LedgerDocument(BaseModel):
    """Persisted layout; bump ``version`` and add a migration when it changes."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    version: Literal[1] = LEDGER_VERSION
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    entities: dict[EntityType, list[str]] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> LedgerDocument:
        return cls(
            last_updated=snapshot.last_updated,
            entities={
                entity_type: sorted(keys) for entity_type, keys in snapshot.entries.items() if keys
            },
        )

    def to_snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            entries={entity_type: list(keys) for entity_type, keys in self.entities.items()},
            last_updated=self.last_updated,
        )


class JsonLedgerStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> LedgerSnapshot | None:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CorruptLedgerError(f"Cannot read ledger {self.path}: {exc}") from exc

        try:
            document = LedgerDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise CorruptLedgerError(f"Invalid ledger document {self.path}: {exc}") from exc
        return document.to_snapshot()

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Write to a temporary sibling, fsync, then atomically replace the target."""

        payload = LedgerDocument.from_snapshot(snapshot).model_dump_json(by_alias=True, indent=2)
        temp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self.path)
        except OSError as exc:
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            raise LedgerPersistenceError(f"Cannot write ledger {self.path}: {exc}") from exc
        log.debug("Ledger written to %s", self.path)

    def clear(self) -> None:
        """Remove the persisted document entirely."""

        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise LedgerPersistenceError(f"Cannot remove ledger {self.path}: {exc}") from exc
