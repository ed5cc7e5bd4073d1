"""Shared collaborators and switches handed to every sync phase."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping

    from catalogsync.domain.batching import BatchExecutor
    from catalogsync.domain.convergence import ConvergencePoller
    from catalogsync.domain.ledger import Ledger
    from catalogsync.domain.model import EntityType
    from catalogsync.domain.ports.catalog import CatalogService
    from catalogsync.domain.reconciliation import Reconciler


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Run switches exposed on the command line.

    ``force_full_scan`` ignores the ledger when deciding what to submit.
    ``reconcile`` adds an orphan cleanup pass after ingest; delete runs
    always reconcile unless ``skip_validation`` is set.
    """

    dry_run: bool = False
    skip_types: frozenset[EntityType] = frozenset()
    skip_validation: bool = False
    force_full_scan: bool = False
    reconcile: bool = False
    reingest_after_delete: bool = False


@dataclass(slots=True)
class SyncContext:
    """Everything a phase needs; the ledger is only written by phases run by the pipeline."""

    catalog: CatalogService
    ledger: Ledger
    executor: BatchExecutor
    poller: ConvergencePoller
    reconciler: Reconciler
    options: SyncOptions = field(default_factory=SyncOptions)
    batch_sizes: Mapping[EntityType, int] = field(default_factory=dict["EntityType", int])
    cancel: asyncio.Event | None = None

    def batch_size_for(self, entity_type: EntityType) -> int:
        return self.batch_sizes.get(entity_type, entity_type.max_batch_size)

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()
