"""Wire a sync context around in-memory collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field

from catalogsync.domain.batching import BatchExecutor
from catalogsync.domain.convergence import ConvergencePoller, PollConfig
from catalogsync.domain.ledger import Ledger
from catalogsync.domain.reconciliation import Reconciler
from catalogsync.domain.retry import RetryConfig
from catalogsync.domain.sync_pipeline import SyncContext, SyncOptions
from tests.support.catalog import FakeCatalog
from tests.support.clock import FakeClock
from tests.support.ledger import InMemoryLedgerStore


@dataclass(slots=True)
class SyncHarness:
    catalog: FakeCatalog = field(default_factory=FakeCatalog)
    store: InMemoryLedgerStore = field(default_factory=InMemoryLedgerStore)
    clock: FakeClock = field(default_factory=FakeClock)
    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_retries=2, initial_delay=0.1, jitter_factor=0.0)
    )
    poll: PollConfig = field(default_factory=lambda: PollConfig(interval=1.0, max_attempts=3))

    def context(self, options: SyncOptions | None = None) -> SyncContext:
        effective = options or SyncOptions()
        executor = BatchExecutor(
            retry=self.retry, sleep=self.clock.sleep, dry_run=effective.dry_run
        )
        poller = ConvergencePoller(self.poll, sleep=self.clock.sleep, clock=self.clock)
        return SyncContext(
            catalog=self.catalog,
            ledger=Ledger(self.store),
            executor=executor,
            poller=poller,
            reconciler=Reconciler(self.catalog, executor, poller),
            options=effective,
        )

    def recorded(self) -> dict[str, list[str]]:
        if self.store.snapshot is None:
            return {}
        return {str(key): keys for key, keys in self.store.snapshot.entries.items()}
