from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from catalogsync.domain.model import EntityType, OperationKind, OutcomeStatus
from catalogsync.domain.ports.ledger import LedgerSnapshot
from catalogsync.domain.sync_pipeline import (
    INGEST_ORDER,
    DeletePhase,
    IngestPhase,
    PhaseReport,
    PhaseSpec,
    PhaseStatus,
    ReconcilePhase,
    SyncOptions,
    SyncPipeline,
    build_delete_pipeline,
    build_ingest_pipeline,
    default_phase_specs,
)
from tests.support.catalog import FakeCatalog
from tests.support.entities import make_catalog, products
from tests.support.ledger import InMemoryLedgerStore
from tests.support.sync import SyncHarness

if TYPE_CHECKING:
    from catalogsync.domain.model import DesiredCatalog
    from catalogsync.domain.sync_pipeline import SyncContext


@dataclass
class ScriptedPhase:
    name: str
    entity_type: EntityType
    status: PhaseStatus
    foundational: bool = False
    runs: list[str] = field(default_factory=list[str])

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> PhaseReport:
        del desired, context
        self.runs.append(self.name)
        return PhaseReport(name=self.name, entity_type=self.entity_type, status=self.status)


def _loaded_context(harness: SyncHarness, options: SyncOptions | None = None) -> SyncContext:
    context = harness.context(options)
    context.ledger.load()
    return context


def test_default_specs_follow_ingest_order() -> None:
    specs = default_phase_specs()

    assert tuple(spec.entity_type for spec in specs) == INGEST_ORDER
    foundational = {spec.entity_type for spec in specs if spec.foundational}
    assert foundational == {
        EntityType.CATEGORY,
        EntityType.METADATA,
        EntityType.PRODUCT,
        EntityType.PRICE_BOOK,
    }
    assert [spec.entity_type for spec in specs if spec.require_convergence] == [EntityType.PRODUCT]


def test_pipelines_are_assembled_in_declared_order() -> None:
    ingest = build_ingest_pipeline(reconcile=True)
    delete = build_delete_pipeline()

    names = [phase.name for phase in ingest.phases]
    assert ingest.kind is OperationKind.CREATE
    assert names[:2] == ["ingest category", "ingest metadata"]
    assert names[6:8] == ["reconcile price", "reconcile price_book"]
    assert delete.kind is OperationKind.DELETE
    assert [phase.entity_type for phase in delete.phases] == list(reversed(INGEST_ORDER))
    assert not any(phase.foundational for phase in delete.phases)


def test_pipeline_aborts_only_after_foundational_failure() -> None:
    first = ScriptedPhase("first", EntityType.VARIANT, PhaseStatus.FAILED)
    second = ScriptedPhase("second", EntityType.PRODUCT, PhaseStatus.FAILED, foundational=True)
    third = ScriptedPhase("third", EntityType.PRICE, PhaseStatus.COMPLETED)
    pipeline = SyncPipeline().with_phase(first).with_phase(second).with_phase(third)

    summary = asyncio.run(pipeline.run(make_catalog(), context=SyncHarness().context()))

    assert first.runs == ["first"]
    assert second.runs == ["second"]
    assert third.runs == []
    assert summary.aborted_by == "second"
    assert summary.phases[-1].status is PhaseStatus.ABORTED
    assert summary.phases[-1].warnings == ["not run: second failed"]


def test_ingest_phase_without_entities_is_skipped() -> None:
    harness = SyncHarness()
    phase = IngestPhase(PhaseSpec(EntityType.METADATA))

    report = asyncio.run(phase.run(make_catalog(), context=_loaded_context(harness)))

    assert report.status is PhaseStatus.SKIPPED
    assert harness.store.saves == 0


def test_unverified_phase_does_not_poll() -> None:
    harness = SyncHarness(catalog=FakeCatalog(auto_index=False))
    phase = IngestPhase(PhaseSpec(EntityType.PRODUCT, verify=False))

    report = asyncio.run(phase.run(make_catalog(*products(2)), context=_loaded_context(harness)))

    assert report.status is PhaseStatus.COMPLETED
    assert report.convergence is None
    assert harness.clock.sleeps == []


def test_timeout_is_only_a_warning_without_require_convergence() -> None:
    harness = SyncHarness(catalog=FakeCatalog(auto_index=False))
    phase = IngestPhase(PhaseSpec(EntityType.PRODUCT))

    report = asyncio.run(phase.run(make_catalog(*products(1)), context=_loaded_context(harness)))

    assert report.status is PhaseStatus.COMPLETED
    assert report.convergence is not None
    assert not report.convergence.converged
    assert len(report.warnings) == 1


def test_delete_phase_dry_run_keeps_ledger() -> None:
    store = InMemoryLedgerStore(
        snapshot=LedgerSnapshot(entries={EntityType.PRODUCT: ["STR-0000"]})
    )
    harness = SyncHarness(store=store)
    context = _loaded_context(harness, SyncOptions(dry_run=True))

    phase = DeletePhase(PhaseSpec(EntityType.PRODUCT))

    report = asyncio.run(phase.run(make_catalog(), context=context))

    assert report.outcome is not None
    assert report.outcome.keys(OutcomeStatus.SKIPPED) == ["STR-0000"]
    assert context.ledger.has(EntityType.PRODUCT, "STR-0000")
    assert harness.catalog.calls == []
    assert store.saves == 0


def test_reconcile_phase_dry_run_only_warns() -> None:
    store = InMemoryLedgerStore(
        snapshot=LedgerSnapshot(entries={EntityType.PRODUCT: ["STR-0000", "STR-0001"]})
    )
    harness = SyncHarness(store=store)
    context = _loaded_context(harness, SyncOptions(dry_run=True))
    phase = ReconcilePhase(PhaseSpec(EntityType.PRODUCT))

    report = asyncio.run(phase.run(make_catalog(*products(1)), context=context))

    assert report.warnings == ["[dry run] 1 stale product not removed"]
    assert report.reconciliation is None
    assert harness.catalog.calls == []


def test_unclean_reconcile_keeps_stale_ledger_entries() -> None:
    catalog = FakeCatalog(undeletable={"STR-0001"})
    catalog.seed(EntityType.PRODUCT, ["STR-0001"])
    store = InMemoryLedgerStore(
        snapshot=LedgerSnapshot(entries={EntityType.PRODUCT: ["STR-0000", "STR-0001"]})
    )
    harness = SyncHarness(catalog=catalog, store=store)
    context = _loaded_context(harness)

    phase = ReconcilePhase(PhaseSpec(EntityType.PRODUCT))

    report = asyncio.run(phase.run(make_catalog(*products(1)), context=context))

    assert report.reconciliation is not None
    assert not report.clean
    assert context.ledger.has(EntityType.PRODUCT, "STR-0001")
    assert store.saves == 0
