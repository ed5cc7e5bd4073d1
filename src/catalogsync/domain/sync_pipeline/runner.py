"""Entry points for running the default ingest and delete pipelines."""

from __future__ import annotations

from typing import TYPE_CHECKING

from catalogsync.domain.model import EntityType, OperationKind

from .orchestrator import SyncPipeline
from .phases import DeletePhase, IngestPhase, PhaseSpec, ReconcilePhase

if TYPE_CHECKING:
    from catalogsync.domain.model import DesiredCatalog

    from .context import SyncContext
    from .orchestrator import RunSummary

INGEST_ORDER: tuple[EntityType, ...] = (
    EntityType.CATEGORY,
    EntityType.METADATA,
    EntityType.PRODUCT,
    EntityType.VARIANT,
    EntityType.PRICE_BOOK,
    EntityType.PRICE,
)

_FOUNDATIONAL = frozenset(
    {EntityType.CATEGORY, EntityType.METADATA, EntityType.PRODUCT, EntityType.PRICE_BOOK}
)


def default_phase_specs() -> tuple[PhaseSpec, ...]:
    """Phase specs in ingest order; only products must converge for a run to pass."""

    return tuple(
        PhaseSpec(
            entity_type=entity_type,
            foundational=entity_type in _FOUNDATIONAL,
            require_convergence=entity_type is EntityType.PRODUCT,
        )
        for entity_type in INGEST_ORDER
    )


def build_ingest_pipeline(
    specs: tuple[PhaseSpec, ...] | None = None, *, reconcile: bool = False
) -> SyncPipeline:
    specs = specs or default_phase_specs()
    pipeline = SyncPipeline(kind=OperationKind.CREATE).extend(IngestPhase(spec) for spec in specs)
    if reconcile:
        # Dependents first, as for deletes.
        pipeline = pipeline.extend(ReconcilePhase(spec) for spec in reversed(specs))
    return pipeline


def build_delete_pipeline(specs: tuple[PhaseSpec, ...] | None = None) -> SyncPipeline:
    specs = specs or default_phase_specs()
    # Deletes never abort: every type still gets its chance to be cleaned up.
    return SyncPipeline(kind=OperationKind.DELETE).extend(
        DeletePhase(PhaseSpec(entity_type=spec.entity_type, verify=spec.verify))
        for spec in reversed(specs)
    )


async def run_ingest(desired: DesiredCatalog, *, context: SyncContext) -> RunSummary:
    """Run the default ingest pipeline for ``desired`` and return the summary."""

    pipeline = build_ingest_pipeline(reconcile=context.options.reconcile)
    return await pipeline.run(desired, context=context)


async def run_delete(desired: DesiredCatalog, *, context: SyncContext) -> RunSummary:
    """Remove ``desired`` and everything the ledger recorded, in reverse dependency order."""

    return await build_delete_pipeline().run(desired, context=context)
