"""Ingest, delete and reconcile phases, one instance per entity type."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from catalogsync.domain.batching import create_operation, delete_operation
from catalogsync.domain.convergence import ConvergenceTarget
from catalogsync.domain.errors import RemoteServiceError, RetryExhaustedError
from catalogsync.domain.model import Entity, OperationKind, OperationOutcome, OutcomeStatus
from catalogsync.domain.ordering import sort_by_dependency
from catalogsync.domain.remote import key_sampler, query_present

from .orchestrator import PhaseReport, PhaseStatus, SyncPhase

if TYPE_CHECKING:
    from catalogsync.domain.convergence import ConvergenceResult, Expectation
    from catalogsync.domain.model import DesiredCatalog, EntityType, NaturalKey
    from catalogsync.domain.reconciliation import ReconciliationReport

    from .context import SyncContext

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PhaseSpec:
    """How one entity type takes part in a run.

    ``foundational`` phases abort the run when they fail. ``verify`` polls
    the remote side after the write; ``require_convergence`` turns a poll
    timeout from a warning into a phase failure.
    """

    entity_type: EntityType
    foundational: bool = False
    verify: bool = True
    require_convergence: bool = False


class _TypedPhase(SyncPhase):
    verb: str = ""

    def __init__(self, spec: PhaseSpec) -> None:
        self.spec = spec
        self.entity_type = spec.entity_type
        self.foundational = spec.foundational
        self.name = f"{self.verb} {spec.entity_type}"

    async def _verify(
        self,
        keys: list[NaturalKey],
        expect: Expectation,
        report: PhaseReport,
        context: SyncContext,
    ) -> ConvergenceResult | None:
        if not keys or not self.spec.verify or context.options.skip_validation:
            return None

        target = ConvergenceTarget.for_keys(
            keys,
            key_sampler(context.catalog, self.entity_type),
            expect=expect,
            label=str(self.entity_type),
        )
        result = await context.poller.wait_for(target, cancel=context.cancel)
        report.convergence = result
        if not result.converged:
            report.warnings.append(result.describe())
            if self.spec.require_convergence:
                report.status = PhaseStatus.FAILED
        return result


class IngestPhase(_TypedPhase):
    """Create desired entities not yet recorded in the ledger."""

    verb = "ingest"

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> PhaseReport:
        entity_type = self.entity_type
        entities = desired.entities_for(entity_type)
        if not entities:
            log.info("No %s in the desired catalog", entity_type)
            return PhaseReport(
                name=self.name,
                entity_type=entity_type,
                status=PhaseStatus.SKIPPED,
                warnings=["nothing to ingest"],
            )

        skip_keys: frozenset[NaturalKey] = frozenset()
        if not context.options.force_full_scan:
            skip_keys = context.ledger.keys(entity_type)
        ordered = sort_by_dependency(entities) if entity_type.hierarchical else list(entities)
        outcome = await context.executor.execute(
            ordered,
            create_operation(context.catalog, entity_type),
            context.batch_size_for(entity_type),
            kind=OperationKind.CREATE,
            skip_keys=skip_keys,
            sequential=entity_type.hierarchical,
            label=str(entity_type),
        )
        report = PhaseReport(
            name=self.name,
            entity_type=entity_type,
            status=PhaseStatus.COMPLETED if outcome.success else PhaseStatus.FAILED,
            outcome=outcome,
        )
        if context.options.dry_run:
            return report

        context.ledger.add_all(entity_type, outcome.keys(OutcomeStatus.CREATED))
        await self._recheck_ambiguous(outcome, report, context)
        context.ledger.save()

        report.status = PhaseStatus.COMPLETED if outcome.success else PhaseStatus.FAILED
        await self._verify(outcome.keys(OutcomeStatus.CREATED), "present", report, context)
        return report

    async def _recheck_ambiguous(
        self,
        outcome: OperationOutcome,
        report: PhaseReport,
        context: SyncContext,
    ) -> None:
        """Confirm keys of batches the remote side only partially reported on."""

        ambiguous = [
            item.key for item in outcome.failed if item.error is not None and item.error.batch_level
        ]
        if not ambiguous:
            return

        try:
            present = await query_present(context.catalog, self.entity_type, ambiguous)
        except (RemoteServiceError, RetryExhaustedError, httpx.HTTPError) as exc:
            report.warnings.append(f"could not re-check {len(ambiguous)} {self.entity_type}: {exc}")
            return

        if present:
            log.info(
                "%s of %s ambiguous %s found remotely", len(present), len(ambiguous), self.entity_type
            )
            outcome.reclassify(present, OutcomeStatus.CREATED)
            context.ledger.add_all(self.entity_type, present)


class DeletePhase(_TypedPhase):
    """Delete desired and recorded entities, then make sure nothing is left."""

    verb = "delete"

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> PhaseReport:
        entity_type = self.entity_type
        targets = self._targets(desired, context)
        if not targets:
            log.info("No %s to delete", entity_type)
            return PhaseReport(
                name=self.name,
                entity_type=entity_type,
                status=PhaseStatus.SKIPPED,
                warnings=["nothing to delete"],
            )

        outcome = await context.executor.execute(
            targets,
            delete_operation(context.catalog, entity_type),
            context.batch_size_for(entity_type),
            kind=OperationKind.DELETE,
            sequential=entity_type.hierarchical,
            label=str(entity_type),
        )
        report = PhaseReport(
            name=self.name,
            entity_type=entity_type,
            status=PhaseStatus.COMPLETED if outcome.success else PhaseStatus.FAILED,
            outcome=outcome,
        )
        if context.options.dry_run:
            return report

        deleted = outcome.keys(OutcomeStatus.DELETED)
        context.ledger.remove_all(entity_type, deleted)
        context.ledger.save()

        await self._verify(deleted, "absent", report, context)
        if not context.options.skip_validation:
            target_keys = [entity.natural_key for entity in targets]
            result = await context.reconciler.reconcile(
                entity_type,
                target_keys,
                batch_size=context.batch_size_for(entity_type),
                cancel=context.cancel,
            )
            report.reconciliation = result
            self._settle(outcome, result, target_keys, report, context)
        return report

    def _settle(
        self,
        outcome: OperationOutcome,
        result: ReconciliationReport,
        target_keys: list[NaturalKey],
        report: PhaseReport,
        context: SyncContext,
    ) -> None:
        """Fold the reconciler's cleanup back into the ledger and the phase verdict."""

        entity_type = self.entity_type
        removed = set(result.deletions.keys(OutcomeStatus.DELETED))
        if result.clean:
            # A clean report confirms every target absent remotely.
            recovered = [item.key for item in outcome.failed]
            if recovered:
                log.info(
                    "%s failed %s deletes confirmed absent after reconciliation",
                    len(recovered),
                    entity_type,
                )
                outcome.reclassify(recovered, OutcomeStatus.DELETED)
                report.warnings.append(
                    f"{len(recovered)} {entity_type} removed during reconciliation"
                )
            removed.update(target_keys)
            report.status = PhaseStatus.COMPLETED if outcome.success else PhaseStatus.FAILED

        recorded = removed & context.ledger.keys(entity_type)
        if recorded:
            context.ledger.remove_all(entity_type, recorded)
            context.ledger.save()

    def _targets(self, desired: DesiredCatalog, context: SyncContext) -> list[Entity]:
        entity_type = self.entity_type
        # Children go first when removing a hierarchy.
        ordered = list(reversed(sort_by_dependency(desired.entities_for(entity_type))))
        known = {entity.natural_key for entity in ordered}
        recorded = sorted(context.ledger.keys(entity_type) - known)
        return [
            *(Entity(entity_type=entity_type, natural_key=entity.natural_key) for entity in ordered),
            *(Entity(entity_type=entity_type, natural_key=key) for key in recorded),
        ]


class ReconcilePhase(_TypedPhase):
    """Remove ledger entries and remote leftovers that are no longer desired."""

    verb = "reconcile"

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> PhaseReport:
        entity_type = self.entity_type
        desired_keys = desired.keys_for(entity_type)
        stale = context.ledger.keys(entity_type) - desired_keys
        report = PhaseReport(name=self.name, entity_type=entity_type, status=PhaseStatus.COMPLETED)
        if context.options.dry_run:
            if stale:
                report.warnings.append(f"[dry run] {len(stale)} stale {entity_type} not removed")
            return report

        result = await context.reconciler.reconcile(
            entity_type,
            stale,
            keep_keys=desired_keys,
            batch_size=context.batch_size_for(entity_type),
            cancel=context.cancel,
        )
        report.reconciliation = result
        report.outcome = result.deletions
        if result.clean and stale:
            context.ledger.remove_all(entity_type, stale)
            context.ledger.save()
        return report
