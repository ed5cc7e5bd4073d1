"""Phase-based orchestrator for catalog synchronisation runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from catalogsync.domain.errors import PhaseAbortedError, SyncFailedError
from catalogsync.domain.model import OperationKind, OutcomeStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from catalogsync.domain.convergence import ConvergenceResult
    from catalogsync.domain.model import DesiredCatalog, EntityType, OperationOutcome
    from catalogsync.domain.reconciliation import ReconciliationReport

    from .context import SyncContext

log = getLogger(__name__)

FAILURE_PREVIEW_LIMIT = 10


class PhaseStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"
    SKIPPED = "skipped"


@dataclass(slots=True, kw_only=True)
class PhaseReport:
    name: str
    entity_type: EntityType
    status: PhaseStatus
    outcome: OperationOutcome | None = None
    convergence: ConvergenceResult | None = None
    reconciliation: ReconciliationReport | None = None
    warnings: list[str] = field(default_factory=list[str])

    @property
    def counts(self) -> dict[OutcomeStatus, int]:
        if self.outcome is None:
            return dict.fromkeys(OutcomeStatus, 0)
        return self.outcome.counts()

    @property
    def clean(self) -> bool:
        return self.reconciliation is None or self.reconciliation.clean


@dataclass(slots=True)
class RunSummary:
    """Ordered phase reports of one run plus the overall verdict."""

    kind: OperationKind
    dry_run: bool = False
    phases: list[PhaseReport] = field(default_factory=list[PhaseReport])
    aborted_by: str | None = None

    @property
    def success(self) -> bool:
        return (
            self.aborted_by is None
            and all(phase.status is not PhaseStatus.FAILED for phase in self.phases)
            and all(phase.clean for phase in self.phases)
        )

    def totals(self) -> dict[OutcomeStatus, int]:
        totals = dict.fromkeys(OutcomeStatus, 0)
        for phase in self.phases:
            for status, count in phase.counts.items():
                totals[status] += count
        return totals

    def issues(self) -> list[str]:
        """Everything an operator has to look at, in phase order."""

        issues: list[str] = []
        for phase in self.phases:
            if phase.status is PhaseStatus.FAILED:
                failed = phase.counts[OutcomeStatus.FAILED]
                issues.append(f"{phase.name} failed ({failed} items)")
            if phase.reconciliation is not None and not phase.reconciliation.clean:
                issues.extend(f"{phase.name}: {issue}" for issue in phase.reconciliation.issues)
        if self.aborted_by is not None:
            issues.append(f"Run aborted after {self.aborted_by}")
        return issues

    def raise_for_status(self) -> None:
        if self.aborted_by is not None:
            raise PhaseAbortedError(self.aborted_by, "; ".join(self.issues()))
        if not self.success:
            raise SyncFailedError(self.issues())

    def phase(self, entity_type: EntityType) -> PhaseReport | None:
        for report in self.phases:
            if report.entity_type == entity_type:
                return report
        return None


class SyncPhase(Protocol):
    """Contract implemented by each synchronisation phase."""

    name: str
    entity_type: EntityType
    foundational: bool

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> PhaseReport: ...


@dataclass(slots=True)
class SyncPipeline:
    """Run phases in their declared order.

    Runtime conditions never reorder phases. A failed foundational phase
    aborts everything after it, since dependent phases would only cascade
    into failures of their own.
    """

    kind: OperationKind = OperationKind.CREATE
    phases: Sequence[SyncPhase] = field(default_factory=tuple)

    def with_phase(self, phase: SyncPhase) -> SyncPipeline:
        return SyncPipeline(kind=self.kind, phases=(*self.phases, phase))

    def extend(self, phases: Iterable[SyncPhase]) -> SyncPipeline:
        return SyncPipeline(kind=self.kind, phases=(*self.phases, *tuple(phases)))

    async def run(self, desired: DesiredCatalog, *, context: SyncContext) -> RunSummary:
        options = context.options
        summary = RunSummary(kind=self.kind, dry_run=options.dry_run)
        if not context.ledger.loaded:
            context.ledger.load()

        for phase in self.phases:
            if summary.aborted_by is not None:
                summary.phases.append(
                    PhaseReport(
                        name=phase.name,
                        entity_type=phase.entity_type,
                        status=PhaseStatus.ABORTED,
                        warnings=[f"not run: {summary.aborted_by} failed"],
                    )
                )
                continue

            if phase.entity_type in options.skip_types:
                log.info("Skipping %s (requested)", phase.name)
                summary.phases.append(
                    PhaseReport(
                        name=phase.name,
                        entity_type=phase.entity_type,
                        status=PhaseStatus.SKIPPED,
                        warnings=["skipped on request"],
                    )
                )
                continue

            if context.cancelled:
                log.warning("Run cancelled before %s", phase.name)
                summary.aborted_by = "cancellation"
                summary.phases.append(
                    PhaseReport(
                        name=phase.name,
                        entity_type=phase.entity_type,
                        status=PhaseStatus.ABORTED,
                        warnings=["cancelled"],
                    )
                )
                continue

            log.info("=== %s ===", phase.name)
            report = await phase.run(desired, context=context)
            summary.phases.append(report)
            if report.status is PhaseStatus.FAILED and phase.foundational:
                log.error("%s failed; aborting remaining phases", phase.name)
                summary.aborted_by = phase.name

        log_summary(summary)
        return summary


def log_summary(summary: RunSummary) -> None:
    prefix = "[dry run] " if summary.dry_run else ""
    log.info("%s%s summary:", prefix, summary.kind.capitalize())
    for phase in summary.phases:
        counts = phase.counts
        log.info(
            "  %-24s %-9s created=%s deleted=%s existing=%s failed=%s skipped=%s",
            phase.name,
            phase.status,
            counts[OutcomeStatus.CREATED],
            counts[OutcomeStatus.DELETED],
            counts[OutcomeStatus.EXISTING],
            counts[OutcomeStatus.FAILED],
            counts[OutcomeStatus.SKIPPED],
        )
        for warning in phase.warnings:
            log.warning("    %s", warning)
        if phase.outcome is not None and phase.outcome.failed:
            failures = phase.outcome.failed
            for item in failures[:FAILURE_PREVIEW_LIMIT]:
                message = item.error.message if item.error else "unknown error"
                log.error("    %s: %s", item.key, message)
            if len(failures) > FAILURE_PREVIEW_LIMIT:
                log.error("    ... and %s more", len(failures) - FAILURE_PREVIEW_LIMIT)

    if summary.success:
        log.info("%sRun succeeded", prefix)
    else:
        for issue in summary.issues():
            log.error("  %s", issue)
        log.error("%sRun finished with issues", prefix)
