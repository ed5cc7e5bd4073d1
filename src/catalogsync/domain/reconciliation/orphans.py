"""Second-pass safety net: find and remove remote entities nobody expects.

Batch-level failures and asynchronous indexing both leave room for drift
between the ledger and the remote catalog. ``Reconciler.reconcile`` checks
for keys that should be gone, scans the project's key family for unknown
leftovers, deletes both and waits for the deletion to become visible,
repeating for a bounded number of rounds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from catalogsync.domain.batching import delete_operation
from catalogsync.domain.convergence import ConvergenceTarget
from catalogsync.domain.errors import RemoteServiceError, RetryExhaustedError
from catalogsync.domain.model import Entity, OperationKind, OperationOutcome, OutcomeStatus
from catalogsync.domain.remote import DEFAULT_SCAN_PAGE_SIZE, key_sampler, query_present, scan_all

from .patterns import DEFAULT_SEPARATOR, derive_pattern

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Iterable

    from catalogsync.domain.batching import BatchExecutor
    from catalogsync.domain.convergence import ConvergencePoller, ConvergenceResult
    from catalogsync.domain.model import EntityType, NaturalKey
    from catalogsync.domain.ports.catalog import CatalogService

log = getLogger(__name__)

_REMOTE_ERRORS: tuple[type[BaseException], ...] = (
    RemoteServiceError,
    RetryExhaustedError,
    httpx.HTTPError,
)


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    """Bounds of the cleanup loop.

    Rounds are not separated by any backoff beyond the poll interval of the
    absence check, so sustained indexing lag is absorbed by raising
    ``max_rounds`` or the poll ceiling.
    """

    max_rounds: int = 3
    scan_page_size: int = DEFAULT_SCAN_PAGE_SIZE
    separator: str = DEFAULT_SEPARATOR
    scan_unknown: bool = True

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        if self.scan_page_size < 1:
            raise ValueError("scan_page_size must be at least 1")


@dataclass(slots=True, kw_only=True)
class ReconciliationReport:
    entity_type: EntityType
    clean: bool = False
    rounds: int = 0
    issues: list[str] = field(default_factory=list[str])
    known: frozenset[NaturalKey] = frozenset()
    unknown: frozenset[NaturalKey] = frozenset()
    deletions: OperationOutcome = field(
        default_factory=lambda: OperationOutcome(kind=OperationKind.DELETE)
    )
    convergence: list[ConvergenceResult] = field(default_factory=list["ConvergenceResult"])

    @property
    def orphans(self) -> frozenset[NaturalKey]:
        return self.known | self.unknown


@dataclass(slots=True)
class _Findings:
    known: set[NaturalKey] = field(default_factory=set[str])
    unknown: set[NaturalKey] = field(default_factory=set[str])
    issues: list[str] = field(default_factory=list[str])
    verified: bool = True

    @property
    def clean(self) -> bool:
        return self.verified and not self.known and not self.unknown


class Reconciler:
    def __init__(
        self,
        catalog: CatalogService,
        executor: BatchExecutor,
        poller: ConvergencePoller,
        config: ReconcileConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._executor = executor
        self._poller = poller
        self.config = config or ReconcileConfig()

    async def reconcile(
        self,
        entity_type: EntityType,
        expected_keys: Iterable[NaturalKey],
        *,
        keep_keys: Iterable[NaturalKey] = (),
        batch_size: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReconciliationReport:
        """Make sure ``expected_keys`` are absent remotely and no unknown keys remain.

        ``expected_keys`` are keys that must no longer exist (deleted or no
        longer desired). ``keep_keys`` belong to the desired state and are
        never treated as orphans, even when they match the key family.
        """

        expected = frozenset(expected_keys)
        keep = frozenset(keep_keys) - expected
        size = batch_size or entity_type.max_batch_size
        report = ReconciliationReport(entity_type=entity_type)

        log.info("Reconciling %s (%s keys expected absent)", entity_type, len(expected))
        for round_number in range(1, self.config.max_rounds + 1):
            report.rounds = round_number
            findings = await self._inspect(entity_type, expected, keep, size)
            report.known = frozenset(findings.known)
            report.unknown = frozenset(findings.unknown)

            if findings.clean:
                report.clean = True
                log.info("Reconciliation of %s clean after %s round(s)", entity_type, round_number)
                return report

            report.issues.extend(f"Round {round_number}: {issue}" for issue in findings.issues)
            if round_number == self.config.max_rounds:
                break
            if cancel is not None and cancel.is_set():
                report.issues.append("Reconciliation cancelled")
                break
            await self._cleanup(entity_type, findings, size, report, cancel)

        log.error("Reconciliation of %s FAILED after %s round(s):", entity_type, report.rounds)
        for issue in report.issues:
            log.error("  - %s", issue)
        return report

    async def _inspect(
        self,
        entity_type: EntityType,
        expected: frozenset[NaturalKey],
        keep: frozenset[NaturalKey],
        batch_size: int,
    ) -> _Findings:
        findings = _Findings()

        if expected:
            try:
                findings.known = await query_present(
                    self._catalog, entity_type, expected, batch_size=batch_size
                )
            except _REMOTE_ERRORS as exc:
                log.warning("Could not verify %s removal: %s", entity_type, exc)
                findings.verified = False
                findings.issues.append(f"Could not verify {entity_type} removal: {exc}")
            if findings.known:
                findings.issues.append(f"{len(findings.known)} {entity_type} still exist")
                log.debug("Remaining %s: %s", entity_type, _preview(findings.known))

        matcher = derive_pattern(expected | keep, self.config.separator)
        if not self.config.scan_unknown or matcher is None:
            return findings

        try:
            scanned = await scan_all(
                self._catalog,
                entity_type,
                pattern=matcher.expression,
                page_size=self.config.scan_page_size,
            )
        except _REMOTE_ERRORS as exc:
            log.warning("Could not scan for orphaned %s: %s", entity_type, exc)
            findings.verified = False
            findings.issues.append(f"Could not scan for orphaned {entity_type}: {exc}")
            return findings

        # The remote filter is advisory; match locally as well.
        findings.unknown = {
            key for key in matcher.filter(scanned) if key not in expected and key not in keep
        }
        if findings.unknown:
            findings.issues.append(f"{len(findings.unknown)} unknown orphaned {entity_type} found")
            log.debug("Unknown %s: %s", entity_type, _preview(findings.unknown))
        return findings

    async def _cleanup(
        self,
        entity_type: EntityType,
        findings: _Findings,
        batch_size: int,
        report: ReconciliationReport,
        cancel: asyncio.Event | None,
    ) -> None:
        orphans = sorted(findings.known | findings.unknown)
        if not orphans:
            return

        log.info("Deleting %s orphaned %s", len(orphans), entity_type)
        outcome = await self._executor.execute(
            [Entity(entity_type=entity_type, natural_key=key) for key in orphans],
            delete_operation(self._catalog, entity_type),
            batch_size,
            kind=OperationKind.DELETE,
            label=f"orphaned {entity_type}",
        )
        report.deletions.merge(outcome)

        accepted = outcome.keys(OutcomeStatus.DELETED)
        if not accepted:
            return
        target = ConvergenceTarget.for_keys(
            accepted,
            key_sampler(self._catalog, entity_type),
            expect="absent",
            label=f"orphaned {entity_type}",
        )
        result = await self._poller.wait_for(target, cancel=cancel)
        report.convergence.append(result)


def _preview(keys: Iterable[NaturalKey], limit: int = 10) -> str:
    ordered = sorted(keys)
    shown = ", ".join(ordered[:limit])
    return f"{shown}..." if len(ordered) > limit else shown
