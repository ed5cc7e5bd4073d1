"""Per-item and per-operation outcomes reported by the batch executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import OperationKind, OutcomeStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .entity import NaturalKey


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorInfo:
    message: str
    status_code: int | None = None
    retryable: bool = False
    batch_level: bool = False


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    key: NaturalKey
    status: OutcomeStatus
    error: ErrorInfo | None = None


@dataclass(slots=True, kw_only=True)
class BatchReport:
    """What happened to one chunk submitted to the remote catalog."""

    index: int
    keys: tuple[NaturalKey, ...]
    attempts: int = 0
    accepted_count: int | None = None
    error: ErrorInfo | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class OperationOutcome:
    """Aggregate of item outcomes for one operation over one entity type."""

    kind: OperationKind = OperationKind.CREATE
    created: list[ItemOutcome] = field(default_factory=list[ItemOutcome])
    deleted: list[ItemOutcome] = field(default_factory=list[ItemOutcome])
    existing: list[ItemOutcome] = field(default_factory=list[ItemOutcome])
    failed: list[ItemOutcome] = field(default_factory=list[ItemOutcome])
    skipped: list[ItemOutcome] = field(default_factory=list[ItemOutcome])
    batches: list[BatchReport] = field(default_factory=list[BatchReport])

    @property
    def success(self) -> bool:
        return not self.failed

    def record(self, outcome: ItemOutcome) -> None:
        self._bucket(outcome.status).append(outcome)

    def record_all(
        self,
        keys: Iterable[NaturalKey],
        status: OutcomeStatus,
        error: ErrorInfo | None = None,
    ) -> None:
        bucket = self._bucket(status)
        bucket.extend(ItemOutcome(key, status, error) for key in keys)

    def reclassify(self, keys: Iterable[NaturalKey], status: OutcomeStatus) -> None:
        """Move failed items for ``keys`` into ``status`` (e.g. after remote confirmation)."""

        targets = set(keys)
        if not targets:
            return
        remaining: list[ItemOutcome] = []
        for outcome in self.failed:
            if outcome.key in targets:
                self._bucket(status).append(ItemOutcome(outcome.key, status))
            else:
                remaining.append(outcome)
        self.failed = remaining

    def keys(self, status: OutcomeStatus) -> list[NaturalKey]:
        return [outcome.key for outcome in self._bucket(status)]

    def counts(self) -> dict[OutcomeStatus, int]:
        return {status: len(self._bucket(status)) for status in OutcomeStatus}

    @property
    def total(self) -> int:
        return sum(self.counts().values())

    @property
    def attempts(self) -> int:
        return sum(batch.attempts for batch in self.batches)

    def merge(self, other: OperationOutcome) -> OperationOutcome:
        for status in OutcomeStatus:
            self._bucket(status).extend(other._bucket(status))  # noqa: SLF001
        offset = len(self.batches)
        for batch in other.batches:
            batch.index += offset
            self.batches.append(batch)
        return self

    def _bucket(self, status: OutcomeStatus) -> list[ItemOutcome]:
        match status:
            case OutcomeStatus.CREATED:
                return self.created
            case OutcomeStatus.DELETED:
                return self.deleted
            case OutcomeStatus.EXISTING:
                return self.existing
            case OutcomeStatus.FAILED:
                return self.failed
            case OutcomeStatus.SKIPPED:
                return self.skipped
