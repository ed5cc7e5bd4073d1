"""Split ordered entities into bounded chunks and apply a remote operation.

Per-item failures are collected into the returned ``OperationOutcome`` and
never raised past the executor. Only programming errors propagate.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from catalogsync.domain.errors import RemoteServiceError, RetryExhaustedError
from catalogsync.domain.model import (
    BatchReport,
    ErrorInfo,
    ItemOutcome,
    OperationKind,
    OperationOutcome,
    OutcomeStatus,
)
from catalogsync.domain.ports.catalog import CreateResponse, DeleteResponse
from catalogsync.domain.retry import RetryConfig, is_retryable, status_code_of, with_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Iterator, Sequence

    from catalogsync.domain.model import Entity, EntityType, NaturalKey
    from catalogsync.domain.ports.catalog import CatalogService
    from catalogsync.domain.retry import Sleep

log = getLogger(__name__)

type BatchResponse = CreateResponse | DeleteResponse
type BatchOperation = Callable[[Sequence[Entity]], Awaitable[BatchResponse]]

DEFAULT_MAX_CONCURRENCY = 5


def chunked[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def create_operation(catalog: CatalogService, entity_type: EntityType) -> BatchOperation:
    async def operation(batch: Sequence[Entity]) -> BatchResponse:
        return await catalog.create(entity_type, batch)

    return operation


def delete_operation(catalog: CatalogService, entity_type: EntityType) -> BatchOperation:
    async def operation(batch: Sequence[Entity]) -> BatchResponse:
        return await catalog.delete(entity_type, [entity.natural_key for entity in batch])

    return operation


def _error_info(exc: BaseException, *, batch_level: bool = True) -> ErrorInfo:
    if isinstance(exc, RetryExhaustedError):
        cause = exc.last_error
        return ErrorInfo(
            message=str(exc),
            status_code=status_code_of(cause),
            retryable=True,
            batch_level=batch_level,
        )
    return ErrorInfo(
        message=str(exc) or type(exc).__name__,
        status_code=status_code_of(exc),
        retryable=is_retryable(exc),
        batch_level=batch_level,
    )


@dataclass(slots=True)
class BatchExecutor:
    """Apply create/delete operations chunk by chunk with retry/backoff."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    sleep: Sleep = asyncio.sleep
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    async def execute(
        self,
        entities: Sequence[Entity],
        operation: BatchOperation,
        batch_size: int,
        *,
        kind: OperationKind = OperationKind.CREATE,
        skip_keys: frozenset[NaturalKey] = frozenset(),
        sequential: bool = True,
        label: str = "entities",
    ) -> OperationOutcome:
        """Submit ``entities`` in order and classify every item.

        Entities whose key is in ``skip_keys`` are reported as ``existing`` and
        never resubmitted. With ``sequential`` set, chunk *n + 1* is only sent
        after chunk *n* completed, because later chunks may reference entities
        created by earlier ones.
        """

        self._check_batch_size(entities, batch_size)
        outcome = OperationOutcome(kind=kind)

        pending: list[Entity] = []
        for entity in entities:
            if entity.natural_key in skip_keys:
                outcome.record(ItemOutcome(entity.natural_key, OutcomeStatus.EXISTING))
            else:
                pending.append(entity)

        if not pending:
            log.info("No %s to %s (%s already synchronised)", label, kind, len(outcome.existing))
            return outcome

        if self.dry_run:
            log.info("[dry run] would %s %s %s", kind, len(pending), label)
            outcome.record_all(
                (entity.natural_key for entity in pending),
                OutcomeStatus.SKIPPED,
                ErrorInfo(message="dry run"),
            )
            return outcome

        batches = list(chunked(pending, batch_size))
        log.info(
            "Submitting %s %s in %s batches of up to %s (%s)",
            len(pending),
            label,
            len(batches),
            batch_size,
            kind,
        )

        if sequential or self.max_concurrency == 1 or len(batches) == 1:
            results = [
                await self._run_batch(index, batch, operation, kind, len(batches), label)
                for index, batch in enumerate(batches)
            ]
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(index: int, batch: Sequence[Entity]) -> _BatchResult:
                async with semaphore:
                    return await self._run_batch(index, batch, operation, kind, len(batches), label)

            results = await asyncio.gather(
                *(bounded(index, batch) for index, batch in enumerate(batches))
            )

        for result in results:
            outcome.batches.append(result.report)
            for item in result.items:
                outcome.record(item)

        log.info(
            "%s %s: %s %s, %s existing, %s failed",
            kind.capitalize(),
            label,
            len(outcome.created) + len(outcome.deleted),
            "created" if kind is OperationKind.CREATE else "deleted",
            len(outcome.existing),
            len(outcome.failed),
        )
        return outcome

    async def _run_batch(
        self,
        index: int,
        batch: Sequence[Entity],
        operation: BatchOperation,
        kind: OperationKind,
        total: int,
        label: str,
    ) -> _BatchResult:
        keys = tuple(entity.natural_key for entity in batch)
        report = BatchReport(index=index, keys=keys)
        name = f"{kind} {label} batch {index + 1}/{total}"

        def count_retry(attempt: int, delay: float, error: BaseException) -> None:
            del delay, error
            report.attempts = attempt + 1

        async def attempt() -> BatchResponse:
            report.attempts = max(report.attempts, 1)
            return await operation(batch)

        try:
            response = await with_retry(
                attempt,
                self.retry,
                name=name,
                sleep=self.sleep,
                on_retry=count_retry,
            )
        except (RetryExhaustedError, RemoteServiceError, httpx.HTTPError) as exc:
            if isinstance(exc, RetryExhaustedError):
                report.attempts = exc.attempts
            info = _error_info(exc)
            report.error = info
            log.error("%s failed: %s", name.capitalize(), info.message)
            return _BatchResult(report, _all(keys, OutcomeStatus.FAILED, info))

        report.accepted_count = response.accepted_count
        success_status = (
            OutcomeStatus.CREATED if kind is OperationKind.CREATE else OutcomeStatus.DELETED
        )
        return _BatchResult(report, self._classify(report, keys, response, success_status, name))

    def _classify(
        self,
        report: BatchReport,
        keys: tuple[NaturalKey, ...],
        response: BatchResponse,
        success_status: OutcomeStatus,
        name: str,
    ) -> list[ItemOutcome]:
        rejected = response.rejected if isinstance(response, CreateResponse) else None
        if rejected is not None:
            errors = {rejection.key: rejection.error for rejection in rejected}
            if errors:
                log.warning("%s: %s of %s rejected", name.capitalize(), len(errors), len(keys))
            return [
                ItemOutcome(key, OutcomeStatus.FAILED, ErrorInfo(message=errors[key]))
                if key in errors
                else ItemOutcome(key, success_status)
                for key in keys
            ]

        if response.accepted_count >= len(keys):
            return _all(keys, success_status)

        # Without per-item results we cannot tell which keys were dropped.
        info = ErrorInfo(
            message=f"remote accepted {response.accepted_count} of {len(keys)} items",
            batch_level=True,
        )
        report.error = info
        log.warning("%s: %s", name.capitalize(), info.message)
        return _all(keys, OutcomeStatus.FAILED, info)

    @staticmethod
    def _check_batch_size(entities: Sequence[Entity], batch_size: int) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        types = {entity.entity_type for entity in entities}
        for entity_type in types:
            if batch_size > entity_type.max_batch_size:
                raise ValueError(
                    f"batch_size {batch_size} exceeds the {entity_type} limit "
                    f"of {entity_type.max_batch_size}"
                )


@dataclass(slots=True)
class _BatchResult:
    report: BatchReport
    items: list[ItemOutcome]


def _all(
    keys: Iterable[NaturalKey],
    status: OutcomeStatus,
    error: ErrorInfo | None = None,
) -> list[ItemOutcome]:
    return [ItemOutcome(key, status, error) for key in keys]
