from __future__ import annotations

import asyncio

import pytest

from catalogsync.domain.batching import (
    BatchExecutor,
    chunked,
    create_operation,
    delete_operation,
)
from catalogsync.domain.errors import RemoteServiceError
from catalogsync.domain.model import EntityType, OperationKind, OutcomeStatus
from catalogsync.domain.retry import RetryConfig
from tests.support.catalog import FakeCatalog, service_unavailable
from tests.support.clock import FakeClock
from tests.support.entities import category, products

FAST_RETRY = RetryConfig(max_retries=3, initial_delay=0.5, jitter_factor=0.0)


def _executor(clock: FakeClock, **kwargs: object) -> BatchExecutor:
    return BatchExecutor(retry=FAST_RETRY, sleep=clock.sleep, **kwargs)  # type: ignore[arg-type]


def test_chunked_splits_in_order() -> None:
    assert [list(chunk) for chunk in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError, match="positive"):
        list(chunked([1], 0))


def test_products_are_submitted_in_bounded_batches_with_retry() -> None:
    catalog = FakeCatalog()
    catalog.fail_next_creates(None, service_unavailable(), service_unavailable())
    clock = FakeClock()
    entities = products(120)

    outcome = asyncio.run(
        _executor(clock).execute(
            entities,
            create_operation(catalog, EntityType.PRODUCT),
            50,
            label="product",
        )
    )

    sizes = [len(keys) for keys in catalog.calls_for("create")]
    assert sizes == [50, 50, 50, 50, 20]
    assert [len(batch.keys) for batch in outcome.batches] == [50, 50, 20]
    assert [batch.attempts for batch in outcome.batches] == [1, 3, 1]
    assert len(outcome.created) == 120
    assert outcome.success
    assert clock.sleeps == [0.5, 1.0]


def test_batches_run_in_submission_order() -> None:
    catalog = FakeCatalog()
    entities = products(7)

    asyncio.run(
        _executor(FakeClock()).execute(entities, create_operation(catalog, EntityType.PRODUCT), 3)
    )

    submitted = [key for keys in catalog.calls_for("create") for key in keys]
    assert submitted == [entity.natural_key for entity in entities]


def test_skip_keys_are_reported_existing_and_not_sent() -> None:
    catalog = FakeCatalog()
    entities = [category("A"), category("B", parent="A"), category("C", parent="B")]

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            entities,
            create_operation(catalog, EntityType.CATEGORY),
            10,
            skip_keys=frozenset({"A", "B"}),
        )
    )

    assert outcome.keys(OutcomeStatus.EXISTING) == ["A", "B"]
    assert outcome.keys(OutcomeStatus.CREATED) == ["C"]
    assert catalog.calls_for("create") == [("C",)]


def test_everything_known_makes_no_remote_call() -> None:
    catalog = FakeCatalog()

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            products(3),
            create_operation(catalog, EntityType.PRODUCT),
            10,
            skip_keys=frozenset({"STR-0000", "STR-0001", "STR-0002"}),
        )
    )

    assert len(outcome.existing) == 3
    assert catalog.calls == []


def test_exhausted_batch_fails_every_item_without_raising() -> None:
    catalog = FakeCatalog()
    catalog.fail_next_creates(*(service_unavailable() for _ in range(4)))

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            products(3), create_operation(catalog, EntityType.PRODUCT), 10
        )
    )

    assert len(outcome.failed) == 3
    assert not outcome.success
    report = outcome.batches[0]
    assert report.attempts == 4
    assert report.error is not None
    assert report.error.batch_level
    assert report.error.status_code == 503


def test_non_retryable_batch_error_is_not_retried() -> None:
    catalog = FakeCatalog()
    catalog.fail_next_creates(RemoteServiceError("bad payload", status_code=400))
    clock = FakeClock()

    outcome = asyncio.run(
        _executor(clock).execute(products(2), create_operation(catalog, EntityType.PRODUCT), 10)
    )

    assert len(outcome.failed) == 2
    assert outcome.batches[0].attempts == 1
    assert clock.sleeps == []


def test_per_item_rejections_fail_only_those_items() -> None:
    catalog = FakeCatalog(rejections={"STR-0001": "invalid price"})

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            products(3), create_operation(catalog, EntityType.PRODUCT), 10
        )
    )

    assert outcome.keys(OutcomeStatus.CREATED) == ["STR-0000", "STR-0002"]
    assert len(outcome.failed) == 1
    failure = outcome.failed[0]
    assert failure.key == "STR-0001"
    assert failure.error is not None
    assert failure.error.message == "invalid price"
    assert not failure.error.batch_level


def test_short_accept_count_without_item_results_is_ambiguous() -> None:
    catalog = FakeCatalog(report_rejections=False, accept_limit=1)

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            products(3), create_operation(catalog, EntityType.PRODUCT), 10
        )
    )

    assert len(outcome.failed) == 3
    assert all(item.error is not None and item.error.batch_level for item in outcome.failed)
    assert outcome.batches[0].accepted_count == 1


def test_dry_run_submits_nothing() -> None:
    catalog = FakeCatalog()

    outcome = asyncio.run(
        _executor(FakeClock(), dry_run=True).execute(
            products(5), create_operation(catalog, EntityType.PRODUCT), 2
        )
    )

    assert len(outcome.skipped) == 5
    assert catalog.calls == []


def test_batch_size_above_type_limit_is_rejected() -> None:
    catalog = FakeCatalog()

    with pytest.raises(ValueError, match="exceeds"):
        asyncio.run(
            _executor(FakeClock()).execute(
                [category("A")], create_operation(catalog, EntityType.CATEGORY), 51
            )
        )


def test_concurrent_batches_keep_all_outcomes() -> None:
    catalog = FakeCatalog()

    outcome = asyncio.run(
        _executor(FakeClock(), max_concurrency=3).execute(
            products(10),
            create_operation(catalog, EntityType.PRODUCT),
            2,
            sequential=False,
        )
    )

    assert len(outcome.created) == 10
    assert [batch.index for batch in outcome.batches] == [0, 1, 2, 3, 4]


def test_delete_operation_sends_keys() -> None:
    catalog = FakeCatalog()
    catalog.seed(EntityType.PRODUCT, ["STR-0000", "STR-0001"])

    outcome = asyncio.run(
        _executor(FakeClock()).execute(
            products(2),
            delete_operation(catalog, EntityType.PRODUCT),
            10,
            kind=OperationKind.DELETE,
        )
    )

    assert outcome.keys(OutcomeStatus.DELETED) == ["STR-0000", "STR-0001"]
    assert catalog.stored[EntityType.PRODUCT] == set()
