"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import signal
from contextlib import AsyncExitStack
from logging import getLogger
from typing import TYPE_CHECKING

from catalogsync.adapters.catalog import HttpCatalogService
from catalogsync.adapters.datapack import load_datapack
from catalogsync.adapters.json_ledger import JsonLedgerStore
from catalogsync.config import get_catalog_config, get_storage_config, get_sync_config
from catalogsync.config.env import require_env_vars
from catalogsync.domain.batching import BatchExecutor
from catalogsync.domain.convergence import ConvergencePoller
from catalogsync.domain.ledger import Ledger
from catalogsync.domain.model import DesiredCatalog
from catalogsync.domain.reconciliation import Reconciler
from catalogsync.domain.sync_pipeline import SyncContext, SyncOptions, run_delete, run_ingest

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from catalogsync.config import StorageConfig, SyncConfig
    from catalogsync.domain.model import EntityType
    from catalogsync.domain.ports.catalog import CatalogService
    from catalogsync.domain.ports.ledger import LedgerSnapshot, LedgerStore
    from catalogsync.domain.sync_pipeline import RunSummary

type Workflow = Callable[[DesiredCatalog, SyncContext], Awaitable[list[RunSummary]]]

log = getLogger(__name__)


def build_sync_context(
    *,
    catalog: CatalogService,
    ledger: Ledger,
    sync_config: SyncConfig,
    options: SyncOptions,
    cancel: asyncio.Event | None = None,
) -> SyncContext:
    """Wire the engine components around one catalog and one ledger."""

    executor = BatchExecutor(
        retry=sync_config.retry,
        max_concurrency=sync_config.max_concurrency,
        dry_run=options.dry_run,
    )
    poller = ConvergencePoller(sync_config.poll)
    return SyncContext(
        catalog=catalog,
        ledger=ledger,
        executor=executor,
        poller=poller,
        reconciler=Reconciler(catalog, executor, poller, sync_config.reconcile),
        options=options,
        batch_sizes=sync_config.batch_sizes,
        cancel=cancel,
    )


def ledger_store_for_tenant(
    tenant_id: str | None = None, *, storage: StorageConfig | None = None
) -> JsonLedgerStore:
    tenant = tenant_id or require_env_vars(("CATALOG_TENANT_ID",))["CATALOG_TENANT_ID"]
    storage_config = storage or get_storage_config()
    return JsonLedgerStore(storage_config.ledger_path(tenant))


def ingest_catalog(
    *,
    datapack_dir: Path,
    options: SyncOptions | None = None,
    catalog: CatalogService | None = None,
    ledger_store: LedgerStore | None = None,
    sync_config: SyncConfig | None = None,
) -> RunSummary:
    """Synchronise the data pack at ``datapack_dir`` into the remote catalog."""

    effective_options = options or SyncOptions()
    desired = load_datapack(datapack_dir)
    log.info(
        "Starting ingest of %s entities from %s (dry_run=%s)",
        len(desired),
        datapack_dir,
        effective_options.dry_run,
    )

    async def workflow(desired: DesiredCatalog, context: SyncContext) -> list[RunSummary]:
        return [await run_ingest(desired, context=context)]

    summaries = asyncio.run(
        _run(
            workflow,
            desired,
            options=effective_options,
            catalog=catalog,
            ledger_store=ledger_store,
            sync_config=sync_config,
        )
    )
    return summaries[0]


def delete_catalog(
    *,
    datapack_dir: Path | None = None,
    options: SyncOptions | None = None,
    catalog: CatalogService | None = None,
    ledger_store: LedgerStore | None = None,
    sync_config: SyncConfig | None = None,
) -> list[RunSummary]:
    """Remove the data pack and everything the ledger recorded; optionally ingest again.

    Without a data pack only the keys recorded in the ledger are deleted.
    """

    effective_options = options or SyncOptions()
    if datapack_dir is None:
        if effective_options.reingest_after_delete:
            raise ValueError("Re-ingesting after delete requires a data pack")
        desired = DesiredCatalog()
    else:
        desired = load_datapack(datapack_dir)

    async def workflow(desired: DesiredCatalog, context: SyncContext) -> list[RunSummary]:
        deletion = await run_delete(desired, context=context)
        summaries = [deletion]
        if effective_options.reingest_after_delete:
            if not deletion.success:
                log.error("Delete finished with issues; not re-ingesting")
                return summaries
            log.info("Re-ingesting after delete")
            summaries.append(await run_ingest(desired, context=context))
        return summaries

    return asyncio.run(
        _run(
            workflow,
            desired,
            options=effective_options,
            catalog=catalog,
            ledger_store=ledger_store,
            sync_config=sync_config,
        )
    )


def show_ledger(*, ledger_store: LedgerStore | None = None) -> LedgerSnapshot:
    ledger = Ledger(ledger_store or ledger_store_for_tenant()).load()
    return ledger.snapshot()


def clear_ledger(
    *,
    entity_type: EntityType | None = None,
    ledger_store: LedgerStore | None = None,
) -> int:
    """Forget recorded keys (all types by default) and return how many were dropped."""

    ledger = Ledger(ledger_store or ledger_store_for_tenant()).load()
    dropped = ledger.count(entity_type)
    ledger.clear(entity_type)
    ledger.save()
    log.info("Cleared %s ledger entries%s", dropped, f" for {entity_type}" if entity_type else "")
    return dropped


async def _run(
    workflow: Workflow,
    desired: DesiredCatalog,
    *,
    options: SyncOptions,
    catalog: CatalogService | None,
    ledger_store: LedgerStore | None,
    sync_config: SyncConfig | None,
) -> list[RunSummary]:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    handler_installed = _install_cancel_handler(loop, cancel)

    try:
        async with AsyncExitStack() as stack:
            tenant_id: str | None = None
            if catalog is None:
                catalog_config = get_catalog_config()
                tenant_id = catalog_config.tenant_id
                catalog = await stack.enter_async_context(
                    HttpCatalogService(config=catalog_config)
                )
            store = ledger_store or ledger_store_for_tenant(tenant_id)
            context = build_sync_context(
                catalog=catalog,
                ledger=Ledger(store).load(),
                sync_config=sync_config or get_sync_config(),
                options=options,
                cancel=cancel,
            )
            return await workflow(desired, context)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _install_cancel_handler(loop: asyncio.AbstractEventLoop, cancel: asyncio.Event) -> bool:
    """Turn Ctrl+C into a cooperative cancellation of the running poll."""

    def request_cancel() -> None:
        log.warning("Cancellation requested; finishing the current step")
        cancel.set()

    try:
        loop.add_signal_handler(signal.SIGINT, request_cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        # Not available on Windows or outside the main thread.
        return False
    return True
