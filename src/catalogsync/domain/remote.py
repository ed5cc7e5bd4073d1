"""Read-side helpers over the ``CatalogService`` port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from catalogsync.domain.batching import chunked

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from catalogsync.domain.convergence import KeySampler
    from catalogsync.domain.model import EntityType, NaturalKey
    from catalogsync.domain.ports.catalog import CatalogService

log = getLogger(__name__)

DEFAULT_SCAN_PAGE_SIZE = 500


async def query_present(
    catalog: CatalogService,
    entity_type: EntityType,
    keys: Iterable[NaturalKey],
    *,
    batch_size: int | None = None,
) -> set[NaturalKey]:
    """Return the subset of ``keys`` the remote side currently reports."""

    size = batch_size or entity_type.max_batch_size
    wanted = sorted(set(keys))
    present: set[NaturalKey] = set()
    for batch in chunked(wanted, size):
        response = await catalog.query_by_keys(entity_type, batch)
        present.update(key for key in response.found if key in batch)
    return present


def key_sampler(catalog: CatalogService, entity_type: EntityType) -> KeySampler:
    """Adapt ``query_by_keys`` to the poller's sampler shape."""

    async def sample(keys: Sequence[NaturalKey]) -> Iterable[NaturalKey]:
        response = await catalog.query_by_keys(entity_type, keys)
        return response.found

    return sample


async def scan_all(
    catalog: CatalogService,
    entity_type: EntityType,
    *,
    pattern: str | None = None,
    page_size: int = DEFAULT_SCAN_PAGE_SIZE,
) -> list[NaturalKey]:
    """Page through ``scan`` until ``total_count`` keys were seen or a page comes back empty."""

    if page_size < 1:
        raise ValueError("page_size must be positive")

    keys: list[NaturalKey] = []
    offset = 0
    while True:
        page = await catalog.scan(entity_type, pattern=pattern, limit=page_size, offset=offset)
        keys.extend(page.items)
        offset += len(page.items)
        if not page.items or offset >= page.total_count:
            break
    log.debug("Scanned %s %s (pattern=%s)", len(keys), entity_type, pattern)
    return keys
