"""Synchronisation defaults for ingest and delete runs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from catalogsync.domain.batching import DEFAULT_MAX_CONCURRENCY
from catalogsync.domain.convergence import PollConfig
from catalogsync.domain.model import EntityType
from catalogsync.domain.reconciliation import ReconcileConfig
from catalogsync.domain.retry import RetryConfig

from .env import optional_env
from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class SyncConfig:
    retry: RetryConfig = field(default_factory=RetryConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)
    batch_sizes: dict[EntityType, int] = field(default_factory=dict[EntityType, int])
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def __post_init__(self) -> None:
        for entity_type, size in self.batch_sizes.items():
            if not 0 < size <= entity_type.max_batch_size:
                raise ConfigurationError(
                    f"Batch size for {entity_type} must be between 1 and "
                    f"{entity_type.max_batch_size}, got {size}"
                )
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")


def get_sync_config() -> SyncConfig:
    """Defaults, with poll cadence overridable from the environment."""

    interval = optional_env("CATALOGSYNC_POLL_INTERVAL", float)
    max_attempts = optional_env("CATALOGSYNC_POLL_MAX_ATTEMPTS", int)

    poll = PollConfig()
    try:
        if interval is not None:
            poll = replace(poll, interval=interval)
        if max_attempts is not None:
            poll = replace(poll, max_attempts=max_attempts)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    return SyncConfig(poll=poll)
