"""Bounded exponential backoff with jitter for single remote calls."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from catalogsync.domain.errors import RemoteServiceError, RetryExhaustedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]
type RetryCallback = Callable[[int, float, BaseException], None]

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)


@dataclass(slots=True, frozen=True)
class RetryConfig:
    """Backoff parameters; delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.2
    status_forcelist: frozenset[int] = RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def compute_delay(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> float:
    """Delay before retry number ``attempt`` (0-based), always within ``[0, max_delay]``."""

    source = rng or random
    capped = min(config.initial_delay * config.backoff_multiplier**attempt, config.max_delay)
    jitter = capped * config.jitter_factor * (source.random() * 2 - 1)
    return min(max(0.0, capped + jitter), config.max_delay)


def status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, RemoteServiceError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def is_retryable(exc: BaseException, config: RetryConfig | None = None) -> bool:
    """Network faults and throttling/server status codes are transient; other 4xx are not."""

    if isinstance(exc, _RETRYABLE_EXCEPTIONS):
        return True
    status = status_code_of(exc)
    if status is None:
        return False
    forcelist = config.status_forcelist if config else RETRYABLE_STATUS_CODES
    return status in forcelist


async def with_retry[T](
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    name: str = "operation",
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run ``fn`` with at most ``max_retries + 1`` attempts.

    Non-retryable errors propagate unchanged on first occurrence. Once every
    attempt failed with a retryable error, ``RetryExhaustedError`` is raised
    carrying the attempt count and the last error.
    """

    policy = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not is_retryable(exc, policy):
                raise
            if attempt >= policy.max_retries:
                raise RetryExhaustedError(attempt + 1, exc) from exc

            delay = compute_delay(attempt, policy, rng)
            log.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.1fs",
                name,
                attempt + 1,
                policy.max_attempts,
                exc,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt + 1, delay, exc)
            await sleep(delay)
            attempt += 1
