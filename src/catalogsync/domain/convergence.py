"""Poll the remote catalog until it reflects an expected state.

The remote side confirms writes asynchronously, so a successful write call
only means "accepted". A verification phase builds a ``ConvergenceTarget``
and hands it to ``ConvergencePoller.wait_for``, which sleeps, samples and
narrows the outstanding key set until every key is confirmed or the attempt
ceiling is reached.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Literal

import httpx

from catalogsync.domain.batching import chunked
from catalogsync.domain.errors import RemoteServiceError, RetryExhaustedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from catalogsync.domain.model import NaturalKey
    from catalogsync.domain.retry import Sleep

log = getLogger(__name__)

type KeySampler = Callable[[Sequence[NaturalKey]], Awaitable[Iterable[NaturalKey]]]
type CountSampler = Callable[[], Awaitable[int]]
type ProgressCallback = Callable[[ProgressObservation], None]
type Expectation = Literal["present", "absent"]

_SAMPLER_ERRORS: tuple[type[BaseException], ...] = (
    RemoteServiceError,
    RetryExhaustedError,
    httpx.HTTPError,
)


class ConvergenceStatus(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class PollConfig:
    """Polling cadence; ``interval`` is in seconds."""

    interval: float = 10.0
    max_attempts: int = 60
    sample_batch_size: int = 50
    history_size: int = 5

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("Poll interval must be non-negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.sample_batch_size < 1:
            raise ValueError("sample_batch_size must be at least 1")
        if self.history_size < 2:
            raise ValueError("history_size must be at least 2 to estimate a rate")

    @property
    def ceiling(self) -> float:
        """Upper bound on the wall-clock time spent sleeping in one poll run."""

        return self.interval * self.max_attempts


@dataclass(frozen=True, slots=True)
class ConvergenceTarget:
    """What a verification phase waits for.

    Key targets are narrowed every tick: only keys not yet confirmed are
    sampled again. With ``expect="absent"`` a key is confirmed once the
    remote side no longer reports it.
    """

    label: str
    expected_keys: frozenset[NaturalKey] | None = None
    expected_count: int | None = None
    key_sampler: KeySampler | None = None
    count_sampler: CountSampler | None = None
    expect: Expectation = "present"

    @classmethod
    def for_keys(
        cls,
        keys: Iterable[NaturalKey],
        sampler: KeySampler,
        *,
        expect: Expectation = "present",
        label: str = "entities",
    ) -> ConvergenceTarget:
        return cls(
            label=label,
            expected_keys=frozenset(keys),
            key_sampler=sampler,
            expect=expect,
        )

    @classmethod
    def for_count(
        cls,
        expected_count: int,
        sampler: CountSampler,
        *,
        label: str = "entities",
    ) -> ConvergenceTarget:
        if expected_count < 0:
            raise ValueError("expected_count must be non-negative")
        return cls(label=label, expected_count=expected_count, count_sampler=sampler)

    @property
    def expected(self) -> int:
        if self.expected_keys is not None:
            return len(self.expected_keys)
        return self.expected_count or 0


@dataclass(frozen=True, slots=True, kw_only=True)
class ProgressObservation:
    label: str
    attempt: int
    max_attempts: int
    current: int
    expected: int
    rate: float | None
    eta: float | None
    movement_detected: bool

    @property
    def remaining(self) -> int:
        return max(self.expected - self.current, 0)


@dataclass(frozen=True, slots=True, kw_only=True)
class ConvergenceResult:
    label: str
    status: ConvergenceStatus
    expected: int
    confirmed: int
    attempts: int
    elapsed: float
    movement_detected: bool
    remaining_keys: frozenset[NaturalKey] = frozenset()

    @property
    def converged(self) -> bool:
        return self.status is ConvergenceStatus.CONVERGED

    def describe(self) -> str:
        """Operator-facing summary that separates "not started" from "incomplete"."""

        match self.status:
            case ConvergenceStatus.CONVERGED:
                return (
                    f"{self.label}: all {self.expected} confirmed after "
                    f"{self.attempts} polls ({self.elapsed:.0f}s)"
                )
            case ConvergenceStatus.CANCELLED:
                return (
                    f"{self.label}: polling cancelled after {self.attempts} polls, "
                    f"{self.confirmed} of {self.expected} confirmed"
                )
            case _ if not self.movement_detected:
                return (
                    f"{self.label}: submitted but not yet processed "
                    f"(0 of {self.expected} confirmed after {self.elapsed:.0f}s)"
                )
            case _:
                return (
                    f"{self.label}: partially converged, {self.confirmed} of "
                    f"{self.expected} confirmed after {self.elapsed:.0f}s"
                )


@dataclass(slots=True)
class _PollState:
    target: ConvergenceTarget
    history: deque[tuple[int, float]]
    remaining: set[NaturalKey] = field(default_factory=set[str])
    status: ConvergenceStatus = ConvergenceStatus.IDLE
    current: int = 0
    baseline: int | None = None
    movement_detected: bool = False
    attempts: int = 0

    def observe(self, current: int, timestamp: float) -> None:
        if self.baseline is None:
            self.baseline = current
        elif current != self.baseline:
            self.movement_detected = True
        self.current = current
        self.history.append((current, timestamp))

    def rate(self) -> float | None:
        if len(self.history) < 2:
            return None
        first_count, first_time = self.history[0]
        last_count, last_time = self.history[-1]
        elapsed = last_time - first_time
        if elapsed <= 0:
            return None
        return (last_count - first_count) / elapsed

    def eta(self, expected: int) -> float | None:
        rate = self.rate()
        if rate is None or rate <= 0:
            return None
        return (expected - self.current) / rate


class ConvergencePoller:
    """Sleep-then-sample loop bounded by ``PollConfig.max_attempts``."""

    def __init__(
        self,
        config: PollConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.config = config or PollConfig()
        self._sleep = sleep
        self._clock = clock
        self._on_progress = on_progress

    async def wait_for(
        self,
        target: ConvergenceTarget,
        *,
        cancel: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ConvergenceResult:
        """Poll until ``target`` is reached, ``max_attempts`` ticks passed or ``cancel`` is set."""

        config = self.config
        callback = on_progress or self._on_progress
        state = _PollState(target=target, history=deque(maxlen=config.history_size))
        started = self._clock()

        if target.expected_keys is not None:
            state.remaining = set(target.expected_keys)
            # Key targets count confirmations, so nothing is confirmed before the first tick.
            state.observe(0, started)
        if self._reached(state):
            state.status = ConvergenceStatus.CONVERGED
            return self._result(state, started)

        state.status = ConvergenceStatus.POLLING
        log.info(
            "Waiting for %s %s to be %s (every %.0fs, up to %s polls)",
            target.expected,
            target.label,
            "indexed" if target.expect == "present" else "removed",
            config.interval,
            config.max_attempts,
        )

        while state.attempts < config.max_attempts:
            if await self._pause(cancel):
                state.status = ConvergenceStatus.CANCELLED
                break
            state.attempts += 1
            current = await self._sample(state)
            state.observe(current, self._clock())

            observation = ProgressObservation(
                label=target.label,
                attempt=state.attempts,
                max_attempts=config.max_attempts,
                current=state.current,
                expected=target.expected,
                rate=state.rate(),
                eta=state.eta(target.expected),
                movement_detected=state.movement_detected,
            )
            self._report(observation, callback)

            if self._reached(state):
                state.status = ConvergenceStatus.CONVERGED
                break
        else:
            state.status = ConvergenceStatus.TIMED_OUT

        result = self._result(state, started)
        if result.converged:
            log.info(result.describe())
        else:
            log.warning(result.describe())
        return result

    async def _pause(self, cancel: asyncio.Event | None) -> bool:
        """Sleep one interval; return ``True`` when cancellation was requested."""

        if cancel is None:
            await self._sleep(self.config.interval)
            return False
        if cancel.is_set():
            return True

        sleeper = asyncio.ensure_future(self._sleep(self.config.interval))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
        return cancel.is_set()

    async def _sample(self, state: _PollState) -> int:
        target = state.target
        if target.count_sampler is not None:
            try:
                return await target.count_sampler()
            except _SAMPLER_ERRORS as exc:
                log.warning("Sampling %s failed, counting as no progress: %s", target.label, exc)
                return state.current

        if target.key_sampler is None or target.expected_keys is None:
            raise ValueError(f"Convergence target {target.label!r} has no sampler")

        pending = sorted(state.remaining)
        for keys in chunked(pending, self.config.sample_batch_size):
            try:
                found = set(await target.key_sampler(keys)) & set(keys)
            except _SAMPLER_ERRORS as exc:
                log.warning("Sampling %s failed, counting as no progress: %s", target.label, exc)
                continue
            if target.expect == "present":
                state.remaining.difference_update(found)
            else:
                state.remaining.difference_update(set(keys) - found)
        return len(target.expected_keys) - len(state.remaining)

    @staticmethod
    def _reached(state: _PollState) -> bool:
        target = state.target
        if target.expected_keys is not None:
            return not state.remaining
        return state.baseline is not None and state.current >= target.expected

    def _report(self, observation: ProgressObservation, callback: ProgressCallback | None) -> None:
        eta = f"{observation.eta:.0f}s" if observation.eta is not None else "unknown"
        log.info(
            "Polling %s: %s/%s confirmed (attempt %s/%s, ETA %s)",
            observation.label,
            observation.current,
            observation.expected,
            observation.attempt,
            observation.max_attempts,
            eta,
        )
        if callback is not None:
            callback(observation)

    def _result(self, state: _PollState, started: float) -> ConvergenceResult:
        return ConvergenceResult(
            label=state.target.label,
            status=state.status,
            expected=state.target.expected,
            confirmed=state.current,
            attempts=state.attempts,
            elapsed=self._clock() - started,
            movement_detected=state.movement_detected,
            remaining_keys=frozenset(state.remaining),
        )
