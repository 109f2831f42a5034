"""
Retry utilities for provider calls.

Transient failures (throttling, unavailability) are retried with exponential
backoff and full jitter, bounded by an attempt count and a total time budget.
A ThrottleTracker shared by all fetchers of a provider stretches everyone's
backoff while the provider is throttling.
"""

import asyncio
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, TypeVar

import structlog

from cloud_cost.utils.errors import CostReportError, ErrorKind

logger = structlog.get_logger(__name__)

T = TypeVar("T")

THROTTLE_KINDS = frozenset({ErrorKind.THROTTLED, ErrorKind.ASSUME_ROLE_THROTTLED})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for one account's provider calls."""
    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0
    budget: float = 30.0

    def backoff_cap(self, attempt: int, pressure: int = 0) -> float:
        """Upper bound of the delay after failed attempt number ``attempt`` (1-based)."""
        exponent = max(0, attempt - 1) + max(0, pressure)
        return min(self.max_delay, self.base_delay * (2 ** exponent))


class ThrottleTracker:
    """
    Sliding window of recent throttle events for one provider.

    Each event still inside the window adds one doubling to the backoff of
    every retry, up to ``max_pressure``.
    """

    def __init__(
        self,
        window_seconds: float = 30.0,
        max_pressure: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_pressure = max_pressure
        self._clock = clock
        self._events: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        window_start = now - self.window_seconds
        while self._events and self._events[0] <= window_start:
            self._events.popleft()

    async def record_throttle(self) -> None:
        async with self._lock:
            now = self._clock()
            self._prune(now)
            self._events.append(now)

    async def pressure(self) -> int:
        async with self._lock:
            self._prune(self._clock())
            return min(self.max_pressure, len(self._events))


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    tracker: Optional[ThrottleTracker] = None,
    operation_name: str = "operation",
    log=None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    rng: random.Random = random,
) -> T:
    """
    Await ``operation`` until it succeeds, fails terminally or exhausts the policy.

    Only CostReportErrors whose kind is retryable are retried; the last error
    is re-raised once attempts or the time budget run out.
    """
    log = log or logger
    started = clock()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except CostReportError as error:
            if not error.retryable:
                raise
            if tracker is not None and error.kind in THROTTLE_KINDS:
                await tracker.record_throttle()
            if attempt >= policy.max_attempts:
                log.warning(
                    "retry_attempts_exhausted",
                    operation=operation_name,
                    attempts=attempt,
                    error_kind=error.kind.value,
                )
                raise

            pressure = await tracker.pressure() if tracker is not None else 0
            delay = rng.uniform(0, policy.backoff_cap(attempt, pressure))
            elapsed = clock() - started
            if elapsed + delay > policy.budget:
                log.warning(
                    "retry_budget_exhausted",
                    operation=operation_name,
                    attempts=attempt,
                    elapsed=round(elapsed, 3),
                    error_kind=error.kind.value,
                )
                raise

            log.info(
                "retrying_transient_failure",
                operation=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=round(delay, 3),
                pressure=pressure,
                error_kind=error.kind.value,
            )
            await sleep(delay)
