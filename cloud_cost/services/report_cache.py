"""
In-memory report cache

Holds the last Report per account configuration set for a short TTL so a
dashboard refresh does not re-query Cost Explorer (which is billed per
request). Single-process only.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Sequence, Tuple

import structlog

from cloud_cost.models.accounts import AccountConfig, accounts_fingerprint
from cloud_cost.models.cost import Report

logger = structlog.get_logger(__name__)


class ReportCache:
    """TTL cache keyed by the fingerprint of the account configuration."""

    def __init__(self, ttl_seconds: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # {fingerprint: (stored_at, report)}
        self._storage: Dict[str, Tuple[float, Report]] = {}
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    @staticmethod
    def key_for(accounts: Sequence[AccountConfig]) -> str:
        return accounts_fingerprint(accounts)

    async def get(self, accounts: Sequence[AccountConfig]) -> Optional[Report]:
        if not self.enabled:
            return None

        key = self.key_for(accounts)
        async with self._lock:
            entry = self._storage.get(key)
            if entry is None:
                return None
            stored_at, report = entry
            age = self._clock() - stored_at
            if age >= self.ttl_seconds:
                del self._storage[key]
                logger.debug("report_cache_expired", key=key[:12], age=round(age, 3))
                return None

        logger.debug("report_cache_hit", key=key[:12], age=round(age, 3))
        return report

    async def set(self, accounts: Sequence[AccountConfig], report: Report) -> None:
        if not self.enabled:
            return

        key = self.key_for(accounts)
        async with self._lock:
            self._storage[key] = (self._clock(), report)

    async def clear(self) -> None:
        async with self._lock:
            self._storage.clear()
