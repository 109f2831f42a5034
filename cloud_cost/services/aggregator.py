"""
Aggregator

Fans the Account Fetcher out over every configured account under a
concurrency limit and folds the results into one Report. A report is always
produced: failed or timed-out accounts become flagged summaries.
"""

import asyncio
import time
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from prometheus_client import Histogram
import structlog

from cloud_cost.finops.periods import report_periods
from cloud_cost.models.accounts import AccountConfig
from cloud_cost.models.cost import (
    AccountFailed,
    AccountResult,
    AccountSucceeded,
    AccountSummary,
    Report,
    ReportPeriods,
)
from cloud_cost.services.account_fetcher import AccountFetcher, FetchState
from cloud_cost.utils.errors import ErrorKind

logger = structlog.get_logger(__name__)

report_build_seconds = Histogram(
    "cloud_cost_report_build_seconds",
    "Time to build one cost report across all accounts",
)

DEFAULT_TOP_N = 10
TIMED_OUT_MESSAGE = "timed out"

# Previous totals below this are treated as zero for the percent change
ZERO_EPSILON = 1e-9


def percent_change(current: float, previous: float) -> float:
    """Percent change from previous to current; 0.0 when there is no baseline."""
    if abs(previous) < ZERO_EPSILON:
        return 0.0
    return (current - previous) / previous * 100.0


def rank_services(services: Mapping[str, float], top_n: int = DEFAULT_TOP_N) -> List[Tuple[str, float]]:
    """
    Top ``top_n`` services by cost, descending.

    Ties are broken by service name so the ranking is deterministic.
    """
    if top_n <= 0:
        return []
    ranked = sorted(services.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:top_n]


def fold_report(
    accounts: Sequence[AccountConfig],
    results: Sequence[AccountResult],
    periods: ReportPeriods,
    top_n: int = DEFAULT_TOP_N,
    generated_at: Optional[datetime] = None,
) -> Report:
    """
    Fold per-account results into a Report.

    ``results`` must be aligned with ``accounts``; summaries keep that order.
    Only succeeded accounts contribute to totals and service rankings.
    """
    if len(accounts) != len(results):
        raise ValueError(
            f"Got {len(results)} results for {len(accounts)} accounts"
        )

    total_all = 0.0
    prev_total = 0.0
    services_total: Dict[str, float] = defaultdict(float)

    for result in results:
        if not isinstance(result, AccountSucceeded):
            continue
        total_all += result.current.total
        prev_total += result.previous.total
        for service, cost in result.current.services.items():
            services_total[service] += cost

    delta = total_all - prev_total
    top_services = rank_services(services_total, top_n)

    return Report(
        periods=periods,
        summaries=tuple(AccountSummary.from_result(result) for result in results),
        total_all=total_all,
        prev_total=prev_total,
        delta=delta,
        delta_pct=percent_change(total_all, prev_total),
        top_services=tuple(top_services),
        services_total=dict(services_total),
        generated_at=generated_at or datetime.now(timezone.utc),
    )


class Aggregator:
    """Build a Report for a set of accounts."""

    def __init__(
        self,
        fetcher: AccountFetcher,
        concurrency_limit: int = 8,
        top_n: int = DEFAULT_TOP_N,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.fetcher = fetcher
        self.concurrency_limit = concurrency_limit
        self.top_n = top_n

    async def build_report(
        self,
        accounts: Sequence[AccountConfig],
        today: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> Report:
        """
        Fetch every account and fold the results.

        Args:
            accounts: Accounts in configuration order
            today: Anchor date for the report periods (UTC today by default)
            timeout: Overall deadline in seconds; accounts still in flight are
                cancelled and reported as UNAVAILABLE

        Returns:
            Report with one summary per account, in configuration order
        """
        started = time.perf_counter()
        periods = report_periods(today)
        log = logger.bind(accounts=len(accounts), provider=self.fetcher.provider.name)
        log.info(
            "report_build_started",
            current_period=str(periods.current),
            previous_period=str(periods.previous),
            concurrency_limit=self.concurrency_limit,
        )

        semaphore = asyncio.Semaphore(self.concurrency_limit)
        stages: List[FetchState] = [FetchState.PENDING] * len(accounts)

        async def fetch_one(index: int, account: AccountConfig) -> AccountResult:
            def track(state: FetchState) -> None:
                stages[index] = state

            async with semaphore:
                return await self.fetcher.fetch(account, periods, on_state=track)

        tasks = [
            asyncio.create_task(fetch_one(index, account), name=f"fetch-{account.account_ref}")
            for index, account in enumerate(accounts)
        ]

        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        else:
            pending = set()

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            log.warning("report_build_timed_out", timeout=timeout, pending=len(pending))

        results: List[AccountResult] = []
        for index, (account, task) in enumerate(zip(accounts, tasks)):
            if task in pending:
                results.append(
                    AccountFailed(
                        account_ref=account.account_ref,
                        error_kind=ErrorKind.UNAVAILABLE,
                        message=TIMED_OUT_MESSAGE,
                        stage=stages[index].value,
                    )
                )
            elif task.exception() is not None:
                error = task.exception()
                log.error(
                    "account_fetch_task_crashed",
                    account_ref=account.account_ref,
                    error=str(error),
                    exc_info=error,
                )
                results.append(
                    AccountFailed(
                        account_ref=account.account_ref,
                        error_kind=ErrorKind.UNAVAILABLE,
                        message=str(error) or type(error).__name__,
                        stage=stages[index].value,
                    )
                )
            else:
                results.append(task.result())

        report = fold_report(accounts, results, periods, self.top_n)

        elapsed = time.perf_counter() - started
        report_build_seconds.observe(elapsed)
        log.info(
            "report_build_completed",
            succeeded=len(report.succeeded_accounts),
            failed=len(report.failed_accounts),
            total_all=round(report.total_all, 2),
            prev_total=round(report.prev_total, 2),
            duration_ms=round(elapsed * 1000, 2),
        )
        return report
