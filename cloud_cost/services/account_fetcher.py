"""
Account Fetcher

Runs the per-account sequence: resolve credentials, then query identity,
current-period cost and previous-period cost. It is the failure containment
boundary for one account: every failure becomes an AccountFailed result.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from prometheus_client import Counter
import structlog

from cloud_cost.models.accounts import AccountConfig
from cloud_cost.models.cost import (
    AccountFailed,
    AccountResult,
    AccountSucceeded,
    ReportPeriods,
)
from cloud_cost.services.cost_provider import CostProvider
from cloud_cost.services.credential_resolver import CredentialResolver, ResolvedCredentials
from cloud_cost.utils.errors import CostReportError, ErrorKind, describe_error
from cloud_cost.utils.retry import RetryPolicy, ThrottleTracker, retry_transient

logger = structlog.get_logger(__name__)

T = TypeVar("T")

account_fetch_total = Counter(
    "cloud_cost_account_fetch_total",
    "Account fetches by outcome",
    ["outcome", "error_kind"],
)


class FetchState(str, Enum):
    PENDING = "pending"
    RESOLVING_CREDENTIALS = "resolving_credentials"
    FETCHING_IDENTITY = "fetching_identity"
    FETCHING_CURRENT_PERIOD = "fetching_current_period"
    FETCHING_PREVIOUS_PERIOD = "fetching_previous_period"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (FetchState.SUCCEEDED, FetchState.FAILED)


class _StageError(Exception):
    """Wraps a failure with the state it happened in."""

    def __init__(self, state: FetchState, error: BaseException):
        super().__init__(str(error))
        self.state = state
        self.error = error


async def _first_failure_cancels(calls: List[Awaitable]) -> List:
    """
    Await the stage calls concurrently and return their results in order.

    A stage only raises once its own retries are spent, so the first failure
    decides the account and the remaining stages are cancelled. Among stages
    that have already failed, the earliest one is raised.
    """
    tasks = [asyncio.ensure_future(call) for call in calls]
    pending = set(tasks)
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]


class _FetchRun:
    """Mutable bookkeeping for one fetch; never shared between accounts."""

    def __init__(self, account: AccountConfig, log, on_state=None):
        self.account = account
        self.log = log
        self.on_state = on_state
        self.state = FetchState.PENDING
        self.credentials: Optional[ResolvedCredentials] = None

    def enter(self, state: FetchState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Fetch for {self.account.account_ref} already {self.state.value}")
        self.state = state
        self.log.debug("fetch_state_changed", state=state.value)
        if self.on_state is not None:
            self.on_state(state)


class AccountFetcher:
    """Produce one AccountResult per AccountConfig."""

    def __init__(
        self,
        resolver: CredentialResolver,
        provider: CostProvider,
        retry_policy: Optional[RetryPolicy] = None,
        throttle_tracker: Optional[ThrottleTracker] = None,
        pipeline_queries: bool = True,
    ):
        self.resolver = resolver
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()
        self.throttle_tracker = throttle_tracker
        self.pipeline_queries = pipeline_queries

    async def fetch(
        self,
        account: AccountConfig,
        periods: ReportPeriods,
        on_state: Optional[Callable[[FetchState], None]] = None,
    ) -> AccountResult:
        """
        Fetch identity and both periods for one account.

        Never raises for provider, credential or unexpected errors; task
        cancellation propagates.
        """
        log = logger.bind(account_ref=account.account_ref, provider=self.provider.name)
        run = _FetchRun(account, log, on_state)

        try:
            result = await self._run(run, periods)
        except _StageError as failure:
            return self._failed(run, failure.state, failure.error)

        run.enter(FetchState.SUCCEEDED)
        account_fetch_total.labels(outcome="succeeded", error_kind="").inc()
        log.info(
            "account_fetch_succeeded",
            account_id=result.identity.account_id,
            current_total=round(result.current.total, 2),
            previous_total=round(result.previous.total, 2),
        )
        return result

    async def _run(self, run: _FetchRun, periods: ReportPeriods) -> AccountSucceeded:
        run.enter(FetchState.RESOLVING_CREDENTIALS)
        await self._stage(
            FetchState.RESOLVING_CREDENTIALS,
            lambda: self._refresh_credentials(run, force=True),
            run,
        )

        def identity_call():
            return self._stage(
                FetchState.FETCHING_IDENTITY,
                lambda: self._with_credentials(run, self.provider.get_identity),
                run,
            )

        def cost_call(state: FetchState, date_range):
            return self._stage(
                state,
                lambda: self._with_credentials(
                    run, lambda creds: self.provider.get_cost(creds, date_range)
                ),
                run,
            )

        if self.pipeline_queries:
            run.enter(FetchState.FETCHING_IDENTITY)
            run.enter(FetchState.FETCHING_CURRENT_PERIOD)
            run.enter(FetchState.FETCHING_PREVIOUS_PERIOD)
            identity, current, previous = await _first_failure_cancels([
                identity_call(),
                cost_call(FetchState.FETCHING_CURRENT_PERIOD, periods.current),
                cost_call(FetchState.FETCHING_PREVIOUS_PERIOD, periods.previous),
            ])
        else:
            run.enter(FetchState.FETCHING_IDENTITY)
            identity = await identity_call()
            run.enter(FetchState.FETCHING_CURRENT_PERIOD)
            current = await cost_call(FetchState.FETCHING_CURRENT_PERIOD, periods.current)
            run.enter(FetchState.FETCHING_PREVIOUS_PERIOD)
            previous = await cost_call(FetchState.FETCHING_PREVIOUS_PERIOD, periods.previous)

        return AccountSucceeded(
            account_ref=run.account.account_ref,
            identity=identity,
            current=current,
            previous=previous,
        )

    async def _stage(
        self,
        state: FetchState,
        operation: Callable[[], Awaitable[T]],
        run: _FetchRun,
    ) -> T:
        try:
            return await retry_transient(
                operation,
                self.retry_policy,
                tracker=self.throttle_tracker,
                operation_name=state.value,
                log=run.log,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise _StageError(state, e) from e

    async def _refresh_credentials(self, run: _FetchRun, force: bool = False) -> ResolvedCredentials:
        if force or run.credentials is None or run.credentials.is_expired():
            if run.credentials is not None:
                run.log.info("credentials_expired_reresolving")
            run.credentials = await self.resolver.resolve(run.account)
        return run.credentials

    async def _with_credentials(self, run: _FetchRun, call: Callable[[ResolvedCredentials], Awaitable[T]]) -> T:
        credentials = await self._refresh_credentials(run)
        return await call(credentials)

    def _failed(self, run: _FetchRun, state: FetchState, error: BaseException) -> AccountFailed:
        if isinstance(error, CostReportError):
            kind = error.kind
            run.log.warning(
                "account_fetch_failed",
                stage=state.value,
                error_kind=kind.value,
                error=error.message,
            )
        else:
            kind = ErrorKind.UNAVAILABLE
            run.log.error(
                "account_fetch_crashed",
                stage=state.value,
                error=str(error),
                error_type=type(error).__name__,
                exc_info=error,
            )

        run.state = FetchState.FAILED
        if run.on_state is not None:
            run.on_state(FetchState.FAILED)
        account_fetch_total.labels(outcome="failed", error_kind=kind.value).inc()
        return AccountFailed(
            account_ref=run.account.account_ref,
            error_kind=kind,
            message=describe_error(error),
            stage=state.value,
        )
