"""
Shared fixtures: an in-memory cost provider and credential resolver so the
fetcher, aggregator and report service can be exercised without AWS.
"""

import asyncio
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from cloud_cost.config.settings import clear_settings_cache
from cloud_cost.finops.periods import report_periods
from cloud_cost.models.accounts import AccountConfig
from cloud_cost.models.cost import AccountIdentity, DateRange, PeriodCost, ReportPeriods
from cloud_cost.services.cost_provider import CostProvider
from cloud_cost.services.credential_resolver import ResolvedCredentials
from cloud_cost.utils.retry import RetryPolicy

TODAY = date(2024, 5, 15)


class FakeResolver:
    """Resolves every account to a mock session; failures are scripted per account_ref."""

    def __init__(self):
        self.calls: Dict[str, int] = defaultdict(int)
        self.errors: Dict[str, List[Exception]] = defaultdict(list)
        self.expiration = None

    def fail(self, account_ref: str, *errors: Exception) -> None:
        self.errors[account_ref].extend(errors)

    async def resolve(self, account: AccountConfig) -> ResolvedCredentials:
        self.calls[account.account_ref] += 1
        pending = self.errors[account.account_ref]
        if pending:
            raise pending.pop(0)
        return ResolvedCredentials(
            account_ref=account.account_ref,
            session=MagicMock(name=f"session-{account.account_ref}"),
            source=account.strategy,
            expiration=self.expiration,
        )


class FakeProvider(CostProvider):
    """
    In-memory CostProvider.

    Costs are registered per account_ref for the current and previous
    periods; scripted errors are raised (one per call) before answering.
    """

    def __init__(self, periods: ReportPeriods):
        self.periods = periods
        self.identities: Dict[str, AccountIdentity] = {}
        self.costs: Dict[str, Dict[str, Dict[str, float]]] = defaultdict(dict)
        self.errors: Dict[tuple, List[Exception]] = defaultdict(list)
        self.delays: Dict[str, float] = {}
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return "fake"

    def add_account(
        self,
        account_ref: str,
        current: Dict[str, float],
        previous: Dict[str, float],
        account_id: Optional[str] = None,
        account_name: Optional[str] = None,
    ) -> None:
        self.identities[account_ref] = AccountIdentity(
            account_id=account_id or f"1111{len(self.identities):08d}",
            account_name=account_name or account_ref,
        )
        self.costs[account_ref] = {"current": current, "previous": previous}

    def fail(self, account_ref: str, stage: str, *errors: Exception) -> None:
        """stage is one of identity, current or previous."""
        self.errors[(account_ref, stage)].extend(errors)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def _answer(self, account_ref: str, stage: str):
        self.calls.append((account_ref, stage))
        delay = self.delays.get(account_ref)
        if delay:
            await asyncio.sleep(delay)
        pending = self.errors[(account_ref, stage)]
        if pending:
            raise pending.pop(0)

    async def get_identity(self, credentials: ResolvedCredentials) -> AccountIdentity:
        await self._answer(credentials.account_ref, "identity")
        return self.identities[credentials.account_ref]

    async def get_cost(self, credentials: ResolvedCredentials, date_range: DateRange) -> PeriodCost:
        stage = "current" if date_range == self.periods.current else "previous"
        await self._answer(credentials.account_ref, stage)
        return PeriodCost.from_services(self.costs[credentials.account_ref].get(stage, {}))


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def periods() -> ReportPeriods:
    return report_periods(TODAY)


@pytest.fixture
def fake_provider(periods) -> FakeProvider:
    return FakeProvider(periods)


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    """Retries without sleeping"""
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, budget=5.0)


@pytest.fixture
def profile_accounts() -> List[AccountConfig]:
    return [AccountConfig.from_profile("A"), AccountConfig.from_profile("B")]

