"""
Tests for the Report Service authorization gate, caching and wiring
"""

import pytest

from cloud_cost.config.settings import Settings
from cloud_cost.middleware.authentication import (
    AuthContext,
    AuthMode,
    HeaderPresenceAuthorizer,
    NoAuthorizer,
)
from cloud_cost.models.accounts import AccountConfig
from cloud_cost.services.account_fetcher import AccountFetcher
from cloud_cost.services.aggregator import Aggregator
from cloud_cost.services.aws_cost_provider import AwsCostProvider
from cloud_cost.services.report_cache import ReportCache
from cloud_cost.services.report_service import ReportService
from cloud_cost.utils.errors import AuthError, ErrorKind

TRUST_HEADER = "x-amzn-iam-arn"


@pytest.fixture
def accounts(fake_provider):
    fake_provider.add_account("A", current={"EC2": 60.0, "S3": 40.0}, previous={"EC2": 80.0})
    return [AccountConfig.from_profile("A")]


@pytest.fixture
def aggregator(fake_resolver, fake_provider, fast_retry_policy):
    return Aggregator(AccountFetcher(fake_resolver, fake_provider, fast_retry_policy))


class TestAuthorizationGate:
    @pytest.mark.asyncio
    async def test_missing_header_rejected_before_any_provider_call(
        self, aggregator, accounts, fake_provider, fake_resolver
    ):
        service = ReportService(aggregator, accounts, HeaderPresenceAuthorizer(TRUST_HEADER))

        with pytest.raises(AuthError) as exc_info:
            await service.handle_report_request(AuthContext.from_headers({}))

        assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
        assert fake_provider.call_count == 0
        assert sum(fake_resolver.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_blank_header_rejected(self, aggregator, accounts, fake_provider):
        service = ReportService(aggregator, accounts, HeaderPresenceAuthorizer(TRUST_HEADER))

        with pytest.raises(AuthError):
            await service.handle_report_request(AuthContext.from_headers({TRUST_HEADER: "   "}))
        assert fake_provider.call_count == 0

    @pytest.mark.asyncio
    async def test_header_present_builds_report(self, aggregator, accounts, today):
        service = ReportService(aggregator, accounts, HeaderPresenceAuthorizer(TRUST_HEADER))
        context = AuthContext.from_headers({"X-Amzn-Iam-Arn": "arn:aws:iam::111111111111:user/alice"})

        report = await service.handle_report_request(context, today=today)

        assert report.total_all == 100.0

    @pytest.mark.asyncio
    async def test_no_auth_mode_always_authorized(self, aggregator, accounts, today):
        service = ReportService(aggregator, accounts)

        report = await service.handle_report_request(today=today)

        assert report.total_all == 100.0
        assert service.authorizer.mode == AuthMode.NONE


class TestCaching:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, aggregator, accounts, fake_provider):
        service = ReportService(aggregator, accounts, cache=ReportCache(ttl_seconds=60))

        first = await service.handle_report_request()
        calls_after_first = fake_provider.call_count
        second = await service.handle_report_request()

        assert second is first
        assert fake_provider.call_count == calls_after_first

    @pytest.mark.asyncio
    async def test_no_cache_by_default(self, aggregator, accounts, fake_provider):
        service = ReportService(aggregator, accounts)

        await service.handle_report_request()
        calls_after_first = fake_provider.call_count
        await service.handle_report_request()

        assert fake_provider.call_count == 2 * calls_after_first

    @pytest.mark.asyncio
    async def test_explicit_date_bypasses_cache(self, aggregator, accounts, fake_provider, today):
        service = ReportService(aggregator, accounts, cache=ReportCache(ttl_seconds=60))

        await service.handle_report_request(today=today)
        await service.handle_report_request(today=today)

        assert fake_provider.call_count == 6


class TestFromSettings:
    def test_wires_pipeline_from_settings(self):
        settings = Settings(
            auth_mode="header-presence",
            concurrency_limit=3,
            top_n=5,
            request_timeout=42,
            report_cache_ttl=30,
            pipeline_queries=False,
        )

        service = ReportService.from_settings(settings, [AccountConfig.from_profile("dev")])

        assert isinstance(service.authorizer, HeaderPresenceAuthorizer)
        assert service.request_timeout == 42
        assert service.cache is not None and service.cache.ttl_seconds == 30
        assert service.aggregator.concurrency_limit == 3
        assert service.aggregator.top_n == 5
        assert service.aggregator.fetcher.pipeline_queries is False
        assert isinstance(service.aggregator.fetcher.provider, AwsCostProvider)

    def test_explicit_authorizer_wins(self):
        settings = Settings(auth_mode="iam")

        service = ReportService.from_settings(settings, [], authorizer=NoAuthorizer())

        assert service.authorizer.mode == AuthMode.NONE
        assert service.cache is None
