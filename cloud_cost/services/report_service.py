"""
Report Service

Entry point for a report request: authorize, then build (or reuse) the
aggregate report for the configured accounts.
"""

from datetime import date
from typing import List, Optional, Sequence

import structlog

from cloud_cost.middleware.authentication import (
    AuthContext,
    Authorizer,
    NoAuthorizer,
    build_authorizer,
)
from cloud_cost.models.accounts import AccountConfig
from cloud_cost.models.cost import Report
from cloud_cost.services.account_fetcher import AccountFetcher
from cloud_cost.services.aggregator import Aggregator
from cloud_cost.services.aws_cost_provider import AwsCostProvider
from cloud_cost.services.cost_provider import CostProvider
from cloud_cost.services.credential_resolver import CredentialResolver
from cloud_cost.services.report_cache import ReportCache
from cloud_cost.utils.retry import RetryPolicy, ThrottleTracker

logger = structlog.get_logger(__name__)


class ReportService:
    """Authorize report requests and run the aggregator for them."""

    def __init__(
        self,
        aggregator: Aggregator,
        accounts: Sequence[AccountConfig],
        authorizer: Optional[Authorizer] = None,
        request_timeout: Optional[float] = None,
        cache: Optional[ReportCache] = None,
    ):
        self.aggregator = aggregator
        self.accounts: List[AccountConfig] = list(accounts)
        self.authorizer = authorizer or NoAuthorizer()
        self.request_timeout = request_timeout
        self.cache = cache

    @classmethod
    def from_settings(
        cls,
        settings,
        accounts: Sequence[AccountConfig],
        authorizer: Optional[Authorizer] = None,
        provider: Optional[CostProvider] = None,
    ) -> "ReportService":
        """
        Wire the full pipeline from settings.

        The authorizer defaults to the configured auth mode; pass NoAuthorizer
        for trusted local callers such as the CLI.
        """
        provider = provider or AwsCostProvider(region_name=settings.aws_region)
        fetcher = AccountFetcher(
            resolver=CredentialResolver(
                region_name=settings.aws_region,
                role_duration_seconds=settings.assume_role_duration,
            ),
            provider=provider,
            retry_policy=RetryPolicy(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
                budget=settings.retry_budget,
            ),
            throttle_tracker=ThrottleTracker(window_seconds=settings.throttle_window),
            pipeline_queries=settings.pipeline_queries,
        )
        aggregator = Aggregator(
            fetcher,
            concurrency_limit=settings.concurrency_limit,
            top_n=settings.top_n,
        )
        return cls(
            aggregator=aggregator,
            accounts=accounts,
            authorizer=authorizer or build_authorizer(settings.auth_mode, settings.auth_header),
            request_timeout=settings.request_timeout,
            cache=ReportCache(settings.report_cache_ttl) if settings.report_cache_ttl > 0 else None,
        )

    async def handle_report_request(
        self,
        auth_context: Optional[AuthContext] = None,
        today: Optional[date] = None,
    ) -> Report:
        """
        Build the report for every configured account.

        Raises:
            AuthError: When the authorizer rejects the request. No provider
                call is made in that case.
        """
        caller = self.authorizer.authorize(auth_context or AuthContext())
        log = logger.bind(
            caller=caller.principal,
            auth_mode=self.authorizer.mode.value,
            accounts=len(self.accounts),
        )

        # Cached reports are only reused for the implicit "today"
        use_cache = self.cache is not None and today is None
        if use_cache:
            cached = await self.cache.get(self.accounts)
            if cached is not None:
                log.info("report_served_from_cache", generated_at=cached.generated_at.isoformat())
                return cached

        log.info("report_request_started")
        report = await self.aggregator.build_report(
            self.accounts,
            today=today,
            timeout=self.request_timeout,
        )

        if use_cache:
            await self.cache.set(self.accounts, report)
        return report
