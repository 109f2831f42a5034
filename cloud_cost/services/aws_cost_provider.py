"""
AWS Cost Explorer provider implementation.

Identity comes from STS (account id) with the display name looked up in
AWS Organizations, then IAM account aliases, then the caller's account_ref.
Costs come from Cost Explorer GetCostAndUsage grouped by SERVICE.
"""
import math
from collections import defaultdict
from typing import Any, Dict, Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from cloud_cost.models.cost import AccountIdentity, DateRange, PeriodCost
from cloud_cost.services.cost_provider import CostProvider
from cloud_cost.services.credential_resolver import ResolvedCredentials
from cloud_cost.utils.aws_constants import (
    AwsService,
    COST_EXPLORER_REGION,
    COST_METRIC,
    MONTHLY_GRANULARITY,
    SERVICE_DIMENSION,
    UNKNOWN_SERVICE,
)
from cloud_cost.utils.aws_session import (
    call_aws,
    classify_aws_error,
    client_error_code,
    get_default_retry_config,
)
from cloud_cost.utils.errors import ErrorKind, ProviderError

logger = structlog.get_logger(__name__)

# Guard against a provider handing back the same page token forever
MAX_COST_PAGES = 100


def _provider_error(operation: str, error: Exception) -> ProviderError:
    kind = classify_aws_error(error)
    code = client_error_code(error) if isinstance(error, ClientError) else type(error).__name__
    return ProviderError(kind, f"{operation} failed: {code}", error)


def _parse_amount(raw: Any, service: str) -> float:
    try:
        amount = float(raw)
    except (TypeError, ValueError) as e:
        raise ProviderError(
            ErrorKind.MALFORMED,
            f"Non-numeric {COST_METRIC} amount {raw!r} for {service}",
            e,
        ) from e
    if not math.isfinite(amount):
        raise ProviderError(ErrorKind.MALFORMED, f"Non-finite {COST_METRIC} amount for {service}")
    return amount


def parse_cost_pages(pages) -> Dict[str, float]:
    """
    Sum UnblendedCost per service across every ResultsByTime window of every page.

    Raises:
        ProviderError: MALFORMED when the response shape or an amount is unusable
    """
    services: Dict[str, float] = defaultdict(float)
    for page in pages:
        results = page.get("ResultsByTime")
        if not isinstance(results, list):
            raise ProviderError(ErrorKind.MALFORMED, "GetCostAndUsage response has no ResultsByTime")
        for window in results:
            for group in window.get("Groups", []) or []:
                keys = group.get("Keys") or []
                service = keys[0] if keys else UNKNOWN_SERVICE
                metric = (group.get("Metrics") or {}).get(COST_METRIC)
                if not metric or "Amount" not in metric:
                    raise ProviderError(
                        ErrorKind.MALFORMED,
                        f"Group {service!r} is missing the {COST_METRIC} metric",
                    )
                services[service] += _parse_amount(metric["Amount"], service)
    return dict(services)


class AwsCostProvider(CostProvider):
    """Cost Explorer backed CostProvider."""

    def __init__(
        self,
        region_name: str = COST_EXPLORER_REGION,
        client_config: Optional[Config] = None,
    ):
        self.region_name = region_name
        self.client_config = client_config or get_default_retry_config()

    @property
    def name(self) -> str:
        return "aws"

    async def _client(self, credentials: ResolvedCredentials, service: str):
        # Client construction walks the credential chain and loads service models
        return await call_aws(
            credentials.session.client,
            service,
            region_name=self.region_name,
            config=self.client_config,
        )

    async def get_identity(self, credentials: ResolvedCredentials) -> AccountIdentity:
        try:
            sts = await self._client(credentials, AwsService.STS)
            response = await call_aws(sts.get_caller_identity)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error("GetCallerIdentity", e) from e

        account_id = response.get("Account")
        if not account_id:
            raise ProviderError(ErrorKind.MALFORMED, "GetCallerIdentity returned no account id")

        account_name = await self._resolve_account_name(credentials, account_id)
        return AccountIdentity(account_id=account_id, account_name=account_name)

    async def _resolve_account_name(self, credentials: ResolvedCredentials, account_id: str) -> str:
        """Best effort: member accounts usually cannot call Organizations."""
        log = logger.bind(account_ref=credentials.account_ref, account_id=account_id)

        try:
            org = await self._client(credentials, AwsService.ORGANIZATIONS)
            response = await call_aws(org.describe_account, AccountId=account_id)
            name = (response.get("Account") or {}).get("Name")
            if name:
                return name
        except (ClientError, BotoCoreError) as e:
            log.debug("organizations_name_lookup_failed", error=str(e))

        try:
            iam = await self._client(credentials, AwsService.IAM)
            response = await call_aws(iam.list_account_aliases)
            aliases = response.get("AccountAliases") or []
            if aliases:
                return aliases[0]
        except (ClientError, BotoCoreError) as e:
            log.debug("iam_alias_lookup_failed", error=str(e))

        return credentials.account_ref

    async def get_cost(self, credentials: ResolvedCredentials, date_range: DateRange) -> PeriodCost:
        params: Dict[str, Any] = {
            "TimePeriod": date_range.to_time_period(),
            "Granularity": MONTHLY_GRANULARITY,
            "Metrics": [COST_METRIC],
            "GroupBy": [{"Type": "DIMENSION", "Key": SERVICE_DIMENSION}],
        }

        pages = []
        try:
            ce = await self._client(credentials, AwsService.COST_EXPLORER)
            token: Optional[str] = None
            for _ in range(MAX_COST_PAGES):
                if token:
                    params["NextPageToken"] = token
                page = await call_aws(ce.get_cost_and_usage, **params)
                pages.append(page)
                token = page.get("NextPageToken")
                if not token:
                    break
            else:
                raise ProviderError(
                    ErrorKind.MALFORMED,
                    f"GetCostAndUsage returned more than {MAX_COST_PAGES} pages",
                )
        except (ClientError, BotoCoreError) as e:
            raise _provider_error("GetCostAndUsage", e) from e

        cost = PeriodCost.from_services(parse_cost_pages(pages))
        logger.debug(
            "period_cost_fetched",
            account_ref=credentials.account_ref,
            start=date_range.start.isoformat(),
            end=date_range.end.isoformat(),
            services=len(cost.services),
            total=round(cost.total, 2),
        )
        return cost
