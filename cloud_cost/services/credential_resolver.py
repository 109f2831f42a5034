"""
Credential Resolver

Turns one AccountConfig into a usable, possibly time-limited boto3 session.
Static keys and profiles resolve locally; role assumption makes one STS call
against the base credentials (a named profile or the default chain).
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    ProfileNotFound,
)
import structlog

from cloud_cost.models.accounts import AccountConfig, AssumeRoleSpec, CredentialStrategy
from cloud_cost.utils.aws_constants import (
    AwsService,
    ROLE_SESSION_NAME_MAX_LENGTH,
    ROLE_SESSION_NAME_PREFIX,
    THROTTLING_ERROR_CODES,
)
from cloud_cost.utils.aws_session import (
    call_aws,
    classify_aws_error,
    client_error_code,
    create_aws_session,
    get_default_retry_config,
)
from cloud_cost.utils.errors import CredentialError, ErrorKind, ProviderError

logger = structlog.get_logger(__name__)

# Re-resolve temporary credentials this long before they actually expire
DEFAULT_EXPIRY_SKEW = timedelta(minutes=2)

_SESSION_NAME_INVALID = re.compile(r"[^\w+=,.@-]")


@dataclass(frozen=True)
class ResolvedCredentials:
    """
    Credentials for one account, owned by the fetcher that resolved them.

    ``expiration`` is set for temporary credentials obtained by assuming a role.
    """
    account_ref: str
    session: boto3.Session
    source: CredentialStrategy
    expiration: Optional[datetime] = None

    def is_expired(
        self,
        now: Optional[datetime] = None,
        skew: timedelta = DEFAULT_EXPIRY_SKEW,
    ) -> bool:
        if self.expiration is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + skew >= self.expiration

    def __repr__(self) -> str:
        return (
            f"ResolvedCredentials(account_ref={self.account_ref!r}, "
            f"source={self.source.value}, expiration={self.expiration})"
        )


def role_session_name(account_ref: str, override: Optional[str] = None) -> str:
    """STS session names allow [\\w+=,.@-] and at most 64 characters."""
    name = override or f"{ROLE_SESSION_NAME_PREFIX}-{account_ref}"
    name = _SESSION_NAME_INVALID.sub("-", name)
    return name[:ROLE_SESSION_NAME_MAX_LENGTH]


class CredentialResolver:
    """Resolve AccountConfig entries into ResolvedCredentials."""

    def __init__(self, region_name: Optional[str] = None, role_duration_seconds: int = 900):
        self.region_name = region_name
        self.role_duration_seconds = role_duration_seconds

    async def resolve(self, account: AccountConfig) -> ResolvedCredentials:
        """
        Resolve credentials for one account.

        Raises:
            CredentialError: PROFILE_NOT_FOUND, ASSUME_ROLE_DENIED,
                ASSUME_ROLE_THROTTLED or NO_CREDENTIALS
            ProviderError: UNAVAILABLE when STS cannot be reached,
                MALFORMED when STS returns no credentials
        """
        strategy = account.strategy
        log = logger.bind(account_ref=account.account_ref, strategy=strategy.value)

        if strategy == CredentialStrategy.STATIC:
            keys = account.static_keys
            session = await call_aws(
                create_aws_session,
                region_name=self.region_name,
                access_key_id=keys.access_key_id,
                secret_access_key=keys.secret_access_key,
                session_token=keys.session_token,
            )
            log.debug("credentials_resolved")
            return ResolvedCredentials(account.account_ref, session, strategy)

        if strategy == CredentialStrategy.PROFILE:
            session = await self._profile_session(account.profile, account.account_ref)
            log.debug("credentials_resolved", profile=account.profile)
            return ResolvedCredentials(account.account_ref, session, strategy)

        return await self._assume_role(account.account_ref, account.assume_role, log)

    async def _profile_session(self, profile: Optional[str], account_ref: str) -> boto3.Session:
        try:
            return await call_aws(create_aws_session, region_name=self.region_name, profile_name=profile)
        except ProfileNotFound as e:
            raise CredentialError(
                ErrorKind.PROFILE_NOT_FOUND,
                f"AWS profile {profile!r} not found for account {account_ref!r}",
                e,
            ) from e

    async def _assume_role(self, account_ref: str, spec: AssumeRoleSpec, log) -> ResolvedCredentials:
        base_session = await self._profile_session(spec.base_profile, account_ref)
        # Building the client can resolve base credentials (SSO, IMDS, credential_process)
        sts = await call_aws(base_session.client, AwsService.STS, config=get_default_retry_config())

        params = {
            "RoleArn": spec.role_arn,
            "RoleSessionName": role_session_name(account_ref, spec.session_name),
            "DurationSeconds": self.role_duration_seconds,
        }
        if spec.external_id:
            params["ExternalId"] = spec.external_id

        try:
            response = await call_aws(sts.assume_role, **params)
        except NoCredentialsError as e:
            raise CredentialError(
                ErrorKind.NO_CREDENTIALS,
                "No base credentials available to assume the role",
                e,
            ) from e
        except ClientError as e:
            code = client_error_code(e)
            log.warning("assume_role_failed", role_arn=spec.role_arn, error_code=code)
            if code in THROTTLING_ERROR_CODES:
                raise CredentialError(
                    ErrorKind.ASSUME_ROLE_THROTTLED,
                    f"AssumeRole throttled for {spec.role_arn}",
                    e,
                ) from e
            if classify_aws_error(e) == ErrorKind.UNAVAILABLE:
                raise ProviderError(ErrorKind.UNAVAILABLE, f"STS unavailable: {code}", e) from e
            raise CredentialError(
                ErrorKind.ASSUME_ROLE_DENIED,
                f"AssumeRole denied for {spec.role_arn}: {code or 'unknown error'}",
                e,
            ) from e
        except BotoCoreError as e:
            raise ProviderError(ErrorKind.UNAVAILABLE, f"STS unreachable: {e}", e) from e

        credentials = response.get("Credentials")
        if not credentials:
            raise ProviderError(ErrorKind.MALFORMED, "AssumeRole returned no credentials")

        try:
            session = await call_aws(
                create_aws_session,
                region_name=self.region_name,
                access_key_id=credentials["AccessKeyId"],
                secret_access_key=credentials["SecretAccessKey"],
                session_token=credentials["SessionToken"],
            )
        except KeyError as e:
            raise ProviderError(ErrorKind.MALFORMED, f"AssumeRole credentials missing {e}") from e

        expiration = credentials.get("Expiration")
        if isinstance(expiration, datetime) and expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)

        log.info("role_assumed", role_arn=spec.role_arn, expiration=str(expiration))
        return ResolvedCredentials(account_ref, session, CredentialStrategy.ASSUME_ROLE, expiration)
