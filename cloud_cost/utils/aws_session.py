"""
AWS Session Factory

Creates boto3 sessions for the credential strategies an account can use and
classifies botocore failures into the report's error taxonomy.

Credential sources:
1. Static key pairs from the accounts file (wrapped directly, no network call)
2. Named profiles from the shared config/credentials files
3. boto3's default credential chain (environment, instance/task role, ...)
   used as the base for role assumption when no base profile is configured
"""

import asyncio
import functools
from typing import Any, Callable, Optional, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)
import structlog

from cloud_cost.utils.aws_constants import (
    ACCESS_DENIED_ERROR_CODES,
    DEFAULT_AWS_REGION,
    THROTTLING_ERROR_CODES,
    UNAVAILABLE_ERROR_CODES,
)
from cloud_cost.utils.errors import ErrorKind

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)


def create_aws_session(
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    session_token: Optional[str] = None,
) -> boto3.Session:
    """
    Create an AWS session.

    With no keys and no profile the session uses boto3's default credential
    chain. Raises botocore ``ProfileNotFound`` if ``profile_name`` is unknown.

    Args:
        region_name: AWS region (defaults to us-east-1)
        profile_name: Optional shared config profile name
        access_key_id: Optional static access key id
        secret_access_key: Optional static secret access key
        session_token: Optional session token for temporary credentials

    Returns:
        boto3.Session
    """
    session_kwargs = {"region_name": region_name or DEFAULT_AWS_REGION}
    if profile_name:
        session_kwargs["profile_name"] = profile_name
    if access_key_id and secret_access_key:
        session_kwargs["aws_access_key_id"] = access_key_id
        session_kwargs["aws_secret_access_key"] = secret_access_key
        if session_token:
            session_kwargs["aws_session_token"] = session_token

    session = boto3.Session(**session_kwargs)

    logger.debug(
        "aws_session_created",
        region=session_kwargs["region_name"],
        profile=profile_name,
        credential_method=(
            "static" if access_key_id else "profile" if profile_name else "default_chain"
        ),
    )

    return session


def get_default_retry_config(
    max_attempts: int = 1,
    mode: str = "standard",
    max_pool_connections: int = 10,
    connect_timeout: float = 5.0,
    read_timeout: float = 30.0,
) -> Config:
    """
    Get a standard botocore Config for report clients.

    botocore's own retries default to a single attempt: transient failures
    are retried by the account fetcher so that backoff is coordinated across
    accounts.

    Args:
        max_attempts: Maximum attempts made by botocore itself
        mode: Retry mode ('legacy', 'standard', 'adaptive')
        max_pool_connections: Connection pool size
        connect_timeout: Connection timeout in seconds
        read_timeout: Read timeout in seconds

    Returns:
        botocore.config.Config instance
    """
    return Config(
        retries={
            "max_attempts": max_attempts,
            "mode": mode,
        },
        max_pool_connections=max_pool_connections,
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
    )


def client_error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "") or ""


def classify_aws_error(error: Exception) -> ErrorKind:
    """
    Map a botocore failure to the provider error taxonomy.

    Unknown client errors with a 5xx status are treated as transient, other
    unknown client errors as unusable responses.
    """
    if isinstance(error, ClientError):
        code = client_error_code(error)
        if code in THROTTLING_ERROR_CODES:
            return ErrorKind.THROTTLED
        if code in ACCESS_DENIED_ERROR_CODES:
            return ErrorKind.ACCESS_DENIED
        if code in UNAVAILABLE_ERROR_CODES:
            return ErrorKind.UNAVAILABLE
        status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if status_code == 429:
            return ErrorKind.THROTTLED
        if status_code in (401, 403):
            return ErrorKind.ACCESS_DENIED
        if status_code >= 500:
            return ErrorKind.UNAVAILABLE
        return ErrorKind.MALFORMED

    if isinstance(error, NoCredentialsError):
        return ErrorKind.ACCESS_DENIED
    if isinstance(error, _CONNECTION_ERRORS):
        return ErrorKind.UNAVAILABLE
    if isinstance(error, BotoCoreError):
        return ErrorKind.UNAVAILABLE
    return ErrorKind.MALFORMED


async def call_aws(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking boto3 call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
