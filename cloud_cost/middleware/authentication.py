"""
Report request authorization

The backend sits behind an API gateway or load balancer that authenticates
callers and forwards the caller identity in a trust header. The authorizer
only gates on that header; it never validates credentials itself.

Modes:
- none: every request is authorized (local development, CLI)
- header-presence: authorized iff the trust header is present and non-blank
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from starlette.requests import Request
import structlog

from cloud_cost.utils.aws_constants import DEFAULT_TRUST_HEADER
from cloud_cost.utils.errors import AuthError

logger = structlog.get_logger(__name__)


class AuthMode(str, Enum):
    NONE = "none"
    HEADER_PRESENCE = "header-presence"

    @classmethod
    def parse(cls, value) -> "AuthMode":
        if isinstance(value, AuthMode):
            return value
        normalized = str(value or "").strip().lower()
        # "iam" is the gateway-facing name for the same check
        if normalized == "iam":
            return cls.HEADER_PRESENCE
        return cls(normalized)


@dataclass
class AuthContext:
    """Request metadata the authorizer looks at. Header names are lowercased."""
    headers: Mapping[str, str] = field(default_factory=dict)
    client_host: Optional[str] = None

    def __post_init__(self):
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], client_host: Optional[str] = None) -> "AuthContext":
        return cls(headers=dict(headers), client_host=client_host)

    @classmethod
    def from_request(cls, request: Request) -> "AuthContext":
        return cls(
            headers=dict(request.headers),
            client_host=request.client.host if request.client else None,
        )

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass
class AuthenticatedCaller:
    """Caller identity as forwarded by the gateway"""
    principal: str

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclass
class AnonymousCaller:
    """Caller admitted without an identity (auth mode none)"""
    principal: str = "anonymous"

    @property
    def is_authenticated(self) -> bool:
        return False


class Authorizer(ABC):
    """Decides whether a report request may proceed."""

    mode: AuthMode

    @abstractmethod
    def authorize(self, context: AuthContext):
        """
        Return the caller for an authorized request.

        Raises:
            AuthError: When the request is rejected
        """


class NoAuthorizer(Authorizer):
    mode = AuthMode.NONE

    def authorize(self, context: AuthContext) -> AnonymousCaller:
        return AnonymousCaller()


class HeaderPresenceAuthorizer(Authorizer):
    """Authorize iff the trust header carries a non-blank value."""

    mode = AuthMode.HEADER_PRESENCE

    def __init__(self, header_name: str = DEFAULT_TRUST_HEADER):
        if not header_name or not header_name.strip():
            raise ValueError("header_name is required for header-presence authorization")
        self.header_name = header_name.strip().lower()

    def authorize(self, context: AuthContext) -> AuthenticatedCaller:
        value = context.header(self.header_name)
        if value is None or not value.strip():
            logger.warning(
                "report_request_unauthorized",
                header=self.header_name,
                client_ip=context.client_host or "unknown",
            )
            raise AuthError()
        return AuthenticatedCaller(principal=value.strip())


def build_authorizer(mode, header_name: Optional[str] = None) -> Authorizer:
    """Build the authorizer for a configured mode."""
    auth_mode = AuthMode.parse(mode)
    if auth_mode == AuthMode.HEADER_PRESENCE:
        return HeaderPresenceAuthorizer(header_name or DEFAULT_TRUST_HEADER)
    return NoAuthorizer()
