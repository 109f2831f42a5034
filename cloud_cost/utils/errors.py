"""
Centralized Error Handling Utilities

Defines the error taxonomy shared by the credential resolver, the cost
providers and the report service, plus the consistent error response format
used by the HTTP layer.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorKind(str, Enum):
    """Failure kinds an account fetch or a report request can end with"""
    # Credential resolution
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    ASSUME_ROLE_DENIED = "ASSUME_ROLE_DENIED"
    ASSUME_ROLE_THROTTLED = "ASSUME_ROLE_THROTTLED"
    NO_CREDENTIALS = "NO_CREDENTIALS"

    # Cost provider
    THROTTLED = "THROTTLED"
    ACCESS_DENIED = "ACCESS_DENIED"
    UNAVAILABLE = "UNAVAILABLE"
    MALFORMED = "MALFORMED"

    # Report service
    UNAUTHORIZED = "UNAUTHORIZED"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({
    ErrorKind.THROTTLED,
    ErrorKind.UNAVAILABLE,
    ErrorKind.ASSUME_ROLE_THROTTLED,
})


class CostReportError(Exception):
    """Base class for errors carrying an ErrorKind."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.original_error = original_error

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}, {self.message!r})"


class CredentialError(CostReportError):
    """Raised when an account's credentials cannot be resolved."""


class ProviderError(CostReportError):
    """Raised by a cost provider when a billing or identity query fails."""


class AuthError(CostReportError):
    """Raised when a report request is not authorized."""

    def __init__(self, message: str = "Authentication is required to access this resource."):
        super().__init__(ErrorKind.UNAUTHORIZED, message)


class ErrorCode(str, Enum):
    """Standard error codes for consistent API responses"""
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    AWS_SERVICE_ERROR = "AWS_SERVICE_ERROR"
    AWS_PERMISSION_ERROR = "AWS_PERMISSION_ERROR"
    AWS_RATE_LIMITED = "AWS_RATE_LIMITED"


# User-friendly error messages (do not expose internal details)
USER_FRIENDLY_MESSAGES = {
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again later.",
    ErrorCode.UNAUTHORIZED: "Authentication is required to access this resource.",
    ErrorCode.AWS_SERVICE_ERROR: "Unable to retrieve data from AWS. Please try again later.",
    ErrorCode.AWS_PERMISSION_ERROR: "Insufficient AWS permissions for this account.",
    ErrorCode.AWS_RATE_LIMITED: "AWS rate limit reached. Please wait a moment before trying again.",
}


# Summary-level messages shown for failed accounts in a report
KIND_MESSAGES = {
    ErrorKind.PROFILE_NOT_FOUND: "The configured AWS profile was not found.",
    ErrorKind.ASSUME_ROLE_DENIED: "Access denied while assuming the account role.",
    ErrorKind.ASSUME_ROLE_THROTTLED: "Role assumption was rate limited.",
    ErrorKind.NO_CREDENTIALS: "No base AWS credentials are available.",
    ErrorKind.THROTTLED: USER_FRIENDLY_MESSAGES[ErrorCode.AWS_RATE_LIMITED],
    ErrorKind.ACCESS_DENIED: USER_FRIENDLY_MESSAGES[ErrorCode.AWS_PERMISSION_ERROR],
    ErrorKind.UNAVAILABLE: USER_FRIENDLY_MESSAGES[ErrorCode.AWS_SERVICE_ERROR],
    ErrorKind.MALFORMED: "AWS returned cost data that could not be read.",
    ErrorKind.UNAUTHORIZED: USER_FRIENDLY_MESSAGES[ErrorCode.UNAUTHORIZED],
}


def create_error_response(
    code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        code: Error code enum
        message: Optional custom message (defaults to user-friendly message)
        details: Optional additional details (be careful not to expose sensitive info)

    Returns:
        Standardized error response dict
    """
    return {
        "error": {
            "code": code.value,
            "message": message or USER_FRIENDLY_MESSAGES.get(code, USER_FRIENDLY_MESSAGES[ErrorCode.INTERNAL_ERROR]),
            **({"details": details} if details else {}),
        }
    }


def describe_error(error: Exception) -> str:
    """Message recorded against a failed account."""
    if isinstance(error, CostReportError):
        return error.message or KIND_MESSAGES[error.kind]
    return str(error) or type(error).__name__
