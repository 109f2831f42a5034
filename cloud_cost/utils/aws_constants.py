"""
AWS Constants

Centralizes AWS-related string literals used across the codebase: service
names for boto3 clients, service-specific regions and the error codes the
credential resolver and the Cost Explorer provider classify.

Usage:
    from cloud_cost.utils.aws_constants import (
        AwsService,
        COST_EXPLORER_REGION,
    )
"""

from typing import FrozenSet


# =============================================================================
# AWS SERVICE NAMES
# =============================================================================

class AwsService:
    """
    AWS service name constants for boto3 client creation.

    Usage:
        from cloud_cost.utils.aws_constants import AwsService
        ce = session.client(AwsService.COST_EXPLORER, region_name=COST_EXPLORER_REGION)
    """
    # Cost Management
    COST_EXPLORER = "ce"

    # Security & Identity
    IAM = "iam"
    STS = "sts"
    ORGANIZATIONS = "organizations"


# =============================================================================
# AWS REGIONS
# =============================================================================

class AwsRegion:
    """AWS region constants used for global services."""
    US_EAST_1 = "us-east-1"  # N. Virginia (primary for many global services)


# Cost Explorer API is ONLY available in us-east-1
COST_EXPLORER_REGION = AwsRegion.US_EAST_1

# Default region used when settings are not available
DEFAULT_AWS_REGION = AwsRegion.US_EAST_1


# =============================================================================
# COST EXPLORER QUERY CONSTANTS
# =============================================================================

COST_METRIC = "UnblendedCost"
SERVICE_DIMENSION = "SERVICE"
MONTHLY_GRANULARITY = "MONTHLY"
UNKNOWN_SERVICE = "Unknown"

# STS role session names are limited to 64 characters
ROLE_SESSION_NAME_PREFIX = "cloud-cost-manager"
ROLE_SESSION_NAME_MAX_LENGTH = 64


# =============================================================================
# ERROR CODES
# =============================================================================

THROTTLING_ERROR_CODES: FrozenSet[str] = frozenset({
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "LimitExceededException",
    "RequestThrottled",
    "RequestThrottledException",
    "SlowDown",
})

ACCESS_DENIED_ERROR_CODES: FrozenSet[str] = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnauthorizedException",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "ExpiredTokenException",
    "AuthFailure",
    "OptInRequired",
    "AWSOrganizationsNotInUseException",
})

UNAVAILABLE_ERROR_CODES: FrozenSet[str] = frozenset({
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalFailure",
    "InternalError",
    "InternalServerError",
    "InternalServiceError",
    "RequestTimeout",
    "RequestTimeoutException",
    "DataUnavailableException",
})

# Caller identity header stamped by API Gateway IAM authorization
DEFAULT_TRUST_HEADER = "x-amzn-iam-arn"
