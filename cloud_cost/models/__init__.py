"""
Data models for account configuration, cost results and API schemas
"""

from .accounts import (
    AccountConfig,
    AssumeRoleSpec,
    CredentialStrategy,
    StaticKeys,
    accounts_fingerprint,
)
from .cost import (
    AccountFailed,
    AccountIdentity,
    AccountResult,
    AccountSucceeded,
    AccountSummary,
    DateRange,
    PeriodCost,
    Report,
    ReportPeriods,
)

__all__ = [
    "AccountConfig",
    "AssumeRoleSpec",
    "CredentialStrategy",
    "StaticKeys",
    "accounts_fingerprint",
    "AccountFailed",
    "AccountIdentity",
    "AccountResult",
    "AccountSucceeded",
    "AccountSummary",
    "DateRange",
    "PeriodCost",
    "Report",
    "ReportPeriods",
]
