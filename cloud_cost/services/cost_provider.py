"""
Cost provider interface for loose coupling between billing backends and the aggregator.

A provider answers two date-range based, stateless questions for one set of
resolved credentials: who is this account, and what did it cost. The
aggregator treats the current and previous periods symmetrically, so a new
cloud only has to implement these operations.
"""
from abc import ABC, abstractmethod

from cloud_cost.models.cost import AccountIdentity, DateRange, PeriodCost
from cloud_cost.services.credential_resolver import ResolvedCredentials


class CostProvider(ABC):
    """
    Abstract base class for all cost providers.

    Implementations raise ProviderError (THROTTLED, ACCESS_DENIED,
    UNAVAILABLE or MALFORMED) and nothing else for provider failures.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this provider (e.g., 'aws')."""

    @abstractmethod
    async def get_identity(self, credentials: ResolvedCredentials) -> AccountIdentity:
        """Return the account id and display name for these credentials."""

    @abstractmethod
    async def get_cost(self, credentials: ResolvedCredentials, date_range: DateRange) -> PeriodCost:
        """Return the per-service cost breakdown for the range."""
