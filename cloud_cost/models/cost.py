"""
Cost report domain types

Everything here is built fresh for each report request and never mutated
afterwards, hence frozen dataclasses.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from cloud_cost.utils.errors import ErrorKind


@dataclass(frozen=True)
class DateRange:
    """Contiguous range of whole days, end exclusive"""
    start: date
    end: date

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"DateRange end {self.end} must be after start {self.start}")

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    @property
    def last_day(self) -> date:
        return self.end - timedelta(days=1)

    def to_time_period(self) -> Dict[str, str]:
        """Cost Explorer TimePeriod parameter"""
        return {"Start": self.start.isoformat(), "End": self.end.isoformat()}

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()} (exclusive)"


@dataclass(frozen=True)
class ReportPeriods:
    """Current month-to-date window and the comparable prior-month window"""
    current: DateRange
    previous: DateRange


@dataclass(frozen=True)
class PeriodCost:
    """Per-service cost for one account over one DateRange"""
    services: Mapping[str, float]
    total: float

    @classmethod
    def from_services(cls, services: Mapping[str, float]) -> "PeriodCost":
        services = dict(services)
        return cls(services=services, total=sum(services.values()))

    @classmethod
    def empty(cls) -> "PeriodCost":
        return cls(services={}, total=0.0)

    def reconciles(self, declared_total: float, tolerance: float = 0.01) -> bool:
        """Advisory check of a provider-declared total against the service sum."""
        return math.isclose(self.total, declared_total, abs_tol=tolerance)


@dataclass(frozen=True)
class AccountIdentity:
    account_id: str
    account_name: str


@dataclass(frozen=True)
class AccountSucceeded:
    account_ref: str
    identity: AccountIdentity
    current: PeriodCost
    previous: PeriodCost

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class AccountFailed:
    account_ref: str
    error_kind: ErrorKind
    message: str
    stage: str = "pending"

    @property
    def succeeded(self) -> bool:
        return False


AccountResult = Union[AccountSucceeded, AccountFailed]


@dataclass(frozen=True)
class AccountSummary:
    """Per-account row of the report"""
    account_ref: str
    account_id: str
    account_name: str
    total: float
    failed: bool = False
    services: Mapping[str, float] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: AccountResult) -> "AccountSummary":
        if isinstance(result, AccountSucceeded):
            return cls(
                account_ref=result.account_ref,
                account_id=result.identity.account_id,
                account_name=result.identity.account_name,
                total=result.current.total,
                services=dict(result.current.services),
            )
        # Failed accounts keep a zero total but are flagged so they never read as free
        return cls(
            account_ref=result.account_ref,
            account_id="",
            account_name=result.account_ref,
            total=0.0,
            failed=True,
            error_kind=result.error_kind,
            error=result.message,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "account_id": self.account_id,
            "account_name": self.account_name,
            "account_ref": self.account_ref,
            "total": self.total,
            "failed": self.failed,
        }
        if self.failed:
            data["error_kind"] = self.error_kind.value if self.error_kind else None
            data["error"] = self.error
        else:
            data["services"] = dict(self.services)
        return data


@dataclass(frozen=True)
class Report:
    """Aggregate over all account results of one report request"""
    periods: ReportPeriods
    summaries: Tuple[AccountSummary, ...]
    total_all: float
    prev_total: float
    delta: float
    delta_pct: float
    top_services: Tuple[Tuple[str, float], ...]
    services_total: Mapping[str, float]
    generated_at: datetime

    @property
    def failed_accounts(self) -> List[AccountSummary]:
        return [s for s in self.summaries if s.failed]

    @property
    def succeeded_accounts(self) -> List[AccountSummary]:
        return [s for s in self.summaries if not s.failed]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON document served to the dashboard"""
        return {
            "month_start": self.periods.current.start.isoformat(),
            "month_end_exclusive": self.periods.current.end.isoformat(),
            "prev_start": self.periods.previous.start.isoformat(),
            "prev_end_exclusive": self.periods.previous.end.isoformat(),
            "total_all": self.total_all,
            "prev_total": self.prev_total,
            "delta": self.delta,
            "delta_pct": self.delta_pct,
            "top_services": [[name, cost] for name, cost in self.top_services],
            "services_total": dict(self.services_total),
            "summaries": [summary.to_dict() for summary in self.summaries],
            "generated_at": self.generated_at.isoformat(),
        }
