"""
Pydantic models for API response schemas
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from cloud_cost.models.cost import Report


class AccountSummaryOut(BaseModel):
    """Per-account row of the report document"""
    account_id: str
    account_name: str
    account_ref: str
    total: float
    failed: bool = False
    services: Optional[Dict[str, float]] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None


class ReportDocument(BaseModel):
    """Report document consumed by the dashboard"""
    month_start: date
    month_end_exclusive: date
    prev_start: date
    prev_end_exclusive: date
    total_all: float
    prev_total: float
    delta: float
    delta_pct: float = Field(description="Percentage change against the previous period")
    top_services: List[Tuple[str, float]]
    services_total: Dict[str, float] = Field(default_factory=dict)
    summaries: List[AccountSummaryOut]
    generated_at: datetime

    @classmethod
    def from_report(cls, report: Report) -> "ReportDocument":
        return cls.model_validate(report.to_dict())


class LivenessStatus(BaseModel):
    status: str
    timestamp: datetime


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    accounts: int = 0
    auth_mode: Optional[str] = None
