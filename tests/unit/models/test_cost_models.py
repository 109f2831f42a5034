"""
Tests for cost report domain types and their JSON shape
"""

from datetime import date, datetime, timezone

import pytest

from cloud_cost.models.cost import (
    AccountFailed,
    AccountIdentity,
    AccountSucceeded,
    AccountSummary,
    DateRange,
    PeriodCost,
    Report,
    ReportPeriods,
)
from cloud_cost.models.schemas import ReportDocument
from cloud_cost.utils.errors import ErrorKind


class TestDateRange:
    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 5, 2), date(2024, 5, 2))

    def test_time_period_parameter(self):
        date_range = DateRange(date(2024, 5, 1), date(2024, 5, 16))
        assert date_range.to_time_period() == {"Start": "2024-05-01", "End": "2024-05-16"}
        assert date_range.days == 15
        assert date_range.last_day == date(2024, 5, 15)


class TestPeriodCost:
    def test_total_is_sum_of_services(self):
        cost = PeriodCost.from_services({"EC2": 60.0, "S3": 40.0})
        assert cost.total == 100.0
        assert cost.reconciles(100.004)
        assert not cost.reconciles(101.0)

    def test_empty(self):
        assert PeriodCost.empty().total == 0.0


class TestAccountSummary:
    def test_from_success(self):
        result = AccountSucceeded(
            account_ref="A",
            identity=AccountIdentity("111111111111", "Prod"),
            current=PeriodCost.from_services({"EC2": 60.0}),
            previous=PeriodCost.empty(),
        )
        summary = AccountSummary.from_result(result)

        assert summary.to_dict() == {
            "account_id": "111111111111",
            "account_name": "Prod",
            "account_ref": "A",
            "total": 60.0,
            "failed": False,
            "services": {"EC2": 60.0},
        }

    def test_failure_is_flagged_not_free(self):
        summary = AccountSummary.from_result(
            AccountFailed("B", ErrorKind.ACCESS_DENIED, "denied", stage="fetching_current_period")
        )
        data = summary.to_dict()

        assert data["failed"] is True
        assert data["total"] == 0.0
        assert data["account_name"] == "B"
        assert data["error_kind"] == "ACCESS_DENIED"
        assert data["error"] == "denied"
        assert "services" not in data


class TestReportDocument:
    def test_document_fields(self):
        periods = ReportPeriods(
            current=DateRange(date(2024, 5, 1), date(2024, 5, 16)),
            previous=DateRange(date(2024, 4, 1), date(2024, 4, 16)),
        )
        report = Report(
            periods=periods,
            summaries=(AccountSummary("A", "1", "A", 10.0, services={"S3": 10.0}),),
            total_all=10.0,
            prev_total=8.0,
            delta=2.0,
            delta_pct=25.0,
            top_services=(("S3", 10.0),),
            services_total={"S3": 10.0},
            generated_at=datetime(2024, 5, 15, 12, tzinfo=timezone.utc),
        )

        document = ReportDocument.from_report(report).model_dump(mode="json", exclude_none=True)

        assert document["month_start"] == "2024-05-01"
        assert document["month_end_exclusive"] == "2024-05-16"
        assert document["prev_start"] == "2024-04-01"
        assert document["prev_end_exclusive"] == "2024-04-16"
        assert document["top_services"] == [["S3", 10.0]]
        assert document["summaries"][0]["services"] == {"S3": 10.0}
        assert "error" not in document["summaries"][0]
