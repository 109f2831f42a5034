"""
Tests for the cost summary command
"""

import json
from datetime import datetime, timezone

import pytest
from unittest.mock import Mock

from cloud_cost import cli
from cloud_cost.finops.periods import report_periods
from cloud_cost.models.accounts import AccountConfig
from cloud_cost.models.cost import (
    AccountFailed,
    AccountIdentity,
    AccountSucceeded,
    PeriodCost,
)
from cloud_cost.services.account_fetcher import AccountFetcher
from cloud_cost.services.aggregator import Aggregator, fold_report
from cloud_cost.services.report_service import ReportService
from cloud_cost.utils.errors import ErrorKind


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("PROFILES_STR", "ACCOUNTS_FILE", "ASSUME_ROLES_FILE", "BASE_PROFILE", "AUTH_MODE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_report(periods):
    accounts = [AccountConfig.from_profile("prod"), AccountConfig.from_profile("dev")]
    results = [
        AccountSucceeded(
            account_ref="prod",
            identity=AccountIdentity("111111111111", "Production"),
            current=PeriodCost.from_services({"Amazon EC2": 1200.0, "Amazon S3": 50.0}),
            previous=PeriodCost.from_services({"Amazon EC2": 1000.0}),
        ),
        AccountFailed("dev", ErrorKind.ACCESS_DENIED, "AccessDenied: not allowed", stage="current"),
    ]
    return fold_report(
        accounts, results, periods, top_n=5,
        generated_at=datetime(2024, 5, 15, tzinfo=timezone.utc),
    )


class TestFormatReport:
    def test_lists_accounts_and_totals(self, sample_report):
        text = cli.format_report(sample_report)

        assert "Current period:  2024-05-01 to 2024-05-16 (exclusive)" in text
        assert "Production (111111111111): $1,250.00" in text
        assert "Total month-to-date: $1,250.00" in text
        assert "1. Amazon EC2: $1,200.00" in text
        assert "Previous period total: $1,000.00" in text
        assert "+$250.00 (+25.0%)" in text

    def test_failed_accounts_are_flagged(self, sample_report):
        text = cli.format_report(sample_report)

        assert "dev: FAILED (ACCESS_DENIED) AccessDenied: not allowed" in text
        assert "Warning: 1 of 2 accounts could not be queried" in text


class TestMain:
    @pytest.fixture
    def stub_service(self, monkeypatch, fake_provider, fake_resolver, fast_retry_policy):
        fake_provider.periods = report_periods()
        fake_provider.add_account("dev", current={"Amazon EC2": 10.0}, previous={"Amazon EC2": 5.0},
                                  account_id="222222222222", account_name="Dev")
        built = {}

        def from_settings(settings, accounts, authorizer=None, provider=None):
            built["settings"] = settings
            built["authorizer"] = authorizer
            aggregator = Aggregator(
                AccountFetcher(fake_resolver, fake_provider, fast_retry_policy),
                top_n=settings.top_n,
            )
            return ReportService(aggregator, accounts, authorizer)

        monkeypatch.setattr(cli.ReportService, "from_settings", Mock(side_effect=from_settings))
        return built

    def test_text_output(self, stub_service, capsys):
        assert cli.main(["--profiles", "dev"]) == 0

        out = capsys.readouterr().out
        assert "Dev (222222222222): $10.00" in out
        assert "Change: +$5.00 (+100.0%)" in out

    def test_json_output(self, stub_service, capsys):
        assert cli.main(["--profiles", "dev", "--json", "--top-n", "3"]) == 0

        document = json.loads(capsys.readouterr().out)
        assert document["total_all"] == 10.0
        assert document["summaries"][0]["account_id"] == "222222222222"
        assert stub_service["settings"].top_n == 3

    def test_cli_skips_authorization(self, stub_service, monkeypatch, capsys):
        monkeypatch.setenv("AUTH_MODE", "header-presence")

        assert cli.main(["--profiles", "dev"]) == 0
        assert stub_service["authorizer"].mode.value == "none"

    def test_invalid_accounts_file(self, tmp_path, capsys):
        path = tmp_path / "accounts.json"
        path.write_text('{"not": "a list"}')

        assert cli.main(["--accounts-file", str(path)]) == 1
        assert "invalid account configuration" in capsys.readouterr().err

    @pytest.mark.parametrize("argv, field", [
        (["--timeout", "-1"], "request_timeout"),
        (["--top-n", "-3"], "top_n"),
        (["--concurrency", "0"], "concurrency_limit"),
    ])
    def test_out_of_range_options_are_rejected(self, stub_service, capsys, argv, field):
        assert cli.main(["--profiles", "dev", *argv]) == 2

        assert field in capsys.readouterr().err
        cli.ReportService.from_settings.assert_not_called()
