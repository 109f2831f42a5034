"""
Tests for environment-driven settings
"""

import pytest
from pydantic import ValidationError

from cloud_cost.config.settings import (
    Settings,
    clear_settings_cache,
    get_settings,
    parse_string_list,
)

ENV_VARS = [
    "ENVIRONMENT", "LOG_LEVEL", "AUTH_MODE", "AUTH_HEADER", "PROFILES_STR",
    "ALLOWED_ORIGINS_STR", "CONCURRENCY_LIMIT", "TOP_N", "REPORT_CACHE_TTL",
    "ACCOUNTS_FILE", "ASSUME_ROLES_FILE", "HOST", "PORT", "AWS_REGION", "LOG_JSON",
    "REQUEST_TIMEOUT", "RETRY_BUDGET", "RETRY_MAX_DELAY", "RETRY_BASE_DELAY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        settings = Settings()
        assert settings.bind_address == "127.0.0.1:8080"
        assert settings.aws_region == "us-east-1"
        assert settings.auth_mode == "none"
        assert settings.auth_header == "x-amzn-iam-arn"
        assert settings.top_n == 10
        assert settings.concurrency_limit == 8
        assert settings.report_cache_ttl == 0.0
        assert settings.profiles == []
        assert settings.allowed_origins == ["*"]


class TestEnvironmentOverrides:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PROFILES_STR", "dev, prod")
        monkeypatch.setenv("TOP_N", "5")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.profiles == ["dev", "prod"]
        assert settings.top_n == 5
        assert settings.log_level == "DEBUG"

    def test_iam_is_an_alias_of_header_presence(self, monkeypatch):
        monkeypatch.setenv("AUTH_MODE", "IAM")
        assert Settings().auth_mode == "header-presence"

    def test_header_name_is_lowercased(self, monkeypatch):
        monkeypatch.setenv("AUTH_HEADER", "X-Caller-Arn")
        assert Settings().auth_header == "x-caller-arn"

    def test_rejects_unknown_auth_mode(self, monkeypatch):
        monkeypatch.setenv("AUTH_MODE", "jwt")
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_zero_concurrency(self, monkeypatch):
        monkeypatch.setenv("CONCURRENCY_LIMIT", "0")
        with pytest.raises(ValidationError):
            Settings()


class TestValidateConfiguration:
    def test_clean_development_configuration(self):
        assert Settings().validate_configuration() == []

    def test_production_warnings(self):
        settings = Settings(environment="production")
        issues = settings.validate_configuration()
        assert any("AUTH_MODE is 'none'" in issue for issue in issues)
        assert any("CORS allows all origins" in issue for issue in issues)

    def test_both_account_files(self):
        settings = Settings(accounts_file="a.json", assume_roles_file="r.json")
        assert any("takes precedence" in issue for issue in settings.validate_configuration())

    def test_timeout_shorter_than_retry_budget(self):
        settings = Settings(request_timeout=10, retry_budget=30)
        assert any("RETRY_BUDGET" in issue for issue in settings.validate_configuration())


class TestSettingsCache:
    def test_cached_until_cleared(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("TOP_N", "3")
        clear_settings_cache()
        assert get_settings().top_n == 3


class TestParseStringList:
    @pytest.mark.parametrize("raw, expected", [
        ('["a", "b"]', ["a", "b"]),
        ("a,b , c", ["a", "b", "c"]),
        ("single", ["single"]),
        ("", []),
        (None, []),
    ])
    def test_formats(self, raw, expected):
        assert parse_string_list(raw, []) == expected
