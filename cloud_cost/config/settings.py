"""
Application settings and configuration management
Uses Pydantic Settings for environment variable handling and validation
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource
import json

from cloud_cost.utils.aws_constants import COST_EXPLORER_REGION, DEFAULT_TRUST_HEADER


def parse_string_list(value, default: List[str]) -> List[str]:
    """Parse a string into a list (JSON array or comma-separated)"""
    if isinstance(value, list):
        return value

    if isinstance(value, str):
        raw = value.strip()

        # Try JSON parsing first
        if raw.startswith('[') and raw.endswith(']'):
            try:
                return json.loads(raw)
            except (json.JSONDecodeError, ValueError):
                pass

        # Fall back to comma-separated
        if ',' in raw:
            return [item.strip() for item in raw.split(",") if item.strip()]

        # Single value
        if raw:
            return [raw]

    return default


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    app_name: str = "Cloud Cost Manager"
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080)

    # CORS (the dashboard is served from a different origin during development)
    allowed_origins_str: str = Field(
        default='["*"]',
        description="Allowed CORS origins (JSON array or comma-separated)",
    )

    # Authorization gate
    auth_mode: str = Field(
        default="none",
        description="none | header-presence (iam is accepted as an alias)",
    )
    auth_header: str = Field(
        default=DEFAULT_TRUST_HEADER,
        description="Header stamped by the trusted gateway in header-presence mode",
    )

    # AWS / accounts
    aws_region: str = Field(default=COST_EXPLORER_REGION)
    profiles_str: str = Field(
        default="",
        description="Shared config profiles to report on (JSON array or comma-separated)",
    )
    accounts_file: Optional[str] = Field(default=None, description="JSON file of static credentials")
    assume_roles_file: Optional[str] = Field(default=None, description="JSON file of roles to assume")
    base_profile: Optional[str] = Field(default=None, description="Profile used for STS AssumeRole")
    assume_role_duration: int = Field(default=900, ge=900, le=43200)

    # Aggregation
    concurrency_limit: int = Field(default=8, ge=1)
    top_n: int = Field(default=10, ge=1)
    request_timeout: float = Field(default=60.0, gt=0)
    pipeline_queries: bool = Field(default=True)

    # Retries
    retry_max_attempts: int = Field(default=4, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=8.0, ge=0)
    retry_budget: float = Field(default=30.0, gt=0)
    throttle_window: float = Field(default=30.0, gt=0)

    # Report cache (0 disables)
    report_cache_ttl: float = Field(default=0.0, ge=0)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_parse_none_str="null"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to exclude .env file loading"""
        return init_settings, env_settings, file_secret_settings

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("auth_mode")
    @classmethod
    def validate_auth_mode(cls, v):
        normalized = v.strip().lower().replace("_", "-")
        if normalized == "iam":
            normalized = "header-presence"
        if normalized not in ("none", "header-presence"):
            raise ValueError("Auth mode must be one of ['none', 'header-presence', 'iam']")
        return normalized

    @field_validator("auth_header")
    @classmethod
    def normalize_auth_header(cls, v):
        return v.strip().lower()

    @property
    def allowed_origins(self) -> List[str]:
        """Parse and return allowed_origins as a list"""
        return parse_string_list(self.allowed_origins_str, ["*"])

    @property
    def profiles(self) -> List[str]:
        return parse_string_list(self.profiles_str, [])

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    def validate_configuration(self) -> list[str]:
        """
        Validate cross-field configuration.
        Returns list of issues (empty if all valid).
        """
        issues = []

        if self.auth_mode == "header-presence" and not self.auth_header:
            issues.append("AUTH_HEADER must be set when AUTH_MODE is header-presence")

        if self.is_production and self.auth_mode == "none":
            issues.append(
                "WARNING: AUTH_MODE is 'none' in production. "
                "Use header-presence behind a trusted gateway."
            )

        if self.is_production and "*" in self.allowed_origins:
            issues.append(
                "WARNING: CORS allows all origins ('*') in production. "
                "Set specific origins via ALLOWED_ORIGINS_STR."
            )

        if self.retry_max_delay < self.retry_base_delay:
            issues.append("RETRY_MAX_DELAY is smaller than RETRY_BASE_DELAY")

        if self.request_timeout <= self.retry_budget:
            issues.append(
                "WARNING: REQUEST_TIMEOUT does not exceed RETRY_BUDGET; "
                "slow accounts will be cut off by the request timeout"
            )

        if self.accounts_file and self.assume_roles_file:
            issues.append(
                "Both ACCOUNTS_FILE and ASSUME_ROLES_FILE are set; "
                "the assume-roles file takes precedence"
            )

        return issues


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings
    Uses lru_cache to avoid reading environment variables multiple times
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache. Used primarily for testing.
    After calling this, the next call to get_settings() will
    create a new Settings instance with fresh environment variables.
    """
    get_settings.cache_clear()
