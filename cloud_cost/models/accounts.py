"""
Account configuration models

One AccountConfig per account to report on, carrying exactly one credential
strategy: a static key pair, a named profile, or an assume-role spec.
"""

import hashlib
import json
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CredentialStrategy(str, Enum):
    """How an account's credentials are obtained"""
    STATIC = "static"
    PROFILE = "profile"
    ASSUME_ROLE = "assume_role"


class StaticKeys(BaseModel):
    """Long-lived (or pre-issued temporary) AWS access keys"""
    model_config = ConfigDict(frozen=True)

    access_key_id: str = Field(min_length=1)
    secret_access_key: str = Field(min_length=1, repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)


class AssumeRoleSpec(BaseModel):
    """Role to assume in the target account"""
    model_config = ConfigDict(frozen=True)

    role_arn: str = Field(min_length=1)
    external_id: Optional[str] = Field(default=None, repr=False)
    base_profile: Optional[str] = Field(
        default=None,
        description="Profile used to call STS; the default credential chain when unset",
    )
    session_name: Optional[str] = None

    @field_validator("role_arn")
    @classmethod
    def validate_role_arn(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("arn:") or ":role/" not in v:
            raise ValueError(f"Not an IAM role ARN: {v!r}")
        return v

    @field_validator("external_id")
    @classmethod
    def blank_external_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class AccountConfig(BaseModel):
    """One account to include in the report"""
    model_config = ConfigDict(frozen=True)

    account_ref: str = Field(min_length=1, description="Caller-chosen label, unique within a run")
    static_keys: Optional[StaticKeys] = None
    profile: Optional[str] = None
    assume_role: Optional[AssumeRoleSpec] = None

    @field_validator("account_ref")
    @classmethod
    def strip_account_ref(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("account_ref must not be blank")
        return v

    @model_validator(mode="after")
    def exactly_one_strategy(self) -> "AccountConfig":
        configured = [
            name for name, value in (
                ("static_keys", self.static_keys),
                ("profile", self.profile),
                ("assume_role", self.assume_role),
            )
            if value
        ]
        if len(configured) != 1:
            raise ValueError(
                f"Account {self.account_ref!r} must configure exactly one of "
                f"static_keys, profile or assume_role (got {configured or 'none'})"
            )
        return self

    @property
    def strategy(self) -> CredentialStrategy:
        if self.static_keys is not None:
            return CredentialStrategy.STATIC
        if self.profile:
            return CredentialStrategy.PROFILE
        return CredentialStrategy.ASSUME_ROLE

    @classmethod
    def from_profile(cls, profile: str, account_ref: Optional[str] = None) -> "AccountConfig":
        return cls(account_ref=account_ref or profile, profile=profile)


def accounts_fingerprint(accounts: Iterable[AccountConfig]) -> str:
    """
    SHA-256 over the ordered account configuration set.

    Secrets are part of the hashed payload but never stored in clear.
    """
    payload = json.dumps(
        [account.model_dump(mode="json") for account in accounts],
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode()).hexdigest()
