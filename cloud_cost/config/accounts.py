"""
Account configuration loading

Builds the ordered list of AccountConfig entries from, in order of precedence:
1. an assume-role file: [{"account_ref", "role_arn", "external_id"}]
2. an accounts file: [{"access_key_id", "secret_access_key", ...}] or
   [{"account_ref", "profile"}]
3. a list of shared config profiles (``["default"]`` when nothing is set)
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import structlog

from cloud_cost.models.accounts import AccountConfig, AssumeRoleSpec, StaticKeys

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


class AccountsConfigError(ValueError):
    """Raised when account configuration input cannot be used."""


class AccountsFileEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_ref: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = Field(default=None, repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)
    profile: Optional[str] = None


class AssumeRoleEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_ref: str
    role_arn: str
    external_id: Optional[str] = None


def _read_json_list(path: PathLike, label: str) -> List[Any]:
    path = Path(path)
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as e:
        raise AccountsConfigError(f"Cannot read {label} {path}: {e}") from e

    try:
        data = json.loads(contents)
    except json.JSONDecodeError as e:
        raise AccountsConfigError(f"{label} {path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise AccountsConfigError(f"{label} {path} must contain a JSON array")
    return data


def _ensure_unique(accounts: Sequence[AccountConfig]) -> List[AccountConfig]:
    seen = set()
    for account in accounts:
        if account.account_ref in seen:
            raise AccountsConfigError(f"Duplicate account_ref {account.account_ref!r}")
        seen.add(account.account_ref)
    return list(accounts)


def parse_accounts_entries(entries: Sequence[Dict[str, Any]]) -> List[AccountConfig]:
    """Static key pairs are labelled credential-<n> unless they carry an account_ref."""
    accounts = []
    for idx, raw in enumerate(entries, start=1):
        try:
            entry = AccountsFileEntry.model_validate(raw)
            if entry.profile:
                if entry.access_key_id or entry.secret_access_key:
                    raise AccountsConfigError(
                        f"accounts entry {idx} mixes a profile with static keys"
                    )
                accounts.append(AccountConfig.from_profile(entry.profile, entry.account_ref))
                continue

            accounts.append(
                AccountConfig(
                    account_ref=entry.account_ref or f"credential-{idx}",
                    static_keys=StaticKeys(
                        access_key_id=entry.access_key_id or "",
                        secret_access_key=entry.secret_access_key or "",
                        session_token=entry.session_token,
                    ),
                )
            )
        except ValidationError as e:
            raise AccountsConfigError(f"Invalid accounts entry {idx}: {e}") from e
    return _ensure_unique(accounts)


def parse_assume_role_entries(
    entries: Sequence[Dict[str, Any]],
    base_profile: Optional[str] = None,
) -> List[AccountConfig]:
    accounts = []
    for idx, raw in enumerate(entries, start=1):
        try:
            entry = AssumeRoleEntry.model_validate(raw)
            accounts.append(
                AccountConfig(
                    account_ref=entry.account_ref,
                    assume_role=AssumeRoleSpec(
                        role_arn=entry.role_arn,
                        external_id=entry.external_id,
                        base_profile=base_profile,
                    ),
                )
            )
        except ValidationError as e:
            raise AccountsConfigError(f"Invalid assume-role entry {idx}: {e}") from e
    return _ensure_unique(accounts)


def load_accounts_file(path: PathLike) -> List[AccountConfig]:
    return parse_accounts_entries(_read_json_list(path, "accounts file"))


def load_assume_roles_file(path: PathLike, base_profile: Optional[str] = None) -> List[AccountConfig]:
    return parse_assume_role_entries(_read_json_list(path, "assume-roles file"), base_profile)


def load_accounts(
    accounts_file: Optional[PathLike] = None,
    assume_roles_file: Optional[PathLike] = None,
    profiles: Optional[Sequence[str]] = None,
    base_profile: Optional[str] = None,
) -> List[AccountConfig]:
    """
    Resolve the configured account list.

    Raises:
        AccountsConfigError: If a file is unreadable, malformed, or repeats an account_ref
    """
    if assume_roles_file:
        accounts = load_assume_roles_file(assume_roles_file, base_profile)
        source = "assume_roles_file"
    elif accounts_file:
        accounts = load_accounts_file(accounts_file)
        source = "accounts_file"
    else:
        names = [p.strip() for p in (profiles or []) if p and p.strip()] or ["default"]
        try:
            accounts = _ensure_unique([AccountConfig.from_profile(name) for name in names])
        except ValidationError as e:
            raise AccountsConfigError(f"Invalid profile list: {e}") from e
        source = "profiles"

    logger.info(
        "accounts_loaded",
        source=source,
        count=len(accounts),
        account_refs=[a.account_ref for a in accounts],
    )
    return accounts


def load_accounts_from_settings(settings) -> List[AccountConfig]:
    return load_accounts(
        accounts_file=settings.accounts_file,
        assume_roles_file=settings.assume_roles_file,
        profiles=settings.profiles,
        base_profile=settings.base_profile,
    )
