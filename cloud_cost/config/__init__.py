"""Configuration package for Cloud Cost Manager"""

from .settings import get_settings, Settings
from .accounts import AccountsConfigError, load_accounts, load_accounts_from_settings

__all__ = [
    "get_settings",
    "Settings",
    "AccountsConfigError",
    "load_accounts",
    "load_accounts_from_settings",
]
