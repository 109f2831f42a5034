"""API package for Cloud Cost Manager"""

from . import health, reports

__all__ = ["health", "reports"]
