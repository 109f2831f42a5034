"""
Middleware package for FastAPI application
"""

from .authentication import (
    AuthContext,
    AuthMode,
    Authorizer,
    HeaderPresenceAuthorizer,
    NoAuthorizer,
    build_authorizer,
)

__all__ = [
    'AuthContext',
    'AuthMode',
    'Authorizer',
    'HeaderPresenceAuthorizer',
    'NoAuthorizer',
    'build_authorizer',
]
