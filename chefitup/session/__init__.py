"""
Session and preferences over the hosted backend.
"""

from chefitup.session.backend import (
    AuthSession,
    AuthUser,
    HostedBackend,
    InMemoryBackend,
    SupabaseBackend,
    create_backend,
)
from chefitup.session.bridge import OAuthResult, SessionBridge, SessionCache, SessionState

__all__ = [
    "AuthSession",
    "AuthUser",
    "HostedBackend",
    "InMemoryBackend",
    "OAuthResult",
    "SessionBridge",
    "SessionCache",
    "SessionState",
    "SupabaseBackend",
    "create_backend",
]
