"""Expose constructed client wrappers."""

from .auth0 import Auth0Client, OAuthTokenExchangeError, OAuthUserInfoError, TokenSet
from .auth_verifier import RemoteAuthVerifier, VerificationResult
from .storage import KeyValueStorage, MemoryStorage, SQLiteStorage

__all__ = [
    "Auth0Client",
    "KeyValueStorage",
    "MemoryStorage",
    "OAuthTokenExchangeError",
    "OAuthUserInfoError",
    "RemoteAuthVerifier",
    "SQLiteStorage",
    "TokenSet",
    "VerificationResult",
]
