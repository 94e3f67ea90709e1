"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from lab_portal.clients import Auth0Client
from lab_portal.core.config import get_settings
from lab_portal.services import (
    ApiProxyService,
    OAuthCallbackHandler,
    RateLimiter,
    SessionCookieCodec,
    SessionVerificationService,
    build_rate_limiter,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_auth0_client() -> Auth0Client:
    """Create a singleton Auth0 client."""
    return Auth0Client(_settings().auth0)


@lru_cache()
def get_cookie_codec() -> SessionCookieCodec:
    """Provide the signer/cipher for cookie-mode sessions."""
    return SessionCookieCodec(secret=_settings().session_secret)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Provide the process-wide rate limiter for the configured backend."""
    return build_rate_limiter(_settings().rate_limit)


def get_session_verifier() -> SessionVerificationService:
    """Build a session verification service around the shared limiter."""
    return SessionVerificationService(
        _settings(),
        rate_limiter=get_rate_limiter(),
        cookie_codec=get_cookie_codec(),
    )


def get_callback_handler() -> OAuthCallbackHandler:
    """Build the OAuth callback handler."""
    return OAuthCallbackHandler(
        get_auth0_client(),
        _settings(),
        cookie_codec=get_cookie_codec(),
    )


@lru_cache()
def get_api_proxy_service() -> ApiProxyService:
    """Provide the authorised data API proxy."""
    return ApiProxyService(_settings().api_proxy)


__all__ = [
    "get_api_proxy_service",
    "get_auth0_client",
    "get_callback_handler",
    "get_cookie_codec",
    "get_rate_limiter",
    "get_session_verifier",
]
