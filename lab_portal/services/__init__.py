"""Service layer exports."""

from .api_proxy import ApiProxyService
from .auth_checker import AuthChecker, Authenticated, AuthResult, Failed, Unauthenticated
from .callback_handler import CallbackOutcome, OAuthCallbackHandler
from .callback_page import CallbackPageParams, CallbackPageSeeder
from .rate_limiter import InMemoryRateLimiter, RateLimiter, SQLiteRateLimiter, build_rate_limiter
from .router import ProtectedRouter, RouteAction, RouteDecision
from .session_store import SessionStore
from .session_tokens import SessionCookieCodec, SessionCookies
from .session_verifier import SessionCredentials, SessionVerificationService

__all__ = [
    "ApiProxyService",
    "AuthChecker",
    "AuthResult",
    "Authenticated",
    "CallbackOutcome",
    "CallbackPageParams",
    "CallbackPageSeeder",
    "Failed",
    "InMemoryRateLimiter",
    "OAuthCallbackHandler",
    "ProtectedRouter",
    "RateLimiter",
    "RouteAction",
    "RouteDecision",
    "SQLiteRateLimiter",
    "SessionCookieCodec",
    "SessionCookies",
    "SessionCredentials",
    "SessionStore",
    "SessionVerificationService",
    "Unauthenticated",
    "build_rate_limiter",
]
