"""
Error taxonomy shared by the HTTP endpoints and the client-side checker.

Server-side errors carry a stable ``code`` so callers can branch without
matching on human readable messages.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, Optional


class AuthError(Exception):
    """Base class for failures rendered as ``{error, message, code}`` JSON."""

    status_code: int = HTTPStatus.UNAUTHORIZED
    code: str = "UNAUTHORIZED"
    default_message: str = "Not authenticated"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.default_message,
            "message": self.message,
            "code": self.code,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


class MissingSession(AuthError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Not authenticated"


class InvalidSession(AuthError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "INVALID_SESSION"
    default_message = "Invalid session"


class InvalidSessionToken(AuthError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "INVALID_TOKEN"
    default_message = "Invalid session token"


class ExpiredSession(AuthError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "EXPIRED_SESSION"
    default_message = "Session expired"


class Forbidden(AuthError):
    status_code = HTTPStatus.FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Access denied"


class RateLimitExceeded(AuthError):
    status_code = HTTPStatus.TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests"


class MissingAuthorizationCode(AuthError):
    status_code = HTTPStatus.BAD_REQUEST
    code = "MISSING_CODE"
    default_message = "Authorization code not provided"


class UpstreamFailure(AuthError):
    """The identity provider rejected a token or userinfo call."""

    status_code = HTTPStatus.BAD_REQUEST
    code = "UPSTREAM_FAILURE"
    default_message = "Identity provider request failed"


class TokenExchangeFailed(UpstreamFailure):
    code = "TOKEN_EXCHANGE_FAILED"
    default_message = "Authentication failed"


class UserInfoFetchFailed(UpstreamFailure):
    code = "USERINFO_FETCH_FAILED"
    default_message = "Could not fetch user information"


class MissingApiKey(AuthError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    code = "MISSING_API_KEY"
    default_message = "API key not configured on the server"


class InvalidProxyUrl(AuthError):
    status_code = HTTPStatus.BAD_REQUEST
    code = "INVALID_URL"
    default_message = "URL not allowed"


class UpstreamApiError(AuthError):
    status_code = HTTPStatus.BAD_GATEWAY
    code = "UPSTREAM_ERROR"
    default_message = "Upstream API error"


class InternalError(AuthError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"


class VerifierError(Exception):
    """Raised by the client-side remote verifier."""


class VerifierNetworkError(VerifierError):
    """The verification endpoint could not be reached."""


class VerificationTimeout(VerifierError):
    """The verification endpoint did not answer in time."""


class ServerRejected(VerifierError):
    """The verification endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, code: Optional[str] = None, message: str = "") -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(message or f"Verification rejected with status {status_code}")


__all__ = [
    "AuthError",
    "ExpiredSession",
    "Forbidden",
    "InternalError",
    "InvalidProxyUrl",
    "InvalidSession",
    "InvalidSessionToken",
    "MissingApiKey",
    "MissingAuthorizationCode",
    "MissingSession",
    "RateLimitExceeded",
    "ServerRejected",
    "TokenExchangeFailed",
    "UpstreamApiError",
    "UpstreamFailure",
    "UserInfoFetchFailed",
    "VerificationTimeout",
    "VerifierError",
    "VerifierNetworkError",
]
