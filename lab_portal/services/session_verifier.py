"""
Server-side session verification.

This is the authority the browser checker trusts: the client's own expiry
check only saves a round trip, it never replaces this confirmation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from lab_portal.core.config import AppSettings, SessionSource
from lab_portal.core.errors import (
    AuthError,
    ExpiredSession,
    Forbidden,
    InvalidSessionToken,
    MissingSession,
    RateLimitExceeded,
)
from lab_portal.schemas import PublicUser
from lab_portal.services.rate_limiter import RateLimiter
from lab_portal.services.session_tokens import (
    SessionCookieCodec,
    SessionCookies,
    is_well_formed_token,
)
from lab_portal.services.session_validator import (
    is_allowed_email,
    is_session_expired,
    now_ms,
    parse_session,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionCredentials:
    """Session material collected from one request."""

    session_data: Optional[str] = None
    session_token: Optional[str] = None
    cookies: Optional[SessionCookies] = None
    source: str = "none"


def client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    for header in ("client-ip", "x-forwarded-for", "x-real-ip"):
        value = headers.get(header)
        if value:
            return value.split(",")[0].strip()
    return peer or "unknown"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def collect_credentials(
    source: SessionSource,
    settings: AppSettings,
    *,
    body: Optional[Mapping[str, object]] = None,
    query: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
    authorization: Optional[str] = None,
) -> SessionCredentials:
    """Pick session material according to the configured source strategy.

    ``AUTO`` tries the JSON body, then cookies, then the ``session`` query
    parameter.
    """
    body = body or {}
    query = query or {}
    cookies = cookies or {}
    token_from_header = bearer_token(authorization)
    session_settings = settings.session

    def from_body() -> Optional[SessionCredentials]:
        data = body.get("sessionData")
        if not data:
            return None
        if not isinstance(data, str):
            data = json.dumps(data)
        token = body.get("sessionToken")
        return SessionCredentials(
            session_data=data,
            session_token=str(token) if token else token_from_header,
            source="body",
        )

    def from_cookies() -> Optional[SessionCredentials]:
        token = cookies.get(session_settings.token_key)
        digest = cookies.get(session_settings.hash_cookie)
        data = cookies.get(session_settings.data_key)
        if not (token or digest or data):
            return None
        if not (token and digest and data):
            return SessionCredentials(source="cookie")
        return SessionCredentials(
            session_token=token,
            cookies=SessionCookies(session_token=token, session_hash=digest, session_data=data),
            source="cookie",
        )

    def from_query() -> Optional[SessionCredentials]:
        data = query.get("session")
        if not data:
            return None
        return SessionCredentials(session_data=data, session_token=token_from_header, source="query")

    strategies = {
        SessionSource.BODY: (from_body,),
        SessionSource.COOKIE: (from_cookies,),
        SessionSource.QUERY: (from_query,),
        SessionSource.AUTO: (from_body, from_cookies, from_query),
    }
    for strategy in strategies[source]:
        credentials = strategy()
        if credentials is not None:
            return credentials
    return SessionCredentials(session_token=token_from_header)


class SessionVerificationService:
    """Rate-limit, then validate an inbound session step by step."""

    def __init__(
        self,
        settings: AppSettings,
        rate_limiter: RateLimiter,
        cookie_codec: SessionCookieCodec,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings
        self._rate_limiter = rate_limiter
        self._codec = cookie_codec
        self._clock = clock

    def admit(self, ip: str) -> None:
        """Count one request against ``ip``; must run before the request is parsed."""
        if not self._rate_limiter.check_and_record(ip):
            logger.warning("Rate limit exceeded ip=%s", ip)
            minutes = max(1, round(self._settings.rate_limit.window_seconds / 60))
            raise RateLimitExceeded(f"Try again in {minutes} minutes")

    def authorise(self, ip: str, credentials: SessionCredentials) -> PublicUser:
        """Validate credentials from a caller that has already been admitted."""
        try:
            user = self._verify_session(credentials)
        except AuthError as exc:
            logger.warning(
                "Session verification failed ip=%s code=%s source=%s",
                ip,
                exc.code,
                credentials.source,
            )
            raise

        logger.info("Access authorised ip=%s email=%s", ip, user.email)
        return user

    def _verify_session(self, credentials: SessionCredentials) -> PublicUser:
        token_bytes = self._settings.session.token_bytes

        if credentials.source == "cookie":
            if credentials.cookies is None:
                raise MissingSession()
            if not is_well_formed_token(credentials.cookies.session_token, token_bytes):
                raise InvalidSessionToken()
            raw_session = self._codec.open(credentials.cookies)
        else:
            if not credentials.session_data:
                raise MissingSession()
            if credentials.session_token is not None and not is_well_formed_token(
                credentials.session_token, token_bytes
            ):
                raise InvalidSessionToken()
            raw_session = credentials.session_data

        session = parse_session(raw_session)

        if is_session_expired(
            session, self._clock(), inclusive=self._settings.session.expiry_inclusive
        ):
            raise ExpiredSession()

        allowed = self._settings.access.allowed_domains
        if not is_allowed_email(session.user.email, allowed):
            raise Forbidden(
                "Only accounts from {} are allowed".format(
                    ", ".join(f"@{domain}" for domain in allowed)
                )
            )

        return PublicUser(
            email=session.user.email,
            name=session.user.name,
            picture=session.user.picture,
        )


__all__ = [
    "SessionCredentials",
    "SessionVerificationService",
    "bearer_token",
    "client_ip",
    "collect_credentials",
]
