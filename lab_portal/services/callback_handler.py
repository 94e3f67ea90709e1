"""
OAuth callback handling.

Completes the Auth0 authorization-code flow without keeping any server-side
session: the resulting session is handed back to the browser either as
query parameters for the callback page, as an inline page that writes the
storage keys itself, or as HttpOnly cookies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlencode

from jinja2 import Environment, select_autoescape

from lab_portal.clients.auth0 import (
    Auth0Client,
    OAuthTokenExchangeError,
    OAuthUserInfoError,
    decode_state,
    random_state,
)
from lab_portal.core.config import AppSettings, CallbackResponseMode
from lab_portal.core.errors import (
    MissingAuthorizationCode,
    TokenExchangeFailed,
    UserInfoFetchFailed,
)
from lab_portal.models import Session, UserInfo
from lab_portal.services.navigation import resolve_destination, safe_redirect_path
from lab_portal.services.session_tokens import (
    SessionCookieCodec,
    SessionCookies,
    mint_session_token,
)
from lab_portal.services.session_validator import is_allowed_email, now_ms

logger = logging.getLogger(__name__)

_jinja = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

_SEED_PAGE = _jinja.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Signing you in…</title>
</head>
<body>
  <p id="status">Setting up your session…</p>
  <p id="user-email">{{ user_email }}</p>
  <script>
    (function () {
      var keys = {{ keys | tojson }};
      var sessionData = {{ session_json | tojson }};
      var sessionToken = {{ session_token | tojson }};
      var expiresAt = {{ expires_at | string | tojson }};
      localStorage.setItem(keys.data, sessionData);
      localStorage.setItem(keys.token, sessionToken);
      localStorage.setItem(keys.expires, expiresAt);
      setTimeout(function () {
        window.location.href = {{ destination | tojson }};
      }, {{ delay_ms | int }});
    })();
  </script>
</body>
</html>
"""
)


@dataclass(slots=True)
class CallbackOutcome:
    """What the HTTP layer should send back to the browser."""

    status_code: int
    location: Optional[str] = None
    html: Optional[str] = None
    cookies: Optional[SessionCookies] = None
    cookie_max_age: Optional[int] = None
    session: Optional[Session] = None
    session_token: Optional[str] = None


class OAuthCallbackHandler:
    """Stateless handler for ``GET /auth/callback``."""

    def __init__(
        self,
        auth0_client: Auth0Client,
        settings: AppSettings,
        cookie_codec: SessionCookieCodec,
        *,
        clock: Callable[[], int] = now_ms,
        token_factory: Callable[[int], str] = mint_session_token,
    ) -> None:
        self._auth0 = auth0_client
        self._settings = settings
        self._codec = cookie_codec
        self._clock = clock
        self._token_factory = token_factory

    @property
    def _base_url(self) -> str:
        return self._settings.auth0.public_base_url

    def _page(self, path: str, **params: str) -> str:
        query = urlencode(params)
        return f"{self._base_url}{path}?{query}" if query else f"{self._base_url}{path}"

    async def handle(
        self,
        *,
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        theme: Optional[str] = None,
        user_agent: str = "",
    ) -> CallbackOutcome:
        if error:
            return self._handle_provider_error(error, error_description, theme, user_agent)

        if not code:
            logger.warning("Callback invoked without an authorization code")
            raise MissingAuthorizationCode()

        try:
            tokens = await self._auth0.exchange_authorization_code(code)
        except OAuthTokenExchangeError as exc:
            logger.warning("Authorization code exchange failed: %s", exc)
            raise TokenExchangeFailed() from exc

        try:
            profile = await self._auth0.fetch_user_info(tokens.access_token)
        except OAuthUserInfoError as exc:
            logger.warning("Userinfo lookup failed: %s", exc)
            raise UserInfoFetchFailed() from exc

        redirect_path = safe_redirect_path(decode_state(state).get("redirect"))

        email = profile.get("email")
        allowed = self._settings.access.allowed_domains
        if not is_allowed_email(email, allowed):
            logger.warning("Rejected login for email outside the allow-list: %s", email)
            description = "Only accounts from {} are allowed".format(
                ", ".join(f"@{domain}" for domain in allowed)
            )
            return CallbackOutcome(
                status_code=302,
                location=self._page(
                    self._settings.pages.forbidden,
                    error="access_denied",
                    error_description=description,
                ),
            )

        session = Session(
            user=UserInfo.from_profile(profile),
            access_token=tokens.access_token,
            expires_at=self._clock() + tokens.expires_in * 1000,
        )
        session_token = self._token_factory(self._settings.session.token_bytes)
        logger.info("Session created for %s", email)

        mode = self._settings.callback.response_mode
        if mode is CallbackResponseMode.HTML:
            return self._inline_page(session, session_token, redirect_path)
        if mode is CallbackResponseMode.COOKIE:
            return self._cookie_redirect(session, session_token, tokens.expires_in, redirect_path)
        return self._callback_page_redirect(session, session_token, redirect_path)

    def _handle_provider_error(
        self,
        error: str,
        error_description: Optional[str],
        theme: Optional[str],
        user_agent: str,
    ) -> CallbackOutcome:
        logger.warning("Identity provider returned %s: %s", error, error_description)
        description = error_description or ""

        if error == "login_required":
            prefers_dark = theme == "dark" or "dark" in user_agent
            location = self._auth0.build_authorization_url(
                random_state(),
                prompt="select_account",
                connection=self._settings.auth0.connection,
                ui_locales="dark" if prefers_dark else "light",
            )
            return CallbackOutcome(status_code=302, location=location)

        target = (
            self._settings.pages.forbidden
            if error == "access_denied"
            else self._settings.pages.login
        )
        return CallbackOutcome(
            status_code=302,
            location=self._page(target, error=error, error_description=description),
        )

    def _callback_page_redirect(
        self, session: Session, session_token: str, redirect_path: Optional[str]
    ) -> CallbackOutcome:
        location = self._page(
            self._settings.pages.callback,
            sessionData=session.model_dump_json(),
            sessionToken=session_token,
            expiresAt=str(session.expires_at),
            userEmail=session.user.email or "",
            redirectUrl=redirect_path or "",
            baseUrl=self._base_url,
        )
        return CallbackOutcome(
            status_code=302, location=location, session=session, session_token=session_token
        )

    def _inline_page(
        self, session: Session, session_token: str, redirect_path: Optional[str]
    ) -> CallbackOutcome:
        session_settings = self._settings.session
        html = _SEED_PAGE.render(
            keys={
                "data": session_settings.data_key,
                "token": session_settings.token_key,
                "expires": session_settings.expires_key,
            },
            session_json=session.model_dump_json(),
            session_token=session_token,
            expires_at=session.expires_at,
            user_email=session.user.email or "",
            destination=resolve_destination(
                self._base_url, redirect_path, self._settings.pages.dashboard
            ),
            delay_ms=self._settings.callback.redirect_delay_ms,
        )
        return CallbackOutcome(
            status_code=200, html=html, session=session, session_token=session_token
        )

    def _cookie_redirect(
        self,
        session: Session,
        session_token: str,
        expires_in: int,
        redirect_path: Optional[str],
    ) -> CallbackOutcome:
        cookies = self._codec.issue(session_token, session.model_dump_json())
        return CallbackOutcome(
            status_code=302,
            location=resolve_destination(
                self._base_url, redirect_path, self._settings.pages.dashboard
            ),
            cookies=cookies,
            cookie_max_age=expires_in,
            session=session,
            session_token=session_token,
        )


__all__ = ["CallbackOutcome", "OAuthCallbackHandler"]
