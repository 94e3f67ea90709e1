"""Persist the session handed back by the OAuth callback, then move on."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from lab_portal.core.config import AppSettings
from lab_portal.core.errors import InvalidSession
from lab_portal.services.navigation import Navigator, resolve_destination
from lab_portal.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CallbackPageParams:
    session_data: Optional[str]
    session_token: Optional[str]
    expires_at: Optional[str]
    user_email: Optional[str] = None
    redirect_url: Optional[str] = None
    base_url: Optional[str] = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "CallbackPageParams":
        return cls(
            session_data=query.get("sessionData"),
            session_token=query.get("sessionToken"),
            expires_at=query.get("expiresAt"),
            user_email=query.get("userEmail"),
            redirect_url=query.get("redirectUrl"),
            base_url=query.get("baseUrl"),
        )


class CallbackPageSeeder:
    """Client half of the redirect-mode callback: write storage, verify, redirect."""

    def __init__(
        self,
        store: SessionStore,
        navigator: Navigator,
        settings: AppSettings,
        *,
        settle_delay_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._navigator = navigator
        self._settings = settings
        if settle_delay_seconds is None:
            settle_delay_seconds = settings.callback.redirect_delay_ms / 1000
        self._settle_delay = settle_delay_seconds

    async def complete(self, params: CallbackPageParams) -> str:
        """Store the session and redirect; returns the destination URL."""
        if not params.session_data or not params.session_token or not params.expires_at:
            raise InvalidSession("Incomplete session data")
        try:
            session_payload = json.loads(params.session_data)
        except ValueError as exc:
            raise InvalidSession("Session data is not valid JSON") from exc

        self._store.save(json.dumps(session_payload), params.session_token, params.expires_at)
        logger.info("Session stored for %s", params.user_email or "unknown user")

        await asyncio.sleep(self._settle_delay)
        if self._store.load() is None:
            raise InvalidSession("Stored session could not be read back")

        base_url = params.base_url or self._settings.auth0.public_base_url
        destination = resolve_destination(
            base_url, params.redirect_url, self._settings.pages.dashboard
        )
        self._navigator.redirect_to(destination)
        return destination


__all__ = ["CallbackPageParams", "CallbackPageSeeder"]
