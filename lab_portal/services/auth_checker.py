"""
Client-side auth orchestrator.

Combines the session store, the pure validator and the remote verifier into
one asynchronous check that returns a tagged result:

* ``Authenticated(user)`` when the local record is well formed, unexpired
  and the server confirms it;
* ``Unauthenticated(reason)`` when there is no usable record or the server
  says no;
* ``Failed(error)`` when the check itself broke (timeout, network, parse).

Whenever a record existed and the outcome is not ``Authenticated`` the
record is cleared so a half-valid session is never left behind.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from lab_portal.clients.auth_verifier import RemoteAuthVerifier
from lab_portal.core.config import AppSettings
from lab_portal.core.errors import ServerRejected
from lab_portal.services.navigation import Navigator, login_redirect_url
from lab_portal.services.session_store import SessionStore
from lab_portal.services.session_validator import (
    is_allowed_email,
    is_expired,
    is_structurally_valid,
    now_ms,
)

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    UNCHECKED = "unchecked"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    ERRORED = "errored"


@dataclass(frozen=True)
class Authenticated:
    user: Dict[str, Any]


@dataclass(frozen=True)
class Unauthenticated:
    reason: str


@dataclass(frozen=True)
class Failed:
    error: BaseException


AuthResult = Union[Authenticated, Unauthenticated, Failed]


class AuthChecker:
    """Decide whether the current visitor holds a server-confirmed session."""

    def __init__(
        self,
        store: SessionStore,
        verifier: RemoteAuthVerifier,
        settings: AppSettings,
        *,
        navigator: Optional[Navigator] = None,
        redirect_to_login: bool = False,
        current_path: str = "/",
        clock: Callable[[], int] = now_ms,
        on_authenticated: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_unauthenticated: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        if redirect_to_login and navigator is None:
            raise ValueError("redirect_to_login requires a navigator")
        self._store = store
        self._verifier = verifier
        self._settings = settings
        self._navigator = navigator
        self._redirect_to_login = redirect_to_login
        self._clock = clock
        self._on_authenticated = on_authenticated
        self._on_unauthenticated = on_unauthenticated
        self._on_error = on_error
        self.current_path = current_path
        self.state = AuthState.UNCHECKED

    @property
    def _inclusive(self) -> bool:
        return self._settings.session.expiry_inclusive

    async def check(self) -> AuthResult:
        return await self.check_auth_and_execute()

    async def check_auth_and_execute(self) -> AuthResult:
        """Run the full check and fire the matching hook, if any."""
        self.state = AuthState.CHECKING

        record = self._store.load()
        if not is_structurally_valid(record):
            return self._unauthenticated("no_session", clear=False)
        if is_expired(record, self._clock(), inclusive=self._inclusive):
            return self._unauthenticated("expired")

        try:
            verdict = await self._verifier.verify(record)
        except ServerRejected as exc:
            logger.warning("Server rejected stored session (%s)", exc.code or exc.status_code)
            return self._unauthenticated((exc.code or "rejected").lower())
        except Exception as exc:  # pylint: disable=broad-except
            return self._failed(exc)

        if not verdict.authenticated:
            return self._unauthenticated("rejected")

        user = verdict.user or {}
        self.state = AuthState.AUTHENTICATED
        if self._on_authenticated is not None:
            self._on_authenticated(user)
        return Authenticated(user=user)

    def _unauthenticated(self, reason: str, *, clear: bool = True) -> Unauthenticated:
        if clear:
            self._store.clear()
        self.state = AuthState.UNAUTHENTICATED
        logger.info("Visitor is not authenticated (%s)", reason)
        if self._on_unauthenticated is not None:
            self._on_unauthenticated()
        elif self._redirect_to_login:
            self._go_to_login()
        return Unauthenticated(reason=reason)

    def _failed(self, error: BaseException) -> Failed:
        self._store.clear()
        self.state = AuthState.ERRORED
        if self._on_error is not None:
            self._on_error(error)
        else:
            logger.error("Unhandled error while checking authentication", exc_info=error)
            if self._redirect_to_login:
                self._go_to_login()
        return Failed(error=error)

    def _go_to_login(self) -> None:
        assert self._navigator is not None
        self._navigator.redirect_to(login_redirect_url(self._settings.pages, self.current_path))

    def check_auth_sync(self) -> bool:
        """Structural and expiry check against local data only; no network."""
        record = self._store.load()
        if not is_structurally_valid(record):
            return False
        return not is_expired(record, self._clock(), inclusive=self._inclusive)

    def get_current_session(self) -> Optional[Dict[str, Any]]:
        record = self._store.load()
        if record is None:
            return None
        try:
            payload = json.loads(record.session_data)
        except ValueError:
            logger.error("Stored session data is not valid JSON")
            return None
        return payload if isinstance(payload, dict) else None

    def get_current_user(self) -> Optional[Dict[str, Any]]:
        session = self.get_current_session()
        if session is None:
            return None
        user = session.get("user")
        return user if isinstance(user, dict) else None

    def _user_list(self, field: str) -> list:
        user = self.get_current_user() or {}
        values = user.get(field)
        return values if isinstance(values, list) else []

    def has_role(self, role: str) -> bool:
        return role in self._user_list("roles")

    def has_permission(self, permission: str) -> bool:
        return permission in self._user_list("permissions")

    def is_allowed_domain(self, email: str) -> bool:
        return is_allowed_email(email, self._settings.access.allowed_domains)

    def clear_session(self) -> None:
        self._store.clear()
        self.state = AuthState.UNCHECKED

    def logout(self) -> None:
        """Drop the local session and hand over to the server logout endpoint."""
        self.clear_session()
        if self._navigator is not None:
            self._navigator.redirect_to(self._settings.pages.logout_endpoint)


__all__ = [
    "AuthChecker",
    "AuthResult",
    "AuthState",
    "Authenticated",
    "Failed",
    "Unauthenticated",
]
