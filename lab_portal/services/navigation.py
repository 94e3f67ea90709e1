"""Navigation capability injected into the client-side auth components."""

from __future__ import annotations

import logging
from typing import List, Protocol
from urllib.parse import quote

from lab_portal.core.config import PagesSettings

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    def redirect_to(self, url: str) -> None: ...


class RecordingNavigator:
    """Navigator that records requested destinations instead of leaving the page."""

    def __init__(self) -> None:
        self.history: List[str] = []

    def redirect_to(self, url: str) -> None:
        logger.info("Redirecting to %s", url)
        self.history.append(url)

    @property
    def last(self) -> str | None:
        return self.history[-1] if self.history else None


def login_redirect_url(pages: PagesSettings, current_path: str) -> str:
    """Where to send an unauthenticated visitor, remembering where they were.

    Visitors inside the protected area (``pages.protected_prefix``) go to the
    public landing page rather than the login page; the landing page shows
    the sign-in entry point and forwards the ``redirect`` path on. All other
    paths go straight to the login page.
    """
    target = quote(current_path, safe="")
    if current_path.startswith(pages.protected_prefix):
        return f"{pages.landing}?redirect={target}"
    return f"{pages.login}?redirect={target}"


def safe_redirect_path(value: str | None) -> str | None:
    """Accept only same-site absolute paths such as ``/app/reports``."""
    if not value or value == "null":
        return None
    if not value.startswith("/") or value.startswith("//"):
        return None
    return value


def resolve_destination(base_url: str, redirect_path: str | None, dashboard: str) -> str:
    path = safe_redirect_path(redirect_path) or dashboard
    return f"{base_url.rstrip('/')}{path}"


def forbidden_redirect_url(pages: PagesSettings, reason: str = "") -> str:
    if not reason:
        return pages.forbidden
    return f"{pages.forbidden}?reason={quote(reason, safe='')}"


__all__ = [
    "Navigator",
    "RecordingNavigator",
    "forbidden_redirect_url",
    "login_redirect_url",
    "resolve_destination",
    "safe_redirect_path",
]
