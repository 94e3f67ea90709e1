"""Protected-view routing on top of the auth checker."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from lab_portal.core.config import AppSettings
from lab_portal.services.auth_checker import AuthChecker, Authenticated
from lab_portal.services.navigation import (
    Navigator,
    forbidden_redirect_url,
    login_redirect_url,
)

logger = logging.getLogger(__name__)


class RouteAction(str, Enum):
    RENDER = "render"
    REDIRECT = "redirect"
    BUSY = "busy"


@dataclass(slots=True)
class RouteDecision:
    action: RouteAction
    path: str
    user: Optional[Dict[str, Any]] = None
    location: Optional[str] = None


class ProtectedRouter:
    """Render public paths directly and gate protected ones behind the checker.

    A navigation already in flight makes further calls return ``BUSY``
    instead of starting a second load.
    """

    def __init__(
        self,
        checker_factory: Callable[[str], AuthChecker],
        navigator: Navigator,
        settings: AppSettings,
    ) -> None:
        self._checker_factory = checker_factory
        self._navigator = navigator
        self._settings = settings
        self._navigating = False

    def is_protected(self, path: str) -> bool:
        prefix = self._settings.pages.protected_prefix
        return path.startswith(prefix) or path == prefix.rstrip("/")

    async def navigate(self, path: str) -> RouteDecision:
        if self._navigating:
            logger.debug("Navigation to %s ignored; another navigation is in progress", path)
            return RouteDecision(RouteAction.BUSY, path)

        self._navigating = True
        try:
            if not self.is_protected(path):
                return RouteDecision(RouteAction.RENDER, path)

            checker = self._checker_factory(path)
            result = await checker.check_auth_and_execute()
            if isinstance(result, Authenticated):
                email = result.user.get("email")
                if email and not checker.is_allowed_domain(email):
                    location = forbidden_redirect_url(self._settings.pages, "access_denied")
                    self._navigator.redirect_to(location)
                    return RouteDecision(RouteAction.REDIRECT, path, location=location)
                return RouteDecision(RouteAction.RENDER, path, user=result.user)

            location = login_redirect_url(self._settings.pages, path)
            self._navigator.redirect_to(location)
            return RouteDecision(RouteAction.REDIRECT, path, location=location)
        finally:
            self._navigating = False


__all__ = ["ProtectedRouter", "RouteAction", "RouteDecision"]
