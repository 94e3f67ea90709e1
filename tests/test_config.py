try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from lab_portal.core.config import (
    AccessSettings,
    AppSettings,
    CallbackResponseMode,
    SessionSource,
)


def test_allowed_domains_accept_comma_separated_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_ALLOWED_DOMAINS", "Gmail.com, @lab.example.org ,")

    assert AccessSettings().allowed_domains == ("gmail.com", "lab.example.org")


def test_nested_groups_read_their_prefixes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH0_BASE_URL", "https://portal.example.org/")
    monkeypatch.setenv("CALLBACK_RESPONSE_MODE", "cookie")
    monkeypatch.setenv("SESSION_SOURCE", "body")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")

    settings = AppSettings()

    assert settings.auth0.redirect_uri == "https://portal.example.org/api/auth/callback"
    assert settings.auth0.issuer == "https://lab-portal.eu.auth0.com"
    assert settings.callback.response_mode is CallbackResponseMode.COOKIE
    assert settings.session_source is SessionSource.BODY
    assert settings.rate_limit.max_requests == 5
    assert settings.rate_limit.window_seconds == 900


def test_session_secret_falls_back_to_client_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SESSION_SECRET", raising=False)
    assert AppSettings().session_secret == "test-client-secret"

    monkeypatch.setenv("SESSION_SECRET", "cookie-secret")
    assert AppSettings().session_secret == "cookie-secret"
