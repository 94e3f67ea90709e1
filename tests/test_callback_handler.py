try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from urllib.parse import parse_qs, urlsplit

import pytest

from _factories import NOW_MS, PROFILE, TOKEN, FakeAuth0, build_callback_handler
from lab_portal.clients.auth0 import decode_state, encode_state
from lab_portal.core.config import CallbackResponseMode
from lab_portal.core.errors import (
    InvalidSession,
    MissingAuthorizationCode,
    TokenExchangeFailed,
    UserInfoFetchFailed,
)
from lab_portal.services.callback_page import CallbackPageParams, CallbackPageSeeder
from lab_portal.services.navigation import RecordingNavigator
from lab_portal.services.session_tokens import SessionCookieCodec

@pytest.mark.anyio
async def test_redirect_mode_hands_session_to_callback_page(settings, store) -> None:
    fake = FakeAuth0()
    outcome = await build_callback_handler(settings, fake).handle(
        code="auth-code", state=encode_state({"redirect": "/app/reports", "nonce": "n"})
    )

    assert outcome.status_code == 302
    parts = urlsplit(outcome.location)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
        "https://lab.example.org/auth/pages/callback.html"
    )
    query = {key: values[0] for key, values in parse_qs(parts.query).items()}
    session = json.loads(query["sessionData"])
    assert session["user"]["email"] == "ana@gmail.com"
    assert "locale" not in session["user"]
    assert session["expires_at"] == NOW_MS + 3_600_000
    assert query["sessionToken"] == TOKEN
    assert query["expiresAt"] == str(NOW_MS + 3_600_000)
    assert query["redirectUrl"] == "/app/reports"
    assert fake.token_requests[0]["redirect_uri"] == "https://lab.example.org/api/auth/callback"

    navigator = RecordingNavigator()
    seeder = CallbackPageSeeder(store, navigator, settings, settle_delay_seconds=0)
    destination = await seeder.complete(CallbackPageParams.from_query(query))

    assert destination == "https://lab.example.org/app/reports"
    assert navigator.history == [destination]
    record = store.load()
    assert record is not None
    assert record.session_token == TOKEN
    assert json.loads(record.session_data)["user"]["email"] == "ana@gmail.com"


@pytest.mark.anyio
async def test_disallowed_domain_is_sent_to_forbidden_page(settings) -> None:
    fake = FakeAuth0(profile={**PROFILE, "email": "eve@corp.example"})

    outcome = await build_callback_handler(settings, fake).handle(code="auth-code")

    assert outcome.status_code == 302
    assert outcome.session is None
    parts = urlsplit(outcome.location)
    assert parts.path == "/forbidden"
    assert parse_qs(parts.query)["error"] == ["access_denied"]


@pytest.mark.anyio
async def test_failed_code_exchange_is_reported(settings) -> None:
    with pytest.raises(TokenExchangeFailed) as exc_info:
        await build_callback_handler(settings, FakeAuth0(token_status=403)).handle(code="stale-code")

    assert exc_info.value.to_payload()["code"] == "TOKEN_EXCHANGE_FAILED"
    assert exc_info.value.status_code == 400


@pytest.mark.anyio
async def test_failed_userinfo_lookup_is_reported(settings) -> None:
    with pytest.raises(UserInfoFetchFailed):
        await build_callback_handler(settings, FakeAuth0(userinfo_status=401)).handle(code="auth-code")


@pytest.mark.anyio
async def test_missing_code_is_rejected(settings) -> None:
    with pytest.raises(MissingAuthorizationCode):
        await build_callback_handler(settings, FakeAuth0()).handle(state="anything")


@pytest.mark.anyio
async def test_login_required_restarts_authorization_with_account_picker(settings) -> None:
    outcome = await build_callback_handler(settings, FakeAuth0()).handle(
        error="login_required", theme="dark"
    )

    parts = urlsplit(outcome.location)
    assert parts.netloc == "lab-portal.eu.auth0.com"
    assert parts.path == "/authorize"
    query = parse_qs(parts.query)
    assert query["prompt"] == ["select_account"]
    assert query["connection"] == ["google-oauth2"]
    assert query["ui_locales"] == ["dark"]


@pytest.mark.anyio
async def test_provider_errors_redirect_with_description(settings) -> None:
    handler = build_callback_handler(settings, FakeAuth0())

    denied = await handler.handle(error="access_denied", error_description="User cancelled")
    other = await handler.handle(error="server_error")

    assert urlsplit(denied.location).path == "/forbidden"
    assert parse_qs(urlsplit(denied.location).query)["error_description"] == ["User cancelled"]
    assert urlsplit(other.location).path == "/login"


@pytest.mark.anyio
async def test_unsafe_redirect_in_state_falls_back_to_dashboard(settings) -> None:
    settings.callback.response_mode = CallbackResponseMode.COOKIE
    state = encode_state({"redirect": "//attacker.example/phish"})

    outcome = await build_callback_handler(settings, FakeAuth0()).handle(code="auth-code", state=state)

    assert outcome.location == "https://lab.example.org/app/"


@pytest.mark.anyio
async def test_html_mode_embeds_session_without_breaking_out_of_script(settings) -> None:
    settings.callback.response_mode = CallbackResponseMode.HTML
    settings.callback.redirect_delay_ms = 0
    fake = FakeAuth0(profile={**PROFILE, "name": "</script><script>alert(1)</script>"})

    outcome = await build_callback_handler(settings, fake).handle(code="auth-code")

    assert outcome.status_code == 200
    html = outcome.html
    assert "<script>alert(1)" not in html
    assert "\\u003c/script\\u003e" in html
    assert 'localStorage.setItem(keys.token, sessionToken)' in html
    assert f'"{TOKEN}"' in html
    assert '"https://lab.example.org/app/"' in html


@pytest.mark.anyio
async def test_cookie_mode_issues_bound_cookies(settings) -> None:
    settings.callback.response_mode = CallbackResponseMode.COOKIE
    codec = SessionCookieCodec(secret=settings.session_secret)

    outcome = await build_callback_handler(settings, FakeAuth0()).handle(
        code="auth-code", state=encode_state({"redirect": "/app/lab"})
    )

    assert outcome.status_code == 302
    assert outcome.location == "https://lab.example.org/app/lab"
    assert outcome.cookie_max_age == 3600
    assert outcome.cookies.session_token == TOKEN
    session = json.loads(codec.open(outcome.cookies))
    assert session["user"]["email"] == "ana@gmail.com"


@pytest.mark.anyio
async def test_callback_page_rejects_incomplete_parameters(settings, store) -> None:
    seeder = CallbackPageSeeder(store, RecordingNavigator(), settings, settle_delay_seconds=0)

    with pytest.raises(InvalidSession):
        await seeder.complete(CallbackPageParams.from_query({"sessionToken": TOKEN}))
    with pytest.raises(InvalidSession):
        await seeder.complete(
            CallbackPageParams(session_data="{oops", session_token=TOKEN, expires_at="1")
        )
    assert store.load() is None


def test_state_round_trip_and_garbage() -> None:
    state = encode_state({"redirect": "/app/x", "nonce": "abc"})

    assert decode_state(state) == {"redirect": "/app/x", "nonce": "abc"}
    assert decode_state("not-json") == {}
    assert decode_state(None) == {}
