"""Builders and fakes shared by the test modules."""

from __future__ import annotations

import json

import httpx

from lab_portal.clients.auth0 import Auth0Client
from lab_portal.models import Session, UserInfo
from lab_portal.services.callback_handler import OAuthCallbackHandler
from lab_portal.services.session_tokens import SessionCookieCodec

NOW_MS = 1_700_000_000_000
TOKEN = "ab" * 32


def make_session(
    email: str = "ana@gmail.com",
    expires_at: int = NOW_MS + 3_600_000,
    **user_fields,
) -> Session:
    user = UserInfo(email=email, name="Ana", picture="https://img.example/ana.png", **user_fields)
    return Session(user=user, access_token="provider-access-token", expires_at=expires_at)


def session_json(**kwargs) -> str:
    return json.dumps(make_session(**kwargs).model_dump())


PROFILE = {
    "sub": "google-oauth2|123",
    "email": "ana@gmail.com",
    "name": "Ana",
    "picture": "https://img.example/ana.png",
    "email_verified": True,
    "locale": "es",
}


class FakeAuth0:
    """Answers the Auth0 token and userinfo endpoints."""

    def __init__(self, profile: dict | None = None, token_status: int = 200, userinfo_status: int = 200) -> None:
        self.profile = profile or dict(PROFILE)
        self.token_status = token_status
        self.userinfo_status = userinfo_status
        self.token_requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            self.token_requests.append(json.loads(request.content))
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(
                200,
                json={"access_token": "provider-access-token", "expires_in": 3600, "id_token": "id"},
            )
        if request.url.path == "/userinfo":
            assert request.headers["authorization"] == "Bearer provider-access-token"
            if self.userinfo_status != 200:
                return httpx.Response(self.userinfo_status, json={"error": "nope"})
            return httpx.Response(200, json=self.profile)
        return httpx.Response(404)


def build_callback_handler(settings, fake: FakeAuth0) -> OAuthCallbackHandler:
    client = Auth0Client(settings.auth0, transport=httpx.MockTransport(fake))
    return OAuthCallbackHandler(
        client,
        settings,
        SessionCookieCodec(secret=settings.session_secret),
        clock=lambda: NOW_MS,
        token_factory=lambda nbytes: TOKEN,
    )
