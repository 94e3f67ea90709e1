"""
Auth0 OAuth utilities.

These helpers build the authorization and logout URLs and perform the
authorization-code exchange and the userinfo lookup.
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote, urlencode

import httpx
from fastapi import status

from lab_portal.core.config import Auth0Settings


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class OAuthUserInfoError(Exception):
    """Raised when the userinfo endpoint cannot describe the user."""


@dataclass(slots=True)
class TokenSet:
    access_token: str
    expires_in: int
    id_token: Optional[str] = None
    token_type: str = "Bearer"


def random_state() -> str:
    return secrets.token_urlsafe(8)


def encode_state(payload: Dict[str, Any]) -> str:
    """Serialize state as URL-encoded JSON so the callback can recover it."""
    return quote(json.dumps(payload, separators=(",", ":")), safe="")


def decode_state(state: Optional[str]) -> Dict[str, Any]:
    """Best-effort decode of a state value; anything unreadable yields ``{}``."""
    if not state:
        return {}
    for candidate in (state, unquote(state)):
        try:
            payload = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(payload, dict):
            return payload
    return {}


class Auth0Client:
    """Talk to the Auth0 tenant's authorize, token, userinfo and logout endpoints."""

    def __init__(
        self,
        settings: Auth0Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth0 = settings
        self._transport = transport

    @property
    def authorize_url(self) -> str:
        return f"{self._auth0.issuer}/authorize"

    @property
    def token_url(self) -> str:
        return f"{self._auth0.issuer}/oauth/token"

    @property
    def userinfo_url(self) -> str:
        return f"{self._auth0.issuer}/userinfo"

    def build_authorization_url(
        self,
        state: str,
        *,
        prompt: Optional[str] = None,
        connection: Optional[str] = None,
        ui_locales: Optional[str] = None,
    ) -> str:
        """Construct the Auth0 ``/authorize`` URL."""
        params = {
            "response_type": "code",
            "client_id": self._auth0.client_id,
            "redirect_uri": self._auth0.redirect_uri,
            "scope": self._auth0.scope,
        }
        if self._auth0.audience:
            params["audience"] = self._auth0.audience
        if connection:
            params["connection"] = connection
        if prompt:
            params["prompt"] = prompt
        params["state"] = state
        if ui_locales:
            params["ui_locales"] = ui_locales
        return f"{self.authorize_url}?{urlencode(params)}"

    def build_logout_url(self, return_to: str) -> str:
        query = urlencode({"client_id": self._auth0.client_id, "returnTo": return_to})
        return f"{self._auth0.issuer}/v2/logout?{query}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._auth0.timeout_seconds, transport=self._transport
        )

    async def exchange_authorization_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        payload = {
            "grant_type": "authorization_code",
            "client_id": self._auth0.client_id,
            "client_secret": self._auth0.client_secret,
            "code": code,
            "redirect_uri": self._auth0.redirect_uri,
        }

        try:
            async with self._client() as client:
                response = await client.post(self.token_url, json=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(response.text)

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Auth0.")

        return TokenSet(
            access_token=access_token,
            expires_in=int(expires_in),
            id_token=token_payload.get("id_token"),
            token_type=token_payload.get("token_type", "Bearer"),
        )

    async def fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise OAuthUserInfoError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthUserInfoError(response.text)

        profile = response.json()
        if not isinstance(profile, dict):
            raise OAuthUserInfoError("Unexpected userinfo payload returned from Auth0.")
        return profile


__all__ = [
    "Auth0Client",
    "OAuthTokenExchangeError",
    "OAuthUserInfoError",
    "TokenSet",
    "decode_state",
    "encode_state",
    "random_state",
]
