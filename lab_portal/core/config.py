"""
Application configuration models and helpers.

Centralizes settings management so the HTTP service and the client-side
auth checker share one explicitly constructed configuration object instead
of module-level globals.
"""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_env_file(path: str = ".env") -> dict[str, str]:
    """Read key=value pairs from a .env file, skipping blanks and comments."""
    env_path = Path(path)
    if not env_path.exists():
        return {}
    values: dict[str, str] = {}
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        values[key] = value.strip().strip('"').strip("'")
    return values


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    for key, value in _parse_env_file(path).items():
        os.environ.setdefault(key, value)


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, (tuple, list)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return tuple(item.strip() for item in value.split(",") if item.strip())


class CallbackResponseMode(str, Enum):
    """How the OAuth callback hands the new session to the browser."""

    REDIRECT = "redirect"
    HTML = "html"
    COOKIE = "cookie"


class SessionSource(str, Enum):
    """Where the verification endpoint reads the session payload from."""

    BODY = "body"
    QUERY = "query"
    COOKIE = "cookie"
    AUTO = "auto"


class RateLimitBackend(str, Enum):
    MEMORY = "memory"
    SQLITE = "sqlite"


class Auth0Settings(BaseSettings):
    """Identity provider configuration."""

    model_config = SettingsConfigDict(env_prefix="AUTH0_", extra="ignore")

    domain: str = Field(..., description="Auth0 tenant domain, e.g. tenant.eu.auth0.com.")
    client_id: str
    client_secret: str
    base_url: AnyHttpUrl = Field(..., description="Public origin of the portal.")
    callback_path: str = "/api/auth/callback"
    audience: Optional[str] = None
    connection: str = "google-oauth2"
    scope: str = "openid profile email"
    federated_logout: bool = False
    timeout_seconds: float = 10.0

    @property
    def issuer(self) -> str:
        return f"https://{self.domain}"

    @property
    def public_base_url(self) -> str:
        return str(self.base_url).rstrip("/")

    @property
    def redirect_uri(self) -> str:
        return f"{self.public_base_url}{self.callback_path}"


class SessionSettings(BaseSettings):
    """Session record layout and lifetime semantics."""

    model_config = SettingsConfigDict(env_prefix="SESSION_", extra="ignore")

    data_key: str = "session_data"
    token_key: str = "session_token"
    expires_key: str = "session_expires"
    hash_cookie: str = "session_hash"
    expiry_inclusive: bool = Field(
        True,
        description="When true a session is expired at now >= expires_at, otherwise now > expires_at.",
    )
    token_bytes: int = 32
    secret: Optional[str] = Field(
        None,
        description="Secret for hashing and encrypting session cookies. Falls back to the Auth0 client secret.",
    )


class AccessSettings(BaseSettings):
    """Email domain allow-list."""

    model_config = SettingsConfigDict(env_prefix="ACCESS_", extra="ignore")

    allowed_domains: Annotated[tuple[str, ...], NoDecode] = ("gmail.com",)

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing domains as a comma-separated string."""
        return tuple(domain.lower().lstrip("@") for domain in _split_csv(value))


class PagesSettings(BaseSettings):
    """Static pages the auth flow redirects to."""

    model_config = SettingsConfigDict(env_prefix="PAGES_", extra="ignore")

    login: str = "/login"
    forbidden: str = "/forbidden"
    callback: str = "/auth/pages/callback.html"
    dashboard: str = "/app/"
    landing: str = "/"
    logout_endpoint: str = "/api/logout"
    protected_prefix: str = "/app/"


class CallbackSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CALLBACK_", extra="ignore")

    response_mode: CallbackResponseMode = CallbackResponseMode.REDIRECT
    redirect_delay_ms: int = 2000


class RateLimitSettings(BaseSettings):
    """Sliding window limits for the verification endpoint."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", extra="ignore")

    window_seconds: float = 15 * 60
    max_requests: int = 100
    backend: RateLimitBackend = RateLimitBackend.MEMORY
    db_path: str = "var/rate_limit.db"


class ApiProxySettings(BaseSettings):
    """Authorised pass-through to third-party data APIs."""

    model_config = SettingsConfigDict(env_prefix="API_PROXY_", extra="ignore")

    key: Optional[str] = None
    allowed_domains: Annotated[tuple[str, ...], NoDecode] = ("api.sheetbest.com",)
    service_name: str = "SheetBest"
    timeout_seconds: float = 10.0

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        return tuple(domain.lower() for domain in _split_csv(value))


class AppSettings(BaseSettings):
    """Root settings object for the portal auth service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    allowed_origin: str = Field(
        "https://lab.swanix.org",
        validation_alias="ALLOWED_ORIGIN",
        description="Origin allowed to call the API from the browser.",
    )
    session_source: SessionSource = Field(SessionSource.AUTO, validation_alias="SESSION_SOURCE")
    auth0: Auth0Settings = Field(default_factory=Auth0Settings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    pages: PagesSettings = Field(default_factory=PagesSettings)
    callback: CallbackSettings = Field(default_factory=CallbackSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    api_proxy: ApiProxySettings = Field(default_factory=ApiProxySettings)

    @property
    def session_secret(self) -> str:
        return self.session.secret or self.auth0.client_secret


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AccessSettings",
    "ApiProxySettings",
    "AppSettings",
    "Auth0Settings",
    "CallbackResponseMode",
    "CallbackSettings",
    "PagesSettings",
    "RateLimitBackend",
    "RateLimitSettings",
    "SessionSettings",
    "SessionSource",
    "get_settings",
]
