"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_api_proxy_service,
    get_auth0_client,
    get_callback_handler,
    get_cookie_codec,
    get_rate_limiter,
    get_session_verifier,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_api_proxy_service",
    "get_app_settings",
    "get_auth0_client",
    "get_callback_handler",
    "get_cookie_codec",
    "get_rate_limiter",
    "get_session_verifier",
]
