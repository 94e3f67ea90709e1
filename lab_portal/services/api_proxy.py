"""Authorised pass-through to allow-listed third-party data APIs.

The API key stays on the server; the browser only sends the target URL.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from lab_portal.core.config import ApiProxySettings
from lab_portal.core.errors import InvalidProxyUrl, MissingApiKey, UpstreamApiError

logger = logging.getLogger(__name__)


class ApiProxyService:
    def __init__(
        self,
        settings: ApiProxySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._proxy = settings
        self._transport = transport

    @property
    def service_name(self) -> str:
        return self._proxy.service_name

    def is_allowed_url(self, url: str) -> bool:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return False
        host = parsed.hostname.lower()
        return any(
            host == domain or host.endswith(f".{domain}")
            for domain in self._proxy.allowed_domains
        )

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        if self.service_name.lower() == "sheetbest":
            return {"X-Api-Key": api_key}
        return {"Authorization": f"Bearer {api_key}"}

    async def fetch(self, url: Optional[str]) -> Any:
        api_key = self._proxy.key
        if not api_key:
            raise MissingApiKey(f"Set API_PROXY_KEY to enable the {self.service_name} proxy")
        if not url:
            raise InvalidProxyUrl(f"{self.service_name} URL not provided", code="MISSING_URL")
        if not self.is_allowed_url(url):
            raise InvalidProxyUrl(
                "URL must belong to one of: {}".format(", ".join(self._proxy.allowed_domains))
            )

        headers = {"Content-Type": "application/json", **self._auth_headers(api_key)}
        error_code = f"{self.service_name.upper()}_ERROR"
        try:
            async with httpx.AsyncClient(
                timeout=self._proxy.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Proxy request to %s failed: %s", self.service_name, exc)
            raise UpstreamApiError(
                f"Could not reach {self.service_name}", code=error_code
            ) from exc

        if response.is_error:
            logger.warning(
                "%s answered %s for proxied request", self.service_name, response.status_code
            )
            raise UpstreamApiError(
                f"Error from {self.service_name}: {response.status_code}",
                code=error_code,
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()


__all__ = ["ApiProxyService"]
