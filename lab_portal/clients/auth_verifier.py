"""Client for the server-side session verification endpoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from lab_portal.core.errors import (
    ServerRejected,
    VerificationTimeout,
    VerifierNetworkError,
)
from lab_portal.models import SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(slots=True)
class VerificationResult:
    authenticated: bool
    user: Optional[Dict[str, Any]] = None


class RemoteAuthVerifier:
    """Ask ``/check-auth`` whether a stored session is still authorised.

    The verifier only reports a verdict; it never mutates local storage.
    """

    def __init__(
        self,
        check_auth_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = check_auth_url
        self._timeout = timeout_seconds
        self._transport = transport

    async def verify(self, record: SessionRecord) -> VerificationResult:
        try:
            response = await asyncio.wait_for(self._post(record), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise VerificationTimeout(
                f"No response from {self._url} within {self._timeout:.0f}s"
            ) from exc
        except httpx.TimeoutException as exc:
            raise VerificationTimeout(str(exc) or "Verification request timed out") from exc
        except httpx.TransportError as exc:
            raise VerifierNetworkError(str(exc) or "Verification request failed") from exc

        if response.status_code < 200 or response.status_code >= 300:
            code = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    code = body.get("code")
            except ValueError:
                pass
            logger.warning(
                "Session verification rejected with status %s (%s)",
                response.status_code,
                code,
            )
            raise ServerRejected(response.status_code, code)

        payload = response.json()
        return VerificationResult(
            authenticated=bool(payload.get("authenticated")),
            user=payload.get("user"),
        )

    async def _post(self, record: SessionRecord) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport) as client:
            return await client.post(
                self._url,
                json={
                    "sessionData": record.session_data,
                    "sessionToken": record.session_token,
                },
                headers={"Authorization": f"Bearer {record.session_token}"},
            )


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "RemoteAuthVerifier", "VerificationResult"]
