"""Session token minting and the signed, encrypted cookie variant of a session."""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

from lab_portal.core.errors import InvalidSession

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def mint_session_token(nbytes: int = 32) -> str:
    """Return a fresh opaque bearer token (``2 * nbytes`` hex characters)."""
    return secrets.token_hex(nbytes)


def is_well_formed_token(token: str | None, nbytes: int = 32) -> bool:
    if not token or len(token) != nbytes * 2:
        return False
    return bool(_HEX_RE.match(token))


@dataclass(slots=True)
class SessionCookies:
    session_token: str
    session_hash: str
    session_data: str


class SessionCookieCodec:
    """Bind a session token to its payload and keep the payload unreadable in transit.

    ``session_hash`` is an HMAC over the token and the serialized session so a
    swapped cookie is detected; ``session_data`` is Fernet-encrypted because it
    carries the provider access token.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Session secret must be provided.")
        self._secret = secret.encode("utf-8")
        digest = hashlib.sha256(self._secret).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def sign(self, session_token: str, session_json: str) -> str:
        message = f"{session_token}.{session_json}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def encrypt(self, session_json: str) -> str:
        return self._fernet.encrypt(session_json.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise InvalidSession("Session cookie could not be decrypted") from exc
        return plaintext.decode("utf-8")

    def issue(self, session_token: str, session_json: str) -> SessionCookies:
        return SessionCookies(
            session_token=session_token,
            session_hash=self.sign(session_token, session_json),
            session_data=self.encrypt(session_json),
        )

    def open(self, cookies: SessionCookies) -> str:
        """Return the session JSON after checking the HMAC binding."""
        session_json = self.decrypt(cookies.session_data)
        expected = self.sign(cookies.session_token, session_json)
        if not hmac.compare_digest(expected, cookies.session_hash):
            raise InvalidSession("Session cookie signature mismatch")
        return session_json


__all__ = [
    "SessionCookieCodec",
    "SessionCookies",
    "is_well_formed_token",
    "mint_session_token",
]
