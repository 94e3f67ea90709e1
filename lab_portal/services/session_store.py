"""Mechanical persistence of the session record under three well-known keys."""

from __future__ import annotations

from typing import Optional

from lab_portal.clients.storage import KeyValueStorage
from lab_portal.core.config import SessionSettings
from lab_portal.models import Session, SessionRecord


class SessionStore:
    """Save, load and clear the session record. No validation happens here."""

    def __init__(self, storage: KeyValueStorage, settings: SessionSettings) -> None:
        self._storage = storage
        self._keys = (settings.data_key, settings.token_key, settings.expires_key)

    @property
    def keys(self) -> tuple[str, str, str]:
        return self._keys

    def save(self, session: Session | str, token: str, expires_at: int | str) -> None:
        data_key, token_key, expires_key = self._keys
        session_data = session if isinstance(session, str) else session.model_dump_json()
        self._storage.set_many(
            {
                data_key: session_data,
                token_key: token,
                expires_key: str(expires_at),
            }
        )

    def load(self) -> Optional[SessionRecord]:
        """Return the stored record, or ``None`` if any of the three fields is missing."""
        session_data, session_token, session_expires = (
            self._storage.get(key) for key in self._keys
        )
        if not session_data or not session_token or not session_expires:
            return None
        return SessionRecord(
            session_data=session_data,
            session_token=session_token,
            session_expires=session_expires,
        )

    def clear(self) -> None:
        self._storage.delete_many(self._keys)


__all__ = ["SessionStore"]
