"""
Pure session checks shared by the client checker and the server endpoints.

Nothing here performs I/O; callers pass ``now`` explicitly as epoch
milliseconds so the checks stay deterministic.
"""

from __future__ import annotations

import json
import time
from typing import Iterable, Optional
from urllib.parse import unquote

from pydantic import ValidationError

from lab_portal.core.errors import InvalidSession
from lab_portal.models import Session, SessionRecord


def now_ms() -> int:
    return int(time.time() * 1000)


def is_structurally_valid(record: Optional[SessionRecord]) -> bool:
    """All three persisted fields are present and non-empty."""
    if record is None:
        return False
    return bool(record.session_data and record.session_token and record.session_expires)


def parse_expiry(record: SessionRecord) -> Optional[int]:
    try:
        return int(record.session_expires.strip())
    except (AttributeError, ValueError):
        return None


def _expired(expires_at: Optional[int], now: int, inclusive: bool) -> bool:
    if expires_at is None:
        return True
    return now >= expires_at if inclusive else now > expires_at


def is_expired(record: SessionRecord, now: int, *, inclusive: bool = True) -> bool:
    """True once ``now`` reaches the stored expiry; an unreadable expiry counts as expired."""
    return _expired(parse_expiry(record), now, inclusive)


def is_session_expired(session: Session, now: int, *, inclusive: bool = True) -> bool:
    return _expired(session.expires_at, now, inclusive)


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def is_allowed_email(email: Optional[str], allowed_domains: Iterable[str]) -> bool:
    """Match the email domain exactly against the allow-list; an empty list allows everyone."""
    domains = {domain.lower().lstrip("@") for domain in allowed_domains}
    if not email or "@" not in email:
        return False
    if not domains:
        return True
    return email_domain(email) in domains


def parse_session(raw: str) -> Session:
    """Decode a serialized session, tolerating one extra layer of URL encoding."""
    candidates = [raw]
    decoded = unquote(raw)
    if decoded != raw:
        candidates.append(decoded)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except ValueError as exc:
            last_error = exc
            continue
        if not isinstance(payload, dict):
            raise InvalidSession("Session payload must be a JSON object")
        try:
            return Session.model_validate(payload)
        except ValidationError as exc:
            raise InvalidSession("Session payload is missing required fields") from exc
    raise InvalidSession() from last_error


__all__ = [
    "email_domain",
    "is_allowed_email",
    "is_expired",
    "is_session_expired",
    "is_structurally_valid",
    "now_ms",
    "parse_expiry",
    "parse_session",
]
