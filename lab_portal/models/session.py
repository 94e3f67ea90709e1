"""
Domain models for the browser-held session.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

USER_FIELDS = (
    "sub",
    "email",
    "name",
    "picture",
    "email_verified",
    "given_name",
    "family_name",
    "nickname",
    "updated_at",
)


class UserInfo(BaseModel):
    """Subset of the identity provider profile kept in the session."""

    model_config = ConfigDict(extra="ignore")

    sub: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    email_verified: Optional[bool] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    nickname: Optional[str] = None
    updated_at: Optional[str] = None
    roles: Optional[List[str]] = None
    permissions: Optional[List[str]] = None

    @classmethod
    def from_profile(cls, profile: Dict[str, Any]) -> "UserInfo":
        """Keep only the whitelisted profile fields returned by ``/userinfo``."""
        return cls(**{key: profile.get(key) for key in USER_FIELDS})


class Session(BaseModel):
    """An authenticated identity plus its provider access token and expiry."""

    user: UserInfo
    access_token: str
    expires_at: int = Field(..., description="Expiry as epoch milliseconds.")


class SessionRecord(BaseModel):
    """The three persisted session fields, stored as raw strings."""

    session_data: str
    session_token: str
    session_expires: str


__all__ = ["Session", "SessionRecord", "USER_FIELDS", "UserInfo"]
