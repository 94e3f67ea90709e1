"""Domain models."""

from .session import USER_FIELDS, Session, SessionRecord, UserInfo

__all__ = ["Session", "SessionRecord", "USER_FIELDS", "UserInfo"]
