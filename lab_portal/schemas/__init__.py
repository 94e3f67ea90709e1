"""Public schema exports."""

from .auth import CheckAuthRequest, CheckAuthResponse, ErrorResponse, PublicUser

__all__ = [
    "CheckAuthRequest",
    "CheckAuthResponse",
    "ErrorResponse",
    "PublicUser",
]
