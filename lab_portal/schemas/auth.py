"""Schemas related to the authentication endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CheckAuthRequest(BaseModel):
    """Body sent by the browser to confirm its stored session."""

    model_config = ConfigDict(populate_by_name=True)

    session_data: Optional[Union[str, Dict[str, Any]]] = Field(
        None,
        alias="sessionData",
        description="Session as persisted in client storage, serialized or as an object.",
    )
    session_token: Optional[str] = Field(
        None, alias="sessionToken", description="Opaque session token paired with the session."
    )


class PublicUser(BaseModel):
    """Sanitized projection of the session user returned to callers."""

    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class CheckAuthResponse(BaseModel):
    authenticated: bool
    user: Optional[PublicUser] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    message: str
    code: str


__all__ = ["CheckAuthRequest", "CheckAuthResponse", "ErrorResponse", "PublicUser"]
