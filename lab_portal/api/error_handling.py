"""Render domain errors as ``{error, message, code}`` JSON."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lab_portal.core.errors import AuthError, InternalError

logger = logging.getLogger(__name__)


def error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content=exc.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for the auth error taxonomy and for anything unexpected."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "%s %s -> %s %s: %s",
            request.method,
            request.url.path,
            int(exc.status_code),
            exc.code,
            exc.message,
        )
        return error_response(exc)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path
        )
        return error_response(InternalError())


__all__ = ["error_response", "register_exception_handlers"]
