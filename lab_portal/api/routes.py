"""
FastAPI routes for the lab portal auth service.
"""

from __future__ import annotations

import logging
import uuid
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

from lab_portal.clients.auth0 import encode_state
from lab_portal.core.errors import InvalidSession
from lab_portal.dependencies import (
    get_api_proxy_service,
    get_app_settings,
    get_auth0_client,
    get_callback_handler,
    get_session_verifier,
)
from lab_portal.schemas import CheckAuthRequest, CheckAuthResponse, ErrorResponse, PublicUser
from lab_portal.services.callback_handler import CallbackOutcome
from lab_portal.services.navigation import safe_redirect_path
from lab_portal.services.session_verifier import client_ip, collect_credentials

router = APIRouter()
logger = logging.getLogger(__name__)

_SESSION_ERRORS = {
    HTTPStatus.UNAUTHORIZED.value: {"model": ErrorResponse},
    HTTPStatus.FORBIDDEN.value: {"model": ErrorResponse},
    HTTPStatus.TOO_MANY_REQUESTS.value: {"model": ErrorResponse},
}


def _set_session_cookies(response: Response, outcome: CallbackOutcome, settings: Any) -> None:
    cookies = outcome.cookies
    if cookies is None:
        return
    session_settings = settings.session
    for name, value in (
        (session_settings.token_key, cookies.session_token),
        (session_settings.hash_cookie, cookies.session_hash),
        (session_settings.data_key, cookies.session_data),
    ):
        response.set_cookie(
            name,
            value,
            max_age=outcome.cookie_max_age,
            path="/",
            secure=True,
            httponly=True,
            samesite="strict",
        )


async def _read_json_body(request: Request) -> Dict[str, Any]:
    if request.method != "POST":
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = CheckAuthRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise InvalidSession("Request body is not a valid session payload") from exc
    return payload.model_dump(by_alias=True, exclude_none=True)


async def _authorised_user(request: Request, settings: Any, verifier: Any) -> PublicUser:
    peer = request.client.host if request.client else None
    ip = client_ip(request.headers, peer)
    verifier.admit(ip)
    credentials = collect_credentials(
        settings.session_source,
        settings,
        body=await _read_json_body(request),
        query=request.query_params,
        cookies=request.cookies,
        authorization=request.headers.get("authorization"),
    )
    return verifier.authorise(ip, credentials)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/login")
async def start_login(
    auth0_client: Annotated[Any, Depends(get_auth0_client)],
    redirect: Optional[str] = Query(
        default=None, description="Same-site path to return to after login."
    ),
) -> RedirectResponse:
    """Send the browser to the Auth0 universal login page."""
    state = encode_state(
        {"redirect": safe_redirect_path(redirect), "nonce": uuid.uuid4().hex}
    )
    authorization_url = auth0_client.build_authorization_url(state)
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.FOUND)


@router.get(
    "/auth/callback", responses={HTTPStatus.BAD_REQUEST.value: {"model": ErrorResponse}}
)
async def handle_auth0_callback(
    request: Request,
    handler: Annotated[Any, Depends(get_callback_handler)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    theme: Optional[str] = Query(default=None),
) -> Response:
    """Complete the authorization-code flow and hand the session to the browser."""
    outcome = await handler.handle(
        code=code,
        state=state,
        error=error,
        error_description=error_description,
        theme=theme,
        user_agent=request.headers.get("user-agent", ""),
    )

    if outcome.html is not None:
        response: Response = HTMLResponse(
            content=outcome.html,
            status_code=outcome.status_code,
            headers={"Cache-Control": "no-store"},
        )
    else:
        response = RedirectResponse(url=outcome.location, status_code=outcome.status_code)
    _set_session_cookies(response, outcome, settings)
    return response


@router.api_route(
    "/check-auth",
    methods=["GET", "POST"],
    response_model=CheckAuthResponse,
    responses=_SESSION_ERRORS,
)
async def check_auth(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    verifier: Annotated[Any, Depends(get_session_verifier)],
) -> CheckAuthResponse:
    """Confirm that the caller holds a valid, unexpired, allow-listed session."""
    user = await _authorised_user(request, settings, verifier)
    return CheckAuthResponse(authenticated=True, user=user, message="Access authorised")


@router.get("/logout")
async def logout(
    settings: Annotated[Any, Depends(get_app_settings)],
    auth0_client: Annotated[Any, Depends(get_auth0_client)],
) -> RedirectResponse:
    """Drop the session cookies and return to the login page."""
    login_url = f"{settings.auth0.public_base_url}{settings.pages.login}"
    location = (
        auth0_client.build_logout_url(return_to=login_url)
        if settings.auth0.federated_logout
        else login_url
    )
    response = RedirectResponse(url=location, status_code=HTTPStatus.FOUND)
    session_settings = settings.session
    for name in (
        session_settings.token_key,
        session_settings.hash_cookie,
        session_settings.data_key,
    ):
        response.delete_cookie(name, path="/", secure=True, httponly=True, samesite="strict")
    logger.info("Session cookies cleared")
    return response


@router.get(
    "/proxy",
    responses={
        **_SESSION_ERRORS,
        HTTPStatus.BAD_REQUEST.value: {"model": ErrorResponse},
        HTTPStatus.BAD_GATEWAY.value: {"model": ErrorResponse},
    },
)
async def proxy_api_request(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    verifier: Annotated[Any, Depends(get_session_verifier)],
    proxy: Annotated[Any, Depends(get_api_proxy_service)],
    url: Optional[str] = Query(default=None, description="Upstream URL to fetch."),
) -> JSONResponse:
    """Fetch an allow-listed upstream URL with the server-held API key."""
    user = await _authorised_user(request, settings, verifier)
    logger.info("Proxying %s request for %s", proxy.service_name, user.email)
    data = await proxy.fetch(url)
    return JSONResponse(content=data)


__all__ = ["router"]
