try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from _factories import NOW_MS, TOKEN, make_session
from lab_portal.core.errors import InvalidProxyUrl, MissingApiKey, UpstreamApiError
from lab_portal.main import app
from lab_portal.services.api_proxy import ApiProxyService
from lab_portal.services.rate_limiter import InMemoryRateLimiter
from lab_portal.services.session_tokens import SessionCookieCodec
from lab_portal.services.session_verifier import SessionVerificationService

SHEET_URL = "https://api.sheetbest.com/sheets/0b1c"


class Upstream:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self.payload = payload if payload is not None else [{"sample": "A-12", "ph": 7.1}]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


def _proxy(settings, upstream: Upstream) -> ApiProxyService:
    return ApiProxyService(settings.api_proxy, transport=httpx.MockTransport(upstream))


@pytest.mark.anyio
async def test_sheetbest_requests_carry_api_key_header(settings) -> None:
    settings.api_proxy.key = "sheet-key"
    upstream = Upstream()

    data = await _proxy(settings, upstream).fetch(SHEET_URL)

    assert data == [{"sample": "A-12", "ph": 7.1}]
    assert upstream.requests[0].headers["x-api-key"] == "sheet-key"
    assert "authorization" not in upstream.requests[0].headers


@pytest.mark.anyio
async def test_other_services_use_bearer_auth(settings) -> None:
    settings.api_proxy.key = "data-key"
    settings.api_proxy.service_name = "Airtable"
    settings.api_proxy.allowed_domains = ("api.airtable.com",)
    upstream = Upstream()

    await _proxy(settings, upstream).fetch("https://api.airtable.com/v0/base/table")

    assert upstream.requests[0].headers["authorization"] == "Bearer data-key"


@pytest.mark.anyio
async def test_missing_key_is_a_server_error(settings) -> None:
    settings.api_proxy.key = None

    with pytest.raises(MissingApiKey) as exc_info:
        await _proxy(settings, Upstream()).fetch(SHEET_URL)

    assert exc_info.value.status_code == 500


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("url", "code"),
    [
        (None, "MISSING_URL"),
        ("", "MISSING_URL"),
        ("https://api.sheetbest.com.attacker.io/x", "INVALID_URL"),
        ("https://attacker.io/?next=api.sheetbest.com", "INVALID_URL"),
        ("ftp://api.sheetbest.com/x", "INVALID_URL"),
    ],
)
async def test_url_validation(settings, url, code) -> None:
    settings.api_proxy.key = "sheet-key"
    upstream = Upstream()

    with pytest.raises(InvalidProxyUrl) as exc_info:
        await _proxy(settings, upstream).fetch(url)

    assert exc_info.value.code == code
    assert exc_info.value.status_code == 400
    assert upstream.requests == []


@pytest.mark.anyio
async def test_upstream_errors_keep_their_status(settings) -> None:
    settings.api_proxy.key = "sheet-key"

    with pytest.raises(UpstreamApiError) as exc_info:
        await _proxy(settings, Upstream(404, {"detail": "no sheet"})).fetch(SHEET_URL)

    assert exc_info.value.code == "SHEETBEST_ERROR"
    assert exc_info.value.status_code == 404


@pytest.fixture()
def proxy_overrides(settings):
    from lab_portal import dependencies

    settings.api_proxy.key = "sheet-key"
    upstream = Upstream()
    verifier = SessionVerificationService(
        settings,
        InMemoryRateLimiter(window_seconds=900, max_requests=100),
        SessionCookieCodec(secret=settings.session_secret),
        clock=lambda: NOW_MS,
    )
    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_session_verifier: lambda: verifier,
            dependencies.get_api_proxy_service: lambda: _proxy(settings, upstream),
        }
    )

    yield upstream

    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_proxy_route_requires_a_session(proxy_overrides) -> None:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    ) as client:
        response = await client.get("/api/proxy", params={"url": SHEET_URL})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert proxy_overrides.requests == []


@pytest.mark.anyio
async def test_proxy_route_forwards_for_verified_session(proxy_overrides) -> None:
    session = make_session()

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    ) as client:
        ok = await client.get(
            "/api/proxy",
            params={"url": SHEET_URL, "session": session.model_dump_json()},
            headers={"authorization": f"Bearer {TOKEN}"},
        )
        rejected = await client.get(
            "/api/proxy",
            params={"url": "https://evil.example/x", "session": session.model_dump_json()},
        )

    assert ok.status_code == 200
    assert ok.json() == [{"sample": "A-12", "ph": 7.1}]
    assert rejected.status_code == 400
    assert rejected.json()["code"] == "INVALID_URL"
