try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import dataclasses

import pytest

from _factories import session_json
from lab_portal.core.errors import InvalidSession
from lab_portal.services.session_tokens import (
    SessionCookieCodec,
    is_well_formed_token,
    mint_session_token,
)


def test_minted_tokens_are_unique_hex() -> None:
    tokens = {mint_session_token() for _ in range(20)}

    assert len(tokens) == 20
    assert all(is_well_formed_token(token) for token in tokens)
    assert len(mint_session_token(16)) == 32


@pytest.mark.parametrize("token", [None, "", "ab" * 31, "AB" * 32, "zz" * 32, "ab" * 33])
def test_malformed_tokens_are_rejected(token) -> None:
    assert not is_well_formed_token(token)


def test_cookie_codec_round_trip_hides_the_payload() -> None:
    codec = SessionCookieCodec(secret="cookie-secret")
    payload = session_json()
    token = mint_session_token()

    cookies = codec.issue(token, payload)

    assert "provider-access-token" not in cookies.session_data
    assert codec.open(cookies) == payload


def test_swapped_token_breaks_the_binding() -> None:
    codec = SessionCookieCodec(secret="cookie-secret")
    cookies = codec.issue(mint_session_token(), session_json())
    forged = dataclasses.replace(cookies, session_token=mint_session_token())

    with pytest.raises(InvalidSession):
        codec.open(forged)


def test_cookie_from_another_secret_is_unreadable() -> None:
    cookies = SessionCookieCodec(secret="one").issue(mint_session_token(), session_json())

    with pytest.raises(InvalidSession):
        SessionCookieCodec(secret="two").open(cookies)


def test_codec_requires_a_secret() -> None:
    with pytest.raises(ValueError):
        SessionCookieCodec(secret="")
