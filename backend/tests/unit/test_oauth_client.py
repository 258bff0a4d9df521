"""Tests for the OAuth HTTP client: code exchange and profile resolution.

Provider HTTP is served by httpx.MockTransport; no network access.
"""

import json
from collections.abc import Callable

import httpx
import pytest
from pydantic import SecretStr

from app.core.config import settings
from app.core.errors import ProviderProtocolError, ProviderUnavailableError
from app.core.oauth import get_provider_config
from app.core.oauth_client import exchange_code_for_tokens, fetch_profile

_GOOGLE = get_provider_config("google")

_MOCK_GOOGLE_USERINFO = {
    "sub": "google-sub-test-123",
    "email": "oauthuser@example.com",
    "email_verified": True,
    "name": "OAuth User",
    "picture": "https://example.com/photo.jpg",
}


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFetchProfile:
    """Userinfo → ExternalProfile."""

    async def test_maps_userinfo_to_profile(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_MOCK_GOOGLE_USERINFO)

        async with _client(handler) as client:
            profile = await fetch_profile(access_token="at-123", client=client)

        assert profile.subject_id == "google-sub-test-123"
        assert profile.email == "oauthuser@example.com"
        assert profile.email_verified is True
        assert profile.display_name == "OAuth User"
        assert str(seen[0].url) == _GOOGLE.userinfo_url
        assert seen[0].headers["Authorization"] == "Bearer at-123"

    async def test_email_verified_defaults_to_false(self):
        info = {k: v for k, v in _MOCK_GOOGLE_USERINFO.items() if k != "email_verified"}
        async with _client(lambda _: httpx.Response(200, json=info)) as client:
            profile = await fetch_profile(access_token="at", client=client)
        assert profile.email_verified is False

    async def test_accepts_string_email_verified(self):
        info = {**_MOCK_GOOGLE_USERINFO, "email_verified": "true"}
        async with _client(lambda _: httpx.Response(200, json=info)) as client:
            profile = await fetch_profile(access_token="at", client=client)
        assert profile.email_verified is True

    @pytest.mark.parametrize("status", [400, 401, 404, 500, 503])
    async def test_non_success_status_is_unavailable(self, status: int):
        async with _client(lambda _: httpx.Response(status, json={})) as client:
            with pytest.raises(ProviderUnavailableError, match=str(status)):
                await fetch_profile(access_token="at", client=client)

    async def test_transport_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ProviderUnavailableError):
                await fetch_profile(access_token="at", client=client)

    @pytest.mark.parametrize(
        "content",
        [
            b"<html>not json</html>",
            json.dumps(["a", "list"]).encode(),
            json.dumps({"email": "no-sub@example.com"}).encode(),
            json.dumps({"sub": "no-email"}).encode(),
            json.dumps({"sub": 123, "email": "x@example.com"}).encode(),
        ],
    )
    async def test_unparseable_profile_is_protocol_error(self, content: bytes):
        async with _client(lambda _: httpx.Response(200, content=content)) as client:
            with pytest.raises(ProviderProtocolError):
                await fetch_profile(access_token="at", client=client)


class TestExchangeCodeForTokens:
    """Authorization code + PKCE → access token."""

    async def test_posts_pkce_exchange_and_returns_access_token(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"access_token": "at-xyz", "token_type": "Bearer"}
            )

        async with _client(handler) as client:
            token = await exchange_code_for_tokens(
                code="code-1",
                code_verifier="verifier-1",
                redirect_uri="http://localhost/api/oauth/google/callback",
                client=client,
            )

        assert token == "at-xyz"
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == _GOOGLE.token_url
        body = request.content.decode()
        assert "grant_type=authorization_code" in body
        assert "code_verifier=verifier-1" in body
        assert "client_id=test-google-client-id" in body

    async def test_missing_access_token_is_protocol_error(self):
        async with _client(lambda _: httpx.Response(200, json={})) as client:
            with pytest.raises(ProviderProtocolError, match="access_token"):
                await exchange_code_for_tokens(
                    code="c", code_verifier="v", redirect_uri="r", client=client
                )

    async def test_error_status_is_unavailable(self):
        async with _client(
            lambda _: httpx.Response(400, json={"error": "invalid_grant"})
        ) as client:
            with pytest.raises(ProviderUnavailableError):
                await exchange_code_for_tokens(
                    code="c", code_verifier="v", redirect_uri="r", client=client
                )

    @pytest.mark.parametrize(
        ("field", "value"),
        [("google_client_secret", SecretStr("")), ("google_client_id", "")],
    )
    async def test_unconfigured_provider_is_unavailable(
        self, monkeypatch, field: str, value
    ):
        monkeypatch.setattr(settings, field, value)
        assert settings.google_oauth_configured is False
        with pytest.raises(ProviderUnavailableError, match="not configured"):
            await exchange_code_for_tokens(code="c", code_verifier="v", redirect_uri="r")
