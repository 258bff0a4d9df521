"""OAuth HTTP client: token exchange and profile resolution.

Exchanges authorization codes for access tokens and resolves an access
token into a verified ExternalProfile. Neither call retries; retry policy
belongs to whoever drives the login attempt.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import ProviderProtocolError, ProviderUnavailableError
from app.core.oauth import get_provider_config
from app.schemas.profile import ExternalProfile, ProviderUserInfo

logger = logging.getLogger(__name__)

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0


@asynccontextmanager
async def _client_scope(
    client: httpx.AsyncClient | None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Use the caller's client if given, otherwise a short-lived one."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=_OAUTH_HTTP_TIMEOUT) as owned:
        yield owned


def _json_object(resp: httpx.Response, provider: str) -> dict[str, Any]:
    """Decode a successful response body as a JSON object.

    Raises:
        ProviderUnavailableError: If the status is not 2xx.
        ProviderProtocolError: If the body is not a JSON object.
    """
    if not resp.is_success:
        logger.warning(
            "OAuth provider returned error status",
            extra={"provider": provider, "status_code": resp.status_code},
        )
        msg = f"Identity provider responded with status {resp.status_code}"
        raise ProviderUnavailableError(msg)

    try:
        payload = resp.json()
    except ValueError as exc:
        logger.warning(
            "OAuth provider returned non-JSON body", extra={"provider": provider}
        )
        raise ProviderProtocolError() from exc

    if not isinstance(payload, dict):
        raise ProviderProtocolError()
    return payload


async def exchange_code_for_tokens(
    *,
    code: str,
    code_verifier: str,
    redirect_uri: str,
    provider: str = "google",
    client: httpx.AsyncClient | None = None,
) -> str:
    """Exchange an authorization code for an access token.

    Args:
        code: Authorization code from callback.
        code_verifier: PKCE code verifier.
        redirect_uri: Callback URL used in initiation.
        provider: Provider name.
        client: Optional HTTP client (tests inject a mock transport).

    Returns:
        The provider access token.

    Raises:
        ProviderUnavailableError: Provider not configured, unreachable,
            or returned a non-2xx status.
        ProviderProtocolError: Response lacks an access_token.
    """
    config = get_provider_config(provider)
    if not settings.google_oauth_configured:
        msg = f"OAuth provider '{provider}' is not configured"
        raise ProviderUnavailableError(msg)
    client_id = settings.google_client_id
    client_secret = settings.google_client_secret.get_secret_value()

    async with _client_scope(client) as http:
        try:
            resp = await http.post(
                config.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "code_verifier": code_verifier,
                },
                timeout=_OAUTH_HTTP_TIMEOUT,
            )
        except httpx.TransportError as exc:
            logger.warning("OAuth token exchange failed", extra={"provider": provider})
            raise ProviderUnavailableError() from exc

    payload = _json_object(resp, provider)
    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        logger.warning(
            "Token response missing access_token", extra={"provider": provider}
        )
        raise ProviderProtocolError("Token response missing access_token")
    return access_token


async def fetch_profile(
    *,
    access_token: str,
    provider: str = "google",
    client: httpx.AsyncClient | None = None,
) -> ExternalProfile:
    """Resolve an access token into the provider's identity claim.

    Args:
        access_token: OAuth access token.
        provider: Provider name.
        client: Optional HTTP client (tests inject a mock transport).

    Returns:
        ExternalProfile with subject id, email, and verification flag.

    Raises:
        ProviderUnavailableError: Provider unreachable or non-2xx status.
        ProviderProtocolError: Body is not a usable userinfo document.
    """
    config = get_provider_config(provider)

    async with _client_scope(client) as http:
        try:
            resp = await http.get(
                config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=_OAUTH_HTTP_TIMEOUT,
            )
        except httpx.TransportError as exc:
            logger.warning("OAuth userinfo request failed", extra={"provider": provider})
            raise ProviderUnavailableError() from exc

    payload = _json_object(resp, provider)
    try:
        info = ProviderUserInfo.model_validate(payload)
    except PydanticValidationError as exc:
        logger.warning(
            "OAuth userinfo missing required claims", extra={"provider": provider}
        )
        raise ProviderProtocolError("Userinfo response missing sub or email") from exc

    return ExternalProfile.from_userinfo(info)
