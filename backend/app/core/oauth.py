"""OAuth utilities: PKCE, state cookies, callback URIs, and provider configuration.

PKCE code verifier/challenge generation, state parameter management via
signed JWT cookies, host-allowlisted callback URI construction, and
provider endpoint configuration for Google.
"""

import base64
import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import jwt

from app.core.config import settings

logger = logging.getLogger(__name__)

# PKCE code verifier length (RFC 7636 allows 43-128)
_VERIFIER_LENGTH = 128

# Characters allowed in PKCE code verifier (RFC 7636 §4.1)
# unreserved = ALPHA / DIGIT / "-" / "." / "_" / "~"
_UNRESERVED_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# Default TTL for OAuth state cookie (10 minutes)
OAUTH_STATE_TTL_SECONDS = 600

# Path the provider redirects back to after consent
CALLBACK_PATH = "/api/oauth/google/callback"

# Hosts always accepted for the callback URI. Security: the Host header is
# client-controlled, so anything outside this set is rejected.
_DEFAULT_ALLOWED_HOSTS = frozenset(
    {
        "localhost",
        "localhost:80",
        "localhost:3000",
        "localhost:5173",
        "localhost:8443",
    }
)

# Dev proxy rewrites the frontend host; redirect back to the frontend port
_HOST_REWRITES = {"localhost:3000": "localhost:5173"}


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier.

    RFC 7636 §4.1: 128-character string from unreserved characters.

    Returns:
        Random 128-character code verifier string.
    """
    return "".join(secrets.choice(_UNRESERVED_CHARS) for _ in range(_VERIFIER_LENGTH))


def generate_code_challenge(verifier: str) -> str:
    """Generate a PKCE code challenge from a verifier.

    RFC 7636 §4.2: BASE64URL(SHA256(code_verifier)), no padding.

    Args:
        verifier: PKCE code verifier string.

    Returns:
        Base64url-encoded SHA256 hash without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    """Generate a random state parameter for CSRF protection."""
    return secrets.token_urlsafe(16)


def create_oauth_state_cookie(
    *,
    state: str,
    code_verifier: str,
    secret: str,
    ttl_seconds: int = OAUTH_STATE_TTL_SECONDS,
) -> str:
    """Create a signed JWT cookie containing OAuth state and PKCE verifier.

    Stored as a cookie between the initiation redirect and callback.
    Signed with HS256 to prevent tampering.

    Args:
        state: Random state parameter for CSRF protection.
        code_verifier: PKCE code verifier to use in token exchange.
        secret: HMAC signing secret.
        ttl_seconds: Cookie expiry in seconds (default 10 minutes).

    Returns:
        Signed JWT string.
    """
    payload = {
        "state": state,
        "code_verifier": code_verifier,
        "exp": int(time.time()) + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def validate_oauth_state_cookie(
    *,
    cookie_value: str,
    expected_state: str,
    secret: str,
) -> str | None:
    """Validate an OAuth state cookie and return the PKCE code verifier.

    Verifies JWT signature, expiry, and state match. Returns the
    code_verifier if valid, None if any check fails.

    Args:
        cookie_value: JWT string from the oauth_state cookie.
        expected_state: State parameter from the callback query string.
        secret: HMAC signing secret.

    Returns:
        Code verifier string if valid, None otherwise.
    """
    try:
        payload = jwt.decode(cookie_value, secret, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None

    if not secrets.compare_digest(str(payload.get("state", "")), expected_state):
        return None

    return payload.get("code_verifier")


def build_callback_uri(
    host: str | None,
    forwarded_proto: str | None = None,
    *,
    environment: str | None = None,
) -> str | None:
    """Build the OAuth redirect URI from the request's host.

    Args:
        host: Host header of the incoming request ("localhost" if absent).
        forwarded_proto: X-Forwarded-Proto set by the reverse proxy.
        environment: Deployment environment; defaults to settings.

    Returns:
        Absolute callback URI, or None if the host is not allowlisted.
    """
    host = host or "localhost"
    allowed = _DEFAULT_ALLOWED_HOSTS | {
        h.strip() for h in settings.oauth_allowed_hosts if h.strip()
    }
    if host not in allowed:
        logger.warning(
            "OAuth rejected: host not in allowlist",
            extra={"host": host},
        )
        return None

    host = _HOST_REWRITES.get(host, host)

    # Only trust well-formed forwarded protocols (header injection)
    if forwarded_proto in ("http", "https"):
        protocol = forwarded_proto
    else:
        is_production = (environment or settings.environment) == "production"
        protocol = "https" if is_production else "http"

    return f"{protocol}://{host}{CALLBACK_PATH}"


# ===================================================================
# OAuth Provider Configuration
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Configuration for an OAuth provider.

    Attributes:
        authorization_url: Provider's authorization endpoint.
        token_url: Provider's token exchange endpoint.
        userinfo_url: Provider's userinfo endpoint.
        scopes: OAuth scopes to request.
    """

    authorization_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]


_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "google": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "email", "profile"),
    ),
}


def get_provider_config(provider: str) -> OAuthProviderConfig:
    """Get OAuth configuration for a provider.

    Args:
        provider: Provider name (e.g., "google").

    Returns:
        OAuthProviderConfig for the provider.

    Raises:
        ValueError: If provider is not supported.
    """
    config = _PROVIDERS.get(provider)
    if config is None:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg)
    return config


def build_authorization_url(
    *,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
    provider: str = "google",
) -> str:
    """Build the provider consent URL for the initiation redirect.

    Args:
        client_id: OAuth client id.
        redirect_uri: Callback URI from build_callback_uri().
        state: CSRF state parameter.
        code_challenge: PKCE S256 challenge.
        provider: Provider name.

    Returns:
        Authorization URL with query string.
    """
    config = get_provider_config(provider)
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "prompt": "select_account",
    }
    return f"{config.authorization_url}?{urlencode(params)}"
