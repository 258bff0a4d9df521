"""Signed token issuance and verification.

Two token kinds share one signing key and are told apart by the "type"
claim:
- "2fa-pending": primary credential verified, second factor outstanding.
  Five-minute lifetime. Never accepted as a session.
- "access": full session, issued after login completes.

Tokens are not persisted; validity is signature + expiry + type.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.core.config import settings
from app.core.errors import UnauthorizedError

PENDING_TOKEN_TYPE = "2fa-pending"
SESSION_TOKEN_TYPE = "access"

_PENDING_TOKEN_TTL = timedelta(minutes=5)
_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "email", "type", "exp", "iat", "aud", "iss"]


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a pending or session token.

    Attributes:
        account_id: Account the token was issued for.
        email: Account email at issuance.
        token_type: "2fa-pending" or "access".
        expires_at: Expiry instant (UTC).
    """

    account_id: uuid.UUID
    email: str
    token_type: str
    expires_at: datetime


def _signing_secret(secret: str | None) -> str:
    value = secret or settings.auth_secret.get_secret_value()
    if not value:
        raise ValueError("Secret key is required for token creation")
    return value


def _encode(
    *,
    account_id: uuid.UUID | str,
    email: str,
    token_type: str,
    lifetime: timedelta,
    secret: str | None,
    issued_at: datetime | None,
) -> str:
    now = issued_at or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(account_id),
        "email": email,
        "type": token_type,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _signing_secret(secret), algorithm=_ALGORITHM)


def pending_token_expiry_seconds() -> int:
    """Lifetime of a pending token, for cookie max-age and user messaging."""
    return int(_PENDING_TOKEN_TTL.total_seconds())


def issue_pending_token(
    *,
    account_id: uuid.UUID | str,
    email: str,
    secret: str | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Issue a token proving the primary credential was verified.

    Args:
        account_id: Account that passed the primary check.
        email: Account email.
        secret: HMAC signing secret. Defaults to settings.auth_secret.
        issued_at: Issuance instant. Defaults to now.

    Returns:
        Signed JWT valid for five minutes from issued_at.
    """
    return _encode(
        account_id=account_id,
        email=email,
        token_type=PENDING_TOKEN_TYPE,
        lifetime=_PENDING_TOKEN_TTL,
        secret=secret,
        issued_at=issued_at,
    )


def session_token_expiry_seconds() -> int:
    """Lifetime of a session token in seconds."""
    return settings.session_token_ttl_hours * 3600


def issue_session_token(
    *,
    account_id: uuid.UUID | str,
    email: str,
    secret: str | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Issue a full session token.

    Args:
        account_id: Authenticated account.
        email: Account email.
        secret: HMAC signing secret. Defaults to settings.auth_secret.
        issued_at: Issuance instant. Defaults to now.

    Returns:
        Signed JWT valid for settings.session_token_ttl_hours.
    """
    return _encode(
        account_id=account_id,
        email=email,
        token_type=SESSION_TOKEN_TYPE,
        lifetime=timedelta(seconds=session_token_expiry_seconds()),
        secret=secret,
        issued_at=issued_at,
    )


def _verify(token: str, *, expected_type: str, secret: str | None) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            _signing_secret(secret),
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.InvalidTokenError as exc:
        # ExpiredSignatureError is an InvalidTokenError
        raise UnauthorizedError("Invalid or expired token. Please login again.") from exc

    if payload.get("type") != expected_type:
        raise UnauthorizedError("Invalid token type")

    try:
        account_id = uuid.UUID(str(payload["sub"]))
    except ValueError as exc:
        raise UnauthorizedError("Invalid token subject") from exc

    return TokenClaims(
        account_id=account_id,
        email=str(payload["email"]),
        token_type=expected_type,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
    )


def verify_pending_token(token: str, *, secret: str | None = None) -> TokenClaims:
    """Verify a client-presented pending token.

    Checks signature, expiry (no leeway), audience, issuer, and that the
    type claim is "2fa-pending".

    Raises:
        UnauthorizedError: If any check fails.
    """
    return _verify(token, expected_type=PENDING_TOKEN_TYPE, secret=secret)


def verify_session_token(token: str, *, secret: str | None = None) -> TokenClaims:
    """Verify a session token. A pending token never passes.

    Raises:
        UnauthorizedError: If any check fails.
    """
    return _verify(token, expected_type=SESSION_TOKEN_TYPE, secret=secret)
