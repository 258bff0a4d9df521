"""Tests for pending-2FA and session token issuance and verification."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from app.core.errors import UnauthorizedError
from app.core.tokens import (
    PENDING_TOKEN_TYPE,
    SESSION_TOKEN_TYPE,
    issue_pending_token,
    issue_session_token,
    pending_token_expiry_seconds,
    session_token_expiry_seconds,
    verify_pending_token,
    verify_session_token,
)
from tests.conftest import TEST_AUTH_SECRET

_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
_EMAIL = "a@x.com"


def _claims(token: str) -> dict:
    return jwt.decode(token, options={"verify_signature": False})


class TestIssuePendingToken:
    """Claims and lifetime of the pending token."""

    def test_expiry_window_is_five_minutes(self):
        assert pending_token_expiry_seconds() == 300

    def test_carries_account_email_and_discriminator(self):
        claims = _claims(issue_pending_token(account_id=_ACCOUNT_ID, email=_EMAIL))
        assert claims["sub"] == str(_ACCOUNT_ID)
        assert claims["email"] == _EMAIL
        assert claims["type"] == PENDING_TOKEN_TYPE == "2fa-pending"

    def test_expires_300_seconds_after_issuance(self):
        issued_at = datetime(2026, 1, 1, tzinfo=UTC)
        claims = _claims(
            issue_pending_token(
                account_id=_ACCOUNT_ID, email=_EMAIL, issued_at=issued_at
            )
        )
        assert claims["exp"] - claims["iat"] == 300

    def test_requires_a_secret(self, monkeypatch):
        from pydantic import SecretStr

        from app.core.config import settings

        monkeypatch.setattr(settings, "auth_secret", SecretStr(""))
        with pytest.raises(ValueError, match="Secret key"):
            issue_pending_token(account_id=_ACCOUNT_ID, email=_EMAIL)


class TestVerifyPendingToken:
    """Signature, expiry, and discriminator checks."""

    def test_accepts_fresh_token(self):
        token = issue_pending_token(account_id=_ACCOUNT_ID, email=_EMAIL)
        claims = verify_pending_token(token)
        assert claims.account_id == _ACCOUNT_ID
        assert claims.email == _EMAIL
        assert claims.token_type == PENDING_TOKEN_TYPE

    def test_accepts_token_near_end_of_window(self):
        issued_at = datetime.now(UTC) - timedelta(seconds=280)
        token = issue_pending_token(
            account_id=_ACCOUNT_ID, email=_EMAIL, issued_at=issued_at
        )
        assert verify_pending_token(token).account_id == _ACCOUNT_ID

    def test_rejects_token_older_than_300_seconds(self):
        issued_at = datetime.now(UTC) - timedelta(seconds=301)
        token = issue_pending_token(
            account_id=_ACCOUNT_ID, email=_EMAIL, issued_at=issued_at
        )
        with pytest.raises(UnauthorizedError, match="expired"):
            verify_pending_token(token)

    def test_rejects_resigned_token_with_altered_discriminator(self):
        claims = _claims(issue_pending_token(account_id=_ACCOUNT_ID, email=_EMAIL))
        claims["type"] = "2fa-complete"
        forged = jwt.encode(claims, TEST_AUTH_SECRET, algorithm="HS256")
        with pytest.raises(UnauthorizedError, match="Invalid token type"):
            verify_pending_token(forged)

    def test_rejects_wrong_signature(self):
        token = issue_pending_token(
            account_id=_ACCOUNT_ID,
            email=_EMAIL,
            secret="another-secret-that-is-at-least-32-characters",
        )
        with pytest.raises(UnauthorizedError):
            verify_pending_token(token)

    def test_rejects_session_token(self):
        token = issue_session_token(account_id=_ACCOUNT_ID, email=_EMAIL)
        with pytest.raises(UnauthorizedError, match="Invalid token type"):
            verify_pending_token(token)

    def test_rejects_garbage(self):
        with pytest.raises(UnauthorizedError):
            verify_pending_token("not.a.jwt")


class TestSessionToken:
    """Session tokens and their separation from pending tokens."""

    def test_session_lifetime_defaults_to_24_hours(self):
        assert session_token_expiry_seconds() == 24 * 3600

    def test_round_trip(self):
        token = issue_session_token(account_id=_ACCOUNT_ID, email=_EMAIL)
        claims = verify_session_token(token)
        assert claims.account_id == _ACCOUNT_ID
        assert claims.token_type == SESSION_TOKEN_TYPE

    def test_pending_token_is_never_a_session(self):
        token = issue_pending_token(account_id=_ACCOUNT_ID, email=_EMAIL)
        with pytest.raises(UnauthorizedError, match="Invalid token type"):
            verify_session_token(token)
