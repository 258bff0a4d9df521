"""Login flows: password and OAuth primary authentication.

Pipeline:
1. Primary credential check (password verify, or OAuth code → profile)
2. Resolve to exactly one account (account linking for OAuth)
3. 2FA enabled → pending token; otherwise → session token

Cookie handling and TOTP verification live in the HTTP layer; this
module returns tokens and their lifetimes.
"""

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.account_linking import find_or_create_account_for_oauth
from app.core.alias import AliasGenerator
from app.core.errors import (
    ConflictError,
    InvalidCredentialsError,
    RepositoryConflictError,
    UnauthorizedError,
)
from app.core.oauth_client import exchange_code_for_tokens, fetch_profile
from app.core.passwords import burn_dummy_verification, hash_password, verify_password
from app.core.tokens import (
    issue_pending_token,
    issue_session_token,
    pending_token_expiry_seconds,
    session_token_expiry_seconds,
    verify_pending_token,
)
from app.models.account import Account
from app.repositories.account_repository import AccountRepository, UniqueViolationError

logger = structlog.get_logger()

_DUPLICATE_CODES = {
    "email": ("EMAIL_TAKEN", "User with this email already exists"),
    "alias": ("ALIAS_TAKEN", "User with this alias already exists"),
}


@dataclass(frozen=True)
class LoginOutcome:
    """Result of a successful primary authentication.

    Attributes:
        account: The authenticated account.
        token: Pending token if requires_two_factor, else session token.
        requires_two_factor: Whether the client must complete a 2FA challenge.
        max_age_seconds: Token lifetime, for the cookie max-age.
    """

    account: Account
    token: str
    requires_two_factor: bool
    max_age_seconds: int


def issue_login_outcome(account: Account) -> LoginOutcome:
    """Mint the token that follows a verified primary credential."""
    if account.two_factor_enabled:
        logger.info("2FA challenge required", account_id=str(account.id))
        return LoginOutcome(
            account=account,
            token=issue_pending_token(account_id=account.id, email=account.email),
            requires_two_factor=True,
            max_age_seconds=pending_token_expiry_seconds(),
        )
    return LoginOutcome(
        account=account,
        token=issue_session_token(account_id=account.id, email=account.email),
        requires_two_factor=False,
        max_age_seconds=session_token_expiry_seconds(),
    )


async def register_account(
    db: AsyncSession,
    *,
    email: str,
    alias: str,
    password: str,
) -> Account:
    """Register a password account.

    Registration does not log the user in; a separate login issues tokens.

    Raises:
        ConflictError: Email or alias already taken.
        RepositoryConflictError: Any other uniqueness violation.
    """
    try:
        account = await AccountRepository.create(
            db,
            email=email,
            alias=alias,
            password_hash=hash_password(password),
        )
    except UniqueViolationError as exc:
        if exc.field in _DUPLICATE_CODES:
            code, message = _DUPLICATE_CODES[exc.field]
            raise ConflictError(code, message) from exc
        logger.error("Unexpected uniqueness conflict on register", field=exc.field)
        raise RepositoryConflictError(exc.field) from exc

    logger.info("Account registered", account_id=str(account.id))
    return account


async def login_with_password(
    db: AsyncSession,
    *,
    email: str,
    password: str,
) -> LoginOutcome:
    """Authenticate with email and password.

    Security: unknown email, OAuth-only account, wrong password, and
    corrupt hash all raise the same error after a full Argon2 verify.

    Raises:
        InvalidCredentialsError: On any credential failure.
    """
    account = await AccountRepository.get_by_email(db, email)
    if account is None or not account.password_hash:
        burn_dummy_verification(password)
        raise InvalidCredentialsError()

    if not verify_password(password, account.password_hash):
        logger.info("Password login failed", account_id=str(account.id))
        raise InvalidCredentialsError()

    return issue_login_outcome(account)


async def login_with_oauth(
    db: AsyncSession,
    *,
    code: str,
    code_verifier: str,
    redirect_uri: str,
    http_client: httpx.AsyncClient | None = None,
    alias_generator: AliasGenerator | None = None,
) -> LoginOutcome:
    """Complete an OAuth callback: exchange, resolve profile, link account.

    Raises:
        ProviderUnavailableError, ProviderProtocolError: Provider failures.
        InvalidProfileError, UnverifiedEmailLinkRejectedError,
        AliasExhaustedError, IdentityResolutionExhaustedError,
        RepositoryConflictError: From account linking.
    """
    access_token = await exchange_code_for_tokens(
        code=code,
        code_verifier=code_verifier,
        redirect_uri=redirect_uri,
        client=http_client,
    )
    profile = await fetch_profile(access_token=access_token, client=http_client)
    account = await find_or_create_account_for_oauth(
        db=db,
        profile=profile,
        alias_generator=alias_generator,
    )
    return issue_login_outcome(account)


async def resolve_pending_login(db: AsyncSession, token: str) -> Account:
    """Load the account a pending token was issued for.

    The caller verifies the TOTP code against this account and then
    calls issue_session_token().

    Raises:
        UnauthorizedError: Token invalid/expired/wrong type, or the account
            no longer exists or no longer has 2FA enabled.
    """
    claims = verify_pending_token(token)
    account = await AccountRepository.get_by_id(db, claims.account_id)
    if account is None or not account.two_factor_enabled:
        raise UnauthorizedError("2FA is not configured for this account")
    return account
