"""Account linking logic for OAuth authentication.

Resolves a provider profile to exactly one durable account. Evaluated
fresh on every call; the database is the only source of truth.

Rules:
1. Missing subject id or email → reject (InvalidProfileError)
2. external_id already known → returning user (no write)
3. Email exists AND provider verified it → attach external_id (link)
4. Email exists but provider did not verify it → REJECT (pre-hijack defense)
5. No match → create an OAuth-only account with a generated alias

Races:
- Alias taken → new candidate, at most MAX_ALIAS_ATTEMPTS creates
- Email taken → a concurrent login created this identity; start over
  from rule 1 so the winner's account is found by lookup
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.alias import AliasGenerator
from app.core.errors import (
    AliasExhaustedError,
    IdentityResolutionExhaustedError,
    InvalidProfileError,
    RepositoryConflictError,
    UnverifiedEmailLinkRejectedError,
)
from app.models.account import Account
from app.repositories.account_repository import AccountRepository, UniqueViolationError
from app.schemas.profile import ExternalProfile

logger = logging.getLogger(__name__)

# Total create attempts with distinct alias candidates
MAX_ALIAS_ATTEMPTS = 5

# Full resolution passes. The second pass finds the race winner, so a
# third is only reached if the repository is misbehaving.
MAX_RESOLUTION_PASSES = 3


class _EmailRaceLostError(Exception):
    """Another writer created an account with this email first."""


def can_link_by_email(profile: ExternalProfile) -> bool:
    """Whether a profile may be attached to an existing account by email.

    Security: only a provider-verified email proves control of the
    address. Linking on an unverified claim would hand the existing
    account to whoever typed the victim's email at the provider.
    """
    return profile.email_verified is True


def _require_identity(profile: ExternalProfile) -> tuple[str, str]:
    """Return (subject_id, normalized email) or raise InvalidProfileError."""
    subject_id = (profile.subject_id or "").strip()
    email = (profile.email or "").strip().lower()
    if not subject_id:
        raise InvalidProfileError("Provider profile is missing a subject id")
    if not email:
        raise InvalidProfileError("Provider profile is missing an email")
    return subject_id, email


async def _create_oauth_account(
    db: AsyncSession,
    *,
    subject_id: str,
    email: str,
    display_name: str | None,
    alias_generator: AliasGenerator,
) -> Account:
    """Create an OAuth-only account, retrying on alias collisions.

    Raises:
        _EmailRaceLostError: Email became taken after the lookup.
        AliasExhaustedError: Every alias candidate collided.
        RepositoryConflictError: Any other uniqueness violation.
    """
    for attempt in range(1, MAX_ALIAS_ATTEMPTS + 1):
        alias = alias_generator.generate(display_name)
        try:
            return await AccountRepository.create(
                db,
                email=email,
                alias=alias,
                external_id=subject_id,
                password_hash=None,
            )
        except UniqueViolationError as exc:
            if exc.field == "alias":
                logger.info("Alias collision", extra={"attempt": attempt})
                continue
            if exc.field == "email":
                raise _EmailRaceLostError from exc
            logger.error(
                "Unexpected uniqueness conflict creating OAuth account",
                extra={"field": exc.field},
            )
            raise RepositoryConflictError(exc.field) from exc

    raise AliasExhaustedError(MAX_ALIAS_ATTEMPTS)


async def _resolve_once(
    db: AsyncSession,
    profile: ExternalProfile,
    alias_generator: AliasGenerator,
) -> Account:
    subject_id, email = _require_identity(profile)

    existing = await AccountRepository.get_by_external_id(db, subject_id)
    if existing is not None:
        logger.info("Returning OAuth user", extra={"account_id": str(existing.id)})
        return existing

    by_email = await AccountRepository.get_by_email(db, email)
    if by_email is not None:
        if not can_link_by_email(profile):
            logger.warning(
                "OAuth account linking blocked by email verification",
                extra={"account_id": str(by_email.id)},
            )
            raise UnverifiedEmailLinkRejectedError()

        try:
            linked = await AccountRepository.update(
                db, by_email.id, external_id=subject_id
            )
        except UniqueViolationError as exc:
            logger.error(
                "Unexpected uniqueness conflict linking OAuth account",
                extra={"account_id": str(by_email.id), "field": exc.field},
            )
            raise RepositoryConflictError(exc.field) from exc
        # Account vanished between lookup and update; treat like a lost race
        if linked is None:
            raise _EmailRaceLostError
        logger.info(
            "Linked OAuth account to existing user",
            extra={"account_id": str(linked.id)},
        )
        return linked

    account = await _create_oauth_account(
        db,
        subject_id=subject_id,
        email=email,
        display_name=profile.display_name,
        alias_generator=alias_generator,
    )
    logger.info("Created new OAuth user", extra={"account_id": str(account.id)})
    return account


async def find_or_create_account_for_oauth(
    *,
    db: AsyncSession,
    profile: ExternalProfile,
    alias_generator: AliasGenerator | None = None,
) -> Account:
    """Resolve a provider profile to exactly one account.

    Idempotent and race-convergent: concurrent calls with the same new
    profile return the same account.

    Args:
        db: Async database session.
        profile: Identity claim from the provider.
        alias_generator: Alias source (injectable for tests).

    Returns:
        The account whose external_id equals profile.subject_id.

    Raises:
        InvalidProfileError: Subject id or email missing.
        UnverifiedEmailLinkRejectedError: Email matches an existing account
            but the provider did not verify it.
        AliasExhaustedError: No free alias within MAX_ALIAS_ATTEMPTS.
        IdentityResolutionExhaustedError: Kept losing email races.
        RepositoryConflictError: Unexpected uniqueness violation.
    """
    alias_generator = alias_generator or AliasGenerator()

    for pass_number in range(1, MAX_RESOLUTION_PASSES + 1):
        try:
            return await _resolve_once(db, profile, alias_generator)
        except _EmailRaceLostError:
            logger.info(
                "Lost account creation race, re-resolving",
                extra={"pass": pass_number},
            )

    raise IdentityResolutionExhaustedError(MAX_RESOLUTION_PASSES)
