"""Repository for Account CRUD operations.

The durable identity store. PostgreSQL enforces the email, alias, and
external_id unique constraints atomically; this layer reports which one a
write violated so callers can decide how to recover.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import (
    UQ_ACCOUNTS_ALIAS,
    UQ_ACCOUNTS_EMAIL,
    UQ_ACCOUNTS_EXTERNAL_ID,
    Account,
)

# Fields that may be updated via AccountRepository.update().
# Security: Never add 'id', 'email', 'created_at', or 'updated_at'.
# - id: primary key, immutable
# - email: linking key, immutable once verified
# - created_at/updated_at: server-managed timestamps
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "alias",
        "password_hash",
        "external_id",
        "two_factor_enabled",
    }
)

_CONSTRAINT_FIELDS: dict[str, str] = {
    UQ_ACCOUNTS_EMAIL: "email",
    UQ_ACCOUNTS_ALIAS: "alias",
    UQ_ACCOUNTS_EXTERNAL_ID: "external_id",
}


class UniqueViolationError(Exception):
    """A write would duplicate a value that must be unique.

    Attributes:
        field: Violated column ("email", "alias", "external_id"), or None
            when the database did not say which.
    """

    def __init__(self, field: str | None) -> None:
        self.field = field
        super().__init__(f"Unique constraint violated on {field or 'unknown field'}")


def _violated_field(exc: IntegrityError) -> str | None:
    """Map an IntegrityError to the account column it names, if any."""
    message = str(exc.orig)
    for constraint, field in _CONSTRAINT_FIELDS.items():
        if constraint in message:
            return field
    # SQLite words it as "UNIQUE constraint failed: accounts.<column>"
    for field in _CONSTRAINT_FIELDS.values():
        if f"accounts.{field}" in message:
            return field
    return None


def _as_unique_violation(exc: IntegrityError) -> UniqueViolationError | None:
    field = _violated_field(exc)
    if field is None and "unique" not in str(exc.orig).lower():
        return None
    return UniqueViolationError(field)


class AccountRepository:
    """Stateless repository for Account table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    Writes run in a SAVEPOINT so a constraint violation leaves the
    caller's transaction usable.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account | None:
        """Fetch an account by primary key.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            Account if found, None otherwise.
        """
        return await db.get(Account, account_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Account | None:
        """Fetch an account by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_external_id(
        db: AsyncSession, external_id: str
    ) -> Account | None:
        """Fetch an account by the provider's subject identifier.

        Args:
            db: Async database session.
            external_id: Provider subject id.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.external_id == external_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        alias: str,
        password_hash: str | None = None,
        external_id: str | None = None,
    ) -> Account:
        """Create a new account.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: Account email address.
            alias: Public handle.
            password_hash: Argon2id record (None for OAuth-only accounts).
            external_id: Provider subject id (None for password accounts).

        Returns:
            Created Account with database-generated fields populated.

        Raises:
            UniqueViolationError: If email, alias, or external_id is taken.
        """
        account = Account(
            email=email.strip().lower(),
            alias=alias,
            password_hash=password_hash,
            external_id=external_id,
        )
        try:
            async with db.begin_nested():
                db.add(account)
        except IntegrityError as exc:
            violation = _as_unique_violation(exc)
            if violation is None:
                raise
            raise violation from exc
        await db.refresh(account)
        return account

    @staticmethod
    async def update(
        db: AsyncSession,
        account_id: uuid.UUID,
        **kwargs: str | bool | None,
    ) -> Account | None:
        """Update account fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            account_id: UUID of the account to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated Account if found, None if account does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
            UniqueViolationError: If the new alias or external_id is taken.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        account = await db.get(Account, account_id)
        if account is None:
            return None

        try:
            async with db.begin_nested():
                for field, value in kwargs.items():
                    setattr(account, field, value)
        except IntegrityError as exc:
            violation = _as_unique_violation(exc)
            if violation is None:
                raise
            raise violation from exc
        await db.refresh(account)
        return account
