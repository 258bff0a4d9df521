"""Account model - the durable identity record.

One row per person. Password and OAuth identities converge here:
password_hash is NULL for OAuth-only accounts, external_id is NULL until
a provider identity is attached.
"""

import uuid

from sqlalchemy import Boolean, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")

# Constraint names double as the field lookup when translating
# IntegrityError into UniqueViolationError (see AccountRepository).
# Declaration order is the order PostgreSQL checks them on insert.
UQ_ACCOUNTS_EMAIL = "uq_accounts_email"
UQ_ACCOUNTS_ALIAS = "uq_accounts_alias"
UQ_ACCOUNTS_EXTERNAL_ID = "uq_accounts_external_id"


class Account(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored lowercase.
        alias: Unique public handle.
        password_hash: Argon2id record. NULL for OAuth-only accounts.
        external_id: Provider subject identifier. Unique when present.
        two_factor_enabled: Whether login requires a second factor.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("email", name=UQ_ACCOUNTS_EMAIL),
        UniqueConstraint("alias", name=UQ_ACCOUNTS_ALIAS),
        UniqueConstraint("external_id", name=UQ_ACCOUNTS_EXTERNAL_ID),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    alias: Mapped[str] = mapped_column(String(32), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    external_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
