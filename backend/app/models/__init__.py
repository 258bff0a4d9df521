"""SQLAlchemy ORM models.

- base.py: Base, TimestampMixin
- account.py: Account (durable identity record)
"""

from app.models.account import Account
from app.models.base import Base, TimestampMixin

__all__ = [
    "Account",
    "Base",
    "TimestampMixin",
]
