"""Pydantic schemas shared across the identity subsystem."""

from app.schemas.profile import ExternalProfile, ProviderUserInfo

__all__ = [
    "ExternalProfile",
    "ProviderUserInfo",
]
