"""Identity provider profile schemas.

ProviderUserInfo validates the raw userinfo JSON; ExternalProfile is the
provider-neutral claim handed to account linking. Neither is persisted.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

# String spellings of email_verified that providers are known to send
_BOOLEAN_STRINGS = {"true": True, "false": False}


class ProviderUserInfo(BaseModel):
    """OpenID Connect userinfo response.

    email_verified is True only for a JSON true or the string "true".
    Anything else (null, 1, "yes", a missing claim) means unverified.
    """

    model_config = ConfigDict(extra="ignore")

    sub: str = Field(min_length=1)
    email: str = Field(min_length=1)
    email_verified: StrictBool = False
    name: str | None = None
    picture: str | None = None

    @field_validator("email_verified", mode="before")
    @classmethod
    def coerce_email_verified(cls, v: object) -> bool:
        """Map the verification claim to a bool without lax coercion.

        Security: the linking gate trusts this flag, so a value is never
        inferred to be True from truthiness.
        """
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return _BOOLEAN_STRINGS.get(v.strip().lower(), False)
        return False


class ExternalProfile(BaseModel):
    """Provider-asserted identity claim, consumed once per login attempt.

    subject_id and email are optional at construction so that incomplete
    claims reach account linking and are rejected there.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str | None = None
    email: str | None = None
    email_verified: StrictBool = False
    display_name: str | None = None
    picture: str | None = None

    @classmethod
    def from_userinfo(cls, info: ProviderUserInfo) -> "ExternalProfile":
        """Build a profile from a validated userinfo response."""
        return cls(
            subject_id=info.sub,
            email=info.email,
            email_verified=info.email_verified,
            display_name=info.name,
            picture=info.picture,
        )
