"""Authentication error classes.

Every failure the identity subsystem surfaces carries a machine-readable
code, a human-readable message, and the HTTP status the outer API layer
should map it to.

WHY ONE HIERARCHY:
- Callers can catch APIError once and render a consistent envelope
- Status codes distinguish user errors (4xx) from retryable server errors (5xx)
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid auth credentials provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class InvalidCredentialsError(UnauthorizedError):
    """Password login failed (401).

    Security: one message for unknown email, missing password, wrong
    password, and corrupt hash so responses never reveal account existence.
    """

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InvalidProfileError(APIError):
    """Provider profile is missing its subject id or email (400).

    The login attempt must be rejected outright.
    """

    def __init__(self, message: str = "Provider profile is incomplete") -> None:
        super().__init__(
            code="INVALID_PROFILE",
            message=message,
            status_code=400,
        )


class ProviderUnavailableError(APIError):
    """Identity provider returned a non-success status or was unreachable (502).

    Transient: the caller may retry the whole login later.
    """

    def __init__(self, message: str = "Identity provider is unavailable") -> None:
        super().__init__(
            code="PROVIDER_UNAVAILABLE",
            message=message,
            status_code=502,
        )


class ProviderProtocolError(APIError):
    """Identity provider response could not be parsed (502)."""

    def __init__(
        self, message: str = "Identity provider returned an unexpected response"
    ) -> None:
        super().__init__(
            code="PROVIDER_PROTOCOL_ERROR",
            message=message,
            status_code=502,
        )


class UnverifiedEmailLinkRejectedError(ConflictError):
    """Linking to an existing account was refused (409).

    Security: the provider did not vouch for the email, so attaching its
    identity to the matching account would allow takeover. Must surface as
    a login failure, never fall through to account creation.
    """

    def __init__(
        self,
        message: str = (
            "Account linking blocked by email verification. "
            "Please sign in with your original method first."
        ),
    ) -> None:
        super().__init__(code="ACCOUNT_LINKING_BLOCKED", message=message)


class AliasExhaustedError(APIError):
    """No free alias found within the attempt budget (503).

    Resource contention, not a user input error.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(
            code="ALIAS_EXHAUSTED",
            message=f"Failed to generate a unique alias after {attempts} attempts",
            status_code=503,
        )


class IdentityResolutionExhaustedError(APIError):
    """Account resolution kept losing creation races (503)."""

    def __init__(self, passes: int) -> None:
        super().__init__(
            code="IDENTITY_RESOLUTION_EXHAUSTED",
            message=f"Could not resolve account after {passes} passes",
            status_code=503,
        )


class RepositoryConflictError(APIError):
    """Unexpected unique constraint violation (500).

    Fatal to the attempt. Logged for investigation by the raiser.
    """

    def __init__(self, field: str | None) -> None:
        super().__init__(
            code="REPOSITORY_CONFLICT",
            message=f"Unexpected uniqueness conflict on '{field or 'unknown'}'",
            status_code=500,
        )
