"""Application configuration loaded from environment variables.

Settings for the database, token signing, and the Google OAuth provider.
Uses pydantic-settings for validation and .env file support.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "transcendence_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "transcendence"
    database_user: str = "transcendence_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Token signing
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "transcendence"
    auth_audience: str = "transcendence"
    session_token_ttl_hours: int = 24

    # OAuth provider (Google)
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    # Extra hosts accepted when building the OAuth callback URI
    oauth_allowed_hosts: list[str] = []

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def google_oauth_configured(self) -> bool:
        """True when both Google client credentials are present."""
        return bool(
            self.google_client_id and self.google_client_secret.get_secret_value()
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - Session token lifetime must be positive (all environments)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.session_token_ttl_hours <= 0:
            msg = (
                "SESSION_TOKEN_TTL_HOURS must be positive. "
                f"Got: {self.session_token_ttl_hours}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

        return self


settings = Settings()
