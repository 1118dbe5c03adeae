"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

TOKEN_TTL_DEFAULT = 900
CLOCK_TOLERANCE_DEFAULT = 0
KEY_ROTATION_INTERVAL_DEFAULT = 90 * 24 * 3600
KEY_GRACE_PERIOD_DEFAULT = 24 * 3600
KEY_HISTORY_LIMIT_DEFAULT = 4
SUBSCRIPTION_TTL_DEFAULT = 24 * 3600
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432
DB_TIMEOUT_DEFAULT = 5.0
STRIPE_WEBHOOK_TOLERANCE_DEFAULT = 300
STRIPE_TIMEOUT_DEFAULT = 5.0


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_DB_")

    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "flaim"
    password: str = "flaim"
    database: str = "flaim"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT
    connect_timeout: float = DB_TIMEOUT_DEFAULT
    command_timeout: float = DB_TIMEOUT_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class AuthSettings(BaseSettings):
    """Token, key-rotation and entitlement settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    issuer: str = "flaim-auth"
    audience: str = "flaim-platform"
    token_ttl: int = TOKEN_TTL_DEFAULT
    clock_tolerance: int = CLOCK_TOLERANCE_DEFAULT
    key_rotation_interval: int = KEY_ROTATION_INTERVAL_DEFAULT
    key_grace_period: int = KEY_GRACE_PERIOD_DEFAULT
    key_history_limit: int = KEY_HISTORY_LIMIT_DEFAULT
    subscription_ttl: int = SUBSCRIPTION_TTL_DEFAULT
    signing_key_encryption_key: str = ""
    bootstrap_secret: str = ""
    internal_token: str = ""
    cookie_name: str = "Auth"
    cors_origins: str = ""
    rotation_check_interval: int = 0
    log_level: str = "INFO"
    log_format: str = "console"

    def get_cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class StripeSettings(BaseSettings):
    """Payment-provider credentials and limits."""

    model_config = SettingsConfigDict(env_prefix="STRIPE_")

    api_key: str = ""
    webhook_secret: str = ""
    webhook_tolerance: int = STRIPE_WEBHOOK_TOLERANCE_DEFAULT
    timeout_seconds: float = STRIPE_TIMEOUT_DEFAULT
