"""
Configuration module for the dinner club admin API.

Loads environment variables and provides configuration settings for the
database, authentication tokens and logging.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy connection string
        jwt_secret: Secret used to sign admin session tokens
        token_ttl_days: Lifetime of a session token in days
        environment: Deployment environment name
    """

    # Database configuration
    database_url: str = Field(
        alias="DATABASE_URL",
        description="SQLAlchemy connection string (PostgreSQL in production)"
    )

    db_pool_size: int = Field(
        default=5,
        alias="DB_POOL_SIZE",
        description="Connection pool size"
    )

    db_max_overflow: int = Field(
        default=10,
        alias="DB_MAX_OVERFLOW",
        description="Connections allowed above the pool size"
    )

    sql_echo: bool = Field(
        default=False,
        alias="SQL_ECHO",
        description="Log every SQL statement"
    )

    # Authentication
    jwt_secret: str = Field(
        default="dev-secret",
        alias="JWT_SECRET",
        description="HS256 signing secret for session tokens"
    )

    token_ttl_days: int = Field(
        default=7,
        alias="TOKEN_TTL_DAYS",
        description="Session token lifetime in days"
    )

    cookie_secure: bool = Field(
        default=False,
        alias="COOKIE_SECURE",
        description="Mark the auth cookie as Secure"
    )

    # Logging
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="development, production or test"
    )

    log_level: Optional[str] = Field(
        default=None,
        alias="LOG_LEVEL",
        description="Overrides the environment's default log level"
    )

    log_to_file: bool = Field(
        default=True,
        alias="LOG_TO_FILE",
        description="Write rotating log files in addition to stderr"
    )

    log_dir: str = Field(
        default="logs",
        alias="LOG_DIR",
        description="Directory for log files"
    )

    # Business defaults
    app_name: str = Field(
        default="Dinner Club Admin",
        alias="APP_NAME",
        description="Name shown in the API title"
    )

    default_dinner_seats: int = Field(
        default=6,
        alias="DEFAULT_DINNER_SEATS",
        description="Seat count used when a dinner is created without one"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration

    Raises:
        pydantic.ValidationError: If DATABASE_URL is not set
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
