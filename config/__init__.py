"""
Configuration module for Hearsay.

This module provides a centralized configuration system with validation
and support for different environments (development, testing, production).
Values come from environment variables, optionally through a .env file.
Configuration is loaded on first use so the core services can be imported
and exercised without a populated environment.
"""

import logging
import os
from enum import Enum
from functools import lru_cache
from typing import ClassVar, Optional, Set

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from utils.exceptions import ConfigurationError, MissingConfigurationError


# Define environment types
class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


# Define log format types
class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class HearsayConfig(BaseModel):
    """
    Configuration model with validation.

    Sensitive values are marked with ``json_schema_extra={"sensitive": True}``
    so they are never echoed back in logs or error messages.
    """

    environment: Environment = Field(
        Environment.DEVELOPMENT, description="Deployment environment"
    )

    # Bot settings
    bot_token: str = Field(..., description="Discord bot token", json_schema_extra={"sensitive": True})
    guild_id: Optional[int] = Field(
        None, description="Only members of this guild may use the bot"
    )
    logging_level: int = Field(logging.INFO, description="Logging level")
    logfile: Optional[str] = Field("hearsay", description="Log file name")
    log_format: LogFormat = Field(
        LogFormat.CONSOLE, description="Log output format (json or console)"
    )

    # Database settings
    database_url: Optional[str] = Field(
        None,
        description="Full SQLAlchemy URL; overrides the individual settings",
        json_schema_extra={"sensitive": True},
    )
    host: Optional[str] = Field(None, description="Database host")
    db_user: Optional[str] = Field(None, description="Database user")
    db_password: Optional[str] = Field(None, description="Database password", json_schema_extra={"sensitive": True})
    database: Optional[str] = Field(None, description="Database name")
    port: int = Field(5432, description="Database port")
    ssl_cert_dir: Optional[str] = Field(
        None, description="Directory holding server-ca.pem, client-cert.pem and client-key.pem"
    )

    # Search settings
    search_content_weight: float = Field(0.7, ge=0, description="Weight of the quote text")
    search_context_weight: float = Field(0.2, ge=0, description="Weight of the quote context")
    search_speaker_weight: float = Field(0.1, ge=0, description="Weight of the speaker names")
    search_threshold: float = Field(
        0.4, ge=0, le=1, description="Fuzzy match threshold, 0 exact and 1 anything"
    )
    search_distance: int = Field(
        100, ge=0, description="How far from the start of a field a match may drift"
    )
    search_ignore_location: bool = Field(
        False, description="Score matches regardless of where they occur"
    )

    # Ranking settings
    ranking_max_limit: int = Field(50, ge=1, description="Largest leaderboard size")

    SENSITIVE_FIELDS: ClassVar[Set[str]] = {"bot_token", "db_password", "database_url"}

    @field_validator("bot_token")
    @classmethod
    def bot_token_must_not_be_empty(cls, v):
        """Validate that the bot token is not empty."""
        if not v:
            raise ValueError("Bot token must not be empty")
        return v

    @model_validator(mode="after")
    def check_database_settings(self):
        """Either a full database URL or all connection parts must be present."""
        if self.database_url:
            return self
        missing = [
            name
            for name in ("host", "db_user", "db_password", "database")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing database settings: {', '.join(missing)}")
        return self

    @model_validator(mode="after")
    def check_search_weights(self):
        """At least one search field must carry weight."""
        total = (
            self.search_content_weight
            + self.search_context_weight
            + self.search_speaker_weight
        )
        if total <= 0:
            raise ValueError("Search weights must not all be zero")
        return self

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    @classmethod
    def get_sensitive_fields(cls) -> Set[str]:
        """Get the set of sensitive field names that should be handled securely."""
        return cls.SENSITIVE_FIELDS


def load_from_env() -> HearsayConfig:
    """
    Load configuration from environment variables.

    Returns:
        HearsayConfig: A validated configuration object

    Raises:
        MissingConfigurationError: If a required environment variable is missing
        ConfigurationError: If a value is present but invalid
    """
    from dotenv import load_dotenv

    # Load environment variables from .env file
    load_dotenv()

    missing_vars = []

    def get_env(name, default=None, required=False):
        value = os.getenv(name, default)
        if required and (value is None or value == ""):
            missing_vars.append(name)
        return value

    def get_int(name, default=None):
        value = get_env(name)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"Invalid {name} value: {value}. Must be an integer.")

    def get_float(name, default):
        value = get_env(name)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(f"Invalid {name} value: {value}. Must be a number.")

    bot_token = get_env("BOT_TOKEN", "", required=True)
    if missing_vars:
        raise MissingConfigurationError(config_key=", ".join(missing_vars))

    try:
        environment = Environment(get_env("ENVIRONMENT", Environment.DEVELOPMENT.value))
        log_format = LogFormat(get_env("LOG_FORMAT", LogFormat.CONSOLE.value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    level_name = get_env("LOGGING_LEVEL", "INFO").upper()
    logging_level = logging.getLevelName(level_name)
    if not isinstance(logging_level, int):
        raise ConfigurationError(f"Invalid LOGGING_LEVEL value: {level_name}")

    try:
        config = HearsayConfig(
            environment=environment,
            bot_token=bot_token,
            guild_id=get_int("GUILD_ID"),
            logging_level=logging_level,
            logfile=get_env("LOGFILE", "hearsay"),
            log_format=log_format,
            database_url=get_env("DATABASE_URL"),
            host=get_env("HOST"),
            db_user=get_env("DB_USER"),
            db_password=get_env("DB_PASSWORD"),
            database=get_env("DATABASE"),
            port=get_int("PORT", 5432),
            ssl_cert_dir=get_env("SSL_CERT_DIR"),
            search_content_weight=get_float("SEARCH_CONTENT_WEIGHT", 0.7),
            search_context_weight=get_float("SEARCH_CONTEXT_WEIGHT", 0.2),
            search_speaker_weight=get_float("SEARCH_SPEAKER_WEIGHT", 0.1),
            search_threshold=get_float("SEARCH_THRESHOLD", 0.4),
            search_distance=get_int("SEARCH_DISTANCE", 100),
            search_ignore_location=get_env("SEARCH_IGNORE_LOCATION", "false").lower()
            in ("1", "true", "yes"),
            ranking_max_limit=get_int("RANKING_MAX_LIMIT", 50),
        )
    except pydantic.ValidationError as e:
        # Add more context to validation errors
        raise ConfigurationError(f"Configuration validation error: {e}") from e

    # Override settings per environment
    if environment == Environment.TESTING:
        config.logging_level = logging.DEBUG
    elif environment == Environment.PRODUCTION:
        config.logging_level = logging.WARNING

    return config


@lru_cache(maxsize=1)
def get_config() -> HearsayConfig:
    """Return the process-wide configuration, loading it on first call."""
    return load_from_env()
