"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/job_recommender.db"
DEFAULT_JSEARCH_HOST = "jsearch.p.rapidapi.com"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        jsearch_api_key: str,
        jsearch_api_host: Optional[str] = None,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.jsearch_api_key = jsearch_api_key
        self.jsearch_api_host = jsearch_api_host or DEFAULT_JSEARCH_HOST
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level
        self.environment = environment or "local"


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required:
    - JSEARCH_API_KEY: RapidAPI key for the JSearch provider

    Optional:
    - JSEARCH_API_HOST: RapidAPI host header (default: jsearch.p.rapidapi.com)
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/job_recommender.db)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Label attached to every log record (default: local)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    api_key = (os.getenv("JSEARCH_API_KEY") or "").strip()
    api_host = os.getenv("JSEARCH_API_HOST")
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL")
    environment = os.getenv("ENVIRONMENT")

    if not api_key:
        errors.append("Missing required environment variable: JSEARCH_API_KEY")

    if database_url is not None and "://" not in database_url:
        errors.append(
            f"Invalid DATABASE_URL: '{database_url}'. Expected a SQLAlchemy URL such as "
            f"{DEFAULT_DATABASE_URL}"
        )

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your RapidAPI key",
                "Ensure all required environment variables are set",
            ],
        )

    return EnvironmentConfig(
        jsearch_api_key=api_key,
        jsearch_api_host=api_host,
        database_url=database_url,
        log_level=log_level.upper() if log_level else None,
        environment=environment,
    )
