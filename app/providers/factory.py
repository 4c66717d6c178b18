"""Factory function for instantiating job search providers."""

from app.config.environment import EnvironmentConfig
from app.config.models import ProviderConfig
from app.logging import get_logger

from .base import BaseProvider
from .exceptions import ProviderConfigurationError
from .jsearch import JSearchProvider

logger = get_logger(__name__, component="provider")


def get_provider(provider_config: ProviderConfig, env_config: EnvironmentConfig) -> BaseProvider:
    """Instantiate the configured provider.

    Args:
        provider_config: Provider section of the YAML configuration
        env_config: Environment configuration holding credentials

    Returns:
        Ready-to-use provider

    Raises:
        ProviderConfigurationError: If the type is unknown or settings are invalid

    Example:
        >>> provider = get_provider(app_config.provider, env_config)
        >>> jobs = provider.fetch(query)
    """
    provider_type = str(getattr(provider_config.type, "value", provider_config.type)).lower()

    if provider_type != JSearchProvider.PROVIDER_NAME:
        raise ProviderConfigurationError(
            f"Unknown provider type: {provider_config.type}. "
            f"Supported types: {JSearchProvider.PROVIDER_NAME}"
        )

    logger.debug(
        "Creating provider instance",
        extra={
            "event": "provider.created",
            "provider": provider_type,
            "base_url": provider_config.base_url,
        },
    )

    return JSearchProvider(
        api_key=env_config.jsearch_api_key,
        api_host=env_config.jsearch_api_host,
        base_url=provider_config.base_url,
        timeout=provider_config.http_request_timeout,
        user_agent=provider_config.user_agent,
        max_jobs=provider_config.max_jobs_per_query,
    )
