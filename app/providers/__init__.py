"""Job search providers (the query source of recommended pulls).

Use the factory function to instantiate the configured provider:
    from app.providers import get_provider
    provider = get_provider(app_config.provider, env_config)
    jobs = provider.fetch(query)

Exception handling:
    from app.providers import ProviderError, ProviderHTTPError, ProviderTimeoutError
"""

from .base import BaseProvider
from .exceptions import (
    ProviderConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from .factory import get_provider
from .jsearch import JSearchProvider, build_search_params

__all__ = [
    # Base and factory
    "BaseProvider",
    "get_provider",
    # Providers
    "JSearchProvider",
    "build_search_params",
    # Exceptions
    "ProviderError",
    "ProviderHTTPError",
    "ProviderTimeoutError",
    "ProviderResponseError",
    "ProviderConfigurationError",
]
