"""Custom exceptions for job search providers."""

from typing import Optional


class ProviderError(Exception):
    """Base exception for all provider errors.

    The pipeline catches this per query: the query is counted as failed and
    the run moves on to the next query.
    """


class ProviderHTTPError(ProviderError):
    """HTTP request failed with a 4xx/5xx status or never got a response.

    ``status_code`` is 0 when the request failed before a response arrived
    (DNS failure, connection refused).
    """

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ProviderTimeoutError(ProviderError):
    """HTTP request did not complete within the configured timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class ProviderResponseError(ProviderError):
    """Response could not be parsed or reported an error in its body."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ProviderConfigurationError(ProviderError):
    """Invalid provider configuration (unknown type, missing API key, bad limits)."""
