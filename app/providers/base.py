"""Base provider class with shared HTTP handling for job search providers.

Providers wrap one external search API. Each fetch() is a single bounded
HTTP exchange with no retries; failures surface as ProviderError subclasses
so the pipeline can count them per query.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from app.domain.models import RawJob, RecommendedQuery
from app.logging import get_logger

from .exceptions import (
    ProviderConfigurationError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
)

logger = get_logger(__name__, component="provider")


class BaseProvider(ABC):
    """Base class for job search providers.

    Attributes:
        timeout: HTTP request timeout in seconds
        user_agent: User-Agent header for HTTP requests
        max_jobs: Maximum jobs returned per query (0 = unlimited)
    """

    PROVIDER_NAME = "base"

    def __init__(
        self,
        timeout: int = 30,
        user_agent: str = "JobRecommender/1.0",
        max_jobs: int = 500,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize provider with HTTP settings.

        Args:
            timeout: HTTP request timeout in seconds (range 5-300)
            user_agent: User-Agent header for requests
            max_jobs: Maximum jobs kept per query (0 = unlimited)
            session: Optional requests session (tests inject a mock)

        Raises:
            ProviderConfigurationError: If a setting is out of range
        """
        if not 5 <= timeout <= 300:
            raise ProviderConfigurationError(
                f"Timeout must be between 5 and 300 seconds, got: {timeout}"
            )
        if not user_agent or not user_agent.strip():
            raise ProviderConfigurationError("user_agent cannot be empty")
        if max_jobs < 0:
            raise ProviderConfigurationError(f"max_jobs cannot be negative, got: {max_jobs}")

        self.timeout = timeout
        self.user_agent = user_agent.strip()
        self.max_jobs = max_jobs

        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent})

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    @abstractmethod
    def fetch(self, query: RecommendedQuery) -> List[RawJob]:
        """Run one search and return the jobs it produced.

        Args:
            query: Saved search with text, pagination and filters

        Returns:
            RawJob list, possibly empty, truncated to max_jobs

        Raises:
            ProviderError: Any failure; subclasses indicate the kind
        """

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._session.close()

    def _make_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make one HTTP request and decode its JSON body.

        Returns:
            Parsed JSON (dict or list)

        Raises:
            ProviderHTTPError: On 4xx/5xx status or connection failure
            ProviderTimeoutError: When the request exceeds the timeout
            ProviderResponseError: When the body is not valid JSON
        """
        logger.debug(
            f"HTTP {method} request to {url}",
            extra={
                "event": "provider.fetch.request",
                "provider": self.name,
                "method": method,
                "url": url,
                "timeout": self.timeout,
            },
        )

        try:
            response = self._session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "provider.fetch.timeout", "provider": self.name, "url": url},
            )
            raise ProviderTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={
                    "event": "provider.fetch.error",
                    "provider": self.name,
                    "error_type": type(e).__name__,
                    "url": url,
                },
            )
            raise ProviderHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            # 429 and 5xx usually clear up by the next pull
            transient = response.status_code == 429 or response.status_code >= 500
            logger.log(
                logging.WARNING if transient else logging.ERROR,
                f"HTTP {response.status_code} error from {url}",
                extra={
                    "event": "provider.fetch.http_error",
                    "provider": self.name,
                    "status_code": response.status_code,
                    "transient": transient,
                    "url": url,
                },
            )
            raise ProviderHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={"event": "provider.fetch.invalid_json", "provider": self.name, "url": url},
            )
            raise ProviderResponseError(
                f"Failed to parse JSON response from {url}: {e}", url=url
            ) from e

    def _truncate_jobs(self, jobs: List[RawJob], query_text: str) -> List[RawJob]:
        """Cap a result list at max_jobs (no-op when max_jobs is 0)."""
        if self.max_jobs > 0 and len(jobs) > self.max_jobs:
            logger.warning(
                "Truncating jobs to max_jobs limit",
                extra={
                    "event": "provider.fetch.truncated",
                    "provider": self.name,
                    "query": query_text,
                    "total": len(jobs),
                    "max": self.max_jobs,
                },
            )
            return jobs[: self.max_jobs]
        return jobs
