"""JSearch (RapidAPI) provider implementation."""

from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from app.domain.models import RawJob, RecommendedQuery
from app.logging import get_logger
from app.utils.timestamps import parse_iso_datetime

from .base import BaseProvider
from .exceptions import ProviderConfigurationError, ProviderResponseError

logger = get_logger(__name__, component="provider")


class JSearchProvider(BaseProvider):
    """Provider for the JSearch job search API on RapidAPI.

    API Details:
        Endpoint: {base_url}/search
        Method: GET
        Authentication: X-RapidAPI-Key / X-RapidAPI-Host headers
        Response: {"status": "OK", "data": [job, ...]}
    """

    PROVIDER_NAME = "jsearch"

    def __init__(
        self,
        api_key: str,
        api_host: str = "jsearch.p.rapidapi.com",
        base_url: str = "https://jsearch.p.rapidapi.com",
        timeout: int = 30,
        user_agent: str = "JobRecommender/1.0",
        max_jobs: int = 500,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ProviderConfigurationError("JSearch API key cannot be empty")

        super().__init__(timeout=timeout, user_agent=user_agent, max_jobs=max_jobs, session=session)
        self.base_url = base_url.rstrip("/")
        self.api_host = api_host
        self._session.headers.update(
            {"X-RapidAPI-Key": api_key.strip(), "X-RapidAPI-Host": api_host}
        )

    def fetch(self, query: RecommendedQuery) -> List[RawJob]:
        """Run one JSearch search for a saved query.

        Records that cannot be turned into a RawJob are skipped with a warning.

        Raises:
            ProviderHTTPError: On HTTP failure
            ProviderTimeoutError: On timeout
            ProviderResponseError: On unparseable or error responses
        """
        url = f"{self.base_url}/search"
        params = build_search_params(query)

        logger.info(
            "Fetching jobs from JSearch",
            extra={
                "event": "provider.fetch.started",
                "provider": self.name,
                "query": query.query,
                "page": query.page,
                "num_pages": query.num_pages,
            },
        )

        response = self._make_request(url, params=params)
        jobs_data = self._extract_jobs(response, url)

        raw_jobs = []
        for job in jobs_data:
            try:
                raw_jobs.append(self._transform_job(job))
            except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(
                    "Skipping malformed JSearch job",
                    extra={
                        "event": "provider.job.malformed",
                        "provider": self.name,
                        "source_job_id": job.get("job_id") if isinstance(job, dict) else None,
                        "error": str(e),
                    },
                )

        raw_jobs = self._truncate_jobs(raw_jobs, query.query)

        logger.info(
            "Fetched jobs from JSearch",
            extra={
                "event": "provider.fetch.succeeded",
                "provider": self.name,
                "query": query.query,
                "count": len(raw_jobs),
            },
        )
        return raw_jobs

    @staticmethod
    def _extract_jobs(response: Any, url: str) -> List[Any]:
        if not isinstance(response, dict):
            raise ProviderResponseError(
                f"Expected JSON object, got {type(response).__name__}", url=url
            )

        if str(response.get("status", "OK")).upper() == "ERROR":
            error = response.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderResponseError(f"JSearch returned an error: {message or 'unknown'}", url=url)

        data = response.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise ProviderResponseError(
                f"Expected 'data' to be a list, got {type(data).__name__}", url=url
            )
        return data

    def _transform_job(self, job: Dict[str, Any]) -> RawJob:
        """Map a JSearch job object to RawJob.

        Field mapping:
            job_id → source_job_id
            job_title → title
            employer_name → company
            job_city, job_state, job_country → location ("City, State, Country")
            job_description → description
            job_apply_link → apply_url
            job_is_remote → is_remote
            job_employment_type → employment_type
            job_min_salary, job_max_salary, job_salary_period → salary fields
            job_posted_at_datetime_utc → posted_at
            job_publisher → publisher
        """
        location_parts = [job.get(key) for key in ("job_city", "job_state", "job_country")]
        location = ", ".join(str(part).strip() for part in location_parts if part) or None

        return RawJob(
            source=self.name,
            source_job_id=job.get("job_id"),
            title=job["job_title"],
            company=job["employer_name"],
            location=location,
            description=job.get("job_description") or "",
            apply_url=job.get("job_apply_link"),
            is_remote=bool(job.get("job_is_remote")),
            employment_type=job.get("job_employment_type"),
            salary_min=job.get("job_min_salary"),
            salary_max=job.get("job_max_salary"),
            salary_period=job.get("job_salary_period"),
            posted_at=parse_iso_datetime(job.get("job_posted_at_datetime_utc")),
            publisher=job.get("job_publisher"),
        )


def build_search_params(query: RecommendedQuery) -> Dict[str, Any]:
    """Translate a saved query into JSearch request parameters.

    Unset filters are omitted, and date_posted is omitted when it is "all".
    """
    params: Dict[str, Any] = {
        "query": query.query,
        "page": query.page,
        "num_pages": query.num_pages,
        "country": query.country,
    }
    if query.language:
        params["language"] = query.language
    if query.date_posted and query.date_posted != "all":
        params["date_posted"] = query.date_posted
    if query.work_from_home:
        params["work_from_home"] = "true"
    if query.employment_types:
        params["employment_types"] = query.employment_types
    if query.job_requirements:
        params["job_requirements"] = query.job_requirements
    if query.radius:
        params["radius"] = query.radius
    if query.exclude_job_publishers:
        params["exclude_job_publishers"] = query.exclude_job_publishers
    return params
