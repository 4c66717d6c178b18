"""Builders for domain objects used across tests."""

from app.domain.models import RawJob


def make_raw_job(**overrides) -> RawJob:
    fields = {
        "source": "jsearch",
        "source_job_id": "job-1",
        "title": "Senior Python Engineer",
        "company": "Acme Corp",
        "location": "Austin, TX, US",
        "description": "Python and Django",
    }
    fields.update(overrides)
    return RawJob(**fields)
