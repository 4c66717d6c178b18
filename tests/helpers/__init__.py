"""Test helper utilities for job recommender tests."""

from .factories import make_raw_job
from .fixture_provider import DEFAULT_FIXTURE, FixtureProvider, load_fixture_jobs

__all__ = ["DEFAULT_FIXTURE", "FixtureProvider", "load_fixture_jobs", "make_raw_job"]
