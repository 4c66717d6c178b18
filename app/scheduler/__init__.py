"""Scheduling module for periodic recommended pulls."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
