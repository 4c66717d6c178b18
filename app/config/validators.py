"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration

SHORT_STALENESS_SECONDS = 5 * 60
LARGE_MAX_JOBS = 5000


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for risky settings and return warnings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    recommended = config_dict.get("recommended") or {}
    if isinstance(recommended, dict):
        staleness = recommended.get("staleness_window")
        if isinstance(staleness, str):
            try:
                if parse_duration(staleness) < SHORT_STALENESS_SECONDS:
                    warning_messages.append(
                        f"Short staleness_window ({staleness}) may reap runs that are "
                        "still fetching from the provider"
                    )
            except DurationParseError:
                # Reported by model validation
                pass

        if recommended.get("schedule_enabled") and "schedule_interval" not in recommended:
            warning_messages.append(
                "schedule_enabled is set without schedule_interval; defaulting to 24h"
            )

    provider = config_dict.get("provider") or {}
    if isinstance(provider, dict):
        max_jobs = provider.get("max_jobs_per_query")
        if isinstance(max_jobs, int) and (max_jobs == 0 or max_jobs > LARGE_MAX_JOBS):
            warning_messages.append(
                f"Large max_jobs_per_query ({max_jobs or 'unlimited'}) may cause slow pulls"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
