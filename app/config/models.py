"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class ProviderType(str, Enum):
    """Supported job search providers."""

    JSEARCH = "jsearch"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ProviderConfig(BaseModel):
    """Settings for the external job search provider."""

    type: ProviderType = Field(ProviderType.JSEARCH, description="Provider implementation")
    base_url: str = Field(
        "https://jsearch.p.rapidapi.com", min_length=1, description="Provider API base URL"
    )
    http_request_timeout: int = Field(
        30, ge=5, le=300, description="Timeout for each provider call (seconds)"
    )
    user_agent: str = Field(
        "JobRecommender/1.0", min_length=1, description="User-Agent string for HTTP requests"
    )
    max_jobs_per_query: int = Field(
        500, ge=0, description="Maximum jobs kept from one query (0 = unlimited)"
    )

    @field_validator("base_url", "user_agent")
    @classmethod
    def strip_value(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped.rstrip("/") if stripped.startswith("http") else stripped

    model_config = {"use_enum_values": True}


class RecommendedConfig(BaseModel):
    """Behaviour of recommended pulls."""

    default_min_score: float = Field(
        50.0, ge=0, description="Threshold used when settings have no minimum score"
    )
    staleness_window: str = Field(
        "15m", description="Age after which a running run is treated as abandoned"
    )
    schedule_enabled: bool = Field(False, description="Trigger pulls periodically")
    schedule_interval: str = Field("24h", description="Interval between scheduled pulls")

    # Computed fields
    staleness_window_seconds: Optional[int] = None
    schedule_interval_seconds: Optional[int] = None

    @field_validator("staleness_window")
    @classmethod
    def validate_staleness_window(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(
                seconds, min_seconds=60, max_seconds=86400, label="staleness_window"
            )
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @field_validator("schedule_interval")
    @classmethod
    def validate_schedule_interval(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(
                seconds, min_seconds=900, max_seconds=7 * 86400, label="schedule_interval"
            )
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_seconds(self):
        """Compute derived durations."""
        self.staleness_window_seconds = parse_duration(self.staleness_window)
        self.schedule_interval_seconds = parse_duration(self.schedule_interval)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the job recommender."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig, description="Search provider")
    recommended: RecommendedConfig = Field(
        default_factory=RecommendedConfig, description="Recommended pull settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
