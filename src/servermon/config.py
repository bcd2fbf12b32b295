"""Configuration for servermon.

Uses pydantic-settings to load from environment variables (prefixed
SERVERMON_). Command line flags are passed as init values and win over the
environment.
"""

from pydantic import (
    AliasChoices,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic_settings import BaseSettings

MIN_POLL_INTERVAL = 0.1
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "WARNING"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class DashboardConfig(BaseSettings):
    """Runtime settings. The API URL is checked by the fetcher, not here."""

    api_url: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    # Read from SERVERMON_TIMEOUT; aliases bypass env_prefix
    request_timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        validation_alias=AliasChoices("request_timeout", "servermon_timeout"),
    )
    keep_stale: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    model_config = {
        "env_prefix": "SERVERMON_",
        "case_sensitive": False,
    }

    @field_validator("api_url", mode="before")
    @classmethod
    def blank_url_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("poll_interval", mode="wrap")
    @classmethod
    def clamp_interval(cls, value, handler: ValidatorFunctionWrapHandler) -> float:
        try:
            interval = handler(value)
        except ValidationError:
            return DEFAULT_POLL_INTERVAL
        return max(MIN_POLL_INTERVAL, interval)

    @field_validator("request_timeout", mode="wrap")
    @classmethod
    def positive_timeout(cls, value, handler: ValidatorFunctionWrapHandler) -> float:
        try:
            timeout = handler(value)
        except ValidationError:
            return DEFAULT_TIMEOUT
        return timeout if timeout > 0 else DEFAULT_TIMEOUT

    @field_validator("keep_stale", mode="wrap")
    @classmethod
    def lenient_flag(cls, value, handler: ValidatorFunctionWrapHandler) -> bool:
        try:
            return handler(value)
        except ValidationError:
            return False

    @field_validator("log_level", mode="after")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.strip().upper()
        return level if level in _LOG_LEVELS else DEFAULT_LOG_LEVEL
