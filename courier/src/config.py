"""
Transport configuration loaded from environment variables.

Uses Pydantic BaseSettings so every option can come from an explicit
keyword argument, a ``COURIER_*`` environment variable (or ``.env``
file), or a hardcoded default, in that order of precedence. The
resulting object is built once and handed to ``Transport``; the core
never reads the environment after construction.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

import logging

import httpx
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from courier.src.backoff import (
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    MULTIPLIER,
    RANDOMIZATION_FACTOR,
)

# URL schemes the transport can deliver to.
VALID_HTTP_SCHEMES = frozenset({"http", "https"})


class TransportSettings(BaseSettings):
    """Delivery client configuration.

    Attributes:
        url: Collector endpoint batches are POSTed to. Optional here so
            that settings can be built without it; ``Transport`` rejects
            a missing URL.
        headers: Extra request headers, merged over the defaults. Read
            from ``COURIER_HEADERS`` as a JSON object.
        retries: Total attempt budget per ``send_batch`` call.
        read_timeout: Seconds to wait for response data.
        open_timeout: Seconds to wait for the connection to open.
        write_timeout: Seconds to wait while sending the request body.
        backoff_min_timeout_ms: Base retry delay.
        backoff_max_timeout_ms: Cap on any retry delay.
        backoff_multiplier: Growth factor per retry.
        backoff_randomization_factor: Jitter range as a fraction of the
            base delay.
        batch_size: Records per batch for the command-line flusher.
        log_level: Root log level for the command-line flusher.
    """

    url: str | None = None
    headers: dict[str, str] = {}
    retries: int = 10
    read_timeout: float = 8.0
    open_timeout: float = 4.0
    write_timeout: float = 4.0
    backoff_min_timeout_ms: int = MIN_TIMEOUT_MS
    backoff_max_timeout_ms: int = MAX_TIMEOUT_MS
    backoff_multiplier: float = MULTIPLIER
    backoff_randomization_factor: float = RANDOMIZATION_FACTOR
    batch_size: int = 100
    log_level: str = "INFO"

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str | None) -> str | None:
        """Validate that the endpoint is an absolute http(s) URL."""
        if v is None:
            return v
        try:
            parsed = httpx.URL(v)
        except httpx.InvalidURL as exc:
            raise ValueError(f"URL could not be parsed: {exc}") from exc
        if parsed.scheme not in VALID_HTTP_SCHEMES:
            raise ValueError(
                f"URL must use the http(s) scheme (got: {parsed.scheme!r})"
            )
        if not parsed.host:
            raise ValueError(f"URL must include a host (got: {v!r})")
        return v

    @field_validator("retries")
    @classmethod
    def retries_must_be_non_negative(cls, v: int) -> int:
        """Validate the retry budget is >= 0."""
        if v < 0:
            raise ValueError(f"RETRIES must be >= 0 (got: {v})")
        return v

    @field_validator("read_timeout", "open_timeout", "write_timeout")
    @classmethod
    def timeout_must_be_non_negative(cls, v: float) -> float:
        """Validate connection timeouts are >= 0."""
        if v < 0:
            raise ValueError(f"timeouts must be >= 0 (got: {v})")
        return v

    @field_validator("backoff_min_timeout_ms")
    @classmethod
    def min_timeout_must_be_non_negative(cls, v: int) -> int:
        """Validate the base retry delay is >= 0."""
        if v < 0:
            raise ValueError(f"BACKOFF_MIN_TIMEOUT_MS must be >= 0 (got: {v})")
        return v

    @field_validator("backoff_multiplier")
    @classmethod
    def multiplier_must_grow(cls, v: float) -> float:
        """Validate the backoff multiplier is >= 1."""
        if v < 1:
            raise ValueError(f"BACKOFF_MULTIPLIER must be >= 1 (got: {v})")
        return v

    @field_validator("backoff_randomization_factor")
    @classmethod
    def randomization_factor_in_range(cls, v: float) -> float:
        """Validate the jitter factor is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError(
                f"BACKOFF_RANDOMIZATION_FACTOR must be between 0 and 1 (got: {v})"
            )
        return v

    @field_validator("batch_size")
    @classmethod
    def batch_size_must_be_valid(cls, v: int) -> int:
        """Validate batch size is between 1 and 1000."""
        if v < 1 or v > 1000:
            raise ValueError("BATCH_SIZE must be >= 1 and <= 1000")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_exist(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL is not a known level (got: {v!r})")
        return level

    @model_validator(mode="after")
    def _max_timeout_covers_min(self) -> "TransportSettings":
        """Ensure the backoff cap is not below the base delay."""
        if self.backoff_max_timeout_ms < self.backoff_min_timeout_ms:
            raise ValueError(
                "BACKOFF_MAX_TIMEOUT_MS must be >= BACKOFF_MIN_TIMEOUT_MS"
            )
        return self

    model_config = {
        "env_prefix": "COURIER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def get_settings() -> TransportSettings:
    """Create and return a TransportSettings instance.

    Returns:
        TransportSettings: Validated configuration from environment variables.
    """
    return TransportSettings()
