"""
Unit tests for transport configuration (TransportSettings).

Tests verify:
- Defaults apply when no COURIER_* variables are set.
- Values load from environment variables, including JSON headers.
- URL scheme, retry budget, timeouts and backoff values are validated.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

import pytest
from courier.src.config import TransportSettings, get_settings
from pydantic import ValidationError


class TestDefaults:
    """Hardcoded defaults apply when nothing is configured."""

    def test_defaults(self) -> None:
        settings = TransportSettings()

        assert settings.url is None
        assert settings.headers == {}
        assert settings.retries == 10
        assert settings.read_timeout == 8.0
        assert settings.open_timeout == 4.0
        assert settings.write_timeout == 4.0
        assert settings.backoff_min_timeout_ms == 100
        assert settings.backoff_max_timeout_ms == 10_000
        assert settings.backoff_multiplier == 1.5
        assert settings.backoff_randomization_factor == 0.5
        assert settings.batch_size == 100
        assert settings.log_level == "INFO"


class TestLoadsFromEnv:
    """Values are read from COURIER_* environment variables."""

    def test_loads_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COURIER_URL", "https://collector.example.com/v1/batch")
        monkeypatch.setenv("COURIER_RETRIES", "3")
        monkeypatch.setenv("COURIER_READ_TIMEOUT", "1.5")
        monkeypatch.setenv("COURIER_OPEN_TIMEOUT", "2")
        monkeypatch.setenv("COURIER_WRITE_TIMEOUT", "0")
        monkeypatch.setenv("COURIER_LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.url == "https://collector.example.com/v1/batch"
        assert settings.retries == 3
        assert settings.read_timeout == 1.5
        assert settings.open_timeout == 2.0
        assert settings.write_timeout == 0.0
        assert settings.log_level == "DEBUG"

    def test_headers_parsed_as_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """COURIER_HEADERS holds a JSON object."""
        monkeypatch.setenv("COURIER_HEADERS", '{"X-Api-Key": "secret"}')

        settings = TransportSettings()

        assert settings.headers == {"X-Api-Key": "secret"}

    def test_keyword_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Explicit init values take precedence over the environment."""
        monkeypatch.setenv("COURIER_RETRIES", "3")

        settings = TransportSettings(retries=7)

        assert settings.retries == 7

    def test_env_file_is_read(self, tmp_path) -> None:
        """A .env file in the working directory is honoured."""
        (tmp_path / ".env").write_text(
            "COURIER_URL=http://localhost:8080\n", encoding="utf-8"
        )

        settings = TransportSettings()

        assert settings.url == "http://localhost:8080"


class TestUrlValidation:
    """The endpoint must be an absolute http(s) URL."""

    @pytest.mark.parametrize(
        "url",
        ["http://collector.local", "https://collector.example.com/events"],
    )
    def test_http_and_https_accepted(self, url: str) -> None:
        assert TransportSettings(url=url).url == url

    @pytest.mark.parametrize(
        "url",
        ["ftp://collector.example.com", "ws://collector.example.com", "/relative"],
    )
    def test_other_schemes_rejected(self, url: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            TransportSettings(url=url)
        assert "http(s)" in str(exc_info.value)

    def test_missing_host_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(url="http://")


class TestNumericValidation:
    """Numeric options must be in range."""

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            TransportSettings(retries=-1)
        assert "retries" in str(exc_info.value).lower()

    def test_zero_retries_accepted(self) -> None:
        assert TransportSettings(retries=0).retries == 0

    @pytest.mark.parametrize(
        "field", ["read_timeout", "open_timeout", "write_timeout"]
    )
    def test_negative_timeout_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(**{field: -0.5})

    def test_backoff_max_below_min_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(backoff_min_timeout_ms=500, backoff_max_timeout_ms=100)

    def test_backoff_multiplier_below_one_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(backoff_multiplier=0.9)

    def test_randomization_factor_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(backoff_randomization_factor=2)

    def test_batch_size_bounds(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(batch_size=0)
        with pytest.raises(ValidationError):
            TransportSettings(batch_size=1001)

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportSettings(log_level="LOUD")
