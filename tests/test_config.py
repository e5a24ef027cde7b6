"""
Unit tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from ecograder.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults for everything but the API key."""
        monkeypatch.setenv("GEMINI_API_KEY", "env-key-123456")
        for name in ("GEMINI_MODEL", "REDIS_URL", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.gemini_api_key == "env-key-123456"
        assert settings.gemini_model == "gemini-2.5-flash"
        assert settings.llm_max_retries == 3
        assert settings.llm_retry_base_delay == 2.0
        assert settings.oracle_requests_per_second == 2.0
        assert settings.min_content_length == 10
        assert settings.job_ttl_seconds == 3600
        assert settings.redis_url is None

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test startup fails fast without a key."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_base_url_trailing_slash_removed(self, test_settings: Settings) -> None:
        assert test_settings.gemini_base_url == "https://test.api.local"

    def test_log_level_normalised(self) -> None:
        """Test log level names are case-insensitive and checked."""
        settings = Settings(_env_file=None, gemini_api_key="k" * 12, log_level="debug")  # type: ignore[call-arg]
        assert settings.log_level == "DEBUG"

        with pytest.raises(ValidationError, match="Unknown log level"):
            Settings(_env_file=None, gemini_api_key="k" * 12, log_level="loud")  # type: ignore[call-arg]

    def test_rate_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, gemini_api_key="k" * 12, oracle_requests_per_second=0)  # type: ignore[call-arg]
