"""
Tests for application settings validation.
"""
import pytest
from pydantic import ValidationError

from adhd_screen.core.config import Settings


class TestSettings:
    """Tests for Settings validators."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.API_V1_PREFIX == "/v1"
        assert settings.SCORING_THRESHOLDS_PATH is None
        assert settings.MAX_REQUEST_BODY_BYTES == 1024 * 1024

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="LOG_LEVEL must be one of"):
            Settings(_env_file=None, LOG_LEVEL="verbose")

    def test_debug_rejected_in_production(self):
        with pytest.raises(ValidationError, match="DEBUG must be False"):
            Settings(_env_file=None, ENV="production", DEBUG=True)

    def test_production_without_debug(self):
        settings = Settings(_env_file=None, ENV="production", DEBUG=False)

        assert settings.ENV == "production"

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCORING_THRESHOLDS_PATH", str(tmp_path / "t.json"))
        monkeypatch.setenv("MAX_REQUEST_BODY_BYTES", "2048")

        settings = Settings(_env_file=None)

        assert settings.SCORING_THRESHOLDS_PATH == str(tmp_path / "t.json")
        assert settings.MAX_REQUEST_BODY_BYTES == 2048

    def test_body_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MAX_REQUEST_BODY_BYTES=0)
