"""
Unit tests for configuration loading and validation.

These tests ensure:
  1. Config loads from environment variables correctly
  2. Required fields are validated at startup
  3. Type conversions work (strings to ints, floats and bools)
  4. Optional features (icebreaker LLM, LangSmith) fail fast without keys
"""

import pytest
from unittest.mock import patch
from discovery.config import Config, validate_config


def _valid(mock_config):
    """Populate a mocked config with a valid baseline."""
    mock_config.FIREBASE_PROJECT_ID = "test"
    mock_config.PERPLEXITY_API_KEY = None
    mock_config.OPENAI_API_KEY = None
    mock_config.ICEBREAKERS_LLM_ENABLED = False
    mock_config.LANGSMITH_ENABLED = False
    mock_config.LANGSMITH_API_KEY = None
    mock_config.GEOCODER_TIMEOUT_SECONDS = 3.0
    mock_config.SHOWCASE_ENABLED = True
    mock_config.SCORE_CACHE_ENABLED = False


class TestConfigLoading:
    """Test configuration loading from environment."""

    @patch.dict("os.environ", {"FIREBASE_PROJECT_ID": "test-project"})
    def test_required_config_loads(self):
        """Required config fields should load from environment."""
        config = Config(_env_file=None)
        assert config.FIREBASE_PROJECT_ID == "test-project"

    @patch.dict("os.environ", {"SHOWCASE_ENABLED": "false", "SCORE_CACHE_ENABLED": "true"})
    def test_boolean_config_conversion(self):
        """Boolean environment variables should be converted correctly."""
        config = Config(_env_file=None)
        assert config.SHOWCASE_ENABLED is False
        assert config.SCORE_CACHE_ENABLED is True

    @patch.dict("os.environ", {"PORT": "9000", "GEOCODER_TIMEOUT_SECONDS": "1.5"})
    def test_numeric_config_conversion(self):
        """Numeric environment variables should be converted."""
        config = Config(_env_file=None)
        assert config.PORT == 9000
        assert config.GEOCODER_TIMEOUT_SECONDS == 1.5

    def test_discovery_defaults(self):
        """Pipeline knobs should have the documented defaults."""
        config = Config(_env_file=None)
        assert config.GRAPH_TIMEOUT == 30
        assert config.MAX_CANDIDATES == 500
        assert config.SHOWCASE_MIN_REAL_PROFILES == 5
        assert config.SHOWCASE_MAX_PROFILES == 20
        assert config.SHOWCASE_AGE_SLACK_YEARS == 5
        assert config.DEFAULT_POSTCODE_RADIUS_KM == 25
        assert config.SCORE_CACHE_TTL_SECONDS == 3600


class TestConfigValidation:
    """Test configuration validation function."""

    @patch("discovery.config.config")
    def test_validate_firebase_required(self, mock_config):
        """Firebase project ID must be set."""
        _valid(mock_config)
        mock_config.FIREBASE_PROJECT_ID = ""

        with pytest.raises(ValueError, match="FIREBASE_PROJECT_ID"):
            validate_config()

    @patch("discovery.config.config")
    def test_validate_llm_keys_optional_when_icebreaker_llm_disabled(self, mock_config):
        """Discovery runs without any LLM provider."""
        _valid(mock_config)

        result = validate_config()
        assert result["icebreakers_llm"] == "✗ Disabled"

    @patch("discovery.config.config")
    def test_validate_icebreaker_llm_requires_a_provider(self, mock_config):
        """Enabling icebreaker refinement needs Perplexity or OpenAI."""
        _valid(mock_config)
        mock_config.ICEBREAKERS_LLM_ENABLED = True

        with pytest.raises(ValueError, match="PERPLEXITY_API_KEY or OPENAI_API_KEY"):
            validate_config()

    @patch("discovery.config.config")
    def test_validate_openai_alone_is_enough(self, mock_config):
        """OpenAI alone should satisfy the icebreaker LLM."""
        _valid(mock_config)
        mock_config.ICEBREAKERS_LLM_ENABLED = True
        mock_config.OPENAI_API_KEY = "sk-test"

        result = validate_config()
        assert result["icebreakers_llm"] == "✓ Enabled"

    @patch("discovery.config.config")
    def test_validate_langsmith_enabled_requires_key(self, mock_config):
        """LangSmith enabled requires API key."""
        _valid(mock_config)
        mock_config.LANGSMITH_ENABLED = True

        with pytest.raises(ValueError, match="LANGSMITH_ENABLED"):
            validate_config()

    @patch("discovery.config.config")
    def test_validate_geocoder_timeout_positive(self, mock_config):
        """A zero geocoder timeout is rejected."""
        _valid(mock_config)
        mock_config.GEOCODER_TIMEOUT_SECONDS = 0

        with pytest.raises(ValueError, match="GEOCODER_TIMEOUT_SECONDS"):
            validate_config()

    @patch("discovery.config.config")
    def test_validate_success_returns_status(self, mock_config):
        """Successful validation should return status dict."""
        _valid(mock_config)

        result = validate_config()
        assert set(result) == {"firebase", "icebreakers_llm", "showcase", "score_cache", "langsmith"}
        assert result["showcase"] == "✓ Enabled"
