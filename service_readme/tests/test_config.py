"""
Unit tests for environment-driven configuration.
"""

import pytest

from shared.config import get_config
from shared.test_helpers import TestEnvironment


class TestServiceConfig:
    """Test cases for ServiceConfig."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("NUGET_README_GITHUB_TOKEN", raising=False)

    def test_defaults(self):
        config = get_config("readme", 8000)

        assert config.cache_ttl_ms == 3_600_000
        assert config.cache_max_size_bytes == 104_857_600
        assert config.search_cache_ttl_ms == 600_000
        assert config.not_found_cache_ttl_ms == 300_000
        assert config.retry_attempts == 3
        assert config.base_retry_delay_ms == 1000
        assert config.github_token is None

    def test_reads_prefixed_environment(self, monkeypatch):
        for name, value in TestEnvironment.get_mock_config().items():
            monkeypatch.setenv(name, value)

        config = get_config("readme", 8000)

        assert config.env == "test"
        assert config.log_level == "debug"
        assert config.retry_attempts == 2
        assert config.base_retry_delay_ms == 10

    def test_plain_github_token_variable(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")

        assert get_config("readme", 8000).github_token == "ghp_example"

    def test_overrides_win(self):
        assert get_config("readme", 8000, cache_ttl_ms=5).cache_ttl_ms == 5
