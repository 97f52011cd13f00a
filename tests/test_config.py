"""Tests for HubConfig resolution and validation."""

import pytest

from helpers import API_KEY, BASE_URL, make_config

from claude_hub import ClaudeHubSync, __version__
from claude_hub.config import DEFAULT_BASE_URL, HubConfig
from claude_hub.core.exceptions import ConfigurationError
from claude_hub.core.middleware.retry import RetryPolicy


class TestResolution:
    """Filling settings from the environment."""

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            HubConfig().resolved()

    def test_missing_api_key_fails_client_construction(self):
        with pytest.raises(ConfigurationError):
            ClaudeHubSync()

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        cfg = HubConfig().resolved()
        assert cfg.api_key == "from-env"
        assert cfg.base_url == DEFAULT_BASE_URL

    def test_claude_api_key_fallback(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_API_KEY", "fallback")
        assert HubConfig().resolved().api_key == "fallback"

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "https://proxy.example")
        cfg = HubConfig(api_key="explicit", base_url=BASE_URL).resolved()
        assert (cfg.api_key, cfg.base_url) == ("explicit", BASE_URL)

    def test_base_url_from_env(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "https://proxy.example")
        assert HubConfig(api_key=API_KEY).resolved().base_url == "https://proxy.example"

    def test_resolved_does_not_mutate(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        cfg = HubConfig()
        cfg.resolved()
        assert cfg.api_key is None

    def test_from_env_reads_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("ANTHROPIC_API_KEY=dotenv-key\n")
        cfg = HubConfig.from_env(dotenv_path=str(env_file), max_tokens=64)
        assert cfg.api_key == "dotenv-key"
        assert cfg.max_tokens == 64


class TestValidation:
    """Rejecting invalid settings before any request."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"api_key": "  "},
            {"timeout": 0},
            {"max_tokens": 0},
            {"max_tokens": 500_000},
            {"temperature": 1.5},
            {"top_p": -0.5},
            {"top_k": 0},
            {"base_url": "ftp://example.com"},
            {"base_url": "not a url"},
            {"retry": RetryPolicy(backoff_multiplier=0.5)},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            make_config(**overrides).resolved()

    def test_unknown_model_has_no_window_limit(self):
        make_config(model="my-custom-model", max_tokens=500_000).resolved()

    def test_unknown_keyword_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ClaudeHubSync(api_key=API_KEY, no_such_setting=True)


class TestHeaders:
    """Headers sent with every request."""

    def test_default_headers(self):
        headers = make_config().headers()
        assert headers["x-api-key"] == API_KEY
        assert headers["anthropic-version"] == "2023-06-01"
        assert headers["content-type"] == "application/json"
        assert headers["user-agent"] == f"claude-hub/{__version__}"
        assert "anthropic-beta" not in headers

    def test_beta_and_extra_headers(self):
        headers = make_config(
            beta_features=["files-api-2025-04-14", "prompt-caching-2024-07-31"],
            default_headers={"x-team": "search"},
        ).headers()
        assert headers["anthropic-beta"] == "files-api-2025-04-14,prompt-caching-2024-07-31"
        assert headers["x-team"] == "search"

    def test_repr_hides_api_key(self):
        assert API_KEY not in repr(make_config())
