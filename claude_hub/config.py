from __future__ import annotations
import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from . import __version__
from .core.exceptions import ConfigurationError
from .core.middleware.retry import RetryPolicy
from .core.types import Model

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = Model.CLAUDE_SONNET_4_20250514.value
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 60.0  # seconds

# Checked in order when no api_key is given explicitly
API_KEY_ENV_VARS = ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY")
BASE_URL_ENV_VAR = "ANTHROPIC_BASE_URL"


@dataclass
class HubConfig:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    # Defaults for requests that leave them unset
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT  # seconds, per attempt
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    anthropic_version: str = DEFAULT_ANTHROPIC_VERSION
    beta_features: List[str] = field(default_factory=list)  # sent as "anthropic-beta"
    default_headers: Dict[str, str] = field(default_factory=dict)
    # Tracing
    enable_tracing: bool = False
    tracer_name: str = "claude_hub"
    # Request logging (x-api-key is always redacted)
    log_requests: bool = False
    log_responses: bool = False
    log_headers: bool = False
    log_body: bool = False

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides: Any) -> "HubConfig":
        """
        Build a resolved config, loading a ``.env`` file first

        Variables already set in the environment win over the file.
        """
        load_dotenv(dotenv_path=dotenv_path, override=False)
        return cls(**overrides).resolved()

    def resolved(self) -> "HubConfig":
        """
        Copy of this config with api_key and base_url filled from the
        environment when not given, validated

        Raises:
            ConfigurationError: If the resulting config is invalid
        """
        api_key = self.api_key
        if api_key is None:
            api_key = next((os.environ[v] for v in API_KEY_ENV_VARS if os.environ.get(v)), None)
        base_url = self.base_url or os.environ.get(BASE_URL_ENV_VAR) or DEFAULT_BASE_URL
        cfg = dataclasses.replace(self, api_key=api_key, base_url=base_url)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError(
                "No API key: pass api_key or set " + " / ".join(API_KEY_ENV_VARS)
            )
        if self.base_url is not None:
            parsed = urlparse(self.base_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if not self.model:
            raise ConfigurationError("model must not be empty")
        if self.timeout is None or self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0 seconds, got {self.timeout!r}")
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be a positive integer, got {self.max_tokens!r}")
        window = Model.context_window_for(self.model)
        if window is not None and self.max_tokens > window:
            raise ConfigurationError(
                f"max_tokens ({self.max_tokens}) exceeds the {window}-token context window of {self.model}"
            )
        for name in ("temperature", "top_p"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value!r}")
        if self.top_k is not None and self.top_k < 1:
            raise ConfigurationError(f"top_k must be >= 1, got {self.top_k!r}")
        if not self.anthropic_version:
            raise ConfigurationError("anthropic_version must not be empty")
        self.retry.validate()

    def headers(self) -> Dict[str, str]:
        """Headers sent with every request"""
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.anthropic_version,
            "content-type": "application/json",
            "user-agent": f"claude-hub/{__version__}",
        }
        if self.beta_features:
            headers["anthropic-beta"] = ",".join(self.beta_features)
        headers.update(self.default_headers)
        return headers

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{f.name}={'***' if f.name == 'api_key' and self.api_key else getattr(self, f.name)!r}"
            for f in dataclasses.fields(self)
        )
        return f"HubConfig({fields})"
