"""Pytest configuration and fixtures for claude_hub tests."""

import os
import sys

import httpx
import pytest

# Make tests/helpers.py importable regardless of the import mode
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from helpers import Recorder, make_config, recorded_sleeps  # noqa: E402

from claude_hub import ClaudeHub, ClaudeHubSync  # noqa: E402

ENV_VARS = ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "ANTHROPIC_BASE_URL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's real credentials out of every test."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sleeps():
    """Recorded retry delays plus sleep functions that never wait."""
    return recorded_sleeps()


@pytest.fixture
def sync_hub_factory(sleeps):
    """Build a ClaudeHubSync whose HTTP goes to a Recorder."""
    delays, sleep, _ = sleeps
    hubs = []

    def factory(*responses, **cfg_overrides):
        recorder = Recorder(*responses)
        http_client = httpx.Client(transport=httpx.MockTransport(recorder))
        hub = ClaudeHubSync(make_config(**cfg_overrides), http_client=http_client, sleep=sleep)
        hubs.append(http_client)
        return hub, recorder

    yield factory
    for http_client in hubs:
        http_client.close()


@pytest.fixture
def async_hub_factory(sleeps):
    """Build a ClaudeHub whose HTTP goes to a Recorder."""
    delays, _, async_sleep = sleeps

    def factory(*responses, **cfg_overrides):
        recorder = Recorder(*responses)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        hub = ClaudeHub(make_config(**cfg_overrides), http_client=http_client, sleep=async_sleep)
        return hub, recorder

    return factory
