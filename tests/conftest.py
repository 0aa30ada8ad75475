"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and a provider wired
to a fake Anthropic client. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from flexinfer.config import ProviderConfig, ProviderSDKType
from flexinfer.providers.anthropic import AnthropicProvider
from tests.helpers import FakeAnthropicClient, FakeMessages, anthropic_message, block

# =============================================================================
# Test Doubles
# =============================================================================


@pytest.fixture
def fake_messages() -> FakeMessages:
    return FakeMessages(anthropic_message(block("text", text="ok", citations=None)))


@pytest.fixture
def anthropic_provider(fake_messages: FakeMessages) -> AnthropicProvider:
    """AnthropicProvider wired to a fake client (no network)."""
    provider = AnthropicProvider(
        ProviderConfig(
            name="anthropic", sdk_type=ProviderSDKType.ANTHROPIC, api_key="test-key"
        )
    )
    provider._client = FakeAnthropicClient(fake_messages)
    return provider


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "flexinfer.debug.config.load_dotenv",
            lambda *_args, **_kwargs: False,
            raising=False,
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean environment for each test.

    Clears FLEXINFER_* and ANTHROPIC_* env vars to prevent test pollution.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("FLEXINFER_", "ANTHROPIC_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


@pytest.fixture
def anthropic_api_key():
    """Return ANTHROPIC_API_KEY or skip the test if unavailable."""
    key = os.getenv("ANTHROPIC_API_KEY")
    if not key:
        pytest.skip("ANTHROPIC_API_KEY not set")
    return key
