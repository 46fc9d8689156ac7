"""
Pytest configuration and fixtures for cardano-dex-trader tests.

This conftest.py provides shared fixtures and hooks for all tests.
"""
import pytest

from infra.metrics import MetricsRecorder


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset singleton instances between tests to ensure test isolation.

    This is applied automatically to all tests (autouse=True).
    """
    MetricsRecorder._reset_for_testing()
    yield
    MetricsRecorder._reset_for_testing()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials from leaking into tests."""
    for name in ("TAP_TOOLS_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY",
                 "CARDANO_ADDRESS", "SWAP_SERVICE_TOKEN"):
        monkeypatch.delenv(name, raising=False)
