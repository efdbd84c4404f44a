"""
Shared test fixtures for the courier test suite.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

import os
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def _clean_courier_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all COURIER_* env vars and isolate from .env files.

    Runs automatically for every test. Changes working directory to
    tmp_path so no .env file is accidentally loaded by Pydantic
    BaseSettings.
    """
    for var in list(os.environ):
        if var.startswith("COURIER_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def mock_client_cls():
    """Patch ``httpx.Client`` as seen by the transport module.

    Yields the patched class; ``mock_client_cls.return_value`` is the
    client instance whose ``post`` tests configure.
    """
    with patch("courier.src.transport.httpx.Client") as client_cls:
        yield client_cls


@pytest.fixture()
def mock_sleep():
    """Patch ``time.sleep`` in the transport so retries do not block."""
    with patch("courier.src.transport.time.sleep") as sleep:
        yield sleep


@pytest.fixture()
def backoff() -> MagicMock:
    """Backoff policy stub that always asks for a 100 ms wait."""
    policy = MagicMock()
    policy.next_interval.return_value = 100
    return policy
