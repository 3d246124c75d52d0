"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from tests.stubs import FIXED_NOW
from workflow_trigger.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop action inputs leaking in from the surrounding environment."""

    for key in list(os.environ):
        if key.upper().startswith("INPUT_") or key.upper() in {"API_URL", "SERVER_URL"}:
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def missing_config(tmp_path: Path) -> Path:
    return tmp_path / "absent.yaml"


@pytest.fixture
def settings(missing_config: Path) -> Settings:
    """Settings with fast, bounded polling."""
    return Settings(
        config_path=missing_config,
        owner="octo-org",
        repo="octo-repo",
        github_token="ghp_test",
        workflow_file_name="deploy.yml",
        wait_interval=10,
        max_poll_attempts=5,
    )


@pytest.fixture
def sleep_calls() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleep_calls: list[float]) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        sleep_calls.append(seconds)

    return _sleep


@pytest.fixture
def fixed_now() -> Callable[[], datetime]:
    return lambda: FIXED_NOW
