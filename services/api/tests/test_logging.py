from __future__ import annotations

import pytest

from services.api.app.utils.logging import get_log_level


@pytest.mark.parametrize(
    ("environment", "level"),
    [("production", "INFO"), ("staging", "INFO"), ("development", "DEBUG"), ("test", "WARNING")],
)
def test_default_level_per_environment(
    monkeypatch: pytest.MonkeyPatch, environment: str, level: str
) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setenv("ENVIRONMENT", environment)
    assert get_log_level() == level


def test_log_level_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "error")
    assert get_log_level("development") == "ERROR"
