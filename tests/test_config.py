from __future__ import annotations

import pytest

from bcui.config import RuntimeSettings, settings_from_env

_VARS = (
    "BCUI_RENDER_DELAY_TICKS",
    "BCUI_TICK_SECONDS",
    "BCUI_MAX_INSTANCES",
    "BCUI_LOG_LEVEL",
    "REDIS_URL",
    "BCUI_APPS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    assert settings_from_env() == RuntimeSettings()


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BCUI_RENDER_DELAY_TICKS", "2")
    monkeypatch.setenv("BCUI_TICK_SECONDS", "0.01")
    monkeypatch.setenv("BCUI_MAX_INSTANCES", "50")
    monkeypatch.setenv("BCUI_LOG_LEVEL", "debug")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
    monkeypatch.setenv("BCUI_APPS", "counter=examples.apps:Counter, todo=examples.apps:Todo,")

    s = settings_from_env()

    assert s.render_delay_ticks == 2
    assert s.tick_seconds == 0.01
    assert s.max_instances == 50
    assert s.log_level == "DEBUG"
    assert s.redis_url == "redis://cache:6379/1"
    assert s.apps == ("counter=examples.apps:Counter", "todo=examples.apps:Todo")


def test_zero_max_instances_means_unbounded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BCUI_MAX_INSTANCES", "0")
    assert settings_from_env().max_instances is None


def test_negative_delay_is_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BCUI_RENDER_DELAY_TICKS", "-3")
    assert settings_from_env().render_delay_ticks == 0


@pytest.mark.parametrize(
    "name,value,message",
    [
        ("BCUI_RENDER_DELAY_TICKS", "soon", "must be an integer"),
        ("BCUI_MAX_INSTANCES", "1.5", "must be an integer"),
        ("BCUI_TICK_SECONDS", "fast", "must be a number"),
    ],
)
def test_invalid_numbers_are_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        settings_from_env()
