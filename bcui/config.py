from __future__ import annotations

import os
from dataclasses import dataclass

from bcui.core.fiber import DEFAULT_RENDER_DELAY_TICKS
from bcui.host.scheduler import DEFAULT_TICK_SECONDS


@dataclass(frozen=True, slots=True)
class RuntimeSettings:
    render_delay_ticks: int = DEFAULT_RENDER_DELAY_TICKS
    tick_seconds: float = DEFAULT_TICK_SECONDS
    # None keeps every instance tree until it is cancelled.
    max_instances: int | None = None
    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"
    # "name=module:attr" specs of components the dev server can open.
    apps: tuple[str, ...] = ()


def _env_int(name: str, default: int | None) -> int | None:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def settings_from_env() -> RuntimeSettings:
    """Build settings from environment variables.

    Env vars:
    - BCUI_RENDER_DELAY_TICKS (default: 5)
    - BCUI_TICK_SECONDS (default: 0.05)
    - BCUI_MAX_INSTANCES (default: unbounded; 0 also means unbounded)
    - BCUI_LOG_LEVEL (default: INFO)
    - REDIS_URL (default: redis://localhost:6379/0)
    - BCUI_APPS (comma separated name=module:attr, default: none)
    """

    delay = _env_int("BCUI_RENDER_DELAY_TICKS", DEFAULT_RENDER_DELAY_TICKS)
    max_instances = _env_int("BCUI_MAX_INSTANCES", None)

    return RuntimeSettings(
        render_delay_ticks=DEFAULT_RENDER_DELAY_TICKS if delay is None else max(0, delay),
        tick_seconds=_env_float("BCUI_TICK_SECONDS", DEFAULT_TICK_SECONDS),
        max_instances=max_instances if max_instances and max_instances > 0 else None,
        log_level=(os.environ.get("BCUI_LOG_LEVEL") or "INFO").strip().upper(),
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        apps=tuple(s.strip() for s in (os.environ.get("BCUI_APPS") or "").split(",") if s.strip()),
    )
