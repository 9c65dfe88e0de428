from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI we don't auto-load `.env` so local tuning (tick length, log level)
    can't leak into the suite. Opt in with BCUI_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("BCUI_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def scheduler():
    from bcui.host.memory import ManualTickScheduler

    return ManualTickScheduler()


@pytest.fixture()
def registry(scheduler):
    from bcui.core.fiber import FiberRegistry

    return FiberRegistry(scheduler=scheduler)


@pytest.fixture()
def player():
    from bcui.host.memory import InMemoryPlayer

    return InMemoryPlayer(id="p1", name="Steve")


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient (startup/shutdown included) plus the fakeredis behind it."""

    from collections.abc import Generator

    import fakeredis
    from fastapi.testclient import TestClient

    from bcui.api.deps import get_redis
    from bcui.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
