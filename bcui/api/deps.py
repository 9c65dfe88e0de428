from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import HTTPException, Request, status

from bcui.api.runtime import DevRuntime
from bcui.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_runtime(request: Request) -> DevRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Runtime not started")
    return runtime
