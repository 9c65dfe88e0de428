import logging

from fastapi import FastAPI

from bcui.api.routes import router
from bcui.api.runtime import create_runtime
from bcui.config import settings_from_env

settings = settings_from_env()

app = FastAPI(title="bcui", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Host and presenter bind to this event loop.
    app.state.runtime = create_runtime(settings)
    logger.info("Dev runtime started with apps: %s", ", ".join(sorted(app.state.runtime.apps)) or "(none)")


@app.on_event("shutdown")
async def _shutdown() -> None:
    runtime = getattr(app.state, "runtime", None)
    if runtime is not None:
        await runtime.presenter.aclose()
        app.state.runtime = None


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "bcui", "version": "0.1.0"}
