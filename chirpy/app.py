from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from chirpy.api.error_handling import register_exception_handlers
from chirpy.api.routes import admin_router, router
from chirpy.config import get_settings
from chirpy.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

__version__ = "0.1.0"

FILESERVER_PREFIX = "/app"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup and release its pools on shutdown."""
    from chirpy.service.runtime import get_runtime

    runtime = get_runtime()
    logger.info("app_started", platform=runtime.settings.platform.value)

    yield

    try:
        get_runtime().close()
        logger.info("runtime_cleanup_complete")
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="Chirpy", version=__version__, lifespan=lifespan)


@app.middleware("http")
async def count_fileserver_hits(request, call_next):
    """Count every request served under the fileserver prefix."""
    path = request.url.path
    if path == FILESERVER_PREFIX or path.startswith(FILESERVER_PREFIX + "/"):
        from chirpy.service.runtime import get_runtime

        get_runtime().metrics.increment()
    return await call_next(request)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag each request with a correlation id for structured logs.

    The id comes from the ``X-Request-ID`` header when the client sends one
    and is echoed back on the response.
    """
    correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    if request.url.path.startswith("/api/"):
        response.headers.setdefault("Cache-Control", "no-store")
    return response


register_exception_handlers(app)
app.include_router(router)
app.include_router(admin_router)


STATIC_DIR = Path(get_settings().static_root)
if STATIC_DIR.is_dir():
    app.mount(
        FILESERVER_PREFIX,
        StaticFiles(directory=STATIC_DIR, html=True),
        name="fileserver",
    )
else:
    logger.warning("static_assets_missing", path=str(STATIC_DIR))


def create_app() -> FastAPI:
    return app
