from __future__ import annotations

import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from ..config import AppConfig, load_config
from ..errors import CollaboratorError, SessionSaveError, TimerStateError, ValidationError
from .routes.folders import router as folders_router
from .routes.health import router as health_router
from .routes.meta import router as meta_router
from .routes.publish import router as publish_router
from .routes.sessions import router as sessions_router
from .routes.timer import router as timer_router
from .timer_service import TimerService, timer_service

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig | None = None,
    frontend_dist: Path | None = None,
    dev_url: str | None = None,
    service: TimerService | None = None,
) -> FastAPI:
    resolved = config or AppConfig()
    active_service = service or timer_service
    active_service.configure(resolved)

    app = FastAPI(title="IntervalLog API", version="1.0.0")
    app.state.config = resolved
    app.state.timer_service = active_service

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(folders_router)
    app.include_router(sessions_router)
    app.include_router(publish_router)
    app.include_router(timer_router)
    _install_error_handlers(app)

    if dev_url:
        app.add_api_route("/", lambda: HTMLResponse(_dev_html(dev_url)), methods=["GET"])
    elif frontend_dist and (frontend_dist / "index.html").exists():
        app.mount("/", StaticFiles(directory=str(frontend_dist), html=True), name="frontend")
    else:
        app.add_api_route("/", lambda: HTMLResponse(_missing_frontend_html()), methods=["GET"])

    return app


def create_default_app(config: AppConfig | None = None) -> FastAPI:
    """App for ``serve`` and the desktop window: settings file, built frontend or dev server."""
    frontend_dist = Path(__file__).resolve().parents[1] / "frontend" / "dist"
    dev_url = os.environ.get("INTERVALLOG_DEV_URL", "").strip() or None
    return create_app(config=config or load_config(), frontend_dist=frontend_dist, dev_url=dev_url)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(TimerStateError)
    async def _timer_state(_: Request, exc: TimerStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(CollaboratorError)
    async def _collaborator(_: Request, exc: CollaboratorError) -> JSONResponse:
        logger.error("Collaborator failure: %s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(SessionSaveError)
    async def _session_save(_: Request, exc: SessionSaveError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc.cause), "stage": exc.stage})


def _missing_frontend_html() -> str:
    return """<!doctype html>
<html lang="en">
<head><meta charset="utf-8" /><title>IntervalLog</title></head>
<body>
  <h1>IntervalLog</h1>
  <p>No frontend build was found. The API is up: see <a href="/docs">/docs</a>,
  or run a session in the terminal with <code>intervallog start --title "..." --folder NAME</code>.</p>
</body>
</html>
"""


def _dev_html(dev_url: str) -> str:
    return f"""<!doctype html>
<html lang="en">
<head><meta charset="utf-8" /><meta http-equiv="refresh" content="0; url={dev_url}" /></head>
<body>Opening the frontend dev server at <a href="{dev_url}">{dev_url}</a>.</body>
</html>
"""
