"""
FastAPI server for the tracker API. Run with run_api_server(app).
Feature routes are mounted from tracker.features.<package>.api (get_router(tracker_app)).
Docs: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from tracker import __version__
from tracker.core.errors import TrackerError

logger = logging.getLogger(__name__)


def _include_feature_routers(app: FastAPI, tracker_app: Any) -> None:
    """Mount get_router(tracker_app) from every tracker.features.<name>.api module."""
    features_pkg = importlib.import_module("tracker.features")
    for _mod, name, is_pkg in pkgutil.iter_modules(features_pkg.__path__):
        if not is_pkg:
            continue
        try:
            api_module = importlib.import_module(f"tracker.features.{name}.api")
        except ModuleNotFoundError:
            continue
        get_router = getattr(api_module, "get_router", None)
        if not callable(get_router):
            continue
        router = get_router(tracker_app)
        if router is not None:
            app.include_router(router)
            logger.debug(f"Mounted API router for feature {name}")


def create_app(tracker_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given TrackerApp instance."""
    app = FastAPI(title="Prayer Tracker API", version=__version__)

    @app.exception_handler(TrackerError)
    async def handle_tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        log = logger.warning if exc.is_retryable else logger.info
        log(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.HTTP_STATUS, content=exc.to_dict())

    @app.exception_handler(OperationalError)
    async def handle_storage_error(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} storage unavailable: {exc}")
        return JSONResponse(
            status_code=503,
            content={"error": "Storage unavailable", "code": "TRANSIENT", "retryable": True},
        )

    @app.get("/")
    def index():
        return {"message": "Prayer Tracker API", "version": __version__}

    _include_feature_routers(app, tracker_app)
    return app


def run_api_server(tracker_app: Any) -> None:
    """Serve the API with uvicorn (blocking). Reads api.host / api.port from config."""
    import uvicorn

    api_config = tracker_app.config.section("api")
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 3000))
    fastapi_app = create_app(tracker_app)
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
