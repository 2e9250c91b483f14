"""FastAPI application entrypoint for the Shahriar persistence service."""
from pathlib import Path
import sys

# Ensure the project root (parent of this file's directory) is on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shahriar.config import Settings, settings as default_settings
from shahriar.models.schemas import ErrorResponse
from shahriar.routers import auth, sessions, system, users
from shahriar.services.persistence import PersistenceError, PersistenceService
from shahriar.services.storage import DocumentStore, JsonFileStore

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 404, 409, 500)
}


def _validation_message(exc: RequestValidationError) -> str:
    missing = [
        ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        for error in exc.errors()
    ]
    missing = [field for field in missing if field]
    if missing:
        return f"Missing or invalid fields: {', '.join(missing)}"
    return "Please fill in all required fields."


def _register_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @application.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @application.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


def _register_request_logging(application: FastAPI) -> None:
    @application.middleware("http")
    async def log_requests(request: Request, call_next):
        path = request.url.path
        # Skip static assets to keep the log readable
        if not path.startswith("/static") and "." not in path:
            logger.info("[API Request] %s %s", request.method, path)
        return await call_next(request)


def _register_spa_fallback(application: FastAPI, build_dir: Path) -> None:
    """Serve the single-page bundle for every unknown non-API GET path.

    Unmatched /api paths answer 404 whatever the method.
    """

    root = build_dir.resolve()
    index_file = root / "index.html"

    @application.api_route(
        "/{full_path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def spa_fallback(request: Request, full_path: str):
        if full_path == "api" or full_path.startswith("api/"):
            return JSONResponse(status_code=404, content={"error": "API route not found"})
        if request.method != "GET":
            return JSONResponse(status_code=405, content={"error": "Method Not Allowed"})
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        return FileResponse(index_file)


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    cfg = settings or default_settings
    document_store = store if store is not None else JsonFileStore(cfg.database_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Persistence service ready (store=%s)", type(document_store).__name__)
        yield

    application = FastAPI(
        title="Shahriar",
        description="User and conversation storage for the Shahriar voice assistant.",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = cfg
    application.state.persistence = PersistenceService(document_store)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins or ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    _register_request_logging(application)
    _register_error_handlers(application)

    for module in (auth, users, sessions, system):
        application.include_router(module.router, responses=ERROR_RESPONSES)

    if (cfg.static_dir / "index.html").is_file():
        logger.info("Serving single-page bundle from %s", cfg.static_dir)
        _register_spa_fallback(application, cfg.static_dir)

    return application


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(level=default_settings.log_level.upper())
    uvicorn.run(create_app(), host=default_settings.host, port=default_settings.port)


if __name__ == "__main__":
    run()
