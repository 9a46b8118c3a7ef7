"""FastAPI application entry point."""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filevault.config import Settings
from filevault.database import build_engine, build_session_factory
from filevault.models import Base
from filevault.routes.files import router as files_router
from filevault.routes.health import router as health_router
from filevault.services.auth import IdentityVerifier, build_verifier
from filevault.services.errors import FileServiceError
from filevault.services.file_storage import FileStorageService
from filevault.services.notifications import Notifier, build_notifier
from filevault.services.upload_validator import UploadValidator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, drain notifications and dispose the engine on shutdown."""
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")

    yield

    await app.state.notifier.aclose()
    await app.state.engine.dispose()


def create_app(
    settings: Settings | None = None,
    identity_verifier: IdentityVerifier | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Build the application. Collaborators not passed in are built from settings."""
    settings = settings or Settings()

    app = FastAPI(
        title="File Vault API",
        version="1.0.0",
        description="Upload, list, download and delete files per user.",
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.file_storage = FileStorageService(settings.FILE_STORAGE_PATH)
    app.state.upload_validator = UploadValidator(settings.MAX_FILE_SIZE, settings.allowed_file_types)
    app.state.identity_verifier = identity_verifier or build_verifier(settings)
    app.state.notifier = notifier or build_notifier(
        settings.NOTIFICATION_WEBHOOK_URL, settings.NOTIFICATION_TIMEOUT
    )
    app.state.started_at = time.monotonic()

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(files_router)
    return app


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": message}."""

    @app.exception_handler(FileServiceError)
    async def file_service_error_handler(request: Request, exc: FileServiceError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "query")
            message = f"Invalid {location}: {first.get('msg', 'invalid value')}"
        else:
            message = "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
