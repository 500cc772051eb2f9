"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from expertiz.api import api_router
from expertiz.config import get_settings
from expertiz.database import init_db
from expertiz.exceptions import (
    ExpertizError,
    InsufficientCredit,
    InvalidCreditPackage,
    InvalidReportType,
    InvalidStateTransition,
    MediaRejected,
    MediaRequired,
    NotFound,
    PermissionDenied,
    ReportNotEditable,
)
from expertiz.logger import setup_logger
from expertiz.utils.rate_limiter import limiter

settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[ExpertizError], int] = {
    InsufficientCredit: status.HTTP_402_PAYMENT_REQUIRED,
    InvalidReportType: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidCreditPackage: status.HTTP_422_UNPROCESSABLE_ENTITY,
    MediaRequired: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ReportNotEditable: status.HTTP_409_CONFLICT,
    InvalidStateTransition: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
}

MEDIA_REJECTED_STATUS: dict[str, int] = {
    "too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "unsupported_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
}


def status_for(exc: ExpertizError) -> int:
    if isinstance(exc, MediaRejected):
        return MEDIA_REJECTED_STATUS.get(exc.reason, status.HTTP_422_UNPROCESSABLE_ENTITY)
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def expertiz_error_handler(request: Request, exc: ExpertizError) -> JSONResponse:
    """Render domain errors as `{"detail": ..., "code": ...}`."""
    body: dict = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, MediaRejected):
        body["reason"] = exc.reason
    if isinstance(exc, InsufficientCredit):
        body["required"] = str(exc.required)
        body["available"] = str(exc.available)
    return JSONResponse(status_code=status_for(exc), content=body)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logger(level=settings.log_level)
    await init_db()

    # Ensure upload directory exists
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info("%s started (AI provider: %s)", settings.app_name, settings.ai_provider)

    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Credit-gated AI vehicle inspection reports",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ExpertizError, expertiz_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get(f"{settings.api_prefix}/files/{{file_path:path}}")
    async def serve_file(file_path: str):
        """Serve uploaded media files."""
        upload_root = Path(settings.upload_dir).resolve()
        full_path = (upload_root / file_path).resolve()

        # Prevent path traversal
        try:
            full_path.relative_to(upload_root)
        except ValueError:
            return JSONResponse(status_code=403, content={"detail": "Access denied"})

        if not full_path.is_file():
            return JSONResponse(status_code=404, content={"detail": "File not found"})

        return FileResponse(full_path)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": "1.0.0"}

    return app


app = create_app()
