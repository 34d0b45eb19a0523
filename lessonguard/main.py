"""
Main FastAPI application for the lessonguard content protection service.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lessonguard.config import settings
from lessonguard.database import check_db_connection, init_models
from lessonguard.routes import content, health, media, security
from lessonguard.routes.content import denial_status, public_reason
from lessonguard.middleware.logging import RequestLoggingMiddleware
from lessonguard.services.entitlement import AccessDeniedError
from lessonguard.services.envelope_encryption import (
    EncryptionError,
    create_envelope_encryption_service,
)
from lessonguard.services.playback_token import TokenInvalidError, create_playback_token_service
from lessonguard.utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting lessonguard content protection service")
    logger.info(f"Environment: {'DEBUG' if settings.DEBUG else 'PRODUCTION'}")

    db_connected = await check_db_connection()
    if db_connected:
        logger.info("Database connection established")
        if settings.DB_CREATE_TABLES:
            await init_models()
    else:
        logger.error("Failed to connect to database")

    storage_path = Path(settings.MEDIA_STORAGE_PATH)
    storage_path.mkdir(parents=True, exist_ok=True)
    logger.info(f"Media storage path configured: {settings.MEDIA_STORAGE_PATH}")

    # Encryption service is required - app fails without it
    logger.info(f"Initializing encryption service with provider: {settings.ENCRYPTION_PROVIDER}")
    try:
        app.state.encryption_service = create_envelope_encryption_service(
            provider=settings.ENCRYPTION_PROVIDER
        )
    except Exception as e:
        logger.error(f"Failed to initialize encryption service: {e}")
        raise RuntimeError(f"Cannot start application without encryption service: {e}") from e

    app.state.token_service = create_playback_token_service()
    logger.info(
        "Playback token service initialized",
        ttl_minutes=settings.PLAYBACK_TOKEN_TTL_MINUTES,
        bind_device=settings.PLAYBACK_BIND_DEVICE,
    )

    yield

    logger.info("Shutting down lessonguard content protection service")
    app.state.encryption_service.key_provider.teardown()
    app.state.encryption_service = None
    app.state.token_service = None
    logger.info("Key material released")


app = FastAPI(
    title="lessonguard",
    description="Content protection and secure playback for premium lessons",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    return JSONResponse(
        status_code=denial_status(exc.reason),
        content={"code": public_reason(exc.reason), "message": exc.message},
    )


@app.exception_handler(TokenInvalidError)
async def token_invalid_handler(request: Request, exc: TokenInvalidError) -> JSONResponse:
    logger.info("Playback token rejected", path=request.url.path, reason=exc.reason.value)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"code": "token_invalid", "message": "Playback token is invalid or expired"},
    )


@app.exception_handler(EncryptionError)
async def encryption_error_handler(request: Request, exc: EncryptionError) -> JSONResponse:
    # Crypto details stay in the server log
    logger.error(
        "Content could not be decrypted",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"code": "content_error", "message": "This lesson could not be loaded. Please try again later."},
    )


app.include_router(health.router, tags=["Health"])
app.include_router(content.router, tags=["Content"])
app.include_router(media.router, tags=["Media"])
app.include_router(security.router, tags=["Security"])


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint with service pointers."""
    return {
        "message": "lessonguard content protection service",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lessonguard.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower()
    )
