"""
ChatSync - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import auth_router, sessions_router
from .config import settings
from .core.errors import ChatSyncError
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .storage import LocalStorage, init_session_router, init_user_storage, shutdown_session_router

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging and stores. Shutdown: drop the ephemeral store."""
    setup_logging(settings)

    storage = LocalStorage(settings.local_storage_path)
    init_user_storage(storage)
    init_session_router(storage)
    logger.info("User storage and session stores initialized")

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    yield
    shutdown_session_router()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chat sessions with idempotent, id-merged message persistence",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ChatSyncError)
async def chatsync_error_handler(request: Request, exc: ChatSyncError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed payloads are reported as 400, not FastAPI's default 422
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"detail": message, "errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
        ]},
    )


app.include_router(auth_router)
app.include_router(sessions_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chatsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
