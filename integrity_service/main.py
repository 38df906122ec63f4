"""
Exam Integrity Service - FastAPI Application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time

from .config import settings
from .monitor import api as monitor_api
from .monitor.api import router as monitor_router, sink_router, relay_router
from .utils.logging import log_startup, log_request, log_error, setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; end running sessions and close the remote sink on shutdown."""
    setup_logger("integrity_service", logging.DEBUG if settings.DEBUG else logging.INFO)
    log_startup(settings.APP_NAME, settings.PORT)

    yield

    for session in list(monitor_api._sessions.values()):
        session.end_exam("Service shutdown")
    if monitor_api._http_sink is not None:
        monitor_api._http_sink.close()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Integrity monitoring for remotely proctored exams",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        log_error("RequestError", str(e))
        raise

    if path not in ["/health", "/favicon.ico"]:
        duration_ms = int((time.time() - start) * 1000)
        log_request(request.method, path, response.status_code, duration_ms)

    return response


# CORS middleware - exam clients are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(monitor_router)  # /api/monitor
app.include_router(sink_router)  # /api/log-*
app.include_router(relay_router)  # /ws/proctor


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "integrity-service"}


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
