"""
Tourist Safety Hub - FastAPI Application Entry Point

SOS complaint and emergency handling for tourists, with an authority
dashboard for the officers who respond.

DESIGN PRINCIPLES:
- Tourists only ever see their own complaints
- Priority and routing are derived by the server, never accepted from clients
- Every status change follows the complaint workflow graph
- Notifications are best-effort and never block a complaint update
- The SOS response ETA is informational, not a dispatch promise
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config.firebase import initialize_firestore
from app.core.errors import ServiceError
from app.core.settings import settings
from app.routes import authority, health, notifications, sos

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="SOS complaint and emergency handling for tourists and the authorities who respond",
    debug=settings.DEBUG
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Domain errors carry their own status code and error kind."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} → {exc.status_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} → {exc.status_code} {exc.error}: {exc.message}")

    content = {"message": exc.message}
    if exc.error:
        content["error"] = exc.error
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing fields are a 400 with the offending fields listed."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.info(f"{request.method} {request.url.path} → 400 validation: {errors}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "error": errors}
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)

    content = {"message": "Internal server error"}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firestore connection
    """
    print(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        initialize_firestore()
    except Exception as e:
        print(f"Warning: Firestore initialization failed: {e}")
        print("   The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    print(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(sos.router)
app.include_router(authority.router)
app.include_router(notifications.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "sos": "/sos",
        "authority": "/authority/complaints"
    }
