"""
LodgePortal FastAPI Application - Main entry point.

LodgePortal manages the members of a lodge hierarchy: lodges, one district
grand lodge and a super-admin tier. It includes:

- Members, with role changes and admin-seat transfers
- Lodges and their officer positions
- Candidates under review
- Events, direct messages and notifications

All endpoints live under /api.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lodgeportal import __version__
from lodgeportal.core.config import settings
from lodgeportal.core.logging import configure_logging
from lodgeportal.db.base import init_db
from lodgeportal.schemas.common import HealthResponse
from lodgeportal.services.errors import ServiceError
from lodgeportal.api.v1 import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    configure_logging()
    await init_db()
    logger.info("%s started (%s)", settings.APP_NAME, settings.APP_ENV)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    description="Membership management for a lodge hierarchy.",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(code=200, message="API is healthy.")


app.include_router(api_router, prefix=settings.API_PREFIX)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service failures with their status and message."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lodgeportal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
