"""
FastAPI application entry point.

This module configures the FastAPI application with:
- CORS middleware
- Security headers middleware
- Asset store lifecycle and startup loading of asset files
- Health check endpoints
- API routers
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from aas_lookup import __version__
from aas_lookup.config import get_settings
from aas_lookup.exceptions import DuplicateInstanceSubmodelError, DuplicateShellError
from aas_lookup.routers import assets, shells
from aas_lookup.services.fetcher import ExternalShellFetcher
from aas_lookup.services.loader import load_asset_files
from aas_lookup.services.store import AssetStore


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Only add HSTS in production
        if get_settings().env == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the asset store, load the configured files and clean up on shutdown."""
    settings = get_settings()

    store = AssetStore(temp_dir=settings.temp_dir)
    load_asset_files(store, settings.asset_files, settings.require_asset_files)

    app.state.store = store
    app.state.fetcher = ExternalShellFetcher(
        store,
        timeout_seconds=settings.fetch_timeout_seconds,
        max_download_size_mb=settings.max_download_size_mb,
    )

    yield

    store.close()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="AAS(X) Lookup API",
        description=(
            "In-memory repository for Asset Administration Shells loaded from "
            "AAS JSON, XML and AASX files."
        ),
        version=__version__,
        docs_url="/api/docs" if settings.env != "production" else None,
        redoc_url="/api/redoc" if settings.env != "production" else None,
        openapi_url="/api/openapi.json" if settings.env != "production" else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # Include routers
    app.include_router(shells.router)
    app.include_router(assets.router)

    # Health check endpoints
    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check."""
        return {"status": "healthy", "version": __version__}

    @app.get("/health/liveness", tags=["health"])
    async def liveness_check():
        """Kubernetes liveness probe."""
        return {"status": "alive"}

    @app.get("/health/readiness", tags=["health"])
    async def readiness_check(request: Request):
        """Kubernetes readiness probe."""
        if getattr(request.app.state, "store", None) is None:
            return JSONResponse(
                status_code=503,
                content={"status": "not ready", "reason": "Asset store not loaded"},
            )
        return {"status": "ready"}

    @app.exception_handler(DuplicateShellError)
    @app.exception_handler(DuplicateInstanceSubmodelError)
    async def duplicate_exception_handler(request: Request, exc: Exception):
        """Registration conflicts."""
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={"detail": str(exc), "type": type(exc).__name__},
            )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "aas_lookup.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
        workers=1 if settings.env == "development" else settings.workers,
        log_level=settings.log_level,
    )
