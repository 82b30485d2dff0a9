"""
LoRa Link Planner API - Main Application

Sets up the FastAPI application: logging, CORS, request correlation ids,
the shared HTTP client and terrain provider, and the error handlers.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import router
from .core.config import Settings, settings as default_settings
from .core.errors import ComputationDomainError, InvalidInputError
from .core.logging import bind_request_id, get_logger, log_request, setup_logging
from .services.elevation import build_terrain_provider

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION} in {settings.ENVIRONMENT} mode")
        async with httpx.AsyncClient(
            timeout=settings.ELEVATION_TIMEOUT_S,
            headers={"Accept": "application/json"},
        ) as client:
            app.state.terrain_provider = build_terrain_provider(settings, client)
            logger.info("Elevation providers: %s", ", ".join(settings.ELEVATION_PROVIDERS))
            yield
        logger.info("Shutting down application...")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Terrain-aware 915 MHz LoRa link budget and coverage planning",
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url=f"{settings.API_PREFIX}/docs",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = bind_request_id(request)
        log_request(request)
        try:
            response = await call_next(request)
        except Exception as exc:
            log_request(request, error=exc)
            raise
        response.headers["X-Request-ID"] = request_id
        log_request(request, response=response)
        return response

    app.include_router(router, prefix=settings.API_PREFIX)

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(ComputationDomainError)
    async def domain_error_handler(request: Request, exc: ComputationDomainError):
        logger.error(f"Computation outside its domain: {exc}", exc_info=True)
        detail = str(exc) if settings.DEBUG else "Internal server error"
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Return a JSON response for all unhandled exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

        # Don't expose internal errors in production
        detail = str(exc) if settings.DEBUG else "Internal server error"
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "loraplan.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower(),
    )
