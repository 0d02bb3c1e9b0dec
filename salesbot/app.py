"""
FastAPI application instance with lifespan management.

This module creates the FastAPI application with its middleware, exception
handlers and the chat and sales routers.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesbot.controller.chat import router as chat_router
from salesbot.controller.sales import router as sales_router
from salesbot.database import get_db_pool
from salesbot.exceptions.handler import register_exception_handlers
from salesbot.lifespan import lifespan
from salesbot.middleware import ContextMiddleware, LoggingMiddleware, RequestIDMiddleware
from salesbot.models.errors import HTTPException
from salesbot.settings import get_settings

settings = get_settings()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        responses={
            500: {"model": HTTPException, "description": "Internal Server Error"},
            404: {"model": HTTPException, "description": "Resource Not Found"},
            400: {"model": HTTPException, "description": "Bad Request"},
            401: {"model": HTTPException, "description": "Unauthorized"},
            403: {"model": HTTPException, "description": "Forbidden"},
            422: {"model": HTTPException, "description": "Unprocessable Entity"},
        },
    )
    register_exception_handlers(app)
    if settings.SERVER.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.SERVER.CORS_ORIGINS,
            allow_credentials=settings.SERVER.CORS_ALLOW_CREDENTIALS,
            allow_methods=settings.SERVER.CORS_ALLOW_METHODS,
            allow_headers=settings.SERVER.CORS_ALLOW_HEADERS,
        )
    app.add_middleware(
        LoggingMiddleware,
        slow_request_threshold_ms=settings.SERVER.SLOW_REQUEST_THRESHOLD_MS,
    )
    app.add_middleware(ContextMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(chat_router, prefix="/api/v1")
    app.include_router(sales_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint for health check."""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health")
    async def health_check():
        try:
            db_pool = get_db_pool()
        except RuntimeError as e:
            return {"status": "unhealthy", "error": str(e)}

        pool_stats = await db_pool.get_pool_stats()
        reachable = await db_pool.ping()
        return {
            "status": "healthy" if reachable else "unhealthy",
            "database": {
                "connected": reachable,
                "pool_size": pool_stats["size"],
                "pool_free": pool_stats["free"],
            },
        }

    return app


app = create_app()
