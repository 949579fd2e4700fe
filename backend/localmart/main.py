"""
LocalMart Backend Application.

FastAPI application for a local-commerce marketplace: shops, products,
orders, loyalty rewards, feedback and analytics.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from localmart.api.v1 import router as api_v1_router
from localmart.core.config import settings
from localmart.core.database import close_db, init_db
from localmart.core.exceptions import MarketplaceError
from localmart.core.logging import setup_logging
from localmart.modules.analytics.insights import close_gemini_client
from localmart.modules.shop.cart import close_cart_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting LocalMart Backend...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    logger.info("LocalMart Backend started successfully")

    yield

    # Shutdown
    logger.info("Shutting down LocalMart Backend...")

    await close_cart_service()
    await close_gemini_client()
    await close_db()

    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    LocalMart Marketplace Platform

    ## Features

    - **Shops**: Nearby shop discovery and shopkeeper setup
    - **Orders**: Placement with stock and reward-point bookkeeping
    - **Rewards**: Loyalty points and shop-issued rewards
    - **Feedback**: One rating per completed order
    - **Analytics**: Sales roll-ups with AI-written insights

    ## Documentation

    - [API Docs](/docs) - Interactive Swagger UI
    - [ReDoc](/redoc) - Alternative documentation
    """,
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    default_response_class=ORJSONResponse,
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


# ==================== Error handlers ====================


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(
    request: Request,
    exc: MarketplaceError,
) -> ORJSONResponse:
    """Render domain errors as {"error", "code"}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> ORJSONResponse:
    """Malformed bodies and query strings are invalid requests (400)."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return ORJSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "code": "invalid_request",
            "details": details,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Log unexpected failures; never leak internals to the client."""
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return ORJSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "internal_error"},
    )


# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


@app.get("/", tags=["System"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }
