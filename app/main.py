"""
Main FastAPI application entry point
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import sys
import time

from app.core.config import settings
from app.core.database import connect_to_mongo, close_mongo_connection, check_database_health
from app.services.cache.redis_service import RedisService
from app.utils.error_handlers import (
    AppError,
    app_error_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)

# Import all routers
from app.api.v1.gsc import router as gsc_router
from app.api.v1.ahrefs import router as ahrefs_router
from app.api.v1.data import router as data_router
from app.api.v1.dashboard import router as dashboard_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(settings.LOG_FILE) if settings.LOG_FILE else logging.NullHandler()
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # MongoDB is required; failures propagate
    await connect_to_mongo()
    logger.info("MongoDB connected successfully")

    # Redis is optional - the app continues without it
    redis_service = RedisService()
    await redis_service.connect()

    logger.info("Application startup completed")

    yield

    # Shutdown
    logger.info("Shutting down application...")

    try:
        await close_mongo_connection()

        redis_service = RedisService()
        await redis_service.disconnect()

        logger.info("All services disconnected successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}")


# OpenAPI Tags Metadata
tags_metadata = [
    {
        "name": "System",
        "description": "System health check and information endpoints",
    },
    {
        "name": "Google Search Console",
        "description": "Connect a session to Google Search Console, list sites, import clicks/impressions/CTR/position data and query stored data.",
    },
    {
        "name": "Ahrefs",
        "description": "Import Ahrefs keyword CSV exports (volume, traffic, position, difficulty, CPC and comparison columns).",
    },
    {
        "name": "Data Management",
        "description": "Clear stored reporting data and import history.",
    },
    {
        "name": "Dashboard",
        "description": "Quick-overview cards, chart series and tables with date-range filtering and period-over-period comparison.",
    },
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## SEO Metrics Dashboard API

    Aggregates SEO performance metrics from Google Search Console and Ahrefs CSV exports,
    normalizes them into one schema, stores them in MongoDB and serves dashboard aggregates.

    ### Features:

    * **Google Search Console** - Import daily totals and query/page rows for a property
    * **Ahrefs** - Import keyword exports with volume, traffic and ranking data
    * **Dashboard** - Summary cards, charts and tables with comparison presets

    ### Sessions:

    GSC endpoints identify the caller's Google connection with the `X-Session-Id` header.

    ### Imports:

    Every import replaces previously stored data for the same source (and site, for GSC).
    """,
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


# Add middleware
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# GZip compression
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log all incoming requests
    """
    start_time = time.time()

    logger.info(f"Request: {request.method} {request.url.path}")

    try:
        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )

        return response

    except Exception as e:
        logger.error(f"Request failed: {request.method} {request.url.path} - Error: {str(e)}")
        raise


# Exception handlers
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


# Health check endpoints
@app.get(
    "/",
    tags=["System"],
    summary="Root endpoint",
    description="Get basic information about the API",
    response_description="Application information"
)
async def root():
    """
    Root endpoint - Returns basic API information
    """
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "docs_url": "/docs",
        "redoc_url": "/redoc",
        "openapi_url": "/openapi.json"
    }


@app.get(
    "/health",
    tags=["System"],
    summary="Health check",
    description="Check the health status of the API and its dependencies",
    response_description="Health status of all services"
)
async def health_check():
    """
    Health check endpoint

    Returns the health status of:
    - Database (MongoDB) - Required
    - Cache (Redis) - Optional
    """
    db_healthy = await check_database_health()

    redis_service = RedisService()
    redis_healthy = await redis_service.ping()

    # App is healthy if database is healthy (Redis is optional)
    status = "healthy" if db_healthy else "unhealthy"

    return {
        "status": status,
        "database": "healthy" if db_healthy else "unhealthy",
        "cache": "healthy" if redis_healthy else "unavailable",
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }


# Include API routers
app.include_router(
    gsc_router,
    prefix=f"{settings.API_V1_PREFIX}/gsc",
    tags=["Google Search Console"]
)

app.include_router(
    ahrefs_router,
    prefix=f"{settings.API_V1_PREFIX}/ahrefs",
    tags=["Ahrefs"]
)

app.include_router(
    data_router,
    prefix=f"{settings.API_V1_PREFIX}/data",
    tags=["Data Management"]
)

app.include_router(
    dashboard_router,
    prefix=f"{settings.API_V1_PREFIX}/dashboard",
    tags=["Dashboard"]
)


# Development-only endpoints
if settings.DEBUG:
    @app.get("/debug/config")
    async def debug_config():
        """
        Debug endpoint to view configuration (development only)
        """
        return {
            "app_name": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            "mongodb_db": settings.MONGODB_DB_NAME,
            "redis_db": settings.REDIS_DB,
            "cache_enabled": settings.CACHE_ENABLED,
            "debug_mode": settings.DEBUG
        }


logger.info(f"FastAPI application initialized - Docs available at /docs")
