"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Annotated
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from blightmap.config import settings
from blightmap.middleware.error_handler import ErrorHandlerMiddleware
from blightmap.api.v1.routers import clusters, exports, statistics, trees
from blightmap.infrastructure.tree_data_loader import TreeDataLoadError
from blightmap.infrastructure.tree_repository import TreeRepository, get_tree_repository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
    enabled=settings.rate_limit_enabled,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Loads the tree dataset on startup. A failed load is logged and the
    service keeps running; data routes answer 503 until a reload succeeds.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Clustering config: algorithm={settings.cluster_algorithm}, "
                f"radius={settings.cluster_radius_m}m, "
                f"overlap_threshold={settings.overlap_threshold}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute "
                f"(enabled={settings.rate_limit_enabled})")

    repository = get_tree_repository()
    try:
        await repository.reload()
    except TreeDataLoadError as e:
        logger.error(f"Starting without tree data: {e.message}")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await repository.loader.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Geospatial API for tree blight outbreak mapping

    This API loads yearly tree survey data and groups dead, withering and
    pest-damaged trees into outbreak clusters.

    ## Features

    - **Outbreak Clustering**: circle-union clustering with a tunable overlap
      threshold, or density (DBSCAN-style) clustering with cluster stitching
    - **Cluster Outlines**: smoothed convex or concave hulls for drawing
    - **Statistics**: condition breakdown per survey year
    - **Exports**: CSV, GeoJSON, QGIS WKT CSV and a plain-text report
    - **Rate Limiting**: Protects the API from abuse
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(trees.router, prefix="/api/v1")
app.include_router(clusters.router, prefix="/api/v1")
app.include_router(statistics.router, prefix="/api/v1")
app.include_router(exports.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check(
    repository: Annotated[TreeRepository, Depends(get_tree_repository)],
):
    """
    Health check endpoint.

    Returns:
        Health status, including whether tree data is loaded
    """
    return {
        "status": "healthy" if repository.is_loaded else "degraded",
        "service": settings.app_name,
        "data_loaded": repository.is_loaded,
        "observations": len(repository.trees),
        "last_error": repository.last_error,
    }
