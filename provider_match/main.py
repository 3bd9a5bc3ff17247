from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from provider_match.routers import listings, matching, providers

# Import logging and middleware
from provider_match.utils.logging_config import configure_for_environment, get_logger
from provider_match.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
    register_exception_handlers,
)

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("Provider Matching API starting up...")

    try:
        from provider_match.services.db import init_indexes
        await init_indexes()
        logger.info("Database indexes initialized successfully")
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - concurrent listing synthesis is unprotected without indexes")

    logger.info("Provider Matching API startup completed")

    yield

    logger.info("Provider Matching API shutting down...")

app = FastAPI(title="Provider Matching API", version=APP_VERSION, lifespan=lifespan)
register_exception_handlers(app)

# Add middleware in order (LIFO - Last In, First Out)
# Exception handler should be the outermost middleware
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Provider Matching API", "version": APP_VERSION, "status": "ok"}

@app.get("/health")
@app.head("/health")
async def health_check():
    """Health check endpoint - handles both GET and HEAD requests"""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat() + "Z"}

# Include routers
app.include_router(matching.router, tags=["matching"])
app.include_router(listings.router, tags=["listings"])
app.include_router(providers.router, tags=["providers"])

logger.info("Provider Matching API initialized successfully")
