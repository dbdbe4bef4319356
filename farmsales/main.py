# farmsales/main.py
"""
Farm Sales Order Management - Main API Entry Point
"""
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import uvicorn
from contextlib import asynccontextmanager

from .config.settings import get_settings
from .config.logging import setup_logging, get_logger
from .config.database import init_database, cleanup_database, check_database_health
from .core.middleware import LoggingMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware
from .core.exceptions import custom_exception_handler
from .api.v1.endpoints import orders, returns, on_demand, products, customers

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging(settings.LOG_DIR)
    logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}...")
    init_database()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    cleanup_database()


# Create FastAPI application
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Farm sales orders: security check, delivery billing, payments and returns",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

# Add exception handlers
app.add_exception_handler(HTTPException, custom_exception_handler)

# Include routers
app.include_router(
    orders.router,
    prefix="/api/v1/orders",
    tags=["Orders"]
)
app.include_router(
    returns.router,
    prefix="/api/v1/order-items",
    tags=["Returns"]
)
app.include_router(
    on_demand.router,
    prefix="/api/v1/on-demand",
    tags=["On-demand Sales"]
)
app.include_router(
    products.router,
    prefix="/api/v1/products",
    tags=["Products"]
)
app.include_router(
    customers.router,
    prefix="/api/v1/customers",
    tags=["Customers"]
)


@app.get("/health")
def health_check():
    """Health check endpoint"""
    database_ok = check_database_health()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "up" if database_ok else "down",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION
    }


if __name__ == "__main__":
    uvicorn.run(
        "farmsales.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        workers=1
    )
