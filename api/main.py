"""
Quant Desk FastAPI Backend

Main application entry point with CORS, database manager lifecycle,
domain exception mapping and API route registration.

Author: Quant Desk Development Team
Version: 1.0.0
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from loguru import logger
from prometheus_client import make_asgi_app

from api.middleware import PrometheusMiddleware
from api.routes import auth_routes, portfolio_routes, strategy_routes, trade_routes
from quant_desk.auth_manager import AuthManager
from quant_desk.config_loader import ConfigLoader
from quant_desk.exceptions import QuantDeskError


API_VERSION = "1.0.0"

config = ConfigLoader()


def configure_logging(level: str):
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_db_manager(config: ConfigLoader):
    """
    Build the database manager for the configured backend.

    Args:
        config: ConfigLoader instance (database.backend: sqlite or postgres)
    """
    backend = config.get('database.backend', 'sqlite')

    if backend == 'postgres':
        from quant_desk.db_manager_postgres import PostgresDatabaseManager
        return PostgresDatabaseManager.from_config(config)

    from quant_desk.db_manager_sqlite import SQLiteDatabaseManager
    return SQLiteDatabaseManager(config.get('database.path', 'data/quant_desk.db'))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: Create the database manager
    - Shutdown: Release database connections
    """
    configure_logging(config.get('logging.level', 'INFO'))
    logger.info("Starting Quant Desk API...")

    AuthManager.SESSION_DAYS = config.get('auth.session_days', AuthManager.SESSION_DAYS)
    AuthManager.BCRYPT_ROUNDS = config.get('auth.bcrypt_rounds', AuthManager.BCRYPT_ROUNDS)

    try:
        app.state.db_manager = create_db_manager(config)
        logger.info(f"Database manager initialized ({config.get('database.backend')})")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    logger.info("Shutting down Quant Desk API...")
    app.state.db_manager.close()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title="Quant Desk API",
    description="Multi-role quantitative research desk API",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get('api.cors_origins', ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Prometheus Metrics Middleware
app.add_middleware(
    PrometheusMiddleware,
    exclude_paths={'/metrics', '/metrics/'}
)


@app.exception_handler(QuantDeskError)
async def domain_exception_handler(request: Request, exc: QuantDeskError):
    """Map domain exceptions to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"Domain error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with user-friendly messages."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": jsonable_encoder(exc.errors())
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "message": str(exc) if config.get('api.debug') else "An error occurred"
        }
    )


@app.get("/health", tags=["Health"])
def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        Status and database connectivity
    """
    db_status = "healthy"

    try:
        request.app.state.db_manager.ping()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
        "version": API_VERSION
    }


# API v1 routes
app.include_router(auth_routes.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(strategy_routes.router, prefix="/api/v1/strategies", tags=["Strategies"])
app.include_router(trade_routes.product_router, prefix="/api/v1/products", tags=["Products"])
app.include_router(trade_routes.trade_router, prefix="/api/v1/trades", tags=["Trades"])
app.include_router(portfolio_routes.portfolio_router, prefix="/api/v1/portfolio", tags=["Portfolio"])
app.include_router(portfolio_routes.dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])


# Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/", tags=["Root"])
def root():
    """API metadata"""
    return {
        "name": "Quant Desk API",
        "version": API_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == '__main__':
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
