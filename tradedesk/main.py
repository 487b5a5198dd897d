from contextlib import asynccontextmanager
import logging
import sys
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from tradedesk.config import settings
from tradedesk.api.v1.router import api_router
from tradedesk.core.exceptions import TradeDeskError
from tradedesk.database import init_db, async_session_factory


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Console logging at LOG_LEVEL."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Configure logging
    - Create missing tables (production schemas come from Alembic)
    """
    # Startup
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Backorders", "description": "Backorder registry and fulfillment from inventory lots"},
    {"name": "Inventory", "description": "Lots, on-hand stock, reorder alerts and the stock transaction log"},
    {"name": "Sales", "description": "Sales with stock designation and backorder creation"},
    {"name": "Waybills", "description": "Dispatch and cancellation of delivery notes"},
    {"name": "Purchasing", "description": "Purchases and purchase orders"},
    {"name": "Shipments", "description": "Parcel costing and shipments"},
    {"name": "Finance", "description": "Receipts and payments received"},
    {"name": "Document Numbering", "description": "Monthly document number sequences"},
]

API_DESCRIPTION = """
## TradeDesk API

Stock, sales and backorder fulfillment for a trading business.

### Error Codes

| Code | Description |
|------|-------------|
| 401 | X-User-Id header missing on a mutation |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Already fulfilled, stock unavailable, duplicate document number |
| 422 | Unprocessable Entity - Validation or business rule violation |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def _error_response(request: Request, status_code: int, message: str, exc: Exception) -> JSONResponse:
    error_detail = {
        "error": message,
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    if settings.DEBUG and status_code >= 500:
        error_detail["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=status_code, content=error_detail)


@app.exception_handler(TradeDeskError)
async def tradedesk_exception_handler(request: Request, exc: TradeDeskError):
    """Domain errors carry their own HTTP status."""
    return _error_response(request, exc.status_code, exc.message, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(request, 500, str(exc), exc)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
