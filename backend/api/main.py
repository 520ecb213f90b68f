"""
StitchOps API: FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from core.config import get_settings
from production.errors import (
    IllegalTransitionError,
    NotFoundError,
    ProductionError,
    RequiredFieldError,
    ValidationError,
)

settings = get_settings()
logger = structlog.get_logger()

ERROR_STATUS = {
    ValidationError: 422,
    RequiredFieldError: 422,
    IllegalTransitionError: 409,
    NotFoundError: 404,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("StitchOps API starting up", version=settings.app_version, env=settings.app_env)
    yield
    logger.info("StitchOps API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Garment production order lifecycle: cutting, subcontracting, revision, packing",
    lifespan=lifespan,
)


@app.exception_handler(ProductionError)
async def production_error_handler(request: Request, exc: ProductionError):
    """Refused operations: nothing was written, the body says why."""
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    logger.info(
        "request.refused",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import payables, production_orders, reports, shipments

app.include_router(production_orders.router)
app.include_router(shipments.router)
app.include_router(payables.router)
app.include_router(reports.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run / load balancers."""
    return {"status": "healthy", "version": settings.app_version}
