"""
Liquidity Engine - FastAPI Application

Main entry point for the API server.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from liquidity_engine import __version__
from liquidity_engine.core.config import get_settings
from liquidity_engine.core.exceptions import CandleValidationError, InvalidConfigurationError
from liquidity_engine.api.v1 import health, liquidity

# Get settings
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Create FastAPI app
app = FastAPI(
    title=settings.project_name,
    description="Liquidity pool, sweep and market structure analysis API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CandleValidationError)
async def candle_validation_exception_handler(request: Request, exc: CandleValidationError):
    """Reject malformed candle batches with every violation listed."""
    return JSONResponse(
        status_code=422,
        content={
            "error_code": "INVALID_CANDLES",
            "message": str(exc),
            "errors": exc.errors,
            "success": False
        },
    )


@app.exception_handler(InvalidConfigurationError)
async def invalid_configuration_exception_handler(request: Request, exc: InvalidConfigurationError):
    """Configuration errors surface with the full list of violations."""
    return JSONResponse(
        status_code=400,
        content={
            "error_code": "INVALID_CONFIGURATION",
            "message": str(exc),
            "errors": exc.errors,
            "success": False
        },
    )


# Include routers
app.include_router(
    liquidity.router,
    prefix=settings.api_v1_prefix
)
app.include_router(
    health.router,
    prefix=settings.api_v1_prefix
)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": __version__,
        "docs": "/docs",
        "health": f"{settings.api_v1_prefix}/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("liquidity_engine.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
