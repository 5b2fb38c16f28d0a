"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from enedis_proxy.config import get_settings
from enedis_proxy.rate_limit import limiter
from enedis_proxy.routes import consent, customers, health, metering
from enedis_proxy.services.cache import clear_cache
from enedis_proxy.services.token import TokenUnavailableError, get_token_provider

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
_LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    _LOGGER.info("Starting Enedis metering proxy")

    clear_cache()
    _LOGGER.info("Cache cleared")

    if not get_token_provider().is_configured:
        _LOGGER.warning(
            "Enedis client credentials not set, requests must supply access_token"
        )

    yield

    # Shutdown
    _LOGGER.info("Shutting down Enedis metering proxy")


# Create FastAPI app
app = FastAPI(
    title="Enedis Metering Proxy",
    description="Monthly peak/off-peak aggregation of Enedis load curves",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(customers.router)
app.include_router(metering.router)
app.include_router(consent.router)


# Exception handlers
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TokenUnavailableError)
async def token_exception_handler(
    request: Request, exc: TokenUnavailableError
) -> JSONResponse:
    """Handle failures to obtain an Enedis token."""
    _LOGGER.error("Enedis token unavailable: %s", exc)
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report the first invalid field of a request body."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    _LOGGER.exception("Unexpected error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def run() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "enedis_proxy.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )


if __name__ == "__main__":
    run()
