"""Health check endpoint."""

from fastapi import APIRouter

from enedis_proxy.models import HealthResponse
from enedis_proxy.services.token import get_token_provider

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check if the proxy is up and whether it can mint its own tokens."""
    return HealthResponse(credentials_configured=get_token_provider().is_configured)
