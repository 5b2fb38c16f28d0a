"""Request rate limiting for the data endpoints."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from enedis_proxy.config import get_settings


def per_second_limit() -> str:
    """Per-client burst limit."""
    return get_settings().rate_limit_per_second


def per_hour_limit() -> str:
    """Per-client hourly limit."""
    return get_settings().rate_limit_per_hour


limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)
