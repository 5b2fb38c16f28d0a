"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Enedis Data Connect credentials
    # Without them, only caller-supplied access tokens can be used
    enedis_client_id: str | None = None
    enedis_client_secret: str | None = None
    enedis_base_url: str = "https://gw.ext.prod.api.enedis.fr"
    enedis_token_scope: str = "metering_data metering_data_contract_details"

    # Token cache settings
    # The app token is dropped this many seconds before Enedis expires it
    token_refresh_margin_seconds: int = 300

    # Customer information cache settings
    cache_ttl_minutes: int = 15

    # Outbound request timeouts (seconds)
    token_timeout_seconds: float = 10.0
    load_curve_timeout_seconds: float = 15.0
    daily_timeout_seconds: float = 15.0
    customer_timeout_seconds: float = 8.0

    # Load curve pagination
    # Enedis refuses load curve requests spanning more than 7 days
    chunk_days: int = 7
    chunk_delay_seconds: float = 0.15
    # Consecutive empty or failed chunks tolerated before giving up on a meter
    empty_chunk_threshold: int = 2

    # Aggregation settings
    default_offpeak_hours: str = "HC (22H00-06H00)"
    calibration_enabled: bool = False
    production_sign: Literal["positive", "negative"] = "positive"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]
    forwarded_allow_ips: str = "*"

    # Rate limiting (slowapi limit strings)
    rate_limit_enabled: bool = True
    rate_limit_per_second: str = "10/second"
    rate_limit_per_hour: str = "10000/hour"

    # Where the Enedis consent callback sends the user back to
    consent_redirect_url: str = "https://panelyn.com/simulateur"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Using lru_cache ensures we only read the .env file once.
    """
    return Settings()
