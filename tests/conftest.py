"""Pytest fixtures and configuration for tests."""

from datetime import date, datetime, time, timedelta
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from enedis_proxy.config import Settings
from enedis_proxy.main import app
from enedis_proxy.metering.fetcher import ChunkResult
from enedis_proxy.metering.types import EnergyType, RawSample
from enedis_proxy.models import ContractDetails, CustomerInfo
from enedis_proxy.rate_limit import limiter
from enedis_proxy.services.cache import CustomerCache
from enedis_proxy.services.metering_service import MeteringService

METER_A = "12345678901234"
METER_B = "98765432109876"


class FakeEnedisApi:
    """In-memory stand-in for the Enedis client."""

    def __init__(self):
        self.readings: dict[tuple[str, EnergyType], list[RawSample]] = {}
        self.customers: dict[str, CustomerInfo] = {}
        self.daily_totals: dict[tuple[str, EnergyType], float | Exception] = {}
        self.unauthorized: set[str] = set()
        self.chunk_calls: list[tuple[str, EnergyType, date, date]] = []
        self.daily_calls: list[tuple[str, EnergyType, date, date]] = []
        self.customer_calls: list[str] = []

    async def fetch_load_curve_chunk(
        self, meter_id: str, energy_type: EnergyType, token: str, start: date, end: date
    ) -> ChunkResult:
        self.chunk_calls.append((meter_id, energy_type, start, end))
        if meter_id in self.unauthorized:
            return ChunkResult.unauthorized("HTTP 403")
        samples = [
            sample
            for sample in self.readings.get((meter_id, energy_type), [])
            if start <= sample.date.date() <= end
        ]
        return ChunkResult.ok(samples)

    async def fetch_daily_total(
        self, meter_id: str, energy_type: EnergyType, token: str, start: date, end: date
    ) -> float:
        self.daily_calls.append((meter_id, energy_type, start, end))
        value = self.daily_totals.get((meter_id, energy_type), 0.0)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_customer_info(self, meter_id: str, token: str) -> CustomerInfo:
        self.customer_calls.append(meter_id)
        return self.customers.get(meter_id, CustomerInfo(usage_point_id=meter_id))


@pytest.fixture
def test_settings() -> Settings:
    """Settings without pacing delay or rate limiting."""
    return Settings(
        _env_file=None,
        chunk_delay_seconds=0,
        rate_limit_enabled=False,
        default_offpeak_hours="HC (22H00-06H00)",
    )


@pytest.fixture
def make_samples() -> Callable[..., list[RawSample]]:
    """Factory for one reading per day at a fixed time of day."""

    def _make(first_day: date, last_day: date, at: time, watts: float) -> list[RawSample]:
        samples = []
        day = first_day
        while day <= last_day:
            samples.append(RawSample(date=datetime.combine(day, at), value=watts))
            day += timedelta(days=1)
        return samples

    return _make


@pytest.fixture
def fake_api() -> FakeEnedisApi:
    """Fake Enedis client with no data."""
    return FakeEnedisApi()


@pytest.fixture
def mock_token_provider():
    """Token provider always handing out the same app token."""
    provider = MagicMock()
    provider.get_token = AsyncMock(return_value="app-token")
    provider.is_configured = True
    return provider


@pytest.fixture
def metering_service(fake_api, mock_token_provider, test_settings) -> MeteringService:
    """Metering service wired to fakes."""
    return MeteringService(
        api=fake_api,
        token_provider=mock_token_provider,
        settings=test_settings,
        cache=CustomerCache(ttl_minutes=15),
    )


@pytest.fixture
def contract_with_schedule() -> Callable[[str, str], CustomerInfo]:
    """Factory for customer info carrying an off-peak schedule."""

    def _make(meter_id: str, offpeak_hours: str) -> CustomerInfo:
        return CustomerInfo(
            usage_point_id=meter_id,
            contract=ContractDetails(offpeak_hours=offpeak_hours, subscribed_power="6 kVA"),
        )

    return _make


@pytest_asyncio.fixture
async def async_client(metering_service) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing endpoints."""
    previous = limiter.enabled
    limiter.enabled = False

    with patch(
        "enedis_proxy.routes.metering.get_metering_service",
        return_value=metering_service,
    ), patch(
        "enedis_proxy.routes.customers.get_metering_service",
        return_value=metering_service,
    ):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    limiter.enabled = previous
