"""Business logic tying the Enedis client to the aggregation pipeline."""

import logging
from datetime import date

from pydantic import BaseModel, Field

from enedis_proxy.config import Settings, get_settings
from enedis_proxy.metering.accumulator import (
    GlobalAccumulator,
    GlobalResult,
    MeterResult,
    apply_production_sign,
)
from enedis_proxy.metering.aggregator import aggregate_samples, monthly_total
from enedis_proxy.metering.calibration import Calibrator
from enedis_proxy.metering.fetcher import ChunkResult, FetchStats, WindowedFetcher
from enedis_proxy.metering.offpeak import parse_offpeak_hours
from enedis_proxy.metering.types import EnergyType, MonthlyStructure
from enedis_proxy.models import CustomerInfo
from enedis_proxy.services.cache import CustomerCache, get_customer_cache
from enedis_proxy.services.enedis_api import EnedisApiClient, get_enedis_api
from enedis_proxy.services.token import TokenProvider, get_token_provider

_LOGGER = logging.getLogger(__name__)


class MeteringReport(BaseModel):
    """Everything produced for one aggregated metering request."""

    start: date
    end: date
    result: GlobalResult
    meters: list[MeterResult] = Field(default_factory=list)
    customers: list[CustomerInfo] = Field(default_factory=list)


def default_period(today: date | None = None) -> tuple[date, date]:
    """One year ago through today."""
    today = today or date.today()
    try:
        start = today.replace(year=today.year - 1)
    except ValueError:
        # 29 February
        start = today.replace(year=today.year - 1, day=28)
    return start, today


class MeteringService:
    """Service for fetching and aggregating metering data."""

    def __init__(
        self,
        api: EnedisApiClient | None = None,
        token_provider: TokenProvider | None = None,
        settings: Settings | None = None,
        fetcher: WindowedFetcher | None = None,
        calibrator: Calibrator | None = None,
        cache: CustomerCache | None = None,
    ):
        """Initialize the service, defaulting to the global collaborators."""
        self._settings = settings or get_settings()
        self._api = api or get_enedis_api()
        self._tokens = token_provider or get_token_provider()
        self._cache = cache or get_customer_cache()
        self._fetcher = fetcher or WindowedFetcher(
            max_days=self._settings.chunk_days,
            delay_seconds=self._settings.chunk_delay_seconds,
            empty_threshold=self._settings.empty_chunk_threshold,
        )
        self._calibrator = calibrator or Calibrator()

    async def get_customer_info(
        self, usage_point_id: str, token: str, use_cache: bool = True
    ) -> CustomerInfo:
        """Get customer information for one usage point.

        Only lookups made with the app token are cached, so a caller's own
        token never serves data to another caller.
        """
        if use_cache:
            cached = self._cache.get(usage_point_id)
            if cached is not None:
                return cached

        info = await self._api.get_customer_info(usage_point_id, token)

        # Nothing came back, try again next time
        if use_cache and info != CustomerInfo(usage_point_id=usage_point_id):
            self._cache.set(info)
        return info

    async def get_customers(
        self, usage_point_ids: list[str], provided_token: str | None = None
    ) -> list[CustomerInfo]:
        """Get customer information for several usage points, in order."""
        token = await self._tokens.get_token(provided_token)
        use_cache = not (provided_token and provided_token.strip())

        customers = []
        for usage_point_id in usage_point_ids:
            customers.append(
                await self.get_customer_info(usage_point_id, token, use_cache)
            )
        return customers

    async def _process_stream(
        self,
        usage_point_id: str,
        energy_type: EnergyType,
        token: str,
        start: date,
        end: date,
        offpeak_hours: str,
        calibrate: bool,
    ) -> tuple[MonthlyStructure, FetchStats]:
        """Fetch, aggregate and optionally calibrate one energy stream."""

        async def fetch_chunk(
            meter_id: str, chunk_start: date, chunk_end: date
        ) -> ChunkResult:
            return await self._api.fetch_load_curve_chunk(
                meter_id, energy_type, token, chunk_start, chunk_end
            )

        async def fetch_official_total(
            meter_id: str, stream: EnergyType, span_start: date, span_end: date
        ) -> float:
            return await self._api.fetch_daily_total(
                meter_id, stream, token, span_start, span_end
            )

        outcome = await self._fetcher.fetch(usage_point_id, start, end, fetch_chunk)
        monthly = aggregate_samples(outcome.samples, parse_offpeak_hours(offpeak_hours))

        if calibrate:
            monthly = await self._calibrator.calibrate(
                monthly, usage_point_id, energy_type, start, end, fetch_official_total
            )

        return monthly, outcome.stats

    async def process_meter(
        self,
        usage_point_id: str,
        token: str,
        start: date,
        end: date,
        offpeak_hours: str,
        calibrate: bool = False,
    ) -> MeterResult:
        """Build the consumption and production breakdown of one meter.

        Production has no tariff split, so all of it lands in the peak field.
        """
        consumption, consumption_stats = await self._process_stream(
            usage_point_id,
            EnergyType.CONSUMPTION,
            token,
            start,
            end,
            offpeak_hours,
            calibrate,
        )
        production, production_stats = await self._process_stream(
            usage_point_id,
            EnergyType.PRODUCTION,
            token,
            start,
            end,
            "",
            calibrate,
        )

        return MeterResult(
            usage_point_id=usage_point_id,
            offpeak_hours=offpeak_hours,
            consumption=consumption,
            production=production,
            consumption_fetch=consumption_stats,
            production_fetch=production_stats,
        )

    async def get_all(
        self,
        usage_point_ids: list[str],
        provided_token: str | None = None,
        start: date | None = None,
        end: date | None = None,
        calibrate: bool | None = None,
        include_customers: bool = True,
    ) -> MeteringReport:
        """Aggregate consumption and production across usage points.

        Meters are processed one after the other. Only a missing token fails
        the request; upstream gaps show up in the per-meter fetch statistics.

        Raises:
            ValueError: ``start`` is after ``end``.
            TokenUnavailableError: No token could be obtained.
        """
        default_start, default_end = default_period()
        start = start or default_start
        end = end or default_end
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")
        if calibrate is None:
            calibrate = self._settings.calibration_enabled

        token = await self._tokens.get_token(provided_token)
        use_cache = not (provided_token and provided_token.strip())

        _LOGGER.info(
            "Aggregating %d usage points from %s to %s (calibration %s)",
            len(usage_point_ids),
            start,
            end,
            "on" if calibrate else "off",
        )

        accumulator = GlobalAccumulator()
        meters: list[MeterResult] = []
        customers: list[CustomerInfo] = []

        for usage_point_id in usage_point_ids:
            info = await self.get_customer_info(usage_point_id, token, use_cache)
            customers.append(info)

            offpeak_hours = (
                info.contract.offpeak_hours or self._settings.default_offpeak_hours
            )

            meter = await self.process_meter(
                usage_point_id, token, start, end, offpeak_hours, calibrate
            )
            accumulator.fold(meter)
            meters.append(meter)

            _LOGGER.info(
                "Usage point %s: consumption %.2f kWh (coverage %.0f%%), "
                "production %.2f kWh (coverage %.0f%%)",
                usage_point_id,
                monthly_total(meter.consumption),
                meter.consumption_fetch.coverage * 100,
                monthly_total(meter.production),
                meter.production_fetch.coverage * 100,
            )

        production_sign = self._settings.production_sign
        for meter in meters:
            meter.production = apply_production_sign(meter.production, production_sign)

        return MeteringReport(
            start=start,
            end=end,
            result=accumulator.finalize(production_sign),
            meters=meters,
            customers=customers if include_customers else [],
        )


# Global service instance
_metering_service: MeteringService | None = None


def get_metering_service() -> MeteringService:
    """Get the global metering service instance."""
    global _metering_service
    if _metering_service is None:
        _metering_service = MeteringService()
    return _metering_service
