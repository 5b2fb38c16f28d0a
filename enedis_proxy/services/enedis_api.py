"""Client for the Enedis Data Connect API."""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any

import aiohttp

from enedis_proxy.config import get_settings
from enedis_proxy.metering.fetcher import ChunkResult
from enedis_proxy.metering.types import EnergyType, RawSample
from enedis_proxy.models import (
    Address,
    Contact,
    ContractDetails,
    CustomerInfo,
    Identity,
)

_LOGGER = logging.getLogger(__name__)

LOAD_CURVE_PATHS = {
    EnergyType.CONSUMPTION: "/metering_data_clc/v5/consumption_load_curve",
    EnergyType.PRODUCTION: "/metering_data_plc/v5/production_load_curve",
}
DAILY_PATHS = {
    EnergyType.CONSUMPTION: "/metering_data_dc/v5/daily_consumption",
    EnergyType.PRODUCTION: "/metering_data_dp/v5/daily_production",
}
ADDRESS_PATH = "/customers_upa/v5/usage_points/addresses"
CONTRACT_PATH = "/customers_upc/v5/usage_points/contracts"
IDENTITY_PATH = "/customers_i/v5/identity"
CONTACT_PATH = "/customers_cd/v5/contact_data"

# Enedis answers 404 when a period simply holds no data
NO_DATA_STATUS = 404
AUTH_FAILURE_STATUSES = (401, 403)


class EnedisApiError(Exception):
    """Raised when an Enedis lookup cannot be completed."""


def _parse_reading(entry: Any) -> RawSample:
    """Convert one ``interval_reading`` entry, keeping ``None`` for bad fields."""
    if not isinstance(entry, dict):
        return RawSample()

    reading_date: datetime | None = None
    raw_date = entry.get("date")
    if isinstance(raw_date, str) and raw_date:
        try:
            reading_date = datetime.fromisoformat(raw_date)
        except ValueError:
            _LOGGER.debug("Unparseable reading date: %s", raw_date)

    value: float | None = None
    raw_value = entry.get("value")
    if raw_value is not None and raw_value != "":
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            _LOGGER.debug("Unparseable reading value: %s", raw_value)

    return RawSample(date=reading_date, value=value)


def parse_interval_readings(data: Any) -> list[RawSample]:
    """Extract readings from a ``meter_reading`` payload."""
    if not isinstance(data, dict):
        return []
    meter_reading = data.get("meter_reading") or {}
    readings = meter_reading.get("interval_reading") or []
    if not isinstance(readings, list):
        return []
    return [_parse_reading(entry) for entry in readings]


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _first_usage_point(data: Any) -> dict[str, Any]:
    usage_points = _as_dict(_as_dict(data).get("customer")).get("usage_points")
    if not isinstance(usage_points, list) or not usage_points:
        return {}
    return _as_dict(usage_points[0])


def parse_address(data: Any) -> Address:
    """Reshape an addresses payload."""
    usage_point = _as_dict(_first_usage_point(data).get("usage_point"))
    raw = _as_dict(
        usage_point.get("address") or usage_point.get("usage_point_addresses")
    )
    return Address(
        street=_text(raw.get("street")),
        postal_code=_text(raw.get("postal_code")),
        city=_text(raw.get("city")),
        country=_text(raw.get("country")),
    )


def parse_contract(data: Any) -> ContractDetails:
    """Reshape a contracts payload."""
    raw = _first_usage_point(data).get("contracts")
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    raw = _as_dict(raw)
    return ContractDetails(
        offpeak_hours=_text(raw.get("offpeak_hours")),
        subscribed_power=_text(raw.get("subscribed_power")),
    )


def parse_identity(data: Any) -> Identity:
    """Reshape an identity payload."""
    data = _as_dict(data)
    identity = _as_dict(
        data.get("identity") or _as_dict(data.get("customer")).get("identity")
    )
    person = _as_dict(identity.get("natural_person"))
    return Identity(
        firstname=_text(person.get("firstname")),
        lastname=_text(person.get("lastname")),
    )


def parse_contact(data: Any) -> Contact:
    """Reshape a contact data payload."""
    data = _as_dict(data)
    raw = _as_dict(
        data.get("contact_data") or _as_dict(data.get("customer")).get("contact_data")
    )
    return Contact(
        email=_text(raw.get("email")),
        phone=_text(raw.get("phone")),
    )


class EnedisApiClient:
    """Thin async client over the Enedis endpoints used by the proxy.

    Dates passed in are inclusive on both ends. Enedis treats ``end`` as
    exclusive and rejects end dates after today, so the client sends the day
    after ``end``, capped at today.
    """

    def __init__(
        self,
        base_url: str | None = None,
        load_curve_timeout: float | None = None,
        daily_timeout: float | None = None,
        customer_timeout: float | None = None,
    ):
        """Initialize client, defaulting to config values."""
        settings = get_settings()
        self.base_url = (base_url or settings.enedis_base_url).rstrip("/")
        self._load_curve_timeout = load_curve_timeout or settings.load_curve_timeout_seconds
        self._daily_timeout = daily_timeout or settings.daily_timeout_seconds
        self._customer_timeout = customer_timeout or settings.customer_timeout_seconds

    async def _get_json(
        self,
        path: str,
        token: str,
        params: dict[str, str],
        timeout: float,
    ) -> tuple[int, Any]:
        """Issue a GET and return the status with the decoded body.

        The body is ``None`` for non-200 answers.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        async with aiohttp.ClientSession() as session:
            async with session.get(
                f"{self.base_url}{path}",
                headers=headers,
                params=params,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status != 200:
                    return response.status, None
                return response.status, await response.json(content_type=None)

    @staticmethod
    def _exclusive_end(end: date) -> date:
        return min(end + timedelta(days=1), date.today())

    async def fetch_load_curve_chunk(
        self,
        meter_id: str,
        energy_type: EnergyType,
        token: str,
        start: date,
        end: date,
    ) -> ChunkResult:
        """Fetch the 30 minute load curve for one window of at most 7 days."""
        exclusive_end = self._exclusive_end(end)
        if start >= exclusive_end:
            return ChunkResult.skipped(f"Window starts on or after {exclusive_end}")

        params = {
            "usage_point_id": meter_id,
            "start": start.isoformat(),
            "end": exclusive_end.isoformat(),
        }

        try:
            status, data = await self._get_json(
                LOAD_CURVE_PATHS[energy_type], token, params, self._load_curve_timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return ChunkResult.transient(f"{type(e).__name__}: {e}")
        except ValueError as e:
            # Body was not valid JSON
            return ChunkResult.transient(f"Invalid response body: {e}")

        if status in AUTH_FAILURE_STATUSES:
            return ChunkResult.unauthorized(f"HTTP {status}")
        if status == NO_DATA_STATUS:
            return ChunkResult.ok([])
        if status != 200:
            return ChunkResult.transient(f"HTTP {status}")

        return ChunkResult.ok(parse_interval_readings(data))

    async def fetch_daily_total(
        self,
        meter_id: str,
        energy_type: EnergyType,
        token: str,
        start: date,
        end: date,
    ) -> float:
        """Sum the official daily energy over ``[start, end]``, in kWh.

        Raises:
            EnedisApiError: The lookup failed.
        """
        exclusive_end = self._exclusive_end(end)
        if start >= exclusive_end:
            return 0.0

        params = {
            "usage_point_id": meter_id,
            "start": start.isoformat(),
            "end": exclusive_end.isoformat(),
        }

        try:
            status, data = await self._get_json(
                DAILY_PATHS[energy_type], token, params, self._daily_timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise EnedisApiError(f"Daily {energy_type.value} request failed: {e}") from e

        if status == NO_DATA_STATUS:
            return 0.0
        if status != 200:
            raise EnedisApiError(f"Daily {energy_type.value} returned HTTP {status}")

        # Daily values are energy in Wh
        total_wh = sum(
            sample.value
            for sample in parse_interval_readings(data)
            if sample.value is not None
        )
        return total_wh / 1000

    async def _get_customer_json(self, path: str, meter_id: str, token: str) -> Any:
        try:
            status, data = await self._get_json(
                path, token, {"usage_point_id": meter_id}, self._customer_timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise EnedisApiError(f"{path} request failed: {e}") from e

        if status != 200:
            raise EnedisApiError(f"{path} returned HTTP {status}")
        return data

    async def get_customer_info(self, meter_id: str, token: str) -> CustomerInfo:
        """Look up address, contract, identity and contact for a usage point.

        The four lookups run concurrently; a failed lookup leaves its part at
        the default values without affecting the others.
        """
        address_res, contract_res, identity_res, contact_res = await asyncio.gather(
            self._get_customer_json(ADDRESS_PATH, meter_id, token),
            self._get_customer_json(CONTRACT_PATH, meter_id, token),
            self._get_customer_json(IDENTITY_PATH, meter_id, token),
            self._get_customer_json(CONTACT_PATH, meter_id, token),
            return_exceptions=True,
        )

        info = CustomerInfo(usage_point_id=meter_id)
        failures = []

        if isinstance(address_res, BaseException):
            failures.append(address_res)
        else:
            info.address = parse_address(address_res)

        if isinstance(contract_res, BaseException):
            failures.append(contract_res)
        else:
            info.contract = parse_contract(contract_res)

        if isinstance(identity_res, BaseException):
            failures.append(identity_res)
        else:
            info.identity = parse_identity(identity_res)

        if isinstance(contact_res, BaseException):
            failures.append(contact_res)
        else:
            info.contact = parse_contact(contact_res)

        if failures:
            _LOGGER.warning(
                "Partial customer info for %s: %s",
                meter_id,
                "; ".join(str(f) for f in failures),
            )

        return info


# Global API client instance
_api_client: EnedisApiClient | None = None


def get_enedis_api() -> EnedisApiClient:
    """Get the global API client instance."""
    global _api_client
    if _api_client is None:
        _api_client = EnedisApiClient()
    return _api_client
