"""Monthly peak/off-peak aggregation of load curve samples."""

from typing import Iterable

from enedis_proxy.metering.offpeak import OffpeakPeriod, is_offpeak
from enedis_proxy.metering.types import (
    ENERGY_PRECISION,
    INTERVAL_HOURS,
    MONTHS,
    MonthlyStructure,
    RawSample,
    empty_monthly_structure,
)


def sample_energy_kwh(power_watts: float) -> float:
    """Convert an average power over one load curve step into kWh."""
    return power_watts * INTERVAL_HOURS / 1000


def round_monthly_structure(
    monthly: MonthlyStructure, digits: int = ENERGY_PRECISION
) -> MonthlyStructure:
    """Round the energy fields of every month in place."""
    for bucket in monthly.values():
        bucket.total_energy = round(bucket.total_energy, digits)
        bucket.peak_energy = round(bucket.peak_energy, digits)
        bucket.off_peak_energy = round(bucket.off_peak_energy, digits)
    return monthly


def aggregate_samples(
    samples: Iterable[RawSample], periods: list[OffpeakPeriod]
) -> MonthlyStructure:
    """Sum samples into per-month total, peak and off-peak energy.

    Samples without a date or value are skipped. Rounding happens once, after
    every sample has been added.
    """
    monthly = empty_monthly_structure()

    for sample in samples:
        if sample.date is None or sample.value is None:
            continue

        energy = sample_energy_kwh(sample.value)
        bucket = monthly[MONTHS[sample.date.month - 1]]
        bucket.total_energy += energy
        if is_offpeak(sample.date, periods):
            bucket.off_peak_energy += energy
        else:
            bucket.peak_energy += energy

    return round_monthly_structure(monthly)


def monthly_total(monthly: MonthlyStructure) -> float:
    """Total energy over all months."""
    return round(
        sum(bucket.total_energy for bucket in monthly.values()), ENERGY_PRECISION
    )
