"""Shared types for the metering aggregation pipeline."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

# Fixed January -> December order, every monthly structure follows it
MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# Load curve readings are average watts over a 30 minute step
INTERVAL_HOURS = 0.5

ENERGY_PRECISION = 2


class EnergyType(str, Enum):
    """Direction of the metered energy."""

    CONSUMPTION = "consumption"
    PRODUCTION = "production"


class RawSample(BaseModel):
    """One load curve reading: average power in watts at a timestamp.

    Readings with a missing or unparseable date or value keep ``None`` in
    that field and are dropped during aggregation.
    """

    model_config = ConfigDict(frozen=True)

    date: datetime | None = None
    value: float | None = None


class MonthBucket(BaseModel):
    """Energy totals for one calendar month, in kWh."""

    total_energy: float = 0.0
    peak_energy: float = 0.0
    off_peak_energy: float = 0.0
    correction_ratio: float = 1.0
    calibration_status: str | None = None
    calibration_note: str | None = None


MonthlyStructure = dict[str, MonthBucket]


def empty_monthly_structure() -> MonthlyStructure:
    """Build a zeroed structure holding all 12 months."""
    return {month: MonthBucket() for month in MONTHS}


def copy_monthly_structure(monthly: MonthlyStructure) -> MonthlyStructure:
    """Deep copy a monthly structure, filling in any missing month."""
    result = empty_monthly_structure()
    for month in MONTHS:
        if month in monthly:
            result[month] = monthly[month].model_copy()
    return result
