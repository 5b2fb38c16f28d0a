"""Folding per-meter results into request-wide totals."""

from typing import Iterator, Literal

from pydantic import BaseModel, Field

from enedis_proxy.metering.aggregator import round_monthly_structure
from enedis_proxy.metering.fetcher import FetchStats
from enedis_proxy.metering.types import (
    ENERGY_PRECISION,
    MONTHS,
    MonthlyStructure,
    copy_monthly_structure,
    empty_monthly_structure,
)

ProductionSign = Literal["positive", "negative"]


class OffpeakScheduleSet:
    """Schedules seen across meters, de-duplicated in insertion order."""

    def __init__(self) -> None:
        self._items: dict[str, None] = {}

    def add(self, schedule: str) -> None:
        self._items.setdefault(schedule, None)

    def __contains__(self, schedule: object) -> bool:
        return schedule in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


class MeterResult(BaseModel):
    """Monthly breakdown for one usage point."""

    usage_point_id: str
    offpeak_hours: str
    consumption: MonthlyStructure = Field(default_factory=empty_monthly_structure)
    production: MonthlyStructure = Field(default_factory=empty_monthly_structure)
    consumption_fetch: FetchStats = Field(default_factory=FetchStats)
    production_fetch: FetchStats = Field(default_factory=FetchStats)


class Totals(BaseModel):
    """Scalar totals over all months, in kWh."""

    consumption: float = 0.0
    production: float = 0.0
    peak: float = 0.0
    off_peak: float = 0.0


class MonthlyLists(BaseModel):
    """January to December values, in kWh."""

    consumption_peak: list[float] = Field(default_factory=list)
    consumption_off_peak: list[float] = Field(default_factory=list)
    production: list[float] = Field(default_factory=list)


class GlobalResult(BaseModel):
    """Sum of every meter's monthly structures, with derived views."""

    consumption: MonthlyStructure = Field(default_factory=empty_monthly_structure)
    production: MonthlyStructure = Field(default_factory=empty_monthly_structure)
    lists_kwh: MonthlyLists = Field(default_factory=MonthlyLists)
    totals_kwh: Totals = Field(default_factory=Totals)
    offpeak_hours_detected: list[str] = Field(default_factory=list)


def fold_months(target: MonthlyStructure, source: MonthlyStructure) -> None:
    """Add the energy fields of ``source`` into ``target`` month by month."""
    for month in MONTHS:
        if month not in source:
            continue
        target[month].total_energy += source[month].total_energy
        target[month].peak_energy += source[month].peak_energy
        target[month].off_peak_energy += source[month].off_peak_energy


def apply_production_sign(
    monthly: MonthlyStructure, production_sign: ProductionSign
) -> MonthlyStructure:
    """Copy of a production structure in the configured sign convention."""
    sign = -1 if production_sign == "negative" else 1
    result = copy_monthly_structure(monthly)
    for bucket in result.values():
        bucket.total_energy *= sign
        bucket.peak_energy *= sign
        bucket.off_peak_energy *= sign
    return result


class GlobalAccumulator:
    """Running consumption and production totals for one request."""

    def __init__(self) -> None:
        self.consumption = empty_monthly_structure()
        self.production = empty_monthly_structure()
        self.offpeak_schedules = OffpeakScheduleSet()
        self.meters = 0

    def fold(self, meter: MeterResult) -> None:
        """Merge one meter's monthly structures into the running totals."""
        fold_months(self.consumption, meter.consumption)
        fold_months(self.production, meter.production)
        self.offpeak_schedules.add(meter.offpeak_hours)
        self.meters += 1

    def finalize(self, production_sign: ProductionSign = "positive") -> GlobalResult:
        """Project the totals into ordered monthly lists and scalar sums.

        Each list entry is rounded, then totals are summed from the rounded
        lists and rounded once more. With ``production_sign="negative"``,
        production values are reported as negative numbers.
        """
        sign = -1 if production_sign == "negative" else 1

        peak_list = [
            round(self.consumption[month].peak_energy, ENERGY_PRECISION)
            for month in MONTHS
        ]
        off_peak_list = [
            round(self.consumption[month].off_peak_energy, ENERGY_PRECISION)
            for month in MONTHS
        ]
        production_list = [
            round(sign * self.production[month].total_energy, ENERGY_PRECISION)
            for month in MONTHS
        ]

        total_peak = round(sum(peak_list), ENERGY_PRECISION)
        total_off_peak = round(sum(off_peak_list), ENERGY_PRECISION)

        return GlobalResult(
            consumption=round_monthly_structure(
                copy_monthly_structure(self.consumption)
            ),
            production=round_monthly_structure(
                apply_production_sign(self.production, production_sign)
            ),
            lists_kwh=MonthlyLists(
                consumption_peak=peak_list,
                consumption_off_peak=off_peak_list,
                production=production_list,
            ),
            totals_kwh=Totals(
                consumption=round(total_peak + total_off_peak, ENERGY_PRECISION),
                production=round(sum(production_list), ENERGY_PRECISION),
                peak=total_peak,
                off_peak=total_off_peak,
            ),
            offpeak_hours_detected=list(self.offpeak_schedules),
        )
