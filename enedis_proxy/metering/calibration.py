"""Calibration of load-curve-derived monthly totals against daily totals.

The 30 minute load curve gives the peak/off-peak split but its sum drifts from
the daily index-based totals Enedis bills on. When calibration is enabled, each
month's split is rescaled so that it adds up to the official daily total.
"""

import calendar
import logging
from datetime import date
from enum import Enum
from typing import Awaitable, Callable

from enedis_proxy.metering.types import (
    ENERGY_PRECISION,
    MONTHS,
    EnergyType,
    MonthBucket,
    MonthlyStructure,
    copy_monthly_structure,
)

_LOGGER = logging.getLogger(__name__)

OfficialTotalFetcher = Callable[[str, EnergyType, date, date], Awaitable[float]]


class CalibrationStatus(str, Enum):
    """What happened to a month during calibration."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


def month_spans(month: int, start: date, end: date) -> list[tuple[date, date]]:
    """Every span of a calendar month inside ``[start, end]``, clipped.

    A range longer than eleven months can contain the same month twice, e.g.
    2025-10-18..2026-10-18 holds two partial Octobers.
    """
    spans: list[tuple[date, date]] = []
    year = start.year
    while date(year, month, 1) <= end:
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        span_start = max(first, start)
        span_end = min(last, end)
        if span_start <= span_end:
            spans.append((span_start, span_end))
        year += 1
    return spans


def apply_ratio(bucket: MonthBucket, official_total: float) -> float:
    """Rescale a month to an official total and return the ratio used.

    The total is forced to the official value. Peak energy is scaled and
    rounded first, and off-peak is what remains, so the split always sums to
    the forced total.
    """
    ratio = official_total / bucket.total_energy
    total = round(official_total, ENERGY_PRECISION)
    peak = min(round(bucket.peak_energy * ratio, ENERGY_PRECISION), total)

    bucket.total_energy = total
    bucket.peak_energy = peak
    bucket.off_peak_energy = round(total - peak, ENERGY_PRECISION)
    bucket.correction_ratio = ratio
    return ratio


class Calibrator:
    """Rescale monthly structures against an independent total source."""

    async def calibrate(
        self,
        monthly: MonthlyStructure,
        meter_id: str,
        energy_type: EnergyType,
        start: date,
        end: date,
        fetch_official_total: OfficialTotalFetcher,
    ) -> MonthlyStructure:
        """Return a calibrated copy of ``monthly``.

        Months with no calculated energy are left alone. Months whose official
        total is missing or whose lookup fails stay uncorrected, with the
        reason kept on the bucket.
        """
        corrected = copy_monthly_structure(monthly)

        for month_number, month in enumerate(MONTHS, start=1):
            bucket = corrected[month]
            if bucket.total_energy <= 0:
                continue

            try:
                official_total = 0.0
                for span_start, span_end in month_spans(month_number, start, end):
                    official_total += await fetch_official_total(
                        meter_id, energy_type, span_start, span_end
                    )
            except Exception as e:
                _LOGGER.warning(
                    "Official %s total lookup failed for %s in %s: %s",
                    energy_type.value,
                    meter_id,
                    month,
                    e,
                )
                bucket.calibration_status = CalibrationStatus.FAILED.value
                bucket.calibration_note = f"Official total lookup failed: {e}"
                continue

            if official_total <= 0:
                _LOGGER.info(
                    "No official %s total for %s in %s, keeping load curve value",
                    energy_type.value,
                    meter_id,
                    month,
                )
                bucket.calibration_status = CalibrationStatus.SKIPPED.value
                bucket.calibration_note = "Official source returned no data"
                continue

            ratio = apply_ratio(bucket, official_total)
            bucket.calibration_status = CalibrationStatus.APPLIED.value
            _LOGGER.debug(
                "Calibrated %s %s for %s with ratio %.4f",
                energy_type.value,
                month,
                meter_id,
                ratio,
            )

        return corrected
