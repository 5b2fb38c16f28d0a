"""Off-peak (heures creuses) schedule parsing and classification.

Contracts describe their off-peak hours as free text, e.g. ``"HC (22H00-06H00)"``
or ``"22h-6h;12h30-14h"``. This module turns that text into minute-of-day
periods and tells whether a timestamp falls inside one of them.
"""

import logging
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict

_LOGGER = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_MARKER_RE = re.compile(r"\bhc\s*[:=]?")
_BRACKETS_RE = re.compile(r"[()\[\]{}]")
_SEPARATOR_RE = re.compile(r";|,|\band\b|\bet\b")
_TIME_RE = re.compile(r"^(\d{1,2})(?:h?(\d{2}))?h?$")
_DIGITS_RE = re.compile(r"\d+")


class OffpeakPeriod(BaseModel):
    """Half-open ``[start_minute, end_minute)`` interval on a 24h clock.

    ``end_minute < start_minute`` means the period wraps past midnight.
    """

    model_config = ConfigDict(frozen=True)

    start_minute: int
    end_minute: int

    @property
    def wraps(self) -> bool:
        """Whether the period crosses midnight."""
        return self.end_minute < self.start_minute

    def contains(self, minute: int) -> bool:
        """Check if a minute of day falls inside the period."""
        if self.wraps:
            return minute >= self.start_minute or minute < self.end_minute
        return self.start_minute <= minute < self.end_minute


def _parse_minute(text: str) -> int:
    """Parse one side of a range (``22h``, ``6h30``, ``2200``) into minutes.

    Text without a recognisable time degrades to its first number read as
    hours, or to midnight when there is no number at all. ``24h`` lands on
    minute 0, which keeps ``22h-24h`` a valid wrapping period.
    """
    compact = re.sub(r"\s+", "", text)
    match = _TIME_RE.match(compact)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
    else:
        digits = _DIGITS_RE.findall(compact)
        hours = int(digits[0][:2]) if digits else 0
        minutes = 0
        _LOGGER.debug("Imprecise off-peak time %r read as %02d:00", text, hours)

    if minutes > 59:
        minutes = 0
    return (hours * 60 + minutes) % MINUTES_PER_DAY


def parse_offpeak_hours(text: str | None) -> list[OffpeakPeriod]:
    """Parse a free-text off-peak schedule into periods.

    Tokens without a ``-`` range separator are ignored, so unusable text
    yields an empty schedule rather than an error.
    """
    if not text:
        return []

    normalized = text.lower().replace("\u2013", "-").replace("\u2014", "-")
    normalized = _MARKER_RE.sub(" ", normalized)
    normalized = _BRACKETS_RE.sub(" ", normalized)
    normalized = normalized.replace(":", "h")

    periods: list[OffpeakPeriod] = []
    for token in _SEPARATOR_RE.split(normalized):
        token = token.strip()
        if "-" not in token:
            continue

        parts = [part.strip() for part in token.split("-")]
        if len(parts) != 2 or not parts[0] or not parts[1]:
            _LOGGER.debug("Skipping malformed off-peak range %r", token)
            continue

        period = OffpeakPeriod(
            start_minute=_parse_minute(parts[0]),
            end_minute=_parse_minute(parts[1]),
        )
        if period not in periods:
            periods.append(period)

    return periods


def is_offpeak(timestamp: datetime, periods: list[OffpeakPeriod]) -> bool:
    """Check whether a timestamp falls in any off-peak period."""
    if not periods:
        return False

    minute = timestamp.hour * 60 + timestamp.minute
    return any(period.contains(minute) for period in periods)
