"""Windowed retrieval of load curves from a range-limited API."""

import asyncio
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Awaitable, Callable

from pydantic import BaseModel, Field, computed_field

from enedis_proxy.metering.types import RawSample

_LOGGER = logging.getLogger(__name__)


class ChunkStatus(str, Enum):
    """Outcome of fetching one window."""

    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    TRANSIENT = "transient"
    # No request was made, the window holds no day Enedis can serve yet
    SKIPPED = "skipped"


class ChunkResult(BaseModel):
    """Result of one window request, returned instead of raising."""

    status: ChunkStatus
    samples: list[RawSample] = Field(default_factory=list)
    detail: str | None = None

    @classmethod
    def ok(cls, samples: list[RawSample]) -> "ChunkResult":
        return cls(status=ChunkStatus.OK, samples=samples)

    @classmethod
    def unauthorized(cls, detail: str | None = None) -> "ChunkResult":
        return cls(status=ChunkStatus.UNAUTHORIZED, detail=detail)

    @classmethod
    def transient(cls, detail: str | None = None) -> "ChunkResult":
        return cls(status=ChunkStatus.TRANSIENT, detail=detail)

    @classmethod
    def skipped(cls, detail: str | None = None) -> "ChunkResult":
        return cls(status=ChunkStatus.SKIPPED, detail=detail)


class StopReason(str, Enum):
    """Why a fetch ended before covering the whole range."""

    UNAUTHORIZED = "unauthorized"
    EMPTY_THRESHOLD = "empty_threshold"


class FetchStats(BaseModel):
    """How much of the requested range a fetch actually covered."""

    chunks_planned: int = 0
    chunks_attempted: int = 0
    chunks_with_data: int = 0
    chunks_empty: int = 0
    chunks_failed: int = 0
    chunks_skipped: int = 0
    samples: int = 0
    stopped_reason: StopReason | None = None

    @property
    def requestable_chunks(self) -> int:
        """Planned chunks minus those skipped without a request."""
        return self.chunks_planned - self.chunks_skipped

    @computed_field
    @property
    def complete(self) -> bool:
        """Whether every requestable chunk returned data."""
        return self.chunks_with_data == self.requestable_chunks

    @computed_field
    @property
    def coverage(self) -> float:
        """Share of requestable chunks that returned data."""
        if self.requestable_chunks <= 0:
            return 1.0
        return self.chunks_with_data / self.requestable_chunks


class FetchOutcome(BaseModel):
    """Samples gathered across all windows, with their fetch statistics."""

    samples: list[RawSample] = Field(default_factory=list)
    stats: FetchStats = Field(default_factory=FetchStats)


ChunkFetcher = Callable[[str, date, date], Awaitable[ChunkResult]]


def split_date_range(
    start: date, end: date, max_days: int = 7
) -> list[tuple[date, date]]:
    """Split an inclusive date range into windows of at most ``max_days``.

    Each window is inclusive on both ends and the next one starts the day
    after. The last window is clipped to ``end``.
    """
    if max_days < 1:
        raise ValueError(f"max_days must be positive, got {max_days}")

    windows: list[tuple[date, date]] = []
    current = start
    while current <= end:
        window_end = min(current + timedelta(days=max_days - 1), end)
        windows.append((current, window_end))
        current = window_end + timedelta(days=1)
    return windows


class WindowedFetcher:
    """Fetch a long date range window by window, tolerating gaps."""

    def __init__(
        self,
        max_days: int = 7,
        delay_seconds: float = 0.15,
        empty_threshold: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the fetcher.

        Args:
            max_days: Longest window the upstream API accepts.
            delay_seconds: Pause between two window requests.
            empty_threshold: Consecutive empty or failed windows tolerated;
                one more stops the fetch.
            sleep: Coroutine used for the pause, replaceable in tests.
        """
        self.max_days = max_days
        self.delay_seconds = delay_seconds
        self.empty_threshold = empty_threshold
        self._sleep = sleep

    async def fetch(
        self,
        meter_id: str,
        start: date,
        end: date,
        fetch_chunk: ChunkFetcher,
    ) -> FetchOutcome:
        """Fetch every window of ``[start, end]`` for one meter.

        Windows are requested one after the other. An authorization failure
        ends the fetch at once; empty or failed windows are counted and end it
        once the consecutive count passes the threshold. Windows skipped without
        a request are counted apart and never affect coverage. The samples
        gathered so far are always returned.
        """
        windows = split_date_range(start, end, self.max_days)
        outcome = FetchOutcome(stats=FetchStats(chunks_planned=len(windows)))
        stats = outcome.stats
        consecutive_misses = 0

        for index, (window_start, window_end) in enumerate(windows):
            if index > 0 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

            result = await fetch_chunk(meter_id, window_start, window_end)

            if result.status is ChunkStatus.SKIPPED:
                stats.chunks_skipped += 1
                _LOGGER.debug(
                    "Skipped %s..%s for %s: %s",
                    window_start,
                    window_end,
                    meter_id,
                    result.detail,
                )
                continue

            stats.chunks_attempted += 1

            if result.status is ChunkStatus.UNAUTHORIZED:
                stats.chunks_failed += 1
                stats.stopped_reason = StopReason.UNAUTHORIZED
                _LOGGER.warning(
                    "Unauthorized for %s on %s..%s, stopping fetch: %s",
                    meter_id,
                    window_start,
                    window_end,
                    result.detail,
                )
                break

            if result.status is ChunkStatus.OK and result.samples:
                outcome.samples.extend(result.samples)
                stats.chunks_with_data += 1
                consecutive_misses = 0
                _LOGGER.debug(
                    "Fetched %d samples for %s on %s..%s",
                    len(result.samples),
                    meter_id,
                    window_start,
                    window_end,
                )
                continue

            if result.status is ChunkStatus.TRANSIENT:
                stats.chunks_failed += 1
                _LOGGER.warning(
                    "Chunk %s..%s failed for %s: %s",
                    window_start,
                    window_end,
                    meter_id,
                    result.detail,
                )
            else:
                stats.chunks_empty += 1

            consecutive_misses += 1
            if consecutive_misses > self.empty_threshold:
                stats.stopped_reason = StopReason.EMPTY_THRESHOLD
                _LOGGER.info(
                    "No data for %s in %d consecutive chunks, stopping at %s",
                    meter_id,
                    consecutive_misses,
                    window_end,
                )
                break

        stats.samples = len(outcome.samples)
        return outcome
