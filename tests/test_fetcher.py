"""Tests for windowed load curve retrieval."""

from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from enedis_proxy.metering.fetcher import (
    ChunkResult,
    StopReason,
    WindowedFetcher,
    split_date_range,
)
from enedis_proxy.metering.types import RawSample

METER = "12345678901234"


def sample_on(day: date) -> RawSample:
    return RawSample(date=datetime(day.year, day.month, day.day, 12, 0), value=1000)


def scripted_fetcher(results: list[ChunkResult]) -> AsyncMock:
    """Fetch function returning the given results in order."""
    return AsyncMock(side_effect=results)


class TestSplitDateRange:
    """Tests for date range windowing."""

    def test_twenty_days(self):
        """Test a range split into full weeks and a clipped remainder."""
        windows = split_date_range(date(2024, 1, 1), date(2024, 1, 20))

        assert windows == [
            (date(2024, 1, 1), date(2024, 1, 7)),
            (date(2024, 1, 8), date(2024, 1, 14)),
            (date(2024, 1, 15), date(2024, 1, 20)),
        ]

    def test_single_day(self):
        """Test a range of one day."""
        assert split_date_range(date(2024, 1, 1), date(2024, 1, 1)) == [
            (date(2024, 1, 1), date(2024, 1, 1))
        ]

    def test_reversed_range_is_empty(self):
        """Test that start after end yields no windows."""
        assert split_date_range(date(2024, 2, 1), date(2024, 1, 1)) == []

    def test_windows_are_contiguous(self):
        """Test that a year is covered without gaps or overlaps."""
        windows = split_date_range(date(2023, 3, 5), date(2024, 3, 4))

        assert windows[0][0] == date(2023, 3, 5)
        assert windows[-1][1] == date(2024, 3, 4)
        for (_, previous_end), (next_start, _) in zip(windows, windows[1:]):
            assert (next_start - previous_end).days == 1
        assert all((end - start).days <= 6 for start, end in windows)

    def test_invalid_window_size(self):
        """Test that a non-positive window size is rejected."""
        with pytest.raises(ValueError):
            split_date_range(date(2024, 1, 1), date(2024, 1, 2), max_days=0)


class TestWindowedFetcher:
    """Tests for the window loop and its failure handling."""

    @pytest.mark.asyncio
    async def test_collects_all_windows(self):
        """Test that samples from every window are concatenated."""
        first = [sample_on(date(2024, 1, 2))]
        second = [sample_on(date(2024, 1, 9)), sample_on(date(2024, 1, 10))]
        third = [sample_on(date(2024, 1, 16))]
        fetch_chunk = scripted_fetcher(
            [ChunkResult.ok(first), ChunkResult.ok(second), ChunkResult.ok(third)]
        )

        outcome = await WindowedFetcher(delay_seconds=0).fetch(
            METER, date(2024, 1, 1), date(2024, 1, 20), fetch_chunk
        )

        assert outcome.samples == first + second + third
        assert outcome.stats.chunks_planned == 3
        assert outcome.stats.chunks_with_data == 3
        assert outcome.stats.complete is True
        assert outcome.stats.stopped_reason is None
        fetch_chunk.assert_any_await(METER, date(2024, 1, 15), date(2024, 1, 20))

    @pytest.mark.asyncio
    async def test_unauthorized_stops_immediately(self):
        """Test that an authorization failure keeps only earlier samples."""
        first = [sample_on(date(2024, 1, 3))]
        fetch_chunk = scripted_fetcher(
            [
                ChunkResult.ok(first),
                ChunkResult.unauthorized("HTTP 401"),
                ChunkResult.ok([sample_on(date(2024, 1, 16))]),
            ]
        )

        outcome = await WindowedFetcher(delay_seconds=0).fetch(
            METER, date(2024, 1, 1), date(2024, 1, 20), fetch_chunk
        )

        assert outcome.samples == first
        assert fetch_chunk.await_count == 2
        assert outcome.stats.stopped_reason == StopReason.UNAUTHORIZED
        assert outcome.stats.complete is False

    @pytest.mark.asyncio
    async def test_stops_after_consecutive_empty_windows(self):
        """Test that empty history ends the fetch after threshold + 1 windows."""
        fetch_chunk = AsyncMock(return_value=ChunkResult.ok([]))

        outcome = await WindowedFetcher(delay_seconds=0, empty_threshold=2).fetch(
            METER, date(2024, 1, 1), date(2024, 3, 1), fetch_chunk
        )

        assert fetch_chunk.await_count == 3
        assert outcome.samples == []
        assert outcome.stats.chunks_empty == 3
        assert outcome.stats.stopped_reason == StopReason.EMPTY_THRESHOLD
        assert outcome.stats.coverage == 0.0

    @pytest.mark.asyncio
    async def test_transient_failures_count_towards_threshold(self):
        """Test that failed windows are counted like empty ones."""
        fetch_chunk = scripted_fetcher(
            [
                ChunkResult.ok([sample_on(date(2024, 1, 1))]),
                ChunkResult.transient("HTTP 500"),
                ChunkResult.ok([]),
                ChunkResult.transient("timeout"),
                ChunkResult.ok([sample_on(date(2024, 1, 29))]),
            ]
        )

        outcome = await WindowedFetcher(delay_seconds=0, empty_threshold=2).fetch(
            METER, date(2024, 1, 1), date(2024, 3, 1), fetch_chunk
        )

        assert fetch_chunk.await_count == 4
        assert len(outcome.samples) == 1
        assert outcome.stats.chunks_failed == 2
        assert outcome.stats.chunks_empty == 1
        assert outcome.stats.stopped_reason == StopReason.EMPTY_THRESHOLD

    @pytest.mark.asyncio
    async def test_data_resets_the_counter(self):
        """Test that a window with data forgives earlier empty windows."""
        fetch_chunk = scripted_fetcher(
            [
                ChunkResult.ok([]),
                ChunkResult.ok([]),
                ChunkResult.ok([sample_on(date(2024, 1, 15))]),
                ChunkResult.ok([]),
                ChunkResult.transient("HTTP 503"),
            ]
        )

        outcome = await WindowedFetcher(delay_seconds=0, empty_threshold=2).fetch(
            METER, date(2024, 1, 1), date(2024, 2, 4), fetch_chunk
        )

        assert fetch_chunk.await_count == 5
        assert len(outcome.samples) == 1
        assert outcome.stats.stopped_reason is None
        assert outcome.stats.coverage == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_skipped_windows_excluded_from_coverage(self):
        """Test that windows needing no request leave coverage complete."""
        fetch_chunk = scripted_fetcher(
            [
                ChunkResult.ok([sample_on(date(2024, 1, 2))]),
                ChunkResult.ok([sample_on(date(2024, 1, 9))]),
                ChunkResult.skipped("Window starts on or after 2024-01-15"),
            ]
        )

        outcome = await WindowedFetcher(delay_seconds=0).fetch(
            METER, date(2024, 1, 1), date(2024, 1, 20), fetch_chunk
        )

        stats = outcome.stats
        assert stats.chunks_planned == 3
        assert stats.chunks_skipped == 1
        assert stats.chunks_attempted == 2
        assert stats.complete is True
        assert stats.coverage == 1.0

    @pytest.mark.asyncio
    async def test_skipped_windows_do_not_count_as_empty(self):
        """Test that skipped windows neither stop the fetch nor count as empty."""
        fetch_chunk = scripted_fetcher(
            [
                ChunkResult.ok([]),
                ChunkResult.ok([]),
                ChunkResult.skipped(),
                ChunkResult.skipped(),
            ]
        )

        outcome = await WindowedFetcher(delay_seconds=0, empty_threshold=2).fetch(
            METER, date(2024, 1, 1), date(2024, 1, 28), fetch_chunk
        )

        assert fetch_chunk.await_count == 4
        assert outcome.stats.chunks_empty == 2
        assert outcome.stats.stopped_reason is None
        assert outcome.stats.coverage == 0.0

    @pytest.mark.asyncio
    async def test_pacing_delay_between_windows(self):
        """Test that the delay is awaited between windows only."""
        sleep = AsyncMock()
        fetch_chunk = AsyncMock(return_value=ChunkResult.ok([sample_on(date(2024, 1, 1))]))

        await WindowedFetcher(delay_seconds=0.15, sleep=sleep).fetch(
            METER, date(2024, 1, 1), date(2024, 1, 20), fetch_chunk
        )

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.15)

    @pytest.mark.asyncio
    async def test_empty_range(self):
        """Test that an empty range makes no calls."""
        fetch_chunk = AsyncMock()

        outcome = await WindowedFetcher(delay_seconds=0).fetch(
            METER, date(2024, 2, 1), date(2024, 1, 1), fetch_chunk
        )

        fetch_chunk.assert_not_awaited()
        assert outcome.samples == []
        assert outcome.stats.coverage == 1.0
