"""
Tests for the consensus aggregator

These tests verify that:
1. All-success calls return the arithmetic mean
2. The first failure is re-raised without waiting for slow providers
3. An empty provider set is rejected before anything is queried
4. A single provider is a pure pass-through (value and exception)
5. Provider order does not change the mean
6. Outstanding queries are cancelled (or abandoned) after a failure
7. The caller deadline and the partial-success policy behave as documented

Run with: python -m pytest tests/test_aggregator.py -v
"""

import asyncio
import itertools
import logging
import time

import pytest

from weather_consensus.aggregator import ConsensusReading, MultiWeatherProvider, aggregate
from weather_consensus.errors import (
    AggregationTimeoutError,
    ConfigurationError,
    NoProvidersError,
    ProviderError,
)
from weather_consensus.providers.base import WeatherProvider

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

SLOW = 5.0  # long enough that a test finishing quickly proves we didn't wait


class FakeProvider(WeatherProvider):
    """Returns a fixed value (or raises) after an optional delay."""

    def __init__(self, name, value=None, error=None, delay=0.0):
        self.name = name
        self.value = value
        self.error = error
        self.delay = delay
        self.calls = []
        self.cancelled = False
        self.finished = False

    async def temperature(self, city):
        self.calls.append(city)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.value


class SlowUnwindProvider(FakeProvider):
    """Takes `unwind` seconds to clean up after being cancelled."""

    def __init__(self, name, unwind):
        super().__init__(name, 20.0, delay=SLOW)
        self.unwind = unwind

    async def temperature(self, city):
        try:
            return await super().temperature(city)
        except asyncio.CancelledError:
            await asyncio.sleep(self.unwind)
            self.finished = True
            raise


def _other_tasks():
    current = asyncio.current_task()
    return [t for t in asyncio.all_tasks() if t is not current and not t.done()]


class TestMean:
    """All providers succeed."""

    @pytest.mark.asyncio
    async def test_mean_of_three(self):
        providers = [
            FakeProvider("a", 20.0),
            FakeProvider("b", 22.0, delay=0.01),
            FakeProvider("c", 24.0, delay=0.02),
        ]
        result = await aggregate(providers, "London")
        logger.info(f"[TEST] Mean: {result}")

        assert result == 22.0
        for p in providers:
            assert p.calls == ["London"]

    @pytest.mark.asyncio
    async def test_providers_run_concurrently(self):
        providers = [FakeProvider(str(i), 10.0, delay=0.2) for i in range(5)]

        start = time.monotonic()
        result = await aggregate(providers, "Oslo")
        elapsed = time.monotonic() - start

        assert result == 10.0
        assert elapsed < 0.8, "five 0.2s queries should overlap, not run back to back"

    @pytest.mark.asyncio
    async def test_order_independence(self):
        values = [10.0, 12.5, 30.0, -4.5]
        results = set()
        for perm in itertools.permutations(values):
            providers = [FakeProvider(f"p{i}", v) for i, v in enumerate(perm)]
            results.add(await aggregate(providers, "Paris"))

        assert results == {12.0}

    @pytest.mark.asyncio
    async def test_reading_reports_every_provider(self):
        multi = MultiWeatherProvider([FakeProvider("a", 1.0), FakeProvider("b", 3.0, delay=0.01)])
        reading = await multi.reading("Rome")

        assert isinstance(reading, ConsensusReading)
        assert reading.city == "Rome"
        assert reading.celsius == 2.0
        assert reading.providers_total == 2
        assert reading.providers_reporting == 2
        assert not reading.is_partial
        assert dict(reading.readings) == {"a": 1.0, "b": 3.0}
        assert reading.took >= 0.0

    @pytest.mark.asyncio
    async def test_aggregators_compose(self):
        inner = MultiWeatherProvider([FakeProvider("a", 10.0), FakeProvider("b", 20.0)])
        outer = MultiWeatherProvider([inner, FakeProvider("c", 30.0)])

        assert await outer.temperature("Madrid") == 22.5


class TestFailure:
    """First-failure-wins."""

    @pytest.mark.asyncio
    async def test_failure_returned_without_waiting_for_slow_provider(self):
        error = ProviderError("broken", "London", "upstream exploded")
        slow = FakeProvider("slow", 20.0, delay=SLOW)

        start = time.monotonic()
        with pytest.raises(ProviderError) as excinfo:
            await aggregate([FakeProvider("broken", error=error), slow], "London")
        elapsed = time.monotonic() - start
        logger.info(f"[TEST] Failure surfaced after {elapsed:.3f}s")

        assert excinfo.value is error
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_middle_failure_aborts_whole_call(self):
        error = ProviderError("b", "Berlin", "HTTP 500 from upstream")
        providers = [
            FakeProvider("a", 20.0, delay=SLOW),
            FakeProvider("b", error=error),
            FakeProvider("c", 24.0, delay=SLOW),
        ]

        start = time.monotonic()
        with pytest.raises(ProviderError) as excinfo:
            await aggregate(providers, "Berlin")

        assert excinfo.value is error
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_non_provider_exceptions_pass_through_unchanged(self):
        error = RuntimeError("not a ProviderError")

        with pytest.raises(RuntimeError) as excinfo:
            await aggregate([FakeProvider("a", 1.0), FakeProvider("b", error=error)], "Lima")

        assert excinfo.value is error

    @pytest.mark.asyncio
    async def test_any_of_simultaneous_failures_may_win(self):
        first = ProviderError("a", "Quito", "first")
        second = ProviderError("b", "Quito", "second")

        with pytest.raises(ProviderError) as excinfo:
            await aggregate([FakeProvider("a", error=first), FakeProvider("b", error=second)], "Quito")

        assert excinfo.value in (first, second)


class TestEdgeCases:

    @pytest.mark.asyncio
    async def test_empty_provider_set(self):
        with pytest.raises(NoProvidersError) as excinfo:
            await aggregate([], "Nowhere")

        assert isinstance(excinfo.value, ConfigurationError)
        assert "no providers" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_empty_provider_set_creates_no_tasks(self):
        before = len(asyncio.all_tasks())
        with pytest.raises(NoProvidersError):
            await MultiWeatherProvider([]).reading("Nowhere")
        assert len(asyncio.all_tasks()) == before

    @pytest.mark.asyncio
    async def test_single_provider_value_pass_through(self):
        provider = FakeProvider("only", 17.123456789)
        expected = await provider.temperature("Cairo")

        assert await aggregate([provider], "Cairo") == expected

    @pytest.mark.asyncio
    async def test_single_provider_error_pass_through(self):
        error = ProviderError("only", "Cairo", "bad key")

        with pytest.raises(ProviderError) as excinfo:
            await aggregate([FakeProvider("only", error=error)], "Cairo")

        assert excinfo.value is error

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ConfigurationError):
            MultiWeatherProvider([FakeProvider("a", 1.0)], timeout=0)


class TestCancellation:
    """What happens to queries still in flight after the call fails."""

    @pytest.mark.asyncio
    async def test_pending_queries_cancelled_by_default(self):
        slow = FakeProvider("slow", 20.0, delay=SLOW)
        error = ProviderError("fast", "Tokyo", "nope")

        with pytest.raises(ProviderError):
            await aggregate([slow, FakeProvider("fast", error=error)], "Tokyo")

        assert slow.cancelled
        assert not slow.finished
        assert _other_tasks() == []

    @pytest.mark.asyncio
    async def test_slow_unwinding_does_not_delay_the_failure(self):
        stubborn = SlowUnwindProvider("stubborn", unwind=1.5)
        error = RuntimeError("boom")

        start = time.monotonic()
        with pytest.raises(RuntimeError) as excinfo:
            await aggregate([stubborn, FakeProvider("boom", error=error)], "Tokyo", timeout=0.5)
        elapsed = time.monotonic() - start
        logger.info(f"[TEST] Failure surfaced after {elapsed:.3f}s")

        assert excinfo.value is error
        assert elapsed < 1.0
        assert stubborn.cancelled
        assert not stubborn.finished

        await asyncio.sleep(2.0)
        assert stubborn.finished
        assert not MultiWeatherProvider._abandoned

    @pytest.mark.asyncio
    async def test_slow_unwinding_does_not_delay_the_deadline(self):
        stubborn = SlowUnwindProvider("stubborn", unwind=1.5)

        start = time.monotonic()
        with pytest.raises(AggregationTimeoutError):
            await aggregate([stubborn], "Tokyo", timeout=0.1)

        assert time.monotonic() - start < 1.0
        await asyncio.sleep(2.0)
        assert stubborn.finished
        assert not MultiWeatherProvider._abandoned

    @pytest.mark.asyncio
    async def test_pending_queries_abandoned_when_cancel_disabled(self):
        late_error = ProviderError("late", "Tokyo", "also failed, but later")
        slow = FakeProvider("slow", 20.0, delay=0.1)
        late = FakeProvider("late", error=late_error, delay=0.1)
        error = ProviderError("fast", "Tokyo", "nope")

        with pytest.raises(ProviderError) as excinfo:
            await aggregate(
                [slow, late, FakeProvider("fast", error=error)],
                "Tokyo",
                cancel_pending=False,
            )

        assert excinfo.value is error
        assert not slow.cancelled

        await asyncio.sleep(0.3)
        assert slow.finished
        assert late.finished
        assert not MultiWeatherProvider._abandoned


class TestTimeout:

    @pytest.mark.asyncio
    async def test_deadline_fails_the_call(self):
        slow = FakeProvider("slow", 20.0, delay=SLOW)

        start = time.monotonic()
        with pytest.raises(AggregationTimeoutError) as excinfo:
            await aggregate([FakeProvider("fast", 10.0), slow], "Delhi", timeout=0.05)

        assert isinstance(excinfo.value, ProviderError)
        assert excinfo.value.city == "Delhi"
        assert time.monotonic() - start < 1.0
        assert slow.cancelled

    @pytest.mark.asyncio
    async def test_deadline_not_hit(self):
        providers = [FakeProvider("a", 10.0, delay=0.01), FakeProvider("b", 20.0)]
        assert await aggregate(providers, "Delhi", timeout=2.0) == 15.0


class TestPartialPolicy:

    @pytest.mark.asyncio
    async def test_partial_mean_skips_failures(self):
        providers = [
            FakeProvider("a", 20.0),
            FakeProvider("b", error=ProviderError("b", "Lagos", "down")),
            FakeProvider("c", 24.0, delay=0.01),
        ]
        multi = MultiWeatherProvider(providers, allow_partial=True)
        reading = await multi.reading("Lagos")

        assert reading.celsius == 22.0
        assert reading.providers_total == 3
        assert reading.providers_reporting == 2
        assert reading.is_partial

    @pytest.mark.asyncio
    async def test_partial_with_every_provider_failing(self):
        errors = [ProviderError(n, "Lagos", "down") for n in ("a", "b")]
        providers = [FakeProvider(e.provider, error=e) for e in errors]

        with pytest.raises(ProviderError) as excinfo:
            await aggregate(providers, "Lagos", allow_partial=True)

        assert excinfo.value in errors


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
