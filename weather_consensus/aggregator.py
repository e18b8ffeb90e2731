"""
Consensus aggregator for Weather Consensus

Queries every provider for the same city concurrently and averages the
readings. One asyncio task per provider, created per call and never reused.

Policy:
- First failure wins: the first provider error observed becomes the result
  of the whole call, re-raised as the same exception object. Results still
  in flight are not waited for.
- Outstanding tasks are cancelled on failure (cancel_pending=True) and given a
  short grace period to unwind; any still running after it are abandoned.
  With cancel_pending=False they are left to finish on their own and their
  results are discarded.
- No partial success unless allow_partial=True, in which case failures are
  skipped and the mean covers only the providers that reported.
- An optional deadline covers the whole call and fails it with
  AggregationTimeoutError.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from weather_consensus.errors import (
    AggregationTimeoutError,
    ConfigurationError,
    NoProvidersError,
    ProviderError,
)
from weather_consensus.providers.base import WeatherProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsensusReading:
    """Mean temperature plus which providers contributed to it."""
    city: str
    celsius: float
    providers_total: int
    readings: Tuple[Tuple[str, float], ...]  # (provider name, celsius) in arrival order
    took: float  # seconds

    @property
    def providers_reporting(self) -> int:
        return len(self.readings)

    @property
    def is_partial(self) -> bool:
        return self.providers_reporting < self.providers_total


class MultiWeatherProvider(WeatherProvider):
    """
    A WeatherProvider that averages other providers.

    Args:
        providers: Ordered provider set, fixed for the lifetime of this object
        timeout: Deadline in seconds for one whole aggregation call (None = no deadline)
        cancel_pending: Cancel still-running queries once the call has failed
        allow_partial: Average whatever succeeded instead of failing on the first error
    """

    name = "multi"

    # How long cancelled queries get to unwind before the call returns anyway
    CANCEL_GRACE_SECONDS = 0.1

    # Strong references to abandoned tasks until they finish
    _abandoned: Set[asyncio.Task] = set()

    def __init__(
        self,
        providers: Sequence[WeatherProvider],
        *,
        timeout: Optional[float] = None,
        cancel_pending: bool = True,
        allow_partial: bool = False,
    ):
        if timeout is not None and timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {timeout}")
        self.providers: Tuple[WeatherProvider, ...] = tuple(providers)
        self.timeout = timeout
        self.cancel_pending = cancel_pending
        self.allow_partial = allow_partial

    def __len__(self) -> int:
        return len(self.providers)

    async def temperature(self, city: str) -> float:
        reading = await self.reading(city)
        return reading.celsius

    async def reading(self, city: str) -> ConsensusReading:
        """
        Run one aggregation call.

        Returns:
            ConsensusReading with the mean in Celsius

        Raises:
            NoProvidersError: the provider set is empty (nothing is queried)
            AggregationTimeoutError: the deadline expired first
            Exception: the first provider failure, unchanged
        """
        if not self.providers:
            raise NoProvidersError()

        start = time.monotonic()
        readings = await self._collect(city)
        took = time.monotonic() - start

        values = [celsius for _, celsius in readings]
        mean = sum(values) / len(values)

        if len(readings) < len(self.providers):
            logger.warning(
                f"[MultiWeatherProvider] {city}: partial consensus from "
                f"{len(readings)}/{len(self.providers)} providers"
            )
        logger.info(f"[MultiWeatherProvider] {city}: {mean:.2f}C from {len(readings)} providers in {took:.2f}s")

        return ConsensusReading(
            city=city,
            celsius=mean,
            providers_total=len(self.providers),
            readings=tuple(readings),
            took=took,
        )

    async def _collect(self, city: str) -> List[Tuple[str, float]]:
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout is None else loop.time() + self.timeout

        owners: Dict[asyncio.Task, WeatherProvider] = {}
        for provider in self.providers:
            task = asyncio.create_task(provider.temperature(city), name=f"{provider.name}:{city}")
            owners[task] = provider

        pending: Set[asyncio.Task] = set(owners)
        readings: List[Tuple[str, float]] = []
        first_error: Optional[BaseException] = None

        try:
            while pending:
                remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                if not done:
                    logger.warning(
                        f"[MultiWeatherProvider] {city}: deadline of {self.timeout:.2f}s expired "
                        f"with {len(pending)} providers outstanding"
                    )
                    raise AggregationTimeoutError(city, self.timeout)

                for task in done:
                    provider = owners[task]
                    if task.cancelled():
                        error: Optional[BaseException] = ProviderError(provider.name, city, "query was cancelled")
                    else:
                        error = task.exception()

                    if error is None:
                        readings.append((provider.name, task.result()))
                        continue

                    if not self.allow_partial:
                        logger.warning(f"[MultiWeatherProvider] {city}: {provider.name} failed, aborting: {error}")
                        raise error

                    logger.warning(f"[MultiWeatherProvider] {city}: {provider.name} failed, skipping: {error}")
                    if first_error is None:
                        first_error = error
        finally:
            if pending:
                await self._release(pending)
            # Sibling failures that lost the race are dropped, not reported
            for task in owners:
                if task.done() and not task.cancelled():
                    task.exception()

        if not readings:
            # Only reachable with allow_partial: every provider failed
            raise first_error
        return readings

    async def _release(self, pending: Set[asyncio.Task]) -> None:
        if self.cancel_pending:
            logger.debug(f"[MultiWeatherProvider] Cancelling {len(pending)} outstanding queries")
            for task in pending:
                task.cancel()
            _, pending = await asyncio.wait(pending, timeout=self.CANCEL_GRACE_SECONDS)
            if not pending:
                return
            logger.debug(
                f"[MultiWeatherProvider] {len(pending)} queries still unwinding after "
                f"{self.CANCEL_GRACE_SECONDS:.2f}s, abandoning them"
            )
        else:
            logger.debug(f"[MultiWeatherProvider] Abandoning {len(pending)} outstanding queries")

        for task in pending:
            self._abandoned.add(task)
            task.add_done_callback(_discard)


def _discard(task: asyncio.Task) -> None:
    MultiWeatherProvider._abandoned.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"[MultiWeatherProvider] Discarded late failure from {task.get_name()}: {error}")


async def aggregate(
    providers: Sequence[WeatherProvider],
    location: str,
    *,
    timeout: Optional[float] = None,
    cancel_pending: bool = True,
    allow_partial: bool = False,
) -> float:
    """
    Mean temperature for `location` across `providers`, in Celsius.

    Raises:
        NoProvidersError: `providers` is empty
        AggregationTimeoutError: `timeout` expired first
        Exception: the first provider failure, unchanged
    """
    multi = MultiWeatherProvider(
        providers,
        timeout=timeout,
        cancel_pending=cancel_pending,
        allow_partial=allow_partial,
    )
    return await multi.temperature(location)
