"""
Error taxonomy for Weather Consensus.

ConfigurationError is raised before any provider is queried.
ProviderError covers every way a single provider can fail to produce a
reading; the aggregator re-raises it untouched.
"""

from typing import Optional


class WeatherConsensusError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(WeatherConsensusError):
    """Invalid or missing configuration."""


class NoProvidersError(ConfigurationError):
    """An aggregation was requested with an empty provider set."""

    def __init__(self, message: str = "no providers configured"):
        super().__init__(message)


class ProviderError(WeatherConsensusError):
    """A provider could not produce a temperature for a city."""

    def __init__(self, provider: str, city: str, message: str, cause: Optional[BaseException] = None):
        self.provider = provider
        self.city = city
        self.message = message
        self.cause = cause
        super().__init__(f"{provider}: {city}: {message}")


class AggregationTimeoutError(ProviderError):
    """The caller's deadline expired before the aggregation finished."""

    def __init__(self, city: str, timeout: float):
        self.timeout = timeout
        super().__init__("multi", city, f"aggregation timed out after {timeout:.2f}s")
