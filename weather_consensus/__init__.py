"""
Weather Consensus

Averages the current temperature for a city across several independent
weather services, queried concurrently.

Architecture:
    providers/     - One class per upstream service, all reporting Celsius:
                     * open_weather_map.py    - OpenWeatherMap (Kelvin) + geocoding
                     * weather_underground.py - Weather Underground (Celsius)
                     * forecast_io.py         - Forecast.io (Fahrenheit, by coordinates)
    aggregator.py  - Concurrent fan-out with first-failure-wins semantics
    resilience.py  - Provider-level retry with exponential backoff
    config.py      - Environment / .env driven settings
    api.py         - FastAPI app (/weather/{city}, /coordinates/{city})
    cli.py         - Command-line entry point

Entry Points:
    weather-consensus serve         - Run the HTTP API
    weather-consensus temp <city>   - One-off consensus temperature
"""

__version__ = "1.0.0"

from weather_consensus.aggregator import ConsensusReading, MultiWeatherProvider, aggregate
from weather_consensus.errors import (
    AggregationTimeoutError,
    ConfigurationError,
    NoProvidersError,
    ProviderError,
    WeatherConsensusError,
)

__all__ = [
    "ConsensusReading",
    "MultiWeatherProvider",
    "aggregate",
    "AggregationTimeoutError",
    "ConfigurationError",
    "NoProvidersError",
    "ProviderError",
    "WeatherConsensusError",
]
