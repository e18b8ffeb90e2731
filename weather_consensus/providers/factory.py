"""Build the configured provider set from Settings."""

import logging
from typing import List, Optional

import httpx

from weather_consensus.config import Settings
from weather_consensus.errors import ConfigurationError
from weather_consensus.providers.base import WeatherProvider
from weather_consensus.providers.forecast_io import ForecastIoProvider
from weather_consensus.providers.open_weather_map import OpenWeatherMapProvider
from weather_consensus.providers.weather_underground import WeatherUndergroundProvider
from weather_consensus.resilience import RetryConfig

logger = logging.getLogger(__name__)


def retry_config_for(settings: Settings) -> RetryConfig:
    return RetryConfig(max_retries=settings.max_retries)


def create_geocoder(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> OpenWeatherMapProvider:
    """OpenWeatherMap provider used for city -> coordinates lookups."""
    return OpenWeatherMapProvider(
        api_key=settings.openweathermap_api_key,
        base_url=settings.openweathermap_base_url,
        timeout=settings.provider_timeout,
        retry_config=retry_config_for(settings),
        client=client,
    )


def build_providers(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> List[WeatherProvider]:
    """
    Instantiate every enabled provider, in `settings.enabled_providers` order.

    Args:
        settings: Runtime configuration (keys, endpoints, timeouts)
        client: Optional shared httpx.AsyncClient

    Returns:
        Fresh provider instances for one aggregation call
    """
    retry_config = retry_config_for(settings)
    geocoder = create_geocoder(settings, client)
    providers: List[WeatherProvider] = []

    for name in settings.enabled_providers:
        if name == "openweathermap":
            providers.append(geocoder)
        elif name == "wunderground":
            providers.append(WeatherUndergroundProvider(
                api_key=settings.wunderground_api_key,
                base_url=settings.wunderground_base_url,
                timeout=settings.provider_timeout,
                retry_config=retry_config,
                client=client,
            ))
        elif name == "forecastio":
            providers.append(ForecastIoProvider(
                api_key=settings.forecastio_api_key,
                base_url=settings.forecastio_base_url,
                timeout=settings.provider_timeout,
                retry_config=retry_config,
                client=client,
                geocoder=geocoder,
            ))
        else:
            raise ConfigurationError(f"Unknown provider: {name}")

    logger.debug(f"[build_providers] Built {len(providers)} providers: {[p.name for p in providers]}")
    return providers
