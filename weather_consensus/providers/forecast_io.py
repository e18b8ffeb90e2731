"""
Forecast.io Provider for Weather Consensus

Forecast.io is queried by coordinates, not by city name, so each reading
takes two requests: an OpenWeatherMap geocode, then the forecast itself.
The `currently.temperature` field is Fahrenheit.
"""

import logging
from typing import Optional

import httpx

from weather_consensus.errors import ProviderError
from weather_consensus.providers.base import HTTPWeatherProvider
from weather_consensus.providers.open_weather_map import OpenWeatherMapProvider
from weather_consensus.resilience import RetryConfig
from weather_consensus.units import fahrenheit_to_celsius, format_coordinate

logger = logging.getLogger(__name__)


class ForecastIoProvider(HTTPWeatherProvider):
    """
    Provider for Forecast.io current conditions.

    Args:
        geocoder: resolves city names to coordinates; a keyless
            OpenWeatherMapProvider sharing our client is used when omitted
    """

    name = "forecastIo"
    BASE_URL = "https://api.forecast.io"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        geocoder: Optional[OpenWeatherMapProvider] = None,
    ):
        super().__init__(api_key, base_url, timeout, retry_config, client)
        self.geocoder = geocoder or OpenWeatherMapProvider(
            timeout=timeout, retry_config=retry_config, client=client
        )

    async def _fetch_celsius(self, city: str) -> float:
        key = self._require_api_key(city)
        try:
            coord = await self.geocoder.coordinates(city)
        except ProviderError as e:
            raise ProviderError(self.name, city, "coordinates lookup failed", cause=e) from e

        url = (
            f"{self.base_url}/forecast/{key}/"
            f"{format_coordinate(coord.lat)},{format_coordinate(coord.lon)}"
        )
        data = await self._get_json(url)
        fahrenheit = float(data["currently"]["temperature"])
        return fahrenheit_to_celsius(fahrenheit)
