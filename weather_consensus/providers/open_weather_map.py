"""
OpenWeatherMap Provider for Weather Consensus

Current conditions from the OpenWeatherMap "weather" endpoint. The API
reports temperature in Kelvin by default; we convert to Celsius.

The same endpoint carries the city's coordinates, so this provider doubles
as the geocoder for coordinate-based providers (Forecast.io).
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from weather_consensus.errors import ProviderError
from weather_consensus.providers.base import HTTPWeatherProvider
from weather_consensus.resilience import RetryConfig
from weather_consensus.units import kelvin_to_celsius

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


class OpenWeatherMapProvider(HTTPWeatherProvider):
    """
    Provider for OpenWeatherMap current weather.

    The API key is optional here (legacy keyless access); when set it is sent
    as the `appid` query parameter.
    """

    name = "openWeatherMap"
    BASE_URL = "http://api.openweathermap.org"
    WEATHER_PATH = "/data/2.5/weather"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url, timeout, retry_config, client)

    async def _weather(self, city: str) -> dict:
        params = {"q": city}
        if self.api_key:
            params["appid"] = self.api_key
        return await self._get_json(self.base_url + self.WEATHER_PATH, params)

    async def _fetch_celsius(self, city: str) -> float:
        data = await self._weather(city)
        kelvin = float(data["main"]["temp"])
        return kelvin_to_celsius(kelvin)

    async def coordinates(self, city: str) -> Coordinates:
        """
        Look up a city's coordinates.

        Raises:
            ProviderError: if the lookup fails for any reason
        """
        if not city or not city.strip():
            raise ProviderError(self.name, city, "city must be a non-empty string")

        try:
            data = await self._weather(city)
            coord = data["coord"]
            result = Coordinates(lat=float(coord["lat"]), lon=float(coord["lon"]))
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name, city, f"coordinates lookup: HTTP {e.response.status_code}", cause=e
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, city, f"coordinates lookup failed: {e}", cause=e) from e
        except (KeyError, ValueError, TypeError) as e:
            raise ProviderError(self.name, city, f"coordinates missing from response: {e!r}", cause=e) from e

        logger.debug(f"[{self.name}] {city}: lat={result.lat:.4f} lon={result.lon:.4f}")
        return result
