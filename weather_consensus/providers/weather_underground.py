"""
Weather Underground Provider for Weather Consensus

Uses the classic "conditions" API, which reports Celsius directly in
`current_observation.temp_c`. Requires an API key.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from weather_consensus.providers.base import HTTPWeatherProvider
from weather_consensus.resilience import RetryConfig

logger = logging.getLogger(__name__)


class WeatherUndergroundProvider(HTTPWeatherProvider):
    name = "weatherUnderground"
    BASE_URL = "http://api.wunderground.com"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, base_url, timeout, retry_config, client)

    async def _fetch_celsius(self, city: str) -> float:
        key = self._require_api_key(city)
        url = f"{self.base_url}/api/{key}/conditions/q/{quote(city)}.json"
        data = await self._get_json(url)
        return float(data["current_observation"]["temp_c"])
