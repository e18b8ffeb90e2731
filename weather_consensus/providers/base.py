"""
Provider contract for Weather Consensus.

A provider maps a city name to one temperature reading in Celsius, or
raises. Implementations own their own I/O, logging and retries; the
aggregator only ever calls `temperature()`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from weather_consensus.errors import ProviderError
from weather_consensus.resilience import DEFAULT_RETRY_CONFIG, RetryConfig, retry_async

logger = logging.getLogger(__name__)


class WeatherProvider(ABC):
    """Anything that can report the current temperature for a city."""

    name: str = "provider"

    @abstractmethod
    async def temperature(self, city: str) -> float:
        """
        Current temperature for `city`.

        Returns:
            Degrees Celsius

        Raises:
            Exception: any failure; the aggregator does not inspect it
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class HTTPWeatherProvider(WeatherProvider):
    """
    Base for providers backed by a JSON-over-HTTP API.

    Subclasses implement `_fetch_celsius()`. Transport failures, HTTP error
    statuses and malformed payloads are raised from here as ProviderError
    naming the provider and city.

    An httpx.AsyncClient may be injected and shared between providers; when
    none is given a short-lived client is opened per request.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "",
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.client = client

    @abstractmethod
    async def _fetch_celsius(self, city: str) -> float:
        """Query the upstream API and return the reading converted to Celsius."""

    async def temperature(self, city: str) -> float:
        if not city or not city.strip():
            raise ProviderError(self.name, city, "city must be a non-empty string")

        try:
            celsius = await self._fetch_celsius(city)
        except ProviderError:
            raise
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name, city, f"HTTP {e.response.status_code} from upstream", cause=e
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, city, f"request failed: {e}", cause=e) from e
        except (KeyError, ValueError, TypeError) as e:
            raise ProviderError(self.name, city, f"unexpected response: {e!r}", cause=e) from e

        logger.info(f"[{self.name}] {city}: {celsius:.2f}C")
        return celsius

    def _require_api_key(self, city: str) -> str:
        if not self.api_key:
            raise ProviderError(self.name, city, "no API key configured")
        return self.api_key

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document with retries; raises httpx / JSON errors."""
        return await retry_async(self._get_json_once, self.name, self.retry_config, url, params)

    async def _get_json_once(self, url: str, params: Optional[Dict[str, Any]]) -> Any:
        shown = url.replace(self.api_key, "***") if self.api_key else url
        logger.debug(f"[{self.name}] GET {shown} params={_redact(params)}")

        if self.client is not None:
            resp = await self.client.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()


def _redact(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not params:
        return params
    return {k: ("***" if k in ("appid", "key", "apikey") else v) for k, v in params.items()}
