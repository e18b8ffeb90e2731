"""FastAPI app exposing the consensus temperature and geocoding endpoints."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from weather_consensus import __version__
from weather_consensus.aggregator import MultiWeatherProvider
from weather_consensus.config import Settings
from weather_consensus.providers.base import WeatherProvider
from weather_consensus.providers.factory import build_providers, create_geocoder
from weather_consensus.providers.open_weather_map import OpenWeatherMapProvider
from weather_consensus.units import format_duration

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], Sequence[WeatherProvider]]


class CoordinatesModel(BaseModel):
    lat: float
    lon: float


class CoordinatesResponse(BaseModel):
    """Response schema for `GET /coordinates/{city}`."""

    city: str
    coord: CoordinatesModel


class ProviderReading(BaseModel):
    provider: str
    temp: float


class WeatherResponse(BaseModel):
    """Response schema for `GET /weather/{city}`."""

    city: str
    temp: float
    took: str
    providers: list[ProviderReading]


def create_app(
    settings: Optional[Settings] = None,
    provider_factory: Optional[ProviderFactory] = None,
    geocoder: Optional[OpenWeatherMapProvider] = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        settings: Runtime configuration; read from the environment when omitted
        provider_factory: Returns a fresh provider set per request; built from
            `settings` when omitted
        geocoder: Coordinates lookup for `/coordinates`; built from `settings`
            when omitted
    """
    if settings is None:
        settings = Settings.from_env()
        settings.log_summary()
    if provider_factory is None:
        def provider_factory() -> Sequence[WeatherProvider]:
            return build_providers(settings)
    geocoder = geocoder or create_geocoder(settings)

    app = FastAPI(title="Weather Consensus", version=__version__)

    @app.get("/", response_class=PlainTextResponse)
    def hello() -> str:
        return "hello!"

    @app.get("/coordinates/{city}", response_model=CoordinatesResponse)
    async def coordinates(city: str) -> CoordinatesResponse:
        try:
            coord = await geocoder.coordinates(city)
        except Exception as exc:
            logger.error(f"[api] /coordinates/{city} failed: {exc}")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return CoordinatesResponse(city=city, coord=CoordinatesModel(lat=coord.lat, lon=coord.lon))

    @app.get("/weather/{city}", response_model=WeatherResponse)
    async def weather(city: str) -> WeatherResponse:
        begin = time.monotonic()
        multi = MultiWeatherProvider(provider_factory(), timeout=settings.aggregate_timeout)
        try:
            reading = await multi.reading(city)
        except Exception as exc:
            logger.error(f"[api] /weather/{city} failed: {exc}")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return WeatherResponse(
            city=city,
            temp=reading.celsius,
            took=format_duration(time.monotonic() - begin),
            providers=[ProviderReading(provider=name, temp=temp) for name, temp in reading.readings],
        )

    return app
