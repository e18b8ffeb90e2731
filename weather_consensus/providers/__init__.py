"""
Providers package for Weather Consensus

Each provider reports the current temperature for a city in Celsius:

1. OpenWeatherMap - Kelvin upstream, also used for city -> coordinates
2. Weather Underground - Celsius upstream, API key required
3. Forecast.io - Fahrenheit upstream, queried by coordinates, API key required
"""

from weather_consensus.providers.base import (
    HTTPWeatherProvider,
    WeatherProvider,
)

from weather_consensus.providers.open_weather_map import (
    Coordinates,
    OpenWeatherMapProvider,
)

from weather_consensus.providers.weather_underground import (
    WeatherUndergroundProvider,
)

from weather_consensus.providers.forecast_io import (
    ForecastIoProvider,
)

from weather_consensus.providers.factory import (
    build_providers,
    create_geocoder,
)

__all__ = [
    # Contract
    "WeatherProvider",
    "HTTPWeatherProvider",
    # OpenWeatherMap (Kelvin, geocoding)
    "OpenWeatherMapProvider",
    "Coordinates",
    # Weather Underground (Celsius)
    "WeatherUndergroundProvider",
    # Forecast.io (Fahrenheit, by coordinates)
    "ForecastIoProvider",
    # Factory
    "build_providers",
    "create_geocoder",
]
