"""
Configuration for Weather Consensus

All provider credentials and endpoints come from the environment (usually
populated from a .env file by the CLI via python-dotenv). Nothing here holds
a literal API key; tests build Settings directly or pass a fake environ.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from weather_consensus.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Order here is the order providers are queried and logged in
KNOWN_PROVIDERS = ("openweathermap", "wunderground", "forecastio")

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


def _get_float(environ: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")


def _parse_provider_list(raw: Optional[str]) -> Tuple[str, ...]:
    if raw is None or raw.strip() == "":
        return KNOWN_PROVIDERS
    names = tuple(name.strip().lower() for name in raw.split(",") if name.strip())
    unknown = [name for name in names if name not in KNOWN_PROVIDERS]
    if unknown:
        raise ConfigurationError(
            f"Unknown provider(s) in WEATHER_PROVIDERS: {', '.join(unknown)} "
            f"(expected any of {', '.join(KNOWN_PROVIDERS)})"
        )
    return names


@dataclass
class Settings:
    """Runtime configuration, one instance per process (or per test)."""
    openweathermap_api_key: Optional[str] = None
    wunderground_api_key: Optional[str] = None
    forecastio_api_key: Optional[str] = None

    openweathermap_base_url: str = "http://api.openweathermap.org"
    wunderground_base_url: str = "http://api.wunderground.com"
    forecastio_base_url: str = "https://api.forecast.io"

    provider_timeout: float = 10.0  # per HTTP request
    aggregate_timeout: Optional[float] = None  # whole aggregation, None = no deadline
    max_retries: int = 2

    enabled_providers: Tuple[str, ...] = field(default=KNOWN_PROVIDERS)

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    def __post_init__(self):
        if self.provider_timeout <= 0:
            raise ConfigurationError("provider_timeout must be positive")
        if self.aggregate_timeout is not None and self.aggregate_timeout <= 0:
            raise ConfigurationError("aggregate_timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        self.log_level = self.log_level.strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build Settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: on malformed numbers, unknown provider names
                or an unknown log level
        """
        env = os.environ if environ is None else environ

        return cls(
            openweathermap_api_key=env.get("OPENWEATHERMAP_API_KEY") or None,
            wunderground_api_key=env.get("WUNDERGROUND_API_KEY") or None,
            forecastio_api_key=env.get("FORECASTIO_API_KEY") or None,
            openweathermap_base_url=env.get("OPENWEATHERMAP_BASE_URL", cls.openweathermap_base_url),
            wunderground_base_url=env.get("WUNDERGROUND_BASE_URL", cls.wunderground_base_url),
            forecastio_base_url=env.get("FORECASTIO_BASE_URL", cls.forecastio_base_url),
            provider_timeout=_get_float(env, "PROVIDER_TIMEOUT_SECONDS", 10.0),
            aggregate_timeout=_get_float(env, "AGGREGATE_TIMEOUT_SECONDS", None),
            max_retries=_get_int(env, "PROVIDER_MAX_RETRIES", 2),
            enabled_providers=_parse_provider_list(env.get("WEATHER_PROVIDERS")),
            host=env.get("HOST", cls.host),
            port=_get_int(env, "PORT", 8080),
            log_level=env.get("LOG_LEVEL", cls.log_level),
        )

    def missing_api_keys(self) -> Tuple[str, ...]:
        """Enabled providers that need an API key but have none."""
        required = (
            ("wunderground", self.wunderground_api_key),
            ("forecastio", self.forecastio_api_key),
        )
        return tuple(name for name, key in required if name in self.enabled_providers and not key)

    def log_summary(self) -> None:
        """Log enabled providers and missing keys; call once logging is configured."""
        logger.info(f"[Settings] Enabled providers: {', '.join(self.enabled_providers)}")
        for name in self.missing_api_keys():
            logger.warning(f"[Settings] {name} enabled but no API key found in env!")
