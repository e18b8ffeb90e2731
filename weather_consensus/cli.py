"""
Command-line entry point for Weather Consensus.

    weather-consensus serve [--host HOST] [--port PORT]
    weather-consensus temp CITY [--timeout SECONDS] [--partial] [--no-cancel]
    weather-consensus coords CITY
"""

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from typing import Optional, Sequence

from colorama import Fore, Style, just_fix_windows_console
from dotenv import load_dotenv

from weather_consensus import __version__
from weather_consensus.aggregator import MultiWeatherProvider
from weather_consensus.config import Settings
from weather_consensus.errors import ConfigurationError
from weather_consensus.providers.factory import build_providers, create_geocoder

logger = logging.getLogger(__name__)

LOG_DIR = "logs"
LOG_FILE = os.path.join(LOG_DIR, "weather_consensus.log")


def configure_logging(level: str) -> None:
    """Log to stdout and to logs/weather_consensus.log."""
    os.makedirs(LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, mode='a', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weather-consensus",
        description="Average the current temperature for a city across several weather services.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL from the environment")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    temp = subparsers.add_parser("temp", help="Print the consensus temperature for a city")
    temp.add_argument("city")
    temp.add_argument("--timeout", type=float, default=None, help="Deadline for the whole aggregation, in seconds")
    temp.add_argument("--partial", action="store_true", help="Average whichever providers succeed")
    temp.add_argument("--no-cancel", action="store_true", help="Let slow providers finish after a failure")

    coords = subparsers.add_parser("coords", help="Print the coordinates of a city")
    coords.add_argument("city")

    return parser


async def run_temp(settings: Settings, city: str, timeout: Optional[float], partial: bool, cancel: bool) -> int:
    providers = build_providers(settings)
    print(f"{Fore.CYAN}Polling {len(providers)} providers for {city}...{Style.RESET_ALL}")

    multi = MultiWeatherProvider(
        providers,
        timeout=timeout if timeout is not None else settings.aggregate_timeout,
        cancel_pending=cancel,
        allow_partial=partial,
    )
    try:
        reading = await multi.reading(city)
    except Exception as e:
        logger.error(f"[run_temp] {city}: {e}")
        print(f"{Fore.RED}FAILED{Style.RESET_ALL} - {e}")
        return 1

    for name, celsius in reading.readings:
        print(f"   {name:<20} {celsius:>7.2f}C")
    color = Fore.YELLOW if reading.is_partial else Fore.GREEN
    print(
        f"{color}{city}: {reading.celsius:.2f}C{Style.RESET_ALL} "
        f"({reading.providers_reporting}/{reading.providers_total} providers, {reading.took:.2f}s)"
    )
    return 0


async def run_coords(settings: Settings, city: str) -> int:
    try:
        coord = await create_geocoder(settings).coordinates(city)
    except Exception as e:
        logger.error(f"[run_coords] {city}: {e}")
        print(f"{Fore.RED}FAILED{Style.RESET_ALL} - {e}")
        return 1
    print(f"{city}: lat={coord.lat:.4f} lon={coord.lon:.4f}")
    return 0


def run_server(settings: Settings, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    from weather_consensus.api import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    just_fix_windows_console()

    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
        if args.log_level:
            settings = dataclasses.replace(settings, log_level=args.log_level)
    except ConfigurationError as e:
        print(f"{Fore.RED}CONFIGURATION ERROR{Style.RESET_ALL} - {e}")
        return 2

    configure_logging(settings.log_level)
    settings.log_summary()

    try:
        if args.command == "serve":
            return run_server(settings, args.host, args.port)
        if args.command == "temp":
            return asyncio.run(run_temp(settings, args.city, args.timeout, args.partial, not args.no_cancel))
        if args.command == "coords":
            return asyncio.run(run_coords(settings, args.city))
    except ConfigurationError as e:
        logger.error(f"[main] {e}")
        print(f"{Fore.RED}CONFIGURATION ERROR{Style.RESET_ALL} - {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
