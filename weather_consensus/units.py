"""Unit conversions. Every provider reports Celsius to the aggregator."""

KELVIN_OFFSET = 273.15


def kelvin_to_celsius(kelvin: float) -> float:
    return kelvin - KELVIN_OFFSET


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32) * 5 / 9


def format_coordinate(value: float) -> str:
    """Format a lat/lon component with two decimals, as upstream URLs expect."""
    return f"{value:.2f}"


def format_duration(seconds: float) -> str:
    """Human-readable elapsed time, e.g. '412.3ms' or '1.204s'."""
    if seconds < 1.0:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds:.3f}s"
