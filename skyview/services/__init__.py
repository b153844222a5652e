"""Service layer: NWS aggregation, geocoding, e-mail and the daily digest."""

from .nws import NwsClient
from .weather import WeatherService

__all__ = ["NwsClient", "WeatherService"]
