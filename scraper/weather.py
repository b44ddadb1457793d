"""Current weather lookup via Open-Meteo (no API key)."""
import logging
from typing import Optional

import requests

from processor.models import WeatherReport

logger = logging.getLogger(__name__)

FORECAST_URL = 'https://api.open-meteo.com/v1/forecast'

WMO = {
    0: 'Clear', 1: 'Mainly clear', 2: 'Partly cloudy', 3: 'Overcast',
    45: 'Fog', 48: 'Depositing rime fog',
    51: 'Light drizzle', 53: 'Drizzle', 55: 'Dense drizzle',
    56: 'Freezing drizzle', 57: 'Dense freezing drizzle',
    61: 'Slight rain', 63: 'Rain', 65: 'Heavy rain',
    66: 'Freezing rain', 67: 'Heavy freezing rain',
    71: 'Slight snow', 73: 'Snow', 75: 'Heavy snow',
    77: 'Snow grains',
    80: 'Rain showers', 81: 'Rain showers', 82: 'Violent rain showers',
    85: 'Snow showers', 86: 'Heavy snow showers',
    95: 'Thunderstorm', 96: 'Thunderstorm w/ hail', 99: 'Thunderstorm w/ hail',
}


class WeatherClient:
    """Client for the Open-Meteo forecast endpoint."""

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    def fetch_current(
        self,
        latitude: float,
        longitude: float,
        timezone_name: str
    ) -> Optional[WeatherReport]:
        """
        Fetch current conditions in Fahrenheit.

        Args:
            latitude: Location latitude
            longitude: Location longitude
            timezone_name: IANA zone for the response timestamps

        Returns:
            WeatherReport, or None when the response has no current weather

        Raises:
            requests.RequestException: On transport failure or error status
        """
        params = {
            'latitude': latitude,
            'longitude': longitude,
            'timezone': timezone_name,
            'temperature_unit': 'fahrenheit',
            'current_weather': 'true',
        }
        response = requests.get(FORECAST_URL, params=params, timeout=self.timeout)
        response.raise_for_status()

        data = response.json()
        current = data.get('current_weather') if isinstance(data, dict) else None
        if not isinstance(current, dict):
            logger.warning("Weather response had no current weather object")
            return None

        temperature = current.get('temperature')
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            logger.warning(f"Weather response had no usable temperature: {temperature!r}")
            return None

        code = current.get('weathercode')
        if isinstance(code, bool) or not isinstance(code, int):
            code = None
        return WeatherReport(
            temperature_f=float(temperature),
            code=code,
            summary=WMO.get(code, 'Unknown')
        )
