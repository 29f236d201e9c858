"""
Weather Service
===============

OpenWeather client for current conditions and a per-day blight outlook.

Uses the 5-day / 3-hour forecast endpoint in metric units. The first
forecast slot stands in for current conditions; its 3-hour rain volume is
taken as the rainfall reading.

Features:
- Current temperature, humidity and rainfall at a coordinate
- Daily outlook: forecast slots grouped by UTC day and scored with the CRI
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests

from app.domain.cri import compute_cri
from app.domain.exceptions import ExternalServiceError
from app.domain.soil_moisture import estimate_soil_moisture

logger = logging.getLogger(__name__)


class OpenWeatherClient:
    """Thin OpenWeather wrapper satisfying :class:`app.services.protocols.WeatherSource`."""

    DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _forecast(self, latitude: float, longitude: float) -> Dict[str, Any]:
        if not self.api_key:
            raise ExternalServiceError("OpenWeather API key is not configured")

        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.api_key,
            "units": "metric",
        }
        try:
            response = requests.get(f"{self.base_url}/forecast", params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning(f"OpenWeather request failed for ({latitude}, {longitude}): {e}")
            raise ExternalServiceError("Failed to fetch weather data") from e
        except ValueError as e:
            raise ExternalServiceError("OpenWeather returned invalid JSON") from e

        if not isinstance(data, dict) or not data.get("list"):
            raise ExternalServiceError("OpenWeather response has no forecast entries")
        return data

    @staticmethod
    def _parse_slot(slot: Dict[str, Any]) -> Dict[str, Any]:
        try:
            main = slot["main"]
            temperature = float(main["temp"])
            humidity = float(main["humidity"])
            timestamp = datetime.fromtimestamp(int(slot["dt"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError("Malformed OpenWeather forecast entry") from e
        rain = slot.get("rain") or {}
        return {
            "timestamp": timestamp,
            "temperature": temperature,
            "humidity": humidity,
            "rainfall": float(rain.get("3h") or 0.0),
        }

    def fetch(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """Current conditions (first forecast slot) at a coordinate."""
        data = self._forecast(latitude, longitude)
        reading = self._parse_slot(data["list"][0])
        reading["location_label"] = (data.get("city") or {}).get("name")
        return reading

    def forecast_outlook(self, latitude: float, longitude: float) -> List[Dict[str, Any]]:
        """
        Score each forecast day with the CRI.

        Temperature and humidity are averaged per day, rain is summed and
        soil moisture is estimated from that rain.
        """
        data = self._forecast(latitude, longitude)
        by_day: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for slot in data["list"]:
            parsed = self._parse_slot(slot)
            by_day.setdefault(parsed["timestamp"].date().isoformat(), []).append(parsed)

        outlook = []
        for day, slots in by_day.items():
            temps = [s["temperature"] for s in slots]
            avg_temp = sum(temps) / len(temps)
            avg_humidity = sum(s["humidity"] for s in slots) / len(slots)
            rainfall = sum(s["rainfall"] for s in slots)
            soil_moisture = estimate_soil_moisture(rainfall)
            score = compute_cri(avg_temp, avg_humidity, rainfall, soil_moisture)
            outlook.append(
                {
                    "date": day,
                    "temperature": {"min": min(temps), "max": max(temps), "avg": round(avg_temp, 2)},
                    "humidity": round(avg_humidity, 2),
                    "rainfall": round(rainfall, 2),
                    "soil_moisture": soil_moisture,
                    **score.to_dict(),
                }
            )
        return outlook
