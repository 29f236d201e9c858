"""ThingSpeak soil-moisture feed client."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import requests

from app.domain.exceptions import ExternalServiceError
from app.utils.time import coerce_datetime, utc_now

logger = logging.getLogger(__name__)


class ThingSpeakSoilClient:
    """Latest soil-moisture sample from a ThingSpeak channel field.

    Satisfies :class:`app.services.protocols.SoilSensorSource`.
    """

    DEFAULT_BASE_URL = "https://api.thingspeak.com"

    def __init__(
        self,
        channel_id: str,
        field_number: int = 1,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ):
        self.channel_id = channel_id
        self.field_number = field_number
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch(self) -> Dict[str, Any]:
        if not self.channel_id:
            raise ExternalServiceError("ThingSpeak channel is not configured")

        url = f"{self.base_url}/channels/{self.channel_id}/fields/{self.field_number}.json"
        params: Dict[str, Any] = {"results": 1}
        if self.api_key:
            params["api_key"] = self.api_key

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning("ThingSpeak request failed for channel %s: %s", self.channel_id, e)
            raise ExternalServiceError("Failed to fetch soil moisture data") from e
        except ValueError as e:
            raise ExternalServiceError("ThingSpeak returned invalid JSON") from e

        feeds = data.get("feeds") if isinstance(data, dict) else None
        if not feeds:
            raise ExternalServiceError("Invalid soil moisture data format")

        latest = feeds[-1]
        raw = latest.get(f"field{self.field_number}")
        try:
            moisture = float(raw)
        except (TypeError, ValueError) as e:
            raise ExternalServiceError(f"Soil moisture value {raw!r} is not a number") from e
        if not math.isfinite(moisture):
            raise ExternalServiceError("Soil moisture value is not finite")

        return {
            "soil_moisture": moisture,
            "timestamp": coerce_datetime(latest.get("created_at")) or utc_now(),
        }
