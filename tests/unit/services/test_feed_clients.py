"""Tests for the OpenWeather and ThingSpeak clients (HTTP mocked)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from app.domain.exceptions import ExternalServiceError
from app.services.utilities.soil_sensor_service import ThingSpeakSoilClient
from app.services.utilities.weather_service import OpenWeatherClient

# 2024-05-01 00:00 / 12:00 and 2024-05-02 00:00 UTC
SLOTS = [
    {"dt": 1714521600, "main": {"temp": 14.0, "humidity": 92}, "rain": {"3h": 2.5}},
    {"dt": 1714564800, "main": {"temp": 18.0, "humidity": 88}},
    {"dt": 1714608000, "main": {"temp": 27.0, "humidity": 40}, "rain": {"3h": 0.0}},
]


def _response(payload, status=200):
    response = MagicMock()
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


class TestOpenWeatherClient:
    @patch("app.services.utilities.weather_service.requests.get")
    def test_fetch_uses_first_slot(self, mock_get):
        mock_get.return_value = _response({"list": SLOTS, "city": {"name": "Nakuru"}})
        reading = OpenWeatherClient("key").fetch(-0.3, 36.1)

        assert reading["temperature"] == 14.0
        assert reading["humidity"] == 92.0
        assert reading["rainfall"] == 2.5
        assert reading["location_label"] == "Nakuru"
        assert reading["timestamp"].isoformat() == "2024-05-01T00:00:00+00:00"

        params = mock_get.call_args.kwargs["params"]
        assert params["units"] == "metric"
        assert params["appid"] == "key"
        assert mock_get.call_args.args[0].endswith("/forecast")

    def test_missing_api_key(self):
        with pytest.raises(ExternalServiceError):
            OpenWeatherClient("").fetch(0, 0)

    @patch("app.services.utilities.weather_service.requests.get")
    def test_http_error(self, mock_get):
        mock_get.return_value = _response({}, status=401)
        with pytest.raises(ExternalServiceError):
            OpenWeatherClient("bad").fetch(0, 0)

    @patch("app.services.utilities.weather_service.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.Timeout("slow")
        with pytest.raises(ExternalServiceError):
            OpenWeatherClient("key").fetch(0, 0)

    @patch("app.services.utilities.weather_service.requests.get")
    def test_empty_forecast(self, mock_get):
        mock_get.return_value = _response({"list": []})
        with pytest.raises(ExternalServiceError):
            OpenWeatherClient("key").fetch(0, 0)

    @patch("app.services.utilities.weather_service.requests.get")
    def test_malformed_slot(self, mock_get):
        mock_get.return_value = _response({"list": [{"dt": 1714521600, "main": {}}]})
        with pytest.raises(ExternalServiceError):
            OpenWeatherClient("key").fetch(0, 0)

    @patch("app.services.utilities.weather_service.requests.get")
    def test_outlook_groups_by_day(self, mock_get):
        mock_get.return_value = _response({"list": SLOTS})
        outlook = OpenWeatherClient("key").forecast_outlook(-0.3, 36.1)

        assert [d["date"] for d in outlook] == ["2024-05-01", "2024-05-02"]
        first = outlook[0]
        assert first["temperature"] == {"min": 14.0, "max": 18.0, "avg": 16.0}
        assert first["humidity"] == 90.0
        assert first["rainfall"] == 2.5
        assert first["soil_moisture"] == 45.0
        assert first["blight_type"] == "Late Blight"
        assert outlook[1]["blight_type"] == "Early Blight"


class TestThingSpeakSoilClient:
    @patch("app.services.utilities.soil_sensor_service.requests.get")
    def test_latest_feed_value(self, mock_get):
        mock_get.return_value = _response(
            {"feeds": [{"created_at": "2024-05-01T08:00:00Z", "field2": "63.5"}]}
        )
        sample = ThingSpeakSoilClient("12345", field_number=2, api_key="read").fetch()

        assert sample["soil_moisture"] == 63.5
        assert sample["timestamp"].isoformat() == "2024-05-01T08:00:00+00:00"
        url = mock_get.call_args.args[0]
        assert url.endswith("/channels/12345/fields/2.json")
        assert mock_get.call_args.kwargs["params"] == {"results": 1, "api_key": "read"}

    @pytest.mark.parametrize("payload", [{}, {"feeds": []}, {"feeds": [{"field1": None}]}, {"feeds": [{"field1": "nan"}]}])
    def test_unusable_payloads(self, payload):
        with patch("app.services.utilities.soil_sensor_service.requests.get", return_value=_response(payload)):
            with pytest.raises(ExternalServiceError):
                ThingSpeakSoilClient("12345").fetch()

    def test_unconfigured_channel(self):
        with pytest.raises(ExternalServiceError):
            ThingSpeakSoilClient("").fetch()

    @patch("app.services.utilities.soil_sensor_service.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(ExternalServiceError):
            ThingSpeakSoilClient("12345").fetch()
