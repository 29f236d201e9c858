"""
Service protocols (structural typing interfaces).

Protocols let consumer services declare the *minimal* surface they depend on
without importing the concrete class, keeping the risk engine independent of
any particular weather provider, soil feed, image model or delivery channel,
and making tests trivially mockable.

Usage
-----
In a consumer service::

    from __future__ import annotations
    from typing import TYPE_CHECKING
    if TYPE_CHECKING:
        from app.services.protocols import WeatherSource

    class EnvironmentalCollector:
        def __init__(self, weather: "WeatherSource", ...): ...

At runtime ``OpenWeatherClient`` already satisfies the protocol via
structural subtyping; no explicit inheritance needed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from app.domain.alerts import DispatchOutcome
from app.domain.diagnosis import ImageDiagnosis
from app.enums import NotificationType, Priority


@runtime_checkable
class WeatherSource(Protocol):
    """Current conditions at a coordinate."""

    def fetch(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """Return ``temperature``, ``humidity``, ``rainfall``, ``timestamp`` and ``location_label``.

        Raises ``ExternalServiceError`` when the provider cannot answer.
        """
        ...


@runtime_checkable
class SoilSensorSource(Protocol):
    """Latest soil-moisture sample from a field sensor feed."""

    def fetch(self) -> Dict[str, Any]:
        """Return ``soil_moisture`` (%) and ``timestamp``; may raise ``ExternalServiceError``."""
        ...


@runtime_checkable
class ImageClassifier(Protocol):
    """Image-based disease classifier."""

    def classify(self, image_bytes: bytes, contextual_cri: Optional[float]) -> ImageDiagnosis:
        """Classify a plant photo, given the environmental CRI as context."""
        ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of a notification to a farmer."""

    def send(
        self,
        farmer_id: str,
        title: str,
        body: str,
        notification_type: NotificationType,
        priority: Priority,
        data: Optional[Dict[str, Any]] = None,
    ) -> DispatchOutcome:
        ...
