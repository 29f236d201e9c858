from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.config import AppConfig
from app.services.application.alert_service import AlertService
from app.services.application.diagnosis_service import DiagnosisService
from app.services.application.environmental_collector import EnvironmentalCollector
from app.services.application.environmental_data_service import DailyAggregator
from app.services.application.notifications_service import NotificationsService
from app.services.protocols import ImageClassifier
from app.services.utilities.soil_sensor_service import ThingSpeakSoilClient
from app.services.utilities.weather_service import OpenWeatherClient
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories import (
    DiagnosisRepository,
    EnvironmentalDataRepository,
    FarmLocationRepository,
    NotificationRepository,
)
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    environment_repo: EnvironmentalDataRepository
    diagnosis_repo: DiagnosisRepository
    notification_repo: NotificationRepository
    farm_location_repo: FarmLocationRepository
    notifications_service: NotificationsService
    alert_service: AlertService
    aggregator: DailyAggregator
    diagnosis_service: DiagnosisService
    weather_client: OpenWeatherClient
    soil_client: Optional[ThingSpeakSoilClient]
    collector: EnvironmentalCollector
    scheduler: UnifiedScheduler

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        start_scheduler: Optional[bool] = None,
        classifier: Optional[ImageClassifier] = None,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            start_scheduler: Start background jobs; defaults to ``config.scheduler_enabled``
            classifier: Image classifier for ``DiagnosisService.diagnose``
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        environment_repo = EnvironmentalDataRepository(database)
        diagnosis_repo = DiagnosisRepository(database)
        notification_repo = NotificationRepository(database)
        farm_location_repo = FarmLocationRepository(database)

        notifications_service = NotificationsService(notification_repo)
        alert_service = AlertService(notifications_service, dedupe=config.alert_dedupe)
        aggregator = DailyAggregator(environment_repo, max_attempts=config.max_write_attempts)
        diagnosis_service = DiagnosisService(
            diagnosis_repo,
            aggregator,
            dispatcher=notifications_service,
            classifier=classifier,
        )

        weather_client = OpenWeatherClient(
            config.openweather_api_key,
            base_url=config.openweather_base_url,
            timeout=config.http_timeout_seconds,
        )
        soil_client = None
        if config.thingspeak_channel_id:
            soil_client = ThingSpeakSoilClient(
                config.thingspeak_channel_id,
                field_number=config.thingspeak_field,
                api_key=config.thingspeak_api_key or None,
                timeout=config.http_timeout_seconds,
            )
        else:
            logger.info("No ThingSpeak channel configured; soil moisture will be estimated from rainfall")

        collector = EnvironmentalCollector(
            aggregator,
            alert_service,
            weather=weather_client,
            soil_sensor=soil_client,
            locations=farm_location_repo,
            default_location=config.default_location(),
        )
        scheduler = UnifiedScheduler(max_workers=config.scheduler_max_workers)

        container = cls(
            config=config,
            database=database,
            environment_repo=environment_repo,
            diagnosis_repo=diagnosis_repo,
            notification_repo=notification_repo,
            farm_location_repo=farm_location_repo,
            notifications_service=notifications_service,
            alert_service=alert_service,
            aggregator=aggregator,
            diagnosis_service=diagnosis_service,
            weather_client=weather_client,
            soil_client=soil_client,
            collector=collector,
            scheduler=scheduler,
        )

        # Tasks need the full container, so the scheduler is configured last.
        from app.workers.scheduled_tasks import configure_scheduler

        if start_scheduler is None:
            start_scheduler = config.scheduler_enabled
        configure_scheduler(scheduler, container, start=start_scheduler)

        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.scheduler.stop()
        except Exception as e:
            logger.warning("Failed to stop scheduler: %s", e)
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
