"""Best-effort dispatch of blight-risk and weather-change alerts."""

import logging
from collections import OrderedDict
from typing import List, Optional, Tuple

from app.domain.alerts import Alert, DispatchOutcome, evaluate_alerts
from app.domain.environment import DailyEnvironmentalRecord
from app.enums import DispatchStatus
from app.services.protocols import NotificationDispatcher

logger = logging.getLogger(__name__)

# Maximum number of alert signatures remembered for deduplication.
_SENT_CACHE_MAXSIZE = 2048


class AlertService:
    """Evaluates the alert policy for a daily record and hands alerts to a dispatcher.

    Dispatch never raises into the aggregation pipeline: every alert yields a
    :class:`DispatchOutcome` and failures are logged.
    """

    def __init__(self, dispatcher: NotificationDispatcher, *, dedupe: bool = True):
        """Initialize the alert service.

        Args:
            dispatcher: Delivery collaborator (``NotificationsService`` in production)
            dedupe: Suppress an identical alert for the same day record within this process
        """
        self.dispatcher = dispatcher
        self._dedupe = dedupe
        # LRU of alert signatures already delivered
        self._sent: "OrderedDict[Tuple[str, ...], None]" = OrderedDict()

    @staticmethod
    def _signature(record: DailyEnvironmentalRecord, alert: Alert) -> Tuple[str, ...]:
        return (record.key, alert.notification_type.value, alert.title, alert.priority.value, alert.body)

    def _remember(self, signature: Tuple[str, ...]) -> None:
        self._sent[signature] = None
        self._sent.move_to_end(signature)
        while len(self._sent) > _SENT_CACHE_MAXSIZE:
            self._sent.popitem(last=False)

    def dispatch_alert(self, alert: Alert, signature: Optional[Tuple[str, ...]] = None) -> DispatchOutcome:
        """Send a single alert; returns the outcome instead of raising."""
        if not alert.farmer_id:
            return DispatchOutcome.skipped("record has no farmer")

        if self._dedupe and signature is not None and signature in self._sent:
            logger.debug("Suppressing duplicate %s alert for farmer %s", alert.notification_type, alert.farmer_id)
            return DispatchOutcome.skipped("duplicate alert")

        try:
            outcome = self.dispatcher.send(
                alert.farmer_id,
                alert.title,
                alert.body,
                alert.notification_type,
                alert.priority,
                alert.data,
            )
        except Exception as exc:
            logger.error(
                "Failed to dispatch %s alert to farmer %s: %s",
                alert.notification_type,
                alert.farmer_id,
                exc,
                exc_info=True,
            )
            return DispatchOutcome.failed(str(exc))

        if outcome.status == DispatchStatus.FAILED:
            logger.error("Dispatcher reported failure for %s alert: %s", alert.notification_type, outcome.reason)
        elif signature is not None:
            self._remember(signature)
        return outcome

    def process_record(self, record: DailyEnvironmentalRecord) -> List[DispatchOutcome]:
        """Evaluate and dispatch every alert a daily record warrants."""
        if not record.farmer_id:
            return []
        try:
            alerts = evaluate_alerts(record)
        except Exception as exc:
            logger.error("Alert evaluation failed for %s: %s", record.key, exc, exc_info=True)
            return [DispatchOutcome.failed(str(exc))]
        return [self.dispatch_alert(alert, self._signature(record, alert)) for alert in alerts]
