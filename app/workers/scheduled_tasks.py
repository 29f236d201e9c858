"""
Scheduled Tasks
===============

Background jobs for the UnifiedScheduler:

- environment.collect: pull weather + soil feeds for every collection
  target and fold them into the day records (runs once at startup)
- notifications.farming_tip: daily rotating tip for every farmer with a
  registered location

Usage:
    scheduler = UnifiedScheduler()
    configure_scheduler(scheduler, container)
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Dict

from app.utils.time import utc_today

if TYPE_CHECKING:
    from app.services.container import ServiceContainer
    from app.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)

COLLECT_TASK = "environment.collect"
FARMING_TIP_TASK = "notifications.farming_tip"


def environment_collect_task(container: "ServiceContainer") -> Dict[str, Any]:
    return container.collector.collect()


def farming_tip_task(container: "ServiceContainer") -> Dict[str, Any]:
    """Send today's tip once to each farmer with an active location."""
    today = utc_today()
    farmers = sorted({loc.farmer_id for loc in container.farm_location_repo.active() if loc.farmer_id})
    summary = {"farmers": len(farmers), "delivered": 0, "skipped": 0, "failed": 0}
    for farmer_id in farmers:
        outcome = container.notifications_service.send_farming_tip(farmer_id, day=today)
        summary[outcome.status.value] += 1
    logger.info("Farming tips sent: %s", summary)
    return summary


def register_all_tasks(scheduler: "UnifiedScheduler", container: "ServiceContainer") -> None:
    def bind(task_fn: Callable[["ServiceContainer"], Any]) -> Callable[[], Any]:
        @wraps(task_fn)
        def bound_task():
            try:
                return task_fn(container)
            except Exception:
                logger.exception("Scheduled task %s raised", task_fn.__name__)
                # re-raise so the scheduler records the failure in history
                raise

        return bound_task

    scheduler.register_task(COLLECT_TASK, bind(environment_collect_task))
    scheduler.register_task(FARMING_TIP_TASK, bind(farming_tip_task))


def schedule_default_jobs(scheduler: "UnifiedScheduler", container: "ServiceContainer") -> None:
    config = container.config
    scheduler.schedule_interval(
        COLLECT_TASK,
        config.collection_interval_seconds,
        job_id="environment_collect",
        start_immediately=True,
    )
    if config.farming_tips_enabled:
        scheduler.schedule_daily(FARMING_TIP_TASK, config.farming_tip_time, job_id="farming_tip_daily")

    for job in scheduler.get_jobs():
        logger.debug("  - %s: %s", job.job_id, job.schedule_type.value)


def configure_scheduler(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
    *,
    start: bool = True,
) -> None:
    """Register tasks, apply default schedules, and optionally start the scheduler."""
    register_all_tasks(scheduler, container)
    schedule_default_jobs(scheduler, container)
    if start:
        scheduler.start()
