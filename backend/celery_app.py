"""
Tribeworks Celery Application Configuration

Configures the task queue and the beat schedule that drives the time-based
parts of the bounty lifecycle (deadline sweep, deadline and winner reminders).
"""

import logging
import time
from datetime import timedelta
from typing import Any

from celery import Celery, Task
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from backend.core.config import settings
from backend.core.exceptions import UnknownError

logger = logging.getLogger(__name__)


# =============================================================================
# Queue Definitions
# =============================================================================

default_exchange = Exchange("default", type="direct")

TASK_QUEUES = (
    Queue("lifecycle", exchange=default_exchange, routing_key="lifecycle"),
)

TASK_ROUTES = {
    "backend.tasks.bounties.sweep_expired_bounties_task": {"queue": "lifecycle"},
    "backend.tasks.bounties.send_deadline_approaching_reminders_task": {"queue": "lifecycle"},
    "backend.tasks.bounties.send_winner_announcement_reminders_task": {"queue": "lifecycle"},
}


# =============================================================================
# Celery Application
# =============================================================================

def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Configured Celery application instance.
    """
    app = Celery(
        "tribeworks",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=[
            "backend.tasks.bounties",
        ],
    )

    app.conf.update(
        # Serialization
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # Queues
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="lifecycle",
        task_default_exchange="default",
        task_default_routing_key="lifecycle",

        # Time Limits
        task_soft_time_limit=300,
        task_time_limit=600,

        # Result Backend
        result_expires=86400,

        # Task Tracking
        task_track_started=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        # Timezone
        timezone="UTC",
        enable_utc=True,

        # Broker Settings
        broker_connection_retry_on_startup=True,

        # Beat Schedule
        beat_schedule={
            "bounty-deadline-sweep": {
                "task": "backend.tasks.bounties.sweep_expired_bounties_task",
                "schedule": timedelta(minutes=settings.deadline_sweep_interval_minutes),
            },
            "bounty-deadline-reminder": {
                "task": "backend.tasks.bounties.send_deadline_approaching_reminders_task",
                "schedule": timedelta(hours=settings.deadline_reminder_interval_hours),
            },
            "winner-announcement-reminder": {
                "task": "backend.tasks.bounties.send_winner_announcement_reminders_task",
                "schedule": timedelta(hours=settings.winner_reminder_interval_hours),
            },
        },
    )

    return app


# Create the Celery app instance
celery_app = create_celery_app()


# =============================================================================
# Custom Task Base Class with Retry Policy
# =============================================================================

class BaseTaskWithRetry(Task):
    """
    Base task class that retries store failures with exponential backoff.

    Lifecycle errors other than UnknownError are definitive answers and are
    not retried. Notification failures never reach this layer.
    """

    autoretry_for = (UnknownError,)
    max_retries = 3
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task failure."""
        logger.error(
            f"Task {self.name}[{task_id}] failed after {self.request.retries} retries: {exc}",
            exc_info=True,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)


celery_app.Task = BaseTaskWithRetry


# =============================================================================
# Monitoring Hooks
# =============================================================================

_task_start_times: dict[str, float] = {}


@task_prerun.connect
def task_prerun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    **extra: Any,
) -> None:
    """Record task start time for latency tracking."""
    if task_id:
        _task_start_times[task_id] = time.time()


@task_postrun.connect
def task_postrun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    state: str | None = None,
    **extra: Any,
) -> None:
    """Log task latency."""
    if task_id and task_id in _task_start_times:
        latency = time.time() - _task_start_times.pop(task_id)
        task_name = sender.name if sender else "unknown"
        logger.info(f"Task {task_name}[{task_id}] completed in {latency:.3f}s with state={state}")


@task_failure.connect
def task_failure_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    exception: Exception | None = None,
    **kwargs: Any,
) -> None:
    logger.error(f"Task {sender.name if sender else 'unknown'}[{task_id}] failed: {exception}")
    if task_id:
        _task_start_times.pop(task_id, None)


__all__ = [
    "celery_app",
    "BaseTaskWithRetry",
]
