"""
Tribeworks Celery Tasks

Task Modules:
    - bounties: Deadline sweep, approaching-deadline and winner-announcement reminders

Usage:
    from backend.tasks import bounties

    # Run a sweep now instead of waiting for beat
    bounties.sweep_expired_bounties_task.delay()
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    # Task modules are imported by Celery via the include config in celery_app.py
    from backend.tasks import bounties

__all__ = [
    "bounties",
]
