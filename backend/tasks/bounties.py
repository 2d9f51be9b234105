"""
Bounty Lifecycle Tasks
Celery tasks driving the time-based bounty transitions.

This module handles:
- Moving expired bounties to REVIEWING (deadline sweep)
- Warning organizations about bounties that close in a few days
- Reminding curators to announce winners for bounties stuck in review
"""
import asyncio
import logging

from backend.celery_app import celery_app
from backend.database import close_db, get_async_session
from backend.services.deadline_sweep import (
    send_deadline_approaching_reminders,
    send_winner_announcement_reminders,
    sweep_expired_bounties,
)
from backend.services.email import get_email_sender

logger = logging.getLogger(__name__)


# =============================================================================
# Deadline Sweep
# =============================================================================


@celery_app.task
def sweep_expired_bounties_task() -> dict:
    """
    Move OPEN, PUBLISHED bounties past their deadline to REVIEWING.

    Runs every ``deadline_sweep_interval_minutes`` via Celery Beat.

    Returns:
        Dictionary with the sweep summary.
    """
    return asyncio.run(_sweep_expired_bounties_async())


async def _sweep_expired_bounties_async() -> dict:
    try:
        async with get_async_session() as session:
            result = await sweep_expired_bounties(session, get_email_sender())
    finally:
        # Each task run owns its event loop; pooled connections can't outlive it
        await close_db()

    logger.info(
        f"Deadline sweep task: updated={result.updated_count}, "
        f"reminded={result.reminders_attempted}, "
        f"notifications={result.notifications_succeeded}/{result.notifications_attempted}"
    )
    return result.model_dump(mode="json")


# =============================================================================
# Approaching-Deadline Reminders
# =============================================================================


@celery_app.task
def send_deadline_approaching_reminders_task() -> dict:
    """
    Warn organization owners and admins about bounties closing in about
    three days.

    Runs every ``deadline_reminder_interval_hours`` via Celery Beat.
    """
    return asyncio.run(_send_deadline_approaching_reminders_async())


async def _send_deadline_approaching_reminders_async() -> dict:
    try:
        async with get_async_session() as session:
            result = await send_deadline_approaching_reminders(session, get_email_sender())
    finally:
        await close_db()

    logger.info(
        f"Deadline reminder task: bounties={result.bounties_processed}, "
        f"notifications={result.notifications_succeeded}/{result.notifications_attempted}"
    )
    return result.model_dump(mode="json")


# =============================================================================
# Winner Announcement Reminders
# =============================================================================


@celery_app.task
def send_winner_announcement_reminders_task() -> dict:
    """
    Nudge curators of bounties in review that still have no announced winners.

    Runs every ``winner_reminder_interval_hours`` via Celery Beat.
    """
    return asyncio.run(_send_winner_announcement_reminders_async())


async def _send_winner_announcement_reminders_async() -> dict:
    try:
        async with get_async_session() as session:
            result = await send_winner_announcement_reminders(session, get_email_sender())
    finally:
        await close_db()

    logger.info(
        f"Winner reminder task: bounties={result.bounties_processed}, "
        f"notifications={result.notifications_succeeded}/{result.notifications_attempted}"
    )
    return result.model_dump(mode="json")
