"""
Deadline Sweep

Batch jobs run by the scheduler:

* ``sweep_expired_bounties`` moves every OPEN, PUBLISHED bounty whose
  deadline has passed to REVIEWING and reminds the curators of those that
  received submissions.
* ``send_deadline_approaching_reminders`` warns organization owners and
  admins a few days before an OPEN bounty closes.
* ``send_winner_announcement_reminders`` nudges curators of bounties that
  have sat in review for too long without announcing winners.

All are safe to run repeatedly and concurrently. The status predicate keeps
a bounty from being swept twice; reminders are best effort and may repeat.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.core.config import settings
from backend.models import Bounty, BountyStatus, Visibility
from backend.schemas.sweep import (
    DeadlineReminderResult,
    SweepResult,
    SweptBounty,
    WinnerReminderResult,
)
from backend.services.lifecycle import ensure_bounty_transition
from backend.services.notifications import (
    NotificationCall,
    NotificationSender,
    bounty_summary,
    dispatch_best_effort,
    recipient_from_user,
)
from backend.services.store import get_organization_reviewers, unit_of_work

logger = logging.getLogger(__name__)


def _reminder_calls(sender: NotificationSender, bounty: Bounty) -> list[NotificationCall]:
    """One deadline reminder per curator of ``bounty``."""
    summary = bounty_summary(bounty)
    calls = []
    for curator in bounty.curators:
        contact = recipient_from_user(curator.user)
        calls.append(
            (
                f"deadline-reminder bounty={bounty.id} to={contact.email}",
                lambda contact=contact: sender.send_deadline_reminder_notice(contact, summary),
            )
        )
    return calls


async def sweep_expired_bounties(
    db: AsyncSession,
    sender: Optional[NotificationSender] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """
    Move expired bounties into review and remind their curators.

    Steps:
        1. Capture the ids of OPEN, PUBLISHED bounties with deadline <= now.
        2. Nothing found: return an empty result without writing.
        3. One batched ``UPDATE ... RETURNING`` sets REVIEWING for those ids,
           still guarded by status == OPEN. Only the returned ids count as
           swept by this run; anything a concurrent run got to first is
           dropped from the summary, the reminders and the stamp.
        4. Bounties with submissions get one reminder per curator; bounties
           without submissions are skipped entirely.
        5. ``last_winner_reminder_sent_at`` is stamped on exactly the bounties
           that went through step 4, after all sends have finished.

    Returns:
        SweepResult with counts and the swept bounties.
    """
    now = now or datetime.now(timezone.utc)
    ensure_bounty_transition(BountyStatus.OPEN, BountyStatus.REVIEWING, automated=True)

    result = await db.execute(
        select(Bounty)
        .options(selectinload(Bounty.curators))
        .where(
            Bounty.status == BountyStatus.OPEN,
            Bounty.visibility == Visibility.PUBLISHED,
            Bounty.deadline.is_not(None),
            Bounty.deadline <= now,
        )
        .order_by(Bounty.deadline)
    )
    expired = list(result.scalars().all())

    if not expired:
        logger.info("Deadline sweep: no expired bounties")
        return SweepResult()

    expired_ids = [bounty.id for bounty in expired]
    async with unit_of_work(db, "sweep expired bounties"):
        update_result = await db.execute(
            update(Bounty)
            .where(Bounty.id.in_(expired_ids), Bounty.status == BountyStatus.OPEN)
            .values(status=BountyStatus.REVIEWING, updated_at=now)
            .returning(Bounty.id)
            .execution_options(synchronize_session="fetch")
        )
        moved_ids = set(update_result.scalars().all())

    # A concurrent run may have moved some of them first; those are its to report
    skipped = len(expired) - len(moved_ids)
    if skipped:
        logger.info(f"Deadline sweep: {skipped} bounties were already moved by another run")
    expired = [bounty for bounty in expired if bounty.id in moved_ids]
    updated_count = len(expired)

    logger.info(f"Deadline sweep: moved {updated_count} bounties to REVIEWING")

    with_submissions = [bounty for bounty in expired if bounty.submission_count > 0]
    sweep = SweepResult(
        updated_count=updated_count,
        reminders_attempted=len(with_submissions),
        updated_bounties=[
            SweptBounty(
                id=bounty.id,
                title=bounty.title,
                deadline=bounty.deadline,
                submission_count=bounty.submission_count,
            )
            for bounty in expired
        ],
    )

    if not with_submissions:
        return sweep

    calls: list[NotificationCall] = []
    if sender is not None:
        for bounty in with_submissions:
            calls.extend(_reminder_calls(sender, bounty))
    outcome = await dispatch_best_effort(calls)
    sweep.notifications_attempted = outcome.attempted
    sweep.notifications_succeeded = outcome.succeeded

    reminded_ids = [bounty.id for bounty in with_submissions]
    async with unit_of_work(db, "stamp deadline reminders"):
        await db.execute(
            update(Bounty)
            .where(Bounty.id.in_(reminded_ids))
            .values(last_winner_reminder_sent_at=now)
            .execution_options(synchronize_session="evaluate")
        )

    logger.info(
        f"Deadline sweep: reminded curators of {len(with_submissions)} bounties, "
        f"{outcome.succeeded}/{outcome.attempted} notifications sent"
    )
    return sweep


async def send_winner_announcement_reminders(
    db: AsyncSession,
    sender: Optional[NotificationSender] = None,
    now: Optional[datetime] = None,
) -> WinnerReminderResult:
    """
    Remind curators of bounties still waiting on a winner announcement.

    Picks REVIEWING bounties whose deadline is at least
    ``winner_reminder_after_days`` old, with submissions, no announcement,
    and no reminder within ``winner_reminder_cooldown_days``.
    """
    now = now or datetime.now(timezone.utc)
    overdue_before = now - timedelta(days=settings.winner_reminder_after_days)
    cooldown_before = now - timedelta(days=settings.winner_reminder_cooldown_days)

    result = await db.execute(
        select(Bounty)
        .options(selectinload(Bounty.curators))
        .where(
            and_(
                Bounty.status == BountyStatus.REVIEWING,
                Bounty.winners_announced_at.is_(None),
                Bounty.submission_count > 0,
                Bounty.deadline.is_not(None),
                Bounty.deadline <= overdue_before,
                or_(
                    Bounty.last_winner_reminder_sent_at.is_(None),
                    Bounty.last_winner_reminder_sent_at <= cooldown_before,
                ),
            )
        )
        .order_by(Bounty.deadline)
    )
    due = list(result.scalars().all())

    if not due:
        logger.info("Winner reminders: nothing due")
        return WinnerReminderResult()

    calls: list[NotificationCall] = []
    if sender is not None:
        for bounty in due:
            calls.extend(_reminder_calls(sender, bounty))
    outcome = await dispatch_best_effort(calls)

    due_ids = [bounty.id for bounty in due]
    async with unit_of_work(db, "stamp winner reminders"):
        await db.execute(
            update(Bounty)
            .where(Bounty.id.in_(due_ids))
            .values(last_winner_reminder_sent_at=now)
            .execution_options(synchronize_session="evaluate")
        )

    logger.info(
        f"Winner reminders: {len(due)} bounties, "
        f"{outcome.succeeded}/{outcome.attempted} notifications sent"
    )
    return WinnerReminderResult(
        bounties_processed=len(due),
        notifications_attempted=outcome.attempted,
        notifications_succeeded=outcome.succeeded,
    )


async def send_deadline_approaching_reminders(
    db: AsyncSession,
    sender: Optional[NotificationSender] = None,
    now: Optional[datetime] = None,
) -> DeadlineReminderResult:
    """
    Warn organization owners and admins that a bounty closes in about three days.

    Picks OPEN, PUBLISHED bounties whose deadline falls within
    ``deadline_reminder_window_hours`` either side of
    ``deadline_reminder_lead_hours`` from now, skipping any reminded within
    ``deadline_reminder_cooldown_hours``. The window is wider than the beat
    interval so a late or missed run still catches every bounty once.
    """
    now = now or datetime.now(timezone.utc)
    lead = timedelta(hours=settings.deadline_reminder_lead_hours)
    window = timedelta(hours=settings.deadline_reminder_window_hours)
    cooldown_before = now - timedelta(hours=settings.deadline_reminder_cooldown_hours)

    result = await db.execute(
        select(Bounty)
        .where(
            and_(
                Bounty.status == BountyStatus.OPEN,
                Bounty.visibility == Visibility.PUBLISHED,
                Bounty.deadline.is_not(None),
                Bounty.deadline >= now + lead - window,
                Bounty.deadline <= now + lead + window,
                or_(
                    Bounty.last_reminder_sent_at.is_(None),
                    Bounty.last_reminder_sent_at < cooldown_before,
                ),
            )
        )
        .order_by(Bounty.deadline)
    )
    due = list(result.scalars().all())

    if not due:
        logger.info("Deadline reminders: no bounties approaching their deadline")
        return DeadlineReminderResult()

    calls: list[NotificationCall] = []
    if sender is not None:
        for bounty in due:
            summary = bounty_summary(bounty)
            for reviewer in await get_organization_reviewers(db, bounty.organization_id):
                contact = recipient_from_user(reviewer)
                calls.append(
                    (
                        f"deadline-approaching bounty={bounty.id} to={contact.email}",
                        lambda contact=contact, summary=summary: sender.send_deadline_approaching_notice(
                            contact, summary
                        ),
                    )
                )
    outcome = await dispatch_best_effort(calls)

    due_ids = [bounty.id for bounty in due]
    async with unit_of_work(db, "stamp approaching-deadline reminders"):
        await db.execute(
            update(Bounty)
            .where(Bounty.id.in_(due_ids))
            .values(last_reminder_sent_at=now)
            .execution_options(synchronize_session="evaluate")
        )

    logger.info(
        f"Deadline reminders: {len(due)} bounties, "
        f"{outcome.succeeded}/{outcome.attempted} notifications sent"
    )
    return DeadlineReminderResult(
        bounties_processed=len(due),
        notifications_attempted=outcome.attempted,
        notifications_succeeded=outcome.succeeded,
    )
