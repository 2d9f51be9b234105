"""
Review & Winner Allocation

Reviewer-side lifecycle operations: application decisions, winner
positions, rejection, winner announcement, status changes and bounty
creation/deletion. Every operation resolves the entity, then passes the
actor's membership through the eligibility guard before touching anything.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backend.models import (
    ApplicationStatus,
    Bounty,
    BountyStatus,
    Curator,
    Grant,
    GrantApplication,
    Organization,
    Submission,
    SubmissionStatus,
    Visibility,
)
from backend.schemas.bounties import BountyCreate
from backend.schemas.common import parse_payload
from backend.services.eligibility import (
    REVIEWER_ROLES,
    as_utc,
    can_delete_bounty,
    can_review_entity,
)
from backend.services.lifecycle import (
    APPLICATION_REVIEW_DECISIONS,
    REVIEWABLE_APPLICATION_STATUSES,
    SELECTABLE_SUBMISSION_STATUSES,
    WINNER_SELECTION_STATUSES,
    ensure_bounty_transition,
    prize_for_position,
    validate_prize_table,
)
from backend.services.notifications import (
    NotificationSender,
    application_status_summary,
    dispatch_best_effort,
    grant_summary,
    recipient_from_user,
    winner_summary,
)
from backend.services.store import (
    EntityRef,
    get_membership,
    resolve_bounty,
    resolve_grant,
    unit_of_work,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================


async def _load_grant(db: AsyncSession, grant_ref: EntityRef) -> Grant:
    grant = await resolve_grant(db, grant_ref)
    if grant is None:
        raise NotFoundError("Grant", str(grant_ref))
    return grant


async def _load_bounty(db: AsyncSession, bounty_ref: EntityRef) -> Bounty:
    bounty = await resolve_bounty(db, bounty_ref)
    if bounty is None:
        raise NotFoundError("Bounty", str(bounty_ref))
    return bounty


async def _load_submission(db: AsyncSession, bounty: Bounty, submission_id: UUID) -> Submission:
    result = await db.execute(
        select(Submission).where(
            Submission.id == submission_id,
            Submission.bounty_id == bounty.id,
        )
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission", str(submission_id))
    return submission


async def _authorize_reviewer(db: AsyncSession, organization_id: UUID, actor_id: UUID) -> None:
    membership = await get_membership(db, organization_id, actor_id)
    can_review_entity(membership)


def _ensure_not_announced(bounty: Bounty) -> None:
    if bounty.winners_announced_at is not None:
        raise InvalidStateError("Winners have already been announced for this bounty")


# =============================================================================
# Grant Applications
# =============================================================================


async def review_application(
    db: AsyncSession,
    grant_ref: EntityRef,
    application_id: UUID,
    actor_id: UUID,
    decision: Any,
    feedback: Optional[str] = None,
    sender: Optional[NotificationSender] = None,
) -> GrantApplication:
    """
    Approve or reject an application.

    Rejections must carry feedback. Once decided, an application is not
    reviewed again. The applicant is emailed after the decision is stored.
    """
    grant = await _load_grant(db, grant_ref)
    result = await db.execute(
        select(GrantApplication).where(
            GrantApplication.id == application_id,
            GrantApplication.grant_id == grant.id,
        )
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFoundError("Application", str(application_id))

    await _authorize_reviewer(db, grant.organization_id, actor_id)

    try:
        decision = ApplicationStatus(decision)
    except ValueError as e:
        raise ValidationError(f"Invalid review decision: {decision}") from e
    if decision not in APPLICATION_REVIEW_DECISIONS:
        raise ValidationError("Review decision must be APPROVED or REJECTED")

    feedback = (feedback or "").strip() or None
    if decision == ApplicationStatus.REJECTED and feedback is None:
        raise ValidationError("Feedback is required when rejecting an application")

    if application.status not in REVIEWABLE_APPLICATION_STATUSES:
        raise InvalidStateError(
            f"Application is {application.status.value} and cannot be reviewed"
        )

    async with unit_of_work(db, "review application"):
        application.status = decision
        application.feedback = feedback
        application.reviewed_at = datetime.now(timezone.utc)

    logger.info(f"Application {application.id} marked {decision.value} by {actor_id}")

    if sender is not None:
        applicant = recipient_from_user(application.applicant)
        grant_info = grant_summary(grant)
        status_info = application_status_summary(application, grant)
        await dispatch_best_effort(
            [
                (
                    f"application-status application={application.id} to={applicant.email}",
                    lambda: sender.send_application_status_notice(applicant, grant_info, status_info),
                )
            ]
        )

    return application


# =============================================================================
# Winner Allocation
# =============================================================================


async def select_winner(
    db: AsyncSession,
    bounty_ref: EntityRef,
    submission_id: UUID,
    actor_id: UUID,
    position: Optional[int],
    amount: Optional[Decimal] = None,
) -> Submission:
    """
    Assign a winner position to a submission, or clear it with ``position=None``.

    The position must exist in the bounty's prize table and must not be held
    by another submission. ``amount`` defaults to the configured prize; an
    explicit amount has to match it exactly.
    """
    bounty = await _load_bounty(db, bounty_ref)
    submission = await _load_submission(db, bounty, submission_id)
    await _authorize_reviewer(db, bounty.organization_id, actor_id)

    if bounty.status not in WINNER_SELECTION_STATUSES:
        raise InvalidStateError(f"Cannot select winners for a {bounty.status.value} bounty")
    _ensure_not_announced(bounty)

    if position is None:
        return await _clear_position(db, bounty, submission)

    if submission.status not in SELECTABLE_SUBMISSION_STATUSES:
        raise InvalidStateError(
            f"A {submission.status.value} submission cannot be selected as a winner"
        )

    prize = prize_for_position(bounty.winnings, position)
    if prize is None:
        raise ValidationError(f"Position {position} is not in the bounty's prize table")
    if amount is not None and Decimal(str(amount)) != prize:
        raise ValidationError(
            f"Amount {amount} does not match the prize for position {position} ({prize})"
        )

    result = await db.execute(
        select(Submission.id).where(
            Submission.bounty_id == bounty.id,
            Submission.is_winner.is_(True),
            Submission.position == position,
            Submission.id != submission.id,
        )
    )
    if result.first() is not None:
        raise ConflictError(f"Position {position} is already assigned to another submission")

    async with unit_of_work(db, "select winner", f"Position {position} is already assigned"):
        submission.is_winner = True
        submission.position = position
        submission.winning_amount = prize
        submission.status = SubmissionStatus.SELECTED
        submission.reviewed_at = datetime.now(timezone.utc)

    logger.info(f"Submission {submission.id} selected for position {position} of bounty {bounty.id}")
    return submission


async def _clear_position(db: AsyncSession, bounty: Bounty, submission: Submission) -> Submission:
    """Take one submission off the winners list. Its status is left as it is."""
    if submission.position is None and not submission.is_winner:
        return submission

    previous = submission.position
    async with unit_of_work(db, "clear winner position"):
        submission.is_winner = False
        submission.position = None
        submission.winning_amount = None
        submission.reviewed_at = datetime.now(timezone.utc)

    logger.info(f"Submission {submission.id} cleared from position {previous} of bounty {bounty.id}")
    return submission


async def reject_submission(
    db: AsyncSession,
    bounty_ref: EntityRef,
    submission_id: UUID,
    actor_id: UUID,
    spam: bool = False,
) -> Submission:
    """
    Reject a submission, releasing any position it held.

    Flagging as spam is refused while the submission holds a position; the
    position has to be cleared first.
    """
    bounty = await _load_bounty(db, bounty_ref)
    submission = await _load_submission(db, bounty, submission_id)
    await _authorize_reviewer(db, bounty.organization_id, actor_id)
    _ensure_not_announced(bounty)
    if spam and submission.position is not None:
        raise InvalidStateError(
            "Cannot mark a winner as spam. Clear its position first"
        )

    async with unit_of_work(db, "reject submission"):
        submission.status = SubmissionStatus.SPAM if spam else SubmissionStatus.REJECTED
        submission.is_winner = False
        submission.position = None
        submission.winning_amount = None
        submission.reviewed_at = datetime.now(timezone.utc)

    logger.info(f"Submission {submission.id} marked {submission.status.value}")
    return submission


async def reset_winners(db: AsyncSession, bounty_ref: EntityRef, actor_id: UUID) -> int:
    """Return every selected submission to SUBMITTED. Returns how many changed."""
    bounty = await _load_bounty(db, bounty_ref)
    await _authorize_reviewer(db, bounty.organization_id, actor_id)
    _ensure_not_announced(bounty)

    result = await db.execute(
        select(Submission).where(
            Submission.bounty_id == bounty.id,
            Submission.is_winner.is_(True),
        )
    )
    winners = result.scalars().all()

    async with unit_of_work(db, "reset winners"):
        for submission in winners:
            submission.is_winner = False
            submission.position = None
            submission.winning_amount = None
            submission.status = SubmissionStatus.SUBMITTED

    logger.info(f"Reset {len(winners)} winners of bounty {bounty.id}")
    return len(winners)


async def announce_winners(
    db: AsyncSession,
    bounty_ref: EntityRef,
    actor_id: UUID,
    sender: Optional[NotificationSender] = None,
    now: Optional[datetime] = None,
) -> tuple[Bounty, list[Submission]]:
    """
    Publish the results of a bounty in review.

    Completes the bounty and stamps ``winners_announced_at``, which is what
    makes its submissions visible outside the organization. Each winner is
    then emailed.
    """
    now = now or datetime.now(timezone.utc)
    bounty = await _load_bounty(db, bounty_ref)
    await _authorize_reviewer(db, bounty.organization_id, actor_id)
    _ensure_not_announced(bounty)
    if bounty.status != BountyStatus.REVIEWING:
        raise InvalidStateError("Winners can only be announced while the bounty is in review")
    ensure_bounty_transition(bounty.status, BountyStatus.COMPLETED)

    result = await db.execute(
        select(Submission)
        .where(Submission.bounty_id == bounty.id, Submission.is_winner.is_(True))
        .order_by(Submission.position)
    )
    winners = list(result.scalars().all())
    if not winners:
        raise InvalidStateError("Select at least one winner before announcing")

    async with unit_of_work(db, "announce winners"):
        bounty.status = BountyStatus.COMPLETED
        bounty.winners_announced_at = now

    logger.info(f"Announced {len(winners)} winners for bounty {bounty.id}")

    if sender is not None:
        organization = await db.get(Organization, bounty.organization_id)
        organization_name = organization.name if organization else ""
        calls = []
        for winner in winners:
            contact = recipient_from_user(winner.submitter)
            prize = winner_summary(winner, bounty, organization_name)
            calls.append(
                (
                    f"winner bounty={bounty.id} submission={winner.id}",
                    lambda contact=contact, prize=prize: sender.send_winner_notice(contact, prize),
                )
            )
        outcome = await dispatch_best_effort(calls)
        logger.info(
            f"Winner notices for bounty {bounty.id}: {outcome.succeeded}/{outcome.attempted} sent"
        )

    return bounty, winners


async def list_bounty_submissions(
    db: AsyncSession,
    bounty_ref: EntityRef,
    viewer_id: Optional[UUID] = None,
) -> list[Submission]:
    """
    Submissions visible to ``viewer_id``.

    Owners and admins of the organization always see everything. Everyone
    else sees nothing until the winners are announced, and never spam.
    """
    bounty = await _load_bounty(db, bounty_ref)
    membership = await get_membership(db, bounty.organization_id, viewer_id)

    query = select(Submission).where(Submission.bounty_id == bounty.id)
    if membership is None or membership.role not in REVIEWER_ROLES:
        if bounty.winners_announced_at is None:
            return []
        query = query.where(Submission.status != SubmissionStatus.SPAM)

    # Winners first, by position, then everyone else in arrival order
    query = query.order_by(
        Submission.is_winner.desc(),
        Submission.position,
        Submission.submitted_at,
    )
    result = await db.execute(query)
    return list(result.scalars().all())


# =============================================================================
# Bounty Administration
# =============================================================================


async def update_bounty_status(
    db: AsyncSession,
    bounty_ref: EntityRef,
    actor_id: UUID,
    status: Any,
) -> Bounty:
    """
    Move a bounty along an actor-initiated edge.

    OPEN to REVIEWING belongs to the deadline sweep, and COMPLETED is only
    reached by announcing winners.
    """
    bounty = await _load_bounty(db, bounty_ref)
    await _authorize_reviewer(db, bounty.organization_id, actor_id)

    try:
        target = BountyStatus(status)
    except ValueError as e:
        raise ValidationError(f"Invalid bounty status: {status}") from e

    ensure_bounty_transition(bounty.status, target)
    if target == BountyStatus.COMPLETED:
        raise InvalidStateError("Announce the winners to complete a bounty")

    previous = bounty.status
    async with unit_of_work(db, "update bounty status"):
        bounty.status = target

    logger.info(f"Bounty {bounty.id} moved from {previous.value} to {target.value} by {actor_id}")
    return bounty


async def delete_bounty(db: AsyncSession, bounty_ref: EntityRef, actor_id: UUID) -> None:
    """Delete a bounty that has never received a submission."""
    bounty = await _load_bounty(db, bounty_ref)
    membership = await get_membership(db, bounty.organization_id, actor_id)
    can_delete_bounty(membership, bounty.submission_count)

    async with unit_of_work(db, "delete bounty"):
        await db.delete(bounty)

    logger.info(f"Bounty {bounty.id} deleted by {actor_id}")


async def create_bounty(
    db: AsyncSession,
    organization_id: UUID,
    actor_id: UUID,
    payload: Any,
) -> Bounty:
    """
    Create a bounty for an organization. The creator becomes its first curator.

    Raises:
        NotFoundError: Organization missing.
        AuthorizationError: Actor is not an owner or admin.
        ValidationError: Payload or prize table invalid, or a published
            bounty with a deadline in the past.
        ConflictError: Slug taken.
    """
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError("Organization", str(organization_id))
    await _authorize_reviewer(db, organization.id, actor_id)

    data = parse_payload(BountyCreate, payload)
    winnings = validate_prize_table(data.amount, data.winnings)

    deadline = as_utc(data.deadline)
    if (
        deadline is not None
        and data.visibility == Visibility.PUBLISHED
        and deadline <= datetime.now(timezone.utc) + timedelta(seconds=1)
    ):
        raise ValidationError("Deadline must be in the future")

    bounty = Bounty(
        organization_id=organization.id,
        slug=data.slug,
        title=data.title.strip(),
        description=data.description,
        skills=data.skills,
        amount=data.amount,
        token=data.token,
        split=data.split,
        # JSON has no decimal type; prizes are kept as exact decimal text
        winnings={position: str(prize) for position, prize in winnings.items()} or None,
        deadline=deadline,
        status=BountyStatus.OPEN,
        visibility=data.visibility,
        submission_count=0,
    )

    async with unit_of_work(db, "create bounty", f"A bounty with slug '{data.slug}' already exists"):
        db.add(bounty)
        await db.flush()
        db.add(Curator(user_id=actor_id, bounty_id=bounty.id))

    logger.info(f"Bounty {bounty.id} created in organization {organization.id} by {actor_id}")
    return bounty
