"""
Application and Submission Intake

Creates grant applications and bounty submissions. Each call runs
strictly in order: eligibility guard, payload validation, persistence with
counter increments (one transaction), then the first-entry notification
fan-out. The fan-out never fails the request.

A submitter may also edit or withdraw their own entry until the bounty
closes; withdrawal gives back its slot in the submission count.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, ValidationError
from backend.models import (
    RFP,
    ApplicationStatus,
    Bounty,
    Grant,
    GrantApplication,
    Submission,
    SubmissionStatus,
)
from backend.schemas.applications import ApplicationCreate
from backend.schemas.bounties import SubmissionCreate, SubmissionUpdate
from backend.schemas.common import parse_payload
from backend.services.eligibility import (
    can_apply_to_grant,
    can_modify_submission,
    can_submit_to_bounty,
)
from backend.services.notifications import (
    NotificationSender,
    application_summary,
    bounty_summary,
    dispatch_best_effort,
    grant_summary,
    recipient_from_user,
    submission_summary,
)
from backend.services.store import (
    EntityRef,
    get_bounty_curators,
    get_grant_curators,
    get_membership,
    resolve_bounty,
    resolve_grant,
    unit_of_work,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Grant Applications
# =============================================================================


def _check_budget(grant: Grant, data: ApplicationCreate) -> None:
    """Budget must fall inside the grant's range when both bounds are set."""
    if data.budget is None or grant.min_amount is None or grant.max_amount is None:
        return
    if not grant.min_amount <= data.budget <= grant.max_amount:
        raise ValidationError(
            f"Budget must be between {grant.min_amount} and {grant.max_amount}"
        )


async def create_application(
    db: AsyncSession,
    grant_ref: EntityRef,
    user_id: UUID,
    payload: Any,
    sender: Optional[NotificationSender] = None,
) -> GrantApplication:
    """
    Submit a grant application on behalf of ``user_id``.

    Args:
        db: Database session
        grant_ref: Grant id or slug (case-insensitive)
        user_id: Verified applicant id
        payload: Raw application fields (validated with ApplicationCreate)
        sender: Notification sender for the first-application fan-out

    Returns:
        The stored application, with its applicant loaded.

    Raises:
        NotFoundError, SelfDealingError, InvalidStateError,
        UnsupportedSourceError, ConflictError, ValidationError, UnknownError
    """
    grant = await resolve_grant(db, grant_ref)
    existing = membership = None
    if grant is not None:
        membership = await get_membership(db, grant.organization_id, user_id)
        result = await db.execute(
            select(GrantApplication.id).where(
                GrantApplication.grant_id == grant.id,
                GrantApplication.user_id == user_id,
            )
        )
        existing = result.scalar_one_or_none()
    can_apply_to_grant(grant, user_id, existing, membership)

    data = parse_payload(ApplicationCreate, payload)
    _check_budget(grant, data)

    if data.rfp_id is not None:
        rfp = await db.get(RFP, data.rfp_id)
        if rfp is None or rfp.grant_id != grant.id:
            raise NotFoundError("RFP", str(data.rfp_id))

    now = datetime.now(timezone.utc)
    application = GrantApplication(
        grant_id=grant.id,
        rfp_id=data.rfp_id,
        user_id=user_id,
        title=data.title.strip(),
        summary=data.summary,
        description=data.description,
        timeline=[entry.model_dump() for entry in data.timeline] if data.timeline else None,
        milestones=[entry.model_dump() for entry in data.milestones] if data.milestones else None,
        budget=data.budget,
        responses=data.responses,
        status=ApplicationStatus.SUBMITTED,
        submitted_at=now,
    )

    async with unit_of_work(db, "create application", "You have already applied to this grant"):
        db.add(application)
        await db.flush()
        result = await db.execute(
            update(Grant)
            .where(Grant.id == grant.id)
            .values(application_count=Grant.application_count + 1)
            .returning(Grant.application_count)
            .execution_options(synchronize_session=False)
        )
        application_count = result.scalar_one()
        if data.rfp_id is not None:
            await db.execute(
                update(RFP)
                .where(RFP.id == data.rfp_id)
                .values(application_count=RFP.application_count + 1)
                .execution_options(synchronize_session=False)
            )

    await db.refresh(grant)
    await db.refresh(application)
    logger.info(f"Application {application.id} created for grant {grant.id} by user {user_id}")

    if application_count == 1 and sender is not None:
        await _notify_first_application(db, sender, grant, application)

    return application


async def _notify_first_application(
    db: AsyncSession,
    sender: NotificationSender,
    grant: Grant,
    application: GrantApplication,
) -> None:
    curators = await get_grant_curators(db, grant.id)
    grant_info = grant_summary(grant)
    application_info = application_summary(application, application.applicant)

    calls = [
        (
            f"first-application grant={grant.id} to={curator.email}",
            lambda contact=recipient_from_user(curator): sender.send_first_application_notice(
                contact, grant_info, application_info
            ),
        )
        for curator in curators
    ]
    outcome = await dispatch_best_effort(calls)
    logger.info(
        f"First-application notices for grant {grant.id}: "
        f"{outcome.succeeded}/{outcome.attempted} sent"
    )


# =============================================================================
# Bounty Submissions
# =============================================================================


async def create_submission(
    db: AsyncSession,
    bounty_ref: EntityRef,
    user_id: UUID,
    payload: Any,
    sender: Optional[NotificationSender] = None,
) -> Submission:
    """
    Submit to a bounty on behalf of ``user_id``.

    Mirrors create_application: one entry per (bounty, user), bounty must be
    OPEN and PUBLISHED, and the first submission notifies every curator.
    """
    bounty = await resolve_bounty(db, bounty_ref)
    existing = membership = None
    if bounty is not None:
        membership = await get_membership(db, bounty.organization_id, user_id)
        result = await db.execute(
            select(Submission.id).where(
                Submission.bounty_id == bounty.id,
                Submission.user_id == user_id,
            )
        )
        existing = result.scalar_one_or_none()

    now = datetime.now(timezone.utc)
    can_submit_to_bounty(bounty, user_id, existing, membership, now=now)

    data = parse_payload(SubmissionCreate, payload)
    title = (data.title or "").strip() or f"Submission for {bounty.title}"

    submission = Submission(
        bounty_id=bounty.id,
        user_id=user_id,
        title=title,
        description=data.description,
        submission_url=data.submission_url,
        responses=data.responses,
        status=SubmissionStatus.SUBMITTED,
        is_winner=False,
        submitted_at=now,
    )

    async with unit_of_work(db, "create submission", "You have already submitted to this bounty"):
        db.add(submission)
        await db.flush()
        result = await db.execute(
            update(Bounty)
            .where(Bounty.id == bounty.id)
            .values(submission_count=Bounty.submission_count + 1)
            .returning(Bounty.submission_count)
            .execution_options(synchronize_session=False)
        )
        submission_count = result.scalar_one()

    await db.refresh(bounty)
    await db.refresh(submission)
    logger.info(f"Submission {submission.id} created for bounty {bounty.id} by user {user_id}")

    if submission_count == 1 and sender is not None:
        await _notify_first_submission(db, sender, bounty, submission)

    return submission


async def _notify_first_submission(
    db: AsyncSession,
    sender: NotificationSender,
    bounty: Bounty,
    submission: Submission,
) -> None:
    curators = await get_bounty_curators(db, bounty.id)
    bounty_info = bounty_summary(bounty)
    submission_info = submission_summary(submission, submission.submitter)

    calls = [
        (
            f"first-submission bounty={bounty.id} to={curator.email}",
            lambda contact=recipient_from_user(curator): sender.send_first_submission_notice(
                contact, bounty_info, submission_info
            ),
        )
        for curator in curators
    ]
    outcome = await dispatch_best_effort(calls)
    logger.info(
        f"First-submission notices for bounty {bounty.id}: "
        f"{outcome.succeeded}/{outcome.attempted} sent"
    )


# =============================================================================
# Submitter's Own Entry
# =============================================================================


async def _load_own_submission(
    db: AsyncSession,
    bounty_ref: EntityRef,
    user_id: UUID,
) -> tuple[Bounty, Optional[Submission]]:
    bounty = await resolve_bounty(db, bounty_ref)
    if bounty is None:
        raise NotFoundError("Bounty", str(bounty_ref))
    result = await db.execute(
        select(Submission).where(
            Submission.bounty_id == bounty.id,
            Submission.user_id == user_id,
        )
    )
    return bounty, result.scalar_one_or_none()


async def get_own_submission(db: AsyncSession, bounty_ref: EntityRef, user_id: UUID) -> Submission:
    """The entry ``user_id`` made to the bounty. Visible to its author at any time."""
    _, submission = await _load_own_submission(db, bounty_ref, user_id)
    if submission is None:
        raise NotFoundError("Submission")
    return submission


async def update_submission(
    db: AsyncSession,
    bounty_ref: EntityRef,
    user_id: UUID,
    payload: Any,
) -> Submission:
    """
    Edit the submitter's own entry while the bounty is still open.

    Only the fields present in ``payload`` change. Winning entries are frozen.
    """
    bounty, submission = await _load_own_submission(db, bounty_ref, user_id)
    can_modify_submission(bounty, submission, "edit")

    data = parse_payload(SubmissionUpdate, payload)
    changes = data.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] is not None:
        changes["title"] = changes["title"].strip() or submission.title

    async with unit_of_work(db, "update submission"):
        for field, value in changes.items():
            setattr(submission, field, value)

    logger.info(f"Submission {submission.id} updated by user {user_id} ({', '.join(changes) or 'no changes'})")
    return submission


async def withdraw_submission(db: AsyncSession, bounty_ref: EntityRef, user_id: UUID) -> None:
    """
    Delete the submitter's own entry and give back its slot in the count.

    Same window as editing: the bounty must be OPEN, before its deadline, and
    the entry must not be a winner.
    """
    bounty, submission = await _load_own_submission(db, bounty_ref, user_id)
    can_modify_submission(bounty, submission, "delete")

    async with unit_of_work(db, "withdraw submission"):
        await db.delete(submission)
        await db.execute(
            update(Bounty)
            .where(Bounty.id == bounty.id, Bounty.submission_count > 0)
            .values(submission_count=Bounty.submission_count - 1)
            .execution_options(synchronize_session=False)
        )

    await db.refresh(bounty)
    logger.info(f"Submission {submission.id} withdrawn from bounty {bounty.id} by user {user_id}")
