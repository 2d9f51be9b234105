"""
Notification Dispatcher Adapter

Thin wrapper around the outbound notification sender. Lifecycle operations
hand it a batch of labelled send calls; every call gets exactly one attempt,
each failure is logged on its own, and the caller only ever sees aggregate
counts. Nothing raised by a sender escapes ``dispatch_best_effort``.
"""
import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Tuple

from backend.core.config import settings
from backend.delivery.models import DeliveryStatus
from backend.models import Bounty, Grant, GrantApplication, Submission, User
from backend.schemas.notifications import (
    ApplicationStatusSummary,
    ApplicationSummary,
    BountySummary,
    DispatchFailure,
    DispatchOutcome,
    GrantSummary,
    RecipientContact,
    SubmissionSummary,
    WinnerSummary,
)

logger = logging.getLogger(__name__)

# (label, zero-argument factory returning the send coroutine)
NotificationCall = Tuple[str, Callable[[], Awaitable[Optional[DeliveryStatus]]]]


class NotificationSender(Protocol):
    """Outbound lifecycle notifications. Implementations may raise."""

    async def send_first_application_notice(
        self,
        curator: RecipientContact,
        grant: GrantSummary,
        application: ApplicationSummary,
    ) -> DeliveryStatus: ...

    async def send_first_submission_notice(
        self,
        curator: RecipientContact,
        bounty: BountySummary,
        submission: SubmissionSummary,
    ) -> DeliveryStatus: ...

    async def send_deadline_reminder_notice(
        self,
        curator: RecipientContact,
        bounty: BountySummary,
    ) -> DeliveryStatus: ...

    async def send_deadline_approaching_notice(
        self,
        member: RecipientContact,
        bounty: BountySummary,
    ) -> DeliveryStatus: ...

    async def send_application_status_notice(
        self,
        applicant: RecipientContact,
        grant: GrantSummary,
        application: ApplicationStatusSummary,
    ) -> DeliveryStatus: ...

    async def send_winner_notice(
        self,
        winner: RecipientContact,
        prize: WinnerSummary,
    ) -> DeliveryStatus: ...


# =============================================================================
# Best-effort dispatch
# =============================================================================


async def _attempt(label: str, factory: Callable[[], Awaitable[Any]]) -> Optional[str]:
    """Run one send; return None on success or the failure reason."""
    try:
        result = await factory()
    except Exception as e:
        logger.error(f"Notification {label} failed: {e}", exc_info=True)
        return str(e) or e.__class__.__name__

    if isinstance(result, DeliveryStatus) and result.status == "failed":
        reason = result.error_message or "delivery failed"
        logger.error(f"Notification {label} failed: {reason}")
        return reason
    return None


async def dispatch_best_effort(calls: Sequence[NotificationCall]) -> DispatchOutcome:
    """
    Run every call concurrently and report how many went through.

    A call fails if it raises or returns a DeliveryStatus whose status is
    "failed". A "skipped" status (email not configured) counts as handled.
    """
    if not calls:
        return DispatchOutcome()

    results = await asyncio.gather(*(_attempt(label, factory) for label, factory in calls))

    outcome = DispatchOutcome(attempted=len(calls))
    for (label, _), error in zip(calls, results):
        if error is None:
            outcome.succeeded += 1
        else:
            outcome.failures.append(DispatchFailure(label=label, error=error))

    if outcome.failures:
        logger.warning(
            f"Notification batch finished with {outcome.failed} of {outcome.attempted} failed"
        )
    return outcome


# =============================================================================
# Summary builders
# =============================================================================


def format_amount(value: Any) -> str:
    """
    Stringify a money value for notifications.

    Missing amounts become "0" and whole numbers lose their fraction digits,
    so Decimal("1000.00") renders as "1000".
    """
    if value is None:
        return "0"
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return str(value)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return str(amount.normalize())


def recipient_from_user(user: User) -> RecipientContact:
    return RecipientContact(
        email=user.email,
        first_name=user.first_name,
        username=user.username,
    )


def grant_summary(grant: Grant) -> GrantSummary:
    return GrantSummary(id=grant.id, title=grant.title)


def application_summary(application: GrantApplication, applicant: User) -> ApplicationSummary:
    summary = application.summary or (application.description or "")[:200]
    requested = f"${format_amount(application.budget)}" if application.budget is not None else "Not specified"
    return ApplicationSummary(
        id=application.id,
        title=application.title,
        summary=summary,
        requested_amount=requested,
        applicant_first_name=applicant.first_name,
        applicant_username=applicant.username or "Anonymous",
    )


def application_status_summary(application: GrantApplication, grant: Grant) -> ApplicationStatusSummary:
    return ApplicationStatusSummary(
        id=application.id,
        grant_id=grant.id,
        title=application.title,
        status=application.status.value,
        feedback=application.feedback,
        url=f"{settings.frontend_url}/grants/{grant.slug}/applications/{application.id}",
    )


def bounty_summary(bounty: Bounty) -> BountySummary:
    return BountySummary(
        id=bounty.id,
        title=bounty.title,
        deadline=bounty.deadline,
        submission_count=bounty.submission_count,
        total_prize=format_amount(bounty.amount),
        token=bounty.token,
    )


def submission_summary(submission: Submission, submitter: User) -> SubmissionSummary:
    return SubmissionSummary(
        id=submission.id,
        title=submission.title or "",
        description=(submission.description or "")[:200],
        submitter_first_name=submitter.first_name,
        submitter_username=submitter.username or "Anonymous",
    )


def winner_summary(submission: Submission, bounty: Bounty, organization_name: str) -> WinnerSummary:
    return WinnerSummary(
        bounty_id=bounty.id,
        bounty_title=bounty.title,
        organization_name=organization_name,
        submission_id=submission.id,
        position=submission.position,
        prize_amount=format_amount(submission.winning_amount),
        token=bounty.token or "",
    )


__all__ = [
    "NotificationCall",
    "NotificationSender",
    "dispatch_best_effort",
    "format_amount",
    "recipient_from_user",
    "grant_summary",
    "application_summary",
    "application_status_summary",
    "bounty_summary",
    "submission_summary",
    "winner_summary",
]
