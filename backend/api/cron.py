"""
Scheduled Trigger Endpoints.

External schedulers (Vercel-style cron, Kubernetes CronJobs) hit these with
GET. When CRON_SECRET is configured the request must carry it as a bearer
token. Any other verb gets 405 from the router.
"""
import logging
import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from backend.api.deps import AsyncSessionDep, SenderDep
from backend.core.config import settings
from backend.core.exceptions import AuthenticationError
from backend.schemas.sweep import SweptBounty
from backend.services.deadline_sweep import (
    send_deadline_approaching_reminders,
    send_winner_announcement_reminders,
    sweep_expired_bounties,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Scheduled Triggers"])

cron_bearer = HTTPBearer(auto_error=False)


class DeadlineSweepResponse(BaseModel):
    success: bool = True
    message: str
    total_count: int = Field(..., description="Bounties moved to REVIEWING")
    emails_sent: int = Field(..., description="Swept bounties whose curators were reminded")
    notifications_attempted: int
    notifications_succeeded: int
    updated_bounties: list[SweptBounty]


class ReminderRunResponse(BaseModel):
    success: bool = True
    message: str
    bounties_processed: int
    notifications_attempted: int
    notifications_succeeded: int


async def verify_cron_secret(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(cron_bearer)],
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is set."""
    if not settings.cron_secret:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise AuthenticationError("Invalid cron secret")


@router.get(
    "/bounty-deadline-passed",
    response_model=DeadlineSweepResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Sweep expired bounties",
)
async def bounty_deadline_passed(
    db: AsyncSessionDep,
    sender: SenderDep,
) -> DeadlineSweepResponse:
    """Move expired bounties to REVIEWING and remind their curators."""
    result = await sweep_expired_bounties(db, sender)

    if result.updated_count == 0:
        message = "No bounties to update"
    else:
        message = f"Updated {result.updated_count} bounties to REVIEWING status"

    return DeadlineSweepResponse(
        message=message,
        total_count=result.updated_count,
        emails_sent=result.reminders_attempted,
        notifications_attempted=result.notifications_attempted,
        notifications_succeeded=result.notifications_succeeded,
        updated_bounties=result.updated_bounties,
    )


@router.get(
    "/bounty-deadline-reminder",
    response_model=ReminderRunResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Warn organizations about bounties closing soon",
)
async def bounty_deadline_reminder(
    db: AsyncSessionDep,
    sender: SenderDep,
) -> ReminderRunResponse:
    result = await send_deadline_approaching_reminders(db, sender)
    return ReminderRunResponse(
        message=f"Sent deadline reminders for {result.bounties_processed} bounties",
        bounties_processed=result.bounties_processed,
        notifications_attempted=result.notifications_attempted,
        notifications_succeeded=result.notifications_succeeded,
    )


@router.get(
    "/winner-announcement-reminder",
    response_model=ReminderRunResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Remind curators to announce winners",
)
async def winner_announcement_reminder(
    db: AsyncSessionDep,
    sender: SenderDep,
) -> ReminderRunResponse:
    result = await send_winner_announcement_reminders(db, sender)
    return ReminderRunResponse(
        message=f"Sent reminders for {result.bounties_processed} bounties",
        bounties_processed=result.bounties_processed,
        notifications_attempted=result.notifications_attempted,
        notifications_succeeded=result.notifications_succeeded,
    )
