"""
Scheduled job result schemas.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SweptBounty(BaseModel):
    """One bounty moved from OPEN to REVIEWING by the deadline sweep."""
    id: UUID
    title: str
    deadline: Optional[datetime] = None
    submission_count: int


class SweepResult(BaseModel):
    """
    Summary of one deadline sweep.

    ``reminders_attempted`` counts swept bounties that had submissions (and so
    went through curator fan-out, even with zero curators). The notification
    counters count individual emails.
    """
    updated_count: int = 0
    reminders_attempted: int = 0
    notifications_attempted: int = 0
    notifications_succeeded: int = 0
    updated_bounties: List[SweptBounty] = Field(default_factory=list)


class WinnerReminderResult(BaseModel):
    """Summary of one winner-announcement reminder run."""
    bounties_processed: int = 0
    notifications_attempted: int = 0
    notifications_succeeded: int = 0


class DeadlineReminderResult(BaseModel):
    """Summary of one approaching-deadline reminder run."""
    bounties_processed: int = 0
    notifications_attempted: int = 0
    notifications_succeeded: int = 0
