"""
Notification payload schemas.

These are the summaries handed to the notification sender. Money fields are
already strings here; the conversion happens once, when a summary is built.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class RecipientContact(BaseModel):
    """Who an email goes to (a curator, applicant, or winner)."""
    email: str
    first_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or "there"


class GrantSummary(BaseModel):
    id: UUID
    title: str


class ApplicationSummary(BaseModel):
    id: UUID
    title: str
    summary: str
    requested_amount: str
    applicant_first_name: Optional[str] = None
    applicant_username: str = "Anonymous"


class ApplicationStatusSummary(BaseModel):
    id: UUID
    grant_id: UUID
    title: str
    status: str
    feedback: Optional[str] = None
    url: str


class BountySummary(BaseModel):
    """Bounty facts carried by deadline and winner reminders."""
    id: UUID
    title: str
    deadline: Optional[datetime] = None
    submission_count: int = 0
    total_prize: str = "0"
    token: Optional[str] = None


class SubmissionSummary(BaseModel):
    id: UUID
    title: str = ""
    description: str = ""
    submitter_first_name: Optional[str] = None
    submitter_username: str = "Anonymous"


class WinnerSummary(BaseModel):
    bounty_id: UUID
    bounty_title: str
    organization_name: str
    submission_id: UUID
    position: int
    prize_amount: str
    token: str


class DispatchFailure(BaseModel):
    label: str
    error: str


class DispatchOutcome(BaseModel):
    """Aggregate result of a best-effort notification batch."""
    attempted: int = 0
    succeeded: int = 0
    failures: List[DispatchFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded
