"""
Bounty and submission schemas for request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.models import BountyStatus, SplitPolicy, SubmissionStatus, Visibility


# ============================================================================
# Bounty Schemas
# ============================================================================

class BountyCreate(BaseModel):
    """Payload for creating a bounty. The prize table is checked by the service."""
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=200, pattern=r"^[A-Za-z0-9][A-Za-z0-9-]*$")
    description: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    amount: Optional[Decimal] = Field(None, gt=0)
    token: Optional[str] = Field(None, max_length=20)
    split: SplitPolicy = SplitPolicy.FIXED
    winnings: Optional[dict[int, Decimal]] = Field(None, description="Position -> prize")
    deadline: Optional[datetime] = None
    visibility: Visibility = Visibility.DRAFT

    @field_validator("skills")
    @classmethod
    def dedupe_skills(cls, value: List[str]) -> List[str]:
        seen: dict[str, None] = {}
        for skill in value:
            cleaned = skill.strip()
            if cleaned:
                seen.setdefault(cleaned, None)
        return list(seen)


class BountyStatusUpdate(BaseModel):
    status: BountyStatus


class BountyResponse(BaseModel):
    """Bounty as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    slug: str
    title: str
    description: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    amount: Optional[Decimal] = None
    token: Optional[str] = None
    split: SplitPolicy
    winnings: Optional[dict[str, Any]] = None
    deadline: Optional[datetime] = None
    status: BountyStatus
    visibility: Visibility
    submission_count: int
    winners_announced_at: Optional[datetime] = None


# ============================================================================
# Submission Schemas
# ============================================================================

def _submission_url(value: Optional[str]) -> Optional[str]:
    """Blank clears the URL; anything else must be http(s)."""
    if value is None or not value.strip():
        return None
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


class SubmissionCreate(BaseModel):
    """Payload for submitting to a bounty."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    submission_url: Optional[str] = Field(None, max_length=2048)
    responses: Optional[dict[str, Any]] = None

    @field_validator("submission_url")
    @classmethod
    def empty_url_is_none(cls, value: Optional[str]) -> Optional[str]:
        return _submission_url(value)


class SubmissionUpdate(BaseModel):
    """
    Submitter's edit of their own entry.

    Only fields present in the request are changed; send an empty
    ``submission_url`` to clear it.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    submission_url: Optional[str] = Field(None, max_length=2048)
    responses: Optional[dict[str, Any]] = None

    @field_validator("submission_url")
    @classmethod
    def empty_url_is_none(cls, value: Optional[str]) -> Optional[str]:
        return _submission_url(value)


class PositionAssignment(BaseModel):
    """
    Winner position request.

    ``position: null`` takes the submission off the winners list. Omit
    ``amount`` to use the configured prize.
    """
    position: Optional[int] = Field(..., ge=1)
    amount: Optional[Decimal] = Field(None, gt=0)


class SubmissionRejection(BaseModel):
    spam: bool = False


class SubmitterSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None


class SubmissionResponse(BaseModel):
    """Submission as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bounty_id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    submission_url: Optional[str] = None
    status: SubmissionStatus
    is_winner: bool
    position: Optional[int] = None
    winning_amount: Optional[Decimal] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    submitter: SubmitterSummary


class SubmissionCreatedResponse(BaseModel):
    success: bool = True
    submission: SubmissionResponse


class SubmissionUpdatedResponse(BaseModel):
    message: str
    submission: SubmissionResponse


class SubmissionWithdrawnResponse(BaseModel):
    message: str


class SubmissionList(BaseModel):
    data: List[SubmissionResponse]
    total: int


class WinnerResetResponse(BaseModel):
    reset_count: int
    message: str


class AnnouncementResponse(BaseModel):
    bounty: BountyResponse
    winners: List[SubmissionResponse]
    message: str
