"""
Grant application schemas for request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.models import ApplicationStatus


class TimelineEntry(BaseModel):
    """One milestone/date pair of an application timeline."""
    milestone: str
    date: str


class Milestone(BaseModel):
    """A deliverable-bearing milestone."""
    title: str
    description: str
    deliverables: Optional[List[str]] = None


class ApplicationCreate(BaseModel):
    """Payload for submitting a grant application."""
    title: str = Field(..., min_length=1, max_length=200)
    summary: Optional[str] = None
    description: str = Field(..., min_length=1)
    timeline: Optional[List[TimelineEntry]] = None
    milestones: Optional[List[Milestone]] = None
    budget: Optional[Decimal] = Field(None, gt=0, description="Requested amount")
    responses: Optional[dict[str, Any]] = Field(None, description="Screening question answers")
    rfp_id: Optional[UUID] = Field(None, description="RFP this application answers, if any")

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class ApplicationReviewRequest(BaseModel):
    """Reviewer decision on an application."""
    status: Literal["APPROVED", "REJECTED"]
    feedback: Optional[str] = Field(None, max_length=5000)


class ApplicantSummary(BaseModel):
    """Public fields of the applicant."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None


class ApplicationResponse(BaseModel):
    """Grant application as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    grant_id: UUID
    rfp_id: Optional[UUID] = None
    title: str
    summary: Optional[str] = None
    description: str
    timeline: Optional[List[dict[str, Any]]] = None
    milestones: Optional[List[dict[str, Any]]] = None
    budget: Optional[Decimal] = None
    responses: Optional[dict[str, Any]] = None
    status: ApplicationStatus
    feedback: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    applicant: ApplicantSummary


class ApplicationCreatedResponse(BaseModel):
    success: bool = True
    application: ApplicationResponse


class ApplicationReviewedResponse(BaseModel):
    application: ApplicationResponse
    message: str
