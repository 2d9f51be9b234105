"""
Tribeworks Pydantic Schemas
Request/Response models for API endpoints and service payloads.
"""
from backend.schemas.applications import (
    ApplicantSummary,
    ApplicationCreate,
    ApplicationCreatedResponse,
    ApplicationResponse,
    ApplicationReviewedResponse,
    ApplicationReviewRequest,
)
from backend.schemas.auth import TokenData
from backend.schemas.bounties import (
    AnnouncementResponse,
    BountyCreate,
    BountyResponse,
    BountyStatusUpdate,
    PositionAssignment,
    SubmissionCreate,
    SubmissionCreatedResponse,
    SubmissionList,
    SubmissionRejection,
    SubmissionResponse,
    SubmissionUpdate,
    SubmissionUpdatedResponse,
    SubmissionWithdrawnResponse,
    WinnerResetResponse,
)
from backend.schemas.common import format_validation_errors, parse_payload
from backend.schemas.notifications import (
    ApplicationStatusSummary,
    ApplicationSummary,
    BountySummary,
    DispatchOutcome,
    GrantSummary,
    RecipientContact,
    SubmissionSummary,
    WinnerSummary,
)
from backend.schemas.sweep import (
    DeadlineReminderResult,
    SweepResult,
    SweptBounty,
    WinnerReminderResult,
)

__all__ = [
    "ApplicantSummary",
    "ApplicationCreate",
    "ApplicationCreatedResponse",
    "ApplicationResponse",
    "ApplicationReviewedResponse",
    "ApplicationReviewRequest",
    "TokenData",
    "AnnouncementResponse",
    "BountyCreate",
    "BountyResponse",
    "BountyStatusUpdate",
    "PositionAssignment",
    "SubmissionCreate",
    "SubmissionCreatedResponse",
    "SubmissionList",
    "SubmissionRejection",
    "SubmissionResponse",
    "SubmissionUpdate",
    "SubmissionUpdatedResponse",
    "SubmissionWithdrawnResponse",
    "WinnerResetResponse",
    "format_validation_errors",
    "parse_payload",
    "ApplicationStatusSummary",
    "ApplicationSummary",
    "BountySummary",
    "DispatchOutcome",
    "GrantSummary",
    "RecipientContact",
    "SubmissionSummary",
    "WinnerSummary",
    "DeadlineReminderResult",
    "SweepResult",
    "SweptBounty",
    "WinnerReminderResult",
]
