"""
Grant Application API Endpoints.
Application intake and reviewer decisions.
"""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, status

from backend.api.deps import AsyncSessionDep, CurrentUser, SenderDep
from backend.schemas.applications import (
    ApplicationCreatedResponse,
    ApplicationResponse,
    ApplicationReviewedResponse,
    ApplicationReviewRequest,
)
from backend.services.intake import create_application
from backend.services.review import review_application

router = APIRouter(prefix="/api/grants", tags=["Grant Applications"])


@router.post(
    "/{grant_ref}/applications",
    response_model=ApplicationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to a grant",
    description="Submit an application to a published, open, natively hosted grant.",
)
async def submit_application(
    grant_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    sender: SenderDep,
    payload: dict[str, Any] = Body(...),
) -> ApplicationCreatedResponse:
    """
    Create an application for the current user.

    ``grant_ref`` is the grant id or its slug. Eligibility is checked before
    the body is validated, so a closed grant answers 400 InvalidState
    whatever the payload.
    """
    application = await create_application(
        db,
        grant_ref,
        current_user.id,
        payload,
        sender=sender,
    )
    return ApplicationCreatedResponse(
        application=ApplicationResponse.model_validate(application),
    )


@router.patch(
    "/{grant_ref}/applications/{application_id}/review",
    response_model=ApplicationReviewedResponse,
    summary="Review an application",
)
async def review_grant_application(
    grant_ref: str,
    application_id: UUID,
    request: ApplicationReviewRequest,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    sender: SenderDep,
) -> ApplicationReviewedResponse:
    """Approve or reject an application. Rejections require feedback."""
    application = await review_application(
        db,
        grant_ref,
        application_id,
        current_user.id,
        decision=request.status,
        feedback=request.feedback,
        sender=sender,
    )
    return ApplicationReviewedResponse(
        application=ApplicationResponse.model_validate(application),
        message=f"Application {application.status.value.lower()}",
    )
