"""
Bounty API Endpoints.
Submissions, winner allocation and bounty administration.
"""
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Response, status

from backend.api.deps import AsyncSessionDep, CurrentUser, OptionalUser, SenderDep
from backend.schemas.bounties import (
    AnnouncementResponse,
    BountyResponse,
    BountyStatusUpdate,
    PositionAssignment,
    SubmissionCreatedResponse,
    SubmissionList,
    SubmissionRejection,
    SubmissionResponse,
    SubmissionUpdatedResponse,
    SubmissionWithdrawnResponse,
    WinnerResetResponse,
)
from backend.services.intake import (
    create_submission,
    get_own_submission,
    update_submission,
    withdraw_submission,
)
from backend.services.review import (
    announce_winners,
    delete_bounty,
    list_bounty_submissions,
    reject_submission,
    reset_winners,
    select_winner,
    update_bounty_status,
)

router = APIRouter(prefix="/api/bounties", tags=["Bounties"])


# =============================================================================
# Submissions
# =============================================================================


@router.post(
    "/{bounty_ref}/submissions",
    response_model=SubmissionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit to a bounty",
)
async def submit_to_bounty(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    sender: SenderDep,
    payload: Optional[dict[str, Any]] = Body(None),
) -> SubmissionCreatedResponse:
    """Create the current user's submission. One per user per bounty."""
    submission = await create_submission(
        db,
        bounty_ref,
        current_user.id,
        payload or {},
        sender=sender,
    )
    return SubmissionCreatedResponse(
        submission=SubmissionResponse.model_validate(submission),
    )


@router.get(
    "/{bounty_ref}/submissions",
    response_model=SubmissionList,
    summary="List bounty submissions",
    description="Organization reviewers see every submission; others only after winners are announced.",
)
async def get_bounty_submissions(
    bounty_ref: str,
    current_user: OptionalUser,
    db: AsyncSessionDep,
) -> SubmissionList:
    viewer_id = current_user.id if current_user else None
    submissions = await list_bounty_submissions(db, bounty_ref, viewer_id)
    return SubmissionList(
        data=[SubmissionResponse.model_validate(s) for s in submissions],
        total=len(submissions),
    )


@router.get(
    "/{bounty_ref}/submissions/me",
    response_model=SubmissionResponse,
    summary="Get my submission",
)
async def get_my_submission(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> SubmissionResponse:
    submission = await get_own_submission(db, bounty_ref, current_user.id)
    return SubmissionResponse.model_validate(submission)


@router.patch(
    "/{bounty_ref}/submissions/me",
    response_model=SubmissionUpdatedResponse,
    summary="Edit my submission",
)
async def edit_my_submission(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    payload: Optional[dict[str, Any]] = Body(None),
) -> SubmissionUpdatedResponse:
    """Allowed while the bounty is open and before its deadline. Winners are frozen."""
    submission = await update_submission(db, bounty_ref, current_user.id, payload or {})
    return SubmissionUpdatedResponse(
        message="Submission updated successfully",
        submission=SubmissionResponse.model_validate(submission),
    )


@router.delete(
    "/{bounty_ref}/submissions/me",
    response_model=SubmissionWithdrawnResponse,
    summary="Withdraw my submission",
)
async def withdraw_my_submission(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> SubmissionWithdrawnResponse:
    await withdraw_submission(db, bounty_ref, current_user.id)
    return SubmissionWithdrawnResponse(message="Submission deleted successfully")


@router.patch(
    "/{bounty_ref}/submissions/{submission_id}/position",
    response_model=SubmissionResponse,
    summary="Assign a winner position",
)
async def assign_position(
    bounty_ref: str,
    submission_id: UUID,
    request: PositionAssignment,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> SubmissionResponse:
    submission = await select_winner(
        db,
        bounty_ref,
        submission_id,
        current_user.id,
        position=request.position,
        amount=request.amount,
    )
    return SubmissionResponse.model_validate(submission)


@router.patch(
    "/{bounty_ref}/submissions/{submission_id}/reject",
    response_model=SubmissionResponse,
    summary="Reject a submission",
)
async def reject_bounty_submission(
    bounty_ref: str,
    submission_id: UUID,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    request: Optional[SubmissionRejection] = None,
) -> SubmissionResponse:
    submission = await reject_submission(
        db,
        bounty_ref,
        submission_id,
        current_user.id,
        spam=request.spam if request else False,
    )
    return SubmissionResponse.model_validate(submission)


# =============================================================================
# Winners
# =============================================================================


@router.post(
    "/{bounty_ref}/winners",
    response_model=AnnouncementResponse,
    summary="Announce winners",
)
async def announce_bounty_winners(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    sender: SenderDep,
) -> AnnouncementResponse:
    """Complete a bounty in review and make its results public."""
    bounty, winners = await announce_winners(db, bounty_ref, current_user.id, sender=sender)
    return AnnouncementResponse(
        bounty=BountyResponse.model_validate(bounty),
        winners=[SubmissionResponse.model_validate(w) for w in winners],
        message=f"Announced {len(winners)} winners",
    )


@router.patch(
    "/{bounty_ref}/winners/reset",
    response_model=WinnerResetResponse,
    summary="Clear winner selections",
)
async def reset_bounty_winners(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> WinnerResetResponse:
    reset_count = await reset_winners(db, bounty_ref, current_user.id)
    return WinnerResetResponse(
        reset_count=reset_count,
        message=f"Reset {reset_count} winners",
    )


# =============================================================================
# Administration
# =============================================================================


@router.patch(
    "/{bounty_ref}/status",
    response_model=BountyResponse,
    summary="Change bounty status",
)
async def change_bounty_status(
    bounty_ref: str,
    request: BountyStatusUpdate,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> BountyResponse:
    bounty = await update_bounty_status(db, bounty_ref, current_user.id, request.status)
    return BountyResponse.model_validate(bounty)


@router.delete(
    "/{bounty_ref}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a bounty",
)
async def remove_bounty(
    bounty_ref: str,
    current_user: CurrentUser,
    db: AsyncSessionDep,
) -> Response:
    """Delete a bounty. Refused once it has submissions."""
    await delete_bounty(db, bounty_ref, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
