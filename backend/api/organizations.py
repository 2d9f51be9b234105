"""
Organization API Endpoints.
"""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, status

from backend.api.deps import AsyncSessionDep, CurrentUser
from backend.schemas.bounties import BountyResponse
from backend.services.review import create_bounty

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])


@router.post(
    "/{organization_id}/bounties",
    response_model=BountyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a bounty",
    description="Owners and admins create bounties; the creator becomes a curator.",
)
async def create_organization_bounty(
    organization_id: UUID,
    current_user: CurrentUser,
    db: AsyncSessionDep,
    payload: dict[str, Any] = Body(...),
) -> BountyResponse:
    bounty = await create_bounty(db, organization_id, current_user.id, payload)
    return BountyResponse.model_validate(bounty)
