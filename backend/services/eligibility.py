"""
Eligibility Guard

Pure predicates deciding whether an actor may apply, submit, edit, review or
delete. Each returns None when the action is allowed and raises the matching
lifecycle error otherwise. Nothing here touches the database; callers load
the entities and the actor's membership and pass them in.
"""
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from backend.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    SelfDealingError,
    UnsupportedSourceError,
)
from backend.models import (
    Bounty,
    BountyStatus,
    Grant,
    GrantSource,
    GrantStatus,
    MemberRole,
    Visibility,
)
from backend.services.lifecycle import is_accepting_entries


REVIEWER_ROLES = frozenset({MemberRole.OWNER.value, MemberRole.ADMIN.value})


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as some drivers return them) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _role_of(membership: Any) -> Optional[str]:
    if membership is None:
        return None
    role = getattr(membership, "role", None)
    return getattr(role, "value", role)


def can_apply_to_grant(
    grant: Optional[Grant],
    user_id: UUID,
    existing_application: Any = None,
    membership: Any = None,
) -> None:
    """
    Check that ``user_id`` may apply to ``grant``.

    ``membership`` is the applicant's membership in the grant's organization,
    if any. Members are refused whatever the grant's state.

    Raises:
        NotFoundError: Grant missing.
        SelfDealingError: Applicant belongs to the funding organization.
        InvalidStateError: Grant is not PUBLISHED and OPEN.
        UnsupportedSourceError: Grant takes applications externally.
        ConflictError: Applicant already applied.
    """
    if grant is None:
        raise NotFoundError("Grant")
    if membership is not None:
        raise SelfDealingError("Members of the funding organization cannot apply to its grants")
    if grant.visibility != Visibility.PUBLISHED or grant.status != GrantStatus.OPEN:
        raise InvalidStateError("Grant is not accepting applications")
    if grant.source == GrantSource.EXTERNAL:
        raise UnsupportedSourceError()
    if existing_application is not None:
        raise ConflictError("You have already applied to this grant")


def can_submit_to_bounty(
    bounty: Optional[Bounty],
    user_id: UUID,
    existing_submission: Any = None,
    membership: Any = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Check that ``user_id`` may submit to ``bounty``.

    A bounty whose deadline has passed but which the sweep has not reached
    yet is already closed to new entries.
    """
    if bounty is None:
        raise NotFoundError("Bounty")
    if membership is not None:
        raise SelfDealingError("Members of the funding organization cannot submit to its bounties")
    if not is_accepting_entries(bounty.status, bounty.visibility):
        raise InvalidStateError("Bounty is not accepting submissions")

    deadline = as_utc(bounty.deadline)
    if deadline is not None and deadline <= (now or datetime.now(timezone.utc)):
        raise InvalidStateError("Bounty deadline has passed")
    if existing_submission is not None:
        raise ConflictError("You have already submitted to this bounty")


def can_modify_submission(
    bounty: Bounty,
    submission: Any,
    action: str = "edit",
    now: Optional[datetime] = None,
) -> None:
    """
    Check that a submitter may still edit or withdraw their own entry.

    Raises:
        NotFoundError: The submitter has no entry for this bounty.
        InvalidStateError: The entry is a winner, or the bounty no longer
            takes submissions.
    """
    if submission is None:
        raise NotFoundError("Submission")
    if submission.is_winner:
        raise InvalidStateError(f"Cannot {action} a winning submission")
    deadline = as_utc(bounty.deadline)
    if bounty.status != BountyStatus.OPEN or (
        deadline is not None and deadline <= (now or datetime.now(timezone.utc))
    ):
        raise InvalidStateError(
            f"Cannot {action} submission. Bounty is closed or deadline has passed"
        )


def can_review_entity(actor_membership: Any) -> None:
    """Reviewers are owners and admins of the owning organization."""
    if _role_of(actor_membership) not in REVIEWER_ROLES:
        raise AuthorizationError("Only organization owners and admins can do this")


def can_delete_bounty(actor_membership: Any, submission_count: int) -> None:
    """A bounty with submissions is never deleted."""
    can_review_entity(actor_membership)
    if submission_count > 0:
        raise InvalidStateError("Cannot delete a bounty that has submissions")


__all__ = [
    "REVIEWER_ROLES",
    "as_utc",
    "can_apply_to_grant",
    "can_submit_to_bounty",
    "can_modify_submission",
    "can_review_entity",
    "can_delete_bounty",
]
