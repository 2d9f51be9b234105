"""
Lifecycle Status Registry

Canonical transition tables for bounties, grant applications and
submissions, plus the prize-table rules shared by bounty creation and winner
selection. Status enums themselves live in backend.models.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from backend.core.exceptions import InvalidStateError, ValidationError
from backend.models import (
    ApplicationStatus,
    BountyStatus,
    SubmissionStatus,
    Visibility,
)


# =============================================================================
# Transition Tables
# =============================================================================

BOUNTY_TRANSITIONS: dict[BountyStatus, frozenset[BountyStatus]] = {
    BountyStatus.OPEN: frozenset(
        {BountyStatus.REVIEWING, BountyStatus.CANCELLED, BountyStatus.CLOSED}
    ),
    BountyStatus.REVIEWING: frozenset({BountyStatus.COMPLETED, BountyStatus.CANCELLED}),
    BountyStatus.COMPLETED: frozenset(),
    BountyStatus.CLOSED: frozenset(),
    BountyStatus.CANCELLED: frozenset(),
}

# Edges only the deadline sweep may take
AUTOMATED_BOUNTY_TRANSITIONS: frozenset[tuple[BountyStatus, BountyStatus]] = frozenset(
    {(BountyStatus.OPEN, BountyStatus.REVIEWING)}
)

TERMINAL_BOUNTY_STATUSES = frozenset(
    status for status, targets in BOUNTY_TRANSITIONS.items() if not targets
)

APPLICATION_REVIEW_DECISIONS = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

REVIEWABLE_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW}
)

SELECTABLE_SUBMISSION_STATUSES = frozenset(
    {SubmissionStatus.SUBMITTED, SubmissionStatus.UNDER_REVIEW, SubmissionStatus.SELECTED}
)

# Bounty statuses in which winners may still be picked or cleared
WINNER_SELECTION_STATUSES = frozenset({BountyStatus.OPEN, BountyStatus.REVIEWING})


# =============================================================================
# Transition Checks
# =============================================================================


def can_transition_bounty(current: BountyStatus, target: BountyStatus) -> bool:
    """Return True if ``target`` is reachable from ``current`` in one step."""
    return BountyStatus(target) in BOUNTY_TRANSITIONS[BountyStatus(current)]


def ensure_bounty_transition(
    current: BountyStatus,
    target: BountyStatus,
    automated: bool = False,
) -> None:
    """
    Validate a bounty status change.

    Args:
        current: Status the bounty has now.
        target: Requested status.
        automated: True when the deadline sweep is the caller.

    Raises:
        InvalidStateError: If the edge does not exist, or if an actor asks for
            an edge reserved to the sweep (or the sweep for any other edge).
    """
    current = BountyStatus(current)
    target = BountyStatus(target)

    if not can_transition_bounty(current, target):
        raise InvalidStateError(
            f"Bounty cannot move from {current.value} to {target.value}"
        )

    is_automated_edge = (current, target) in AUTOMATED_BOUNTY_TRANSITIONS
    if is_automated_edge and not automated:
        raise InvalidStateError(
            f"{current.value} to {target.value} happens automatically once the deadline passes"
        )
    if automated and not is_automated_edge:
        raise InvalidStateError(
            f"{current.value} to {target.value} must be performed by a reviewer"
        )


def is_accepting_entries(status: BountyStatus, visibility: Visibility) -> bool:
    """A bounty takes submissions only while OPEN and PUBLISHED."""
    return status == BountyStatus.OPEN and visibility == Visibility.PUBLISHED


# =============================================================================
# Prize Table
# =============================================================================


def _to_decimal(value: Any, label: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{label} must be a number") from e


def validate_prize_table(
    amount: Optional[Decimal],
    winnings: Optional[Mapping[Any, Any]],
) -> dict[str, Decimal]:
    """
    Check a bounty's prize table and return it keyed by position text.

    Every key must be a positive integer position, every prize positive, and
    the prizes together must not exceed ``amount``. An empty or missing table
    is allowed.

    Raises:
        ValidationError: On the first rule the table breaks.
    """
    normalized: dict[str, Decimal] = {}
    for key, value in (winnings or {}).items():
        try:
            position = int(str(key))
        except ValueError as e:
            raise ValidationError(f"Winner position must be an integer, got {key!r}") from e
        if position < 1:
            raise ValidationError(f"Winner position must be positive, got {position}")

        prize = _to_decimal(value, f"Prize for position {position}")
        if prize <= 0:
            raise ValidationError(f"Prize for position {position} must be positive")
        normalized[str(position)] = prize

    total = sum(normalized.values(), Decimal("0"))
    if normalized and amount is None:
        raise ValidationError("A bounty with a prize table needs a total amount")
    if amount is not None and total > Decimal(str(amount)):
        raise ValidationError(
            f"Sum of prizes ({total}) exceeds the bounty amount ({amount})"
        )
    return normalized


def prize_for_position(
    winnings: Optional[Mapping[str, Any]],
    position: int,
) -> Optional[Decimal]:
    """Configured prize for ``position``, or None when the table lacks it."""
    if not winnings:
        return None
    value = winnings.get(str(position))
    if value is None:
        return None
    return _to_decimal(value, f"Prize for position {position}")


__all__ = [
    "BOUNTY_TRANSITIONS",
    "AUTOMATED_BOUNTY_TRANSITIONS",
    "TERMINAL_BOUNTY_STATUSES",
    "APPLICATION_REVIEW_DECISIONS",
    "REVIEWABLE_APPLICATION_STATUSES",
    "SELECTABLE_SUBMISSION_STATUSES",
    "WINNER_SELECTION_STATUSES",
    "can_transition_bounty",
    "ensure_bounty_transition",
    "is_accepting_entries",
    "validate_prize_table",
    "prize_for_position",
]
