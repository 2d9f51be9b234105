"""
Backend services for the bounty and grant lifecycle.
"""

from backend.services.deadline_sweep import (
    send_deadline_approaching_reminders,
    send_winner_announcement_reminders,
    sweep_expired_bounties,
)
from backend.services.eligibility import (
    can_apply_to_grant,
    can_delete_bounty,
    can_modify_submission,
    can_review_entity,
    can_submit_to_bounty,
)
from backend.services.email import EmailNotificationSender, get_email_sender
from backend.services.intake import (
    create_application,
    create_submission,
    get_own_submission,
    update_submission,
    withdraw_submission,
)
from backend.services.lifecycle import (
    can_transition_bounty,
    ensure_bounty_transition,
    is_accepting_entries,
    prize_for_position,
    validate_prize_table,
)
from backend.services.notifications import (
    NotificationSender,
    dispatch_best_effort,
    format_amount,
)
from backend.services.review import (
    announce_winners,
    create_bounty,
    delete_bounty,
    list_bounty_submissions,
    reject_submission,
    reset_winners,
    review_application,
    select_winner,
    update_bounty_status,
)

__all__ = [
    # Deadline sweep
    "sweep_expired_bounties",
    "send_deadline_approaching_reminders",
    "send_winner_announcement_reminders",
    # Eligibility
    "can_apply_to_grant",
    "can_submit_to_bounty",
    "can_modify_submission",
    "can_review_entity",
    "can_delete_bounty",
    # Email
    "EmailNotificationSender",
    "get_email_sender",
    # Intake
    "create_application",
    "create_submission",
    "get_own_submission",
    "update_submission",
    "withdraw_submission",
    # Lifecycle registry
    "can_transition_bounty",
    "ensure_bounty_transition",
    "is_accepting_entries",
    "validate_prize_table",
    "prize_for_position",
    # Notifications
    "NotificationSender",
    "dispatch_best_effort",
    "format_amount",
    # Review
    "review_application",
    "select_winner",
    "reject_submission",
    "reset_winners",
    "announce_winners",
    "list_bounty_submissions",
    "update_bounty_status",
    "delete_bounty",
    "create_bounty",
]
