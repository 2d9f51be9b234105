"""
Tribeworks Email Delivery
Outbound email channel and delivery tracking models.
"""
from backend.delivery.channels import (
    BaseChannel,
    SendGridChannel,
    get_sendgrid_channel,
)
from backend.delivery.models import (
    DeliveryChannel,
    DeliveryStatus,
    EmailContent,
)

__all__ = [
    "BaseChannel",
    "SendGridChannel",
    "get_sendgrid_channel",
    "DeliveryChannel",
    "DeliveryStatus",
    "EmailContent",
]
