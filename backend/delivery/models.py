"""
Tribeworks Delivery Models
Pydantic models for outbound email payloads and delivery tracking.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DeliveryChannel(str, Enum):
    """Available delivery channels."""

    EMAIL = "email"


class EmailContent(BaseModel):
    """Rendered email content."""

    subject: str = Field(..., max_length=150)
    body_html: str
    body_text: str
    from_email: str
    from_name: str
    to_email: str
    to_name: Optional[str] = None
    reply_to: Optional[str] = None
    category: str = "lifecycle"
    tracking_id: Optional[str] = None


class DeliveryStatus(BaseModel):
    """Outcome of one delivery attempt."""

    delivery_id: UUID
    channel: DeliveryChannel
    status: str = "pending"  # pending, sent, failed, skipped
    sent_at: Optional[datetime] = None
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
