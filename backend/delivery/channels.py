"""
Tribeworks Delivery Channels
SendGrid email channel used by the notification sender.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Category,
    ClickTracking,
    Content,
    CustomArg,
    Email,
    Mail,
    OpenTracking,
    To,
    TrackingSettings,
)

from backend.core.config import settings
from backend.delivery.models import DeliveryChannel, DeliveryStatus, EmailContent


logger = structlog.get_logger(__name__)


class BaseChannel(ABC):
    """Abstract base class for delivery channels."""

    @abstractmethod
    async def send(self, content: Any) -> DeliveryStatus:
        """Send content through this channel."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if this channel is properly configured."""
        pass


class SendGridChannel(BaseChannel):
    """
    SendGrid email delivery channel.

    Makes exactly one attempt per message. Lifecycle notifications are
    best-effort, so transient provider errors are reported back as a failed
    status instead of being retried here.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self._client: Optional[SendGridAPIClient] = None
        self.logger = structlog.get_logger().bind(channel="sendgrid")

    @property
    def client(self) -> SendGridAPIClient:
        """Lazy-loaded SendGrid client."""
        if self._client is None:
            if not self._api_key:
                raise ValueError("SendGrid API key not configured")
            self._client = SendGridAPIClient(api_key=self._api_key)
        return self._client

    def is_configured(self) -> bool:
        """Check if SendGrid is configured."""
        return bool(self._api_key)

    def _build_message(self, content: EmailContent) -> Mail:
        """
        Build a SendGrid Mail object from EmailContent.

        Args:
            content: Email content to build message from

        Returns:
            Configured Mail object ready to send
        """
        message = Mail()
        message.from_email = Email(content.from_email, content.from_name)
        message.subject = content.subject
        message.add_to(To(content.to_email, content.to_name))

        # Plain text first so clients fall back correctly
        message.add_content(Content("text/plain", content.body_text))
        message.add_content(Content("text/html", content.body_html))

        tracking_settings = TrackingSettings()
        tracking_settings.click_tracking = ClickTracking(enable=True, enable_text=True)
        tracking_settings.open_tracking = OpenTracking(enable=True)
        message.tracking_settings = tracking_settings

        message.category = Category(content.category)

        if content.reply_to:
            message.reply_to = Email(content.reply_to)

        if content.tracking_id:
            message.add_custom_arg(CustomArg(key="entity_id", value=content.tracking_id))

        return message

    async def send(self, content: EmailContent) -> DeliveryStatus:
        """
        Send email via SendGrid.

        Args:
            content: Email content to send

        Returns:
            DeliveryStatus with tracking information
        """
        delivery_id = uuid4()
        status = DeliveryStatus(
            delivery_id=delivery_id,
            channel=DeliveryChannel.EMAIL,
            status="pending",
        )

        try:
            message = self._build_message(content)
        except Exception as e:
            status.status = "failed"
            status.error_message = f"Failed to build message: {str(e)}"
            self.logger.error(
                "email_build_failed",
                to=content.to_email,
                error=str(e),
            )
            return status

        try:
            # SendGrid's client is synchronous; keep it off the event loop
            response = await asyncio.to_thread(self.client.send, message)
        except Exception as e:
            status.status = "failed"
            status.error_message = str(e)
            self.logger.error(
                "email_send_failed",
                to=content.to_email,
                error=status.error_message,
            )
            return status

        message_id = response.headers.get("X-Message-Id", str(delivery_id))
        status.status = "sent"
        status.sent_at = datetime.now(timezone.utc)
        status.provider_message_id = message_id

        self.logger.info(
            "email_sent",
            to=content.to_email,
            subject=content.subject[:50],
            message_id=message_id,
            status_code=response.status_code,
        )
        return status


# Singleton instance for channel access
_sendgrid_channel: Optional[SendGridChannel] = None


def get_sendgrid_channel() -> SendGridChannel:
    """Get or create SendGrid channel instance."""
    global _sendgrid_channel
    if _sendgrid_channel is None:
        _sendgrid_channel = SendGridChannel()
    return _sendgrid_channel
