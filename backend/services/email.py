"""
Tribeworks Email Service
Jinja2-based email template rendering and sending via SendGrid.
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

import structlog
from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from backend.core.config import settings
from backend.delivery.channels import SendGridChannel, get_sendgrid_channel
from backend.delivery.models import DeliveryChannel, DeliveryStatus, EmailContent
from backend.schemas.notifications import (
    ApplicationStatusSummary,
    ApplicationSummary,
    BountySummary,
    GrantSummary,
    RecipientContact,
    SubmissionSummary,
    WinnerSummary,
)


logger = structlog.get_logger(__name__)


# Template directory path
TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class EmailTemplateService:
    """
    Renders templated emails.

    Every template has an HTML version and, optionally, a plain-text one.
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        self._templates_dir = templates_dir or TEMPLATES_DIR
        self._env: Optional[Environment] = None

    @property
    def env(self) -> Environment:
        """Lazy-loaded Jinja2 environment."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(str(self._templates_dir)),
                autoescape=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
        return self._env

    def _get_base_context(self) -> dict[str, Any]:
        return {
            "app_name": settings.app_name,
            "frontend_url": settings.frontend_url,
            "current_year": datetime.now().year,
        }

    def render_template(self, template_name: str, context: dict[str, Any]) -> str:
        """
        Render a Jinja2 template with the given context.

        Raises:
            TemplateNotFound: If the template file doesn't exist.
        """
        full_context = {**self._get_base_context(), **context}
        template = self.env.get_template(template_name)
        return template.render(**full_context)

    def render_email(self, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """
        Render both HTML and plain-text versions of an email template.

        Returns:
            Tuple of (html_content, text_content).
        """
        html_content = self.render_template(f"{template_name}.html", context)

        # Try to load plain text version, fall back to empty string
        try:
            text_content = self.render_template(f"{template_name}.txt", context)
        except TemplateNotFound:
            logger.warning(
                "plain_text_template_not_found",
                template=f"{template_name}.txt",
            )
            text_content = ""

        return html_content, text_content


class EmailNotificationSender:
    """
    Lifecycle notification sender backed by SendGrid.

    Implements the NotificationSender protocol. Send failures come back as a
    DeliveryStatus with status "failed"; template errors raise. Either way the
    dispatcher records them without failing the lifecycle operation.
    """

    def __init__(
        self,
        channel: Optional[SendGridChannel] = None,
        templates: Optional[EmailTemplateService] = None,
    ):
        self._channel = channel or get_sendgrid_channel()
        self._templates = templates or EmailTemplateService()

    async def send_email(
        self,
        recipient: RecipientContact,
        subject: str,
        template_name: str,
        context: dict[str, Any],
        tracking_id: Optional[str] = None,
    ) -> DeliveryStatus:
        """Render ``template_name`` and send it to ``recipient``."""
        if not self._channel.is_configured():
            logger.warning(
                "sendgrid_not_configured",
                to_email=recipient.email,
                template=template_name,
            )
            return DeliveryStatus(
                delivery_id=uuid4(),
                channel=DeliveryChannel.EMAIL,
                status="skipped",
                error_message="SendGrid not configured",
            )

        html_content, text_content = self._templates.render_email(
            template_name,
            {"recipient_name": recipient.display_name, **context},
        )
        content = EmailContent(
            subject=subject[:150],
            body_html=html_content,
            body_text=text_content,
            from_email=settings.from_email,
            from_name=settings.from_name,
            to_email=recipient.email,
            to_name=recipient.first_name or recipient.username,
            tracking_id=tracking_id,
        )
        status = await self._channel.send(content)

        logger.info(
            "templated_email_processed",
            to_email=recipient.email,
            template=template_name,
            status=status.status,
        )
        return status

    # ==========================================================================
    # Lifecycle notifications
    # ==========================================================================

    async def send_first_application_notice(
        self,
        curator: RecipientContact,
        grant: GrantSummary,
        application: ApplicationSummary,
    ) -> DeliveryStatus:
        return await self.send_email(
            recipient=curator,
            subject=f"First application received for {grant.title}",
            template_name="first_application",
            context={
                "grant": grant.model_dump(),
                "application": application.model_dump(),
                "applicant_name": application.applicant_first_name or application.applicant_username,
                "review_url": f"{settings.dashboard_url}/grants/{grant.id}/applications",
            },
            tracking_id=str(application.id),
        )

    async def send_first_submission_notice(
        self,
        curator: RecipientContact,
        bounty: BountySummary,
        submission: SubmissionSummary,
    ) -> DeliveryStatus:
        return await self.send_email(
            recipient=curator,
            subject=f"First submission received for {bounty.title}",
            template_name="first_submission",
            context={
                "bounty": bounty.model_dump(),
                "submission": submission.model_dump(),
                "submitter_name": submission.submitter_first_name or submission.submitter_username,
                "review_url": f"{settings.dashboard_url}/bounties/{bounty.id}/submissions",
            },
            tracking_id=str(submission.id),
        )

    async def send_deadline_reminder_notice(
        self,
        curator: RecipientContact,
        bounty: BountySummary,
    ) -> DeliveryStatus:
        deadline = bounty.deadline.strftime("%B %d, %Y") if bounty.deadline else None
        return await self.send_email(
            recipient=curator,
            subject=f"Time to pick winners for {bounty.title}",
            template_name="deadline_reminder",
            context={
                "bounty": bounty.model_dump(),
                "deadline_date": deadline,
                "review_url": f"{settings.dashboard_url}/bounties/{bounty.id}/submissions",
            },
            tracking_id=str(bounty.id),
        )

    async def send_deadline_approaching_notice(
        self,
        member: RecipientContact,
        bounty: BountySummary,
    ) -> DeliveryStatus:
        deadline = bounty.deadline.strftime("%B %d, %Y") if bounty.deadline else None
        return await self.send_email(
            recipient=member,
            subject=f"{bounty.title} closes in 3 days",
            template_name="deadline_approaching",
            context={
                "bounty": bounty.model_dump(),
                "deadline_date": deadline,
                "bounty_url": f"{settings.dashboard_url}/bounties/{bounty.id}",
            },
            tracking_id=str(bounty.id),
        )

    async def send_application_status_notice(
        self,
        applicant: RecipientContact,
        grant: GrantSummary,
        application: ApplicationStatusSummary,
    ) -> DeliveryStatus:
        return await self.send_email(
            recipient=applicant,
            subject=f"Your application to {grant.title} was {application.status.lower()}",
            template_name="application_status",
            context={
                "grant": grant.model_dump(),
                "application": application.model_dump(),
                "approved": application.status == "APPROVED",
            },
            tracking_id=str(application.id),
        )

    async def send_winner_notice(
        self,
        winner: RecipientContact,
        prize: WinnerSummary,
    ) -> DeliveryStatus:
        return await self.send_email(
            recipient=winner,
            subject=f"You won {prize.bounty_title}!",
            template_name="winner",
            context={
                "prize": prize.model_dump(),
                "bounty_url": f"{settings.frontend_url}/bounties/{prize.bounty_id}",
            },
            tracking_id=str(prize.submission_id),
        )


# Singleton instance for sender access
_email_sender: Optional[EmailNotificationSender] = None


def get_email_sender() -> EmailNotificationSender:
    """Get or create the email notification sender."""
    global _email_sender
    if _email_sender is None:
        _email_sender = EmailNotificationSender()
    return _email_sender
