"""
Tests for notification dispatch, summary builders and the email sender.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from backend.delivery.models import DeliveryChannel, DeliveryStatus
from backend.schemas.notifications import (
    BountySummary,
    DispatchOutcome,
    RecipientContact,
    WinnerSummary,
)
from backend.services.email import EmailNotificationSender
from backend.services.notifications import (
    application_summary,
    bounty_summary,
    dispatch_best_effort,
    format_amount,
)
from tests.fixtures import BountyFactory, GrantApplicationFactory, UserFactory


def delivery(status: str, error: str = None) -> DeliveryStatus:
    return DeliveryStatus(
        delivery_id=uuid.uuid4(),
        channel=DeliveryChannel.EMAIL,
        status=status,
        error_message=error,
    )


# =============================================================================
# Best-effort dispatch
# =============================================================================


class TestDispatchBestEffort:
    """Tests for dispatch_best_effort."""

    async def test_empty_batch(self):
        assert await dispatch_best_effort([]) == DispatchOutcome()

    async def test_counts_each_call_once(self):
        send = AsyncMock(return_value=delivery("sent"))
        calls = [(f"call-{i}", send) for i in range(3)]

        outcome = await dispatch_best_effort(calls)

        assert (outcome.attempted, outcome.succeeded, outcome.failed) == (3, 3, 0)
        assert send.await_count == 3

    async def test_failures_are_isolated(self):
        async def boom():
            raise RuntimeError("smtp down")

        calls = [
            ("ok", AsyncMock(return_value=delivery("sent"))),
            ("raises", boom),
            ("rejected", AsyncMock(return_value=delivery("failed", "bounced"))),
            ("skipped", AsyncMock(return_value=delivery("skipped"))),
            ("no-status", AsyncMock(return_value=None)),
        ]

        outcome = await dispatch_best_effort(calls)

        assert outcome.attempted == 5
        assert outcome.succeeded == 3
        assert {f.label: f.error for f in outcome.failures} == {
            "raises": "smtp down",
            "rejected": "bounced",
        }

    async def test_failures_are_logged(self, caplog):
        async def boom():
            raise ValueError("bad address")

        with caplog.at_level("ERROR", logger="backend.services.notifications"):
            await dispatch_best_effort([("winner bounty=1", boom)])

        assert "winner bounty=1" in caplog.text


# =============================================================================
# Summary builders
# =============================================================================


class TestFormatAmount:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "0"),
            (Decimal("1000.00"), "1000"),
            (Decimal("1000"), "1000"),
            (Decimal("12.50"), "12.5"),
            (250, "250"),
            ("99.90", "99.9"),
        ],
    )
    def test_format_amount(self, value, expected):
        assert format_amount(value) == expected


class TestSummaries:
    def test_bounty_summary_defaults_missing_amount_to_zero(self):
        bounty = BountyFactory.create(uuid.uuid4(), amount=None, winnings={})
        assert bounty_summary(bounty).total_prize == "0"

    def test_application_summary_fallbacks(self):
        applicant = UserFactory.create()
        applicant.username = None
        application = GrantApplicationFactory.create(
            uuid.uuid4(), applicant.id, description="x" * 300, summary=None, budget=None
        )

        summary = application_summary(application, applicant)

        assert summary.summary == "x" * 200
        assert summary.requested_amount == "Not specified"
        assert summary.applicant_username == "Anonymous"


# =============================================================================
# Email sender
# =============================================================================


@pytest.fixture
def winner_payload():
    return (
        RecipientContact(email="winner@example.com", first_name="Wen"),
        WinnerSummary(
            bounty_id=uuid.uuid4(),
            bounty_title="Build a Dashboard",
            organization_name="Protocol Labs",
            submission_id=uuid.uuid4(),
            position=1,
            prize_amount="500",
            token="USDC",
        ),
    )


class TestEmailNotificationSender:
    """Tests for EmailNotificationSender."""

    async def test_skips_when_sendgrid_not_configured(self, winner_payload):
        channel = MagicMock()
        channel.is_configured.return_value = False
        channel.send = AsyncMock()
        sender = EmailNotificationSender(channel=channel)

        status = await sender.send_winner_notice(*winner_payload)

        assert status.status == "skipped"
        channel.send.assert_not_awaited()

    async def test_renders_and_sends_winner_email(self, winner_payload):
        channel = MagicMock()
        channel.is_configured.return_value = True
        channel.send = AsyncMock(return_value=delivery("sent"))
        sender = EmailNotificationSender(channel=channel)

        status = await sender.send_winner_notice(*winner_payload)

        assert status.status == "sent"
        content = channel.send.await_args.args[0]
        assert content.to_email == "winner@example.com"
        assert content.subject == "You won Build a Dashboard!"
        assert "Hi Wen" in content.body_text
        assert "#1" in content.body_text
        assert "500 USDC" in content.body_html
        assert content.tracking_id == str(winner_payload[1].submission_id)

    async def test_deadline_reminder_formats_deadline(self):
        channel = MagicMock()
        channel.is_configured.return_value = True
        channel.send = AsyncMock(return_value=delivery("sent"))
        sender = EmailNotificationSender(channel=channel)
        bounty = BountySummary(
            id=uuid.uuid4(),
            title="Build a Dashboard",
            deadline=datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc),
            submission_count=5,
            total_prize="1000",
            token="USDC",
        )

        await sender.send_deadline_reminder_notice(RecipientContact(email="curator@example.com"), bounty)

        content = channel.send.await_args.args[0]
        assert content.subject == "Time to pick winners for Build a Dashboard"
        assert "October 18, 2026" in content.body_text

    async def test_deadline_approaching_links_to_bounty(self):
        channel = MagicMock()
        channel.is_configured.return_value = True
        channel.send = AsyncMock(return_value=delivery("sent"))
        sender = EmailNotificationSender(channel=channel)
        bounty = BountySummary(
            id=uuid.uuid4(),
            title="Build a Dashboard",
            deadline=datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc),
            submission_count=2,
            total_prize="1000",
            token="USDC",
        )

        await sender.send_deadline_approaching_notice(RecipientContact(email="owner@example.com"), bounty)

        content = channel.send.await_args.args[0]
        assert content.subject == "Build a Dashboard closes in 3 days"
        assert "October 21, 2026" in content.body_text
        assert f"/bounties/{bounty.id}" in content.body_html
        assert content.tracking_id == str(bounty.id)

    async def test_provider_failure_is_returned_not_raised(self, winner_payload):
        channel = MagicMock()
        channel.is_configured.return_value = True
        channel.send = AsyncMock(return_value=delivery("failed", "401 Unauthorized"))
        sender = EmailNotificationSender(channel=channel)

        outcome = await dispatch_best_effort(
            [("winner", lambda: sender.send_winner_notice(*winner_payload))]
        )

        assert outcome.failed == 1
        assert outcome.failures[0].error == "401 Unauthorized"
