"""
Tests for application and submission intake.

Covers:
- Guard-first ordering (state and membership before payload shape)
- Counter increments committed with the entry
- Uniqueness per (entity, user)
- First-entry fan-out to curators, with isolated notification failures
- Submitters editing and withdrawing their own entry while the bounty is open
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from backend.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    SelfDealingError,
    UnsupportedSourceError,
    ValidationError,
)
from backend.models import (
    RFP,
    ApplicationStatus,
    BountyStatus,
    GrantApplication,
    GrantStatus,
    Submission,
    SubmissionStatus,
    Visibility,
)
from backend.services.intake import (
    create_application,
    create_submission,
    get_own_submission,
    update_submission,
    withdraw_submission,
)
from tests.fixtures import (
    BountyFactory,
    FakeSender,
    GrantFactory,
    RFPFactory,
    UserFactory,
)


APPLICATION_PAYLOAD = {
    "title": "Open-source indexer",
    "description": "We will build and maintain an indexer for the registry.",
    "budget": "5000",
    "timeline": [{"milestone": "MVP", "date": "2026-12-01"}],
}


async def count_applications(session, grant_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(GrantApplication).where(GrantApplication.grant_id == grant_id)
    )
    return result.scalar_one()


async def count_submissions(session, bounty_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(Submission).where(Submission.bounty_id == bounty_id)
    )
    return result.scalar_one()


# =============================================================================
# Grant Applications
# =============================================================================


class TestCreateApplication:
    """Tests for create_application."""

    async def test_apply_then_duplicate(self, async_session, db_grant, db_builder):
        """A first application succeeds; a second by the same user is a duplicate."""
        application = await create_application(
            async_session, db_grant.id, db_builder.id, APPLICATION_PAYLOAD
        )

        assert application.status == ApplicationStatus.SUBMITTED
        assert application.submitted_at is not None
        assert application.budget == Decimal("5000")
        assert application.timeline == [{"milestone": "MVP", "date": "2026-12-01"}]
        assert db_grant.application_count == 1

        with pytest.raises(ConflictError) as exc_info:
            await create_application(async_session, db_grant.id, db_builder.id, APPLICATION_PAYLOAD)
        assert exc_info.value.kind == "Duplicate"

        await async_session.refresh(db_grant)
        assert db_grant.application_count == 1
        assert await count_applications(async_session, db_grant.id) == 1

    async def test_closed_grant_creates_nothing(self, async_session, db_grant, db_builder):
        db_grant.status = GrantStatus.CLOSED
        await async_session.commit()

        with pytest.raises(InvalidStateError):
            await create_application(async_session, db_grant.id, db_builder.id, APPLICATION_PAYLOAD)

        await async_session.refresh(db_grant)
        assert db_grant.application_count == 0
        assert await count_applications(async_session, db_grant.id) == 0

    async def test_org_member_is_refused(self, async_session, db_grant, db_org_member):
        with pytest.raises(SelfDealingError):
            await create_application(async_session, db_grant.id, db_org_member.id, APPLICATION_PAYLOAD)
        assert await count_applications(async_session, db_grant.id) == 0

    async def test_guard_runs_before_payload_validation(self, async_session, db_grant, db_builder):
        """A closed grant answers InvalidState even for a malformed body."""
        db_grant.visibility = Visibility.DRAFT
        await async_session.commit()

        with pytest.raises(InvalidStateError):
            await create_application(async_session, db_grant.id, db_builder.id, {"title": ""})

    async def test_invalid_payload(self, async_session, db_grant, db_builder):
        with pytest.raises(ValidationError) as exc_info:
            await create_application(async_session, db_grant.id, db_builder.id, {"title": "No description"})
        assert exc_info.value.kind == "ValidationFailed"
        assert "description" in exc_info.value.message

    async def test_external_grant(self, async_session, db_org, db_builder):
        grant = GrantFactory.create_external(db_org.id)
        async_session.add(grant)
        await async_session.commit()

        with pytest.raises(UnsupportedSourceError):
            await create_application(async_session, grant.id, db_builder.id, APPLICATION_PAYLOAD)

    async def test_unknown_grant(self, async_session, db_builder):
        with pytest.raises(NotFoundError):
            await create_application(async_session, uuid.uuid4(), db_builder.id, APPLICATION_PAYLOAD)

    async def test_resolves_slug_case_insensitively(self, async_session, db_grant, db_builder):
        application = await create_application(
            async_session, "Ecosystem-FUND", db_builder.id, APPLICATION_PAYLOAD
        )
        assert application.grant_id == db_grant.id

    async def test_budget_outside_range(self, async_session, db_org, db_builder):
        grant = GrantFactory.create(db_org.id, min_amount=Decimal("1000"), max_amount=Decimal("3000"))
        async_session.add(grant)
        await async_session.commit()

        with pytest.raises(ValidationError):
            await create_application(async_session, grant.id, db_builder.id, APPLICATION_PAYLOAD)

    async def test_budget_range_ignored_when_open_ended(self, async_session, db_org, db_builder):
        grant = GrantFactory.create(db_org.id, min_amount=Decimal("1000"))
        async_session.add(grant)
        await async_session.commit()

        application = await create_application(async_session, grant.id, db_builder.id, APPLICATION_PAYLOAD)
        assert application.budget == Decimal("5000")

    async def test_rfp_counter_incremented(self, async_session, db_grant, db_builder):
        rfp = RFPFactory.create(db_grant.id)
        async_session.add(rfp)
        await async_session.commit()

        payload = {**APPLICATION_PAYLOAD, "rfp_id": str(rfp.id)}
        application = await create_application(async_session, db_grant.id, db_builder.id, payload)

        assert application.rfp_id == rfp.id
        await async_session.refresh(rfp)
        assert rfp.application_count == 1

    async def test_rfp_of_another_grant(self, async_session, db_org, db_grant, db_builder):
        other = GrantFactory.create(db_org.id)
        async_session.add(other)
        await async_session.flush()
        rfp = RFPFactory.create(other.id)
        async_session.add(rfp)
        await async_session.commit()

        payload = {**APPLICATION_PAYLOAD, "rfp_id": str(rfp.id)}
        with pytest.raises(NotFoundError):
            await create_application(async_session, db_grant.id, db_builder.id, payload)
        assert await count_applications(async_session, db_grant.id) == 0

    async def test_first_application_notifies_every_curator(
        self, async_session, db_grant, db_builder, db_builders, db_curators, fake_sender
    ):
        await create_application(
            async_session, db_grant.id, db_builder.id, APPLICATION_PAYLOAD, sender=fake_sender
        )

        assert fake_sender.recipients_of("first_application") == sorted(c.email for c in db_curators)
        _, _, payload = fake_sender.calls_of("first_application")[0]
        assert payload["application"].requested_amount == "$5000"
        assert payload["application"].applicant_username == "bea"
        assert payload["grant"].title == db_grant.title

        # Later applications are silent
        await create_application(
            async_session, db_grant.id, db_builders[0].id, APPLICATION_PAYLOAD, sender=fake_sender
        )
        assert len(fake_sender.calls_of("first_application")) == len(db_curators)

    async def test_notification_failure_does_not_fail_intake(
        self, async_session, db_grant, db_builder, db_curators
    ):
        sender = FakeSender(raise_for={db_curators[0].email}, fail_for={db_curators[1].email})

        application = await create_application(
            async_session, db_grant.id, db_builder.id, APPLICATION_PAYLOAD, sender=sender
        )

        assert application.id is not None
        assert len(sender.calls) == 2
        assert await count_applications(async_session, db_grant.id) == 1


# =============================================================================
# Bounty Submissions
# =============================================================================


class TestCreateSubmission:
    """Tests for create_submission."""

    async def test_submit_then_duplicate(self, async_session, db_bounty, db_builder):
        submission = await create_submission(
            async_session,
            db_bounty.id,
            db_builder.id,
            {"title": "Dashboard v1", "submission_url": "https://demo.example.com"},
        )

        assert submission.status == SubmissionStatus.SUBMITTED
        assert submission.is_winner is False
        assert submission.position is None
        assert db_bounty.submission_count == 1

        with pytest.raises(ConflictError):
            await create_submission(async_session, db_bounty.id, db_builder.id, {})
        await async_session.refresh(db_bounty)
        assert db_bounty.submission_count == 1

    async def test_default_title(self, async_session, db_bounty, db_builder):
        submission = await create_submission(async_session, "dashboard-bounty", db_builder.id, {})
        assert submission.title == f"Submission for {db_bounty.title}"

    async def test_bounty_in_review(self, async_session, db_org, db_builder):
        bounty = BountyFactory.create(db_org.id, status=BountyStatus.REVIEWING)
        async_session.add(bounty)
        await async_session.commit()

        with pytest.raises(InvalidStateError):
            await create_submission(async_session, bounty.id, db_builder.id, {})
        assert await count_submissions(async_session, bounty.id) == 0

    async def test_expired_but_not_yet_swept(self, async_session, db_org, db_builder):
        bounty = BountyFactory.create_expired(db_org.id)
        async_session.add(bounty)
        await async_session.commit()

        with pytest.raises(InvalidStateError):
            await create_submission(async_session, bounty.id, db_builder.id, {})

    async def test_org_member_is_refused(self, async_session, db_bounty, db_org_member):
        with pytest.raises(SelfDealingError):
            await create_submission(async_session, db_bounty.id, db_org_member.id, {})

    async def test_bad_url(self, async_session, db_bounty, db_builder):
        with pytest.raises(ValidationError):
            await create_submission(
                async_session, db_bounty.id, db_builder.id, {"submission_url": "ftp://nope"}
            )

    async def test_first_submission_notifies_curators(
        self, async_session, db_bounty, db_builder, db_builders, db_curators, fake_sender
    ):
        await create_submission(async_session, db_bounty.id, db_builder.id, {}, sender=fake_sender)
        await create_submission(async_session, db_bounty.id, db_builders[0].id, {}, sender=fake_sender)

        assert fake_sender.recipients_of("first_submission") == sorted(c.email for c in db_curators)
        _, _, payload = fake_sender.calls_of("first_submission")[0]
        assert payload["bounty"].total_prize == "1000"
        assert payload["bounty"].submission_count == 1

    async def test_no_curators_no_notifications(self, async_session, db_org, db_builder, fake_sender):
        bounty = BountyFactory.create(db_org.id)
        async_session.add(bounty)
        await async_session.commit()

        submission = await create_submission(async_session, bounty.id, db_builder.id, {}, sender=fake_sender)

        assert submission.id is not None
        assert fake_sender.calls == []


class TestOwnSubmission:
    """Tests for a submitter editing and withdrawing their own entry."""

    @pytest_asyncio.fixture
    async def own_submission(self, async_session, db_bounty, db_builder):
        return await create_submission(
            async_session,
            db_bounty.id,
            db_builder.id,
            {"title": "Dashboard v1", "description": "First cut", "submission_url": "https://v1.example.com"},
        )

    async def test_get_own_submission(self, async_session, db_bounty, db_builder, own_submission):
        found = await get_own_submission(async_session, "dashboard-bounty", db_builder.id)
        assert found.id == own_submission.id

    async def test_get_without_entry(self, async_session, db_bounty, db_builders):
        with pytest.raises(NotFoundError):
            await get_own_submission(async_session, db_bounty.id, db_builders[0].id)

    async def test_update_changes_only_sent_fields(self, async_session, db_bounty, db_builder, own_submission):
        updated = await update_submission(
            async_session, db_bounty.id, db_builder.id, {"description": "Now with charts"}
        )

        assert updated.id == own_submission.id
        assert updated.description == "Now with charts"
        assert updated.title == "Dashboard v1"
        assert updated.submission_url == "https://v1.example.com"

    async def test_update_clears_url_and_keeps_blank_title(
        self, async_session, db_bounty, db_builder, own_submission
    ):
        updated = await update_submission(
            async_session, db_bounty.id, db_builder.id, {"title": "   ", "submission_url": ""}
        )

        assert updated.title == "Dashboard v1"
        assert updated.submission_url is None

    async def test_update_validates_payload(self, async_session, db_bounty, db_builder, own_submission):
        with pytest.raises(ValidationError):
            await update_submission(async_session, db_bounty.id, db_builder.id, {"submission_url": "ftp://nope"})

    async def test_update_without_entry(self, async_session, db_bounty, db_builder):
        with pytest.raises(NotFoundError):
            await update_submission(async_session, db_bounty.id, db_builder.id, {"title": "x"})

    async def test_unknown_bounty(self, async_session, db_builder):
        with pytest.raises(NotFoundError):
            await update_submission(async_session, uuid.uuid4(), db_builder.id, {"title": "x"})

    async def test_winner_is_frozen(self, async_session, db_bounty, db_builder, own_submission):
        own_submission.is_winner = True
        own_submission.position = 1
        await async_session.commit()

        with pytest.raises(InvalidStateError, match="winning submission"):
            await update_submission(async_session, db_bounty.id, db_builder.id, {"title": "v2"})
        with pytest.raises(InvalidStateError, match="winning submission"):
            await withdraw_submission(async_session, db_bounty.id, db_builder.id)
        assert await count_submissions(async_session, db_bounty.id) == 1

    async def test_closed_bounty(self, async_session, db_bounty, db_builder, own_submission):
        db_bounty.status = BountyStatus.REVIEWING
        await async_session.commit()

        with pytest.raises(InvalidStateError, match="closed or deadline has passed"):
            await update_submission(async_session, db_bounty.id, db_builder.id, {"title": "v2"})
        with pytest.raises(InvalidStateError):
            await withdraw_submission(async_session, db_bounty.id, db_builder.id)

    async def test_deadline_passed_before_sweep(self, async_session, db_bounty, db_builder, own_submission):
        db_bounty.deadline = datetime.now(timezone.utc) - timedelta(minutes=1)
        await async_session.commit()

        with pytest.raises(InvalidStateError):
            await update_submission(async_session, db_bounty.id, db_builder.id, {"title": "v2"})

    async def test_withdraw_gives_back_the_slot(self, async_session, db_bounty, db_builder, own_submission):
        assert db_bounty.submission_count == 1

        await withdraw_submission(async_session, db_bounty.id, db_builder.id)

        assert db_bounty.submission_count == 0
        assert await count_submissions(async_session, db_bounty.id) == 0

        again = await create_submission(async_session, db_bounty.id, db_builder.id, {})
        assert again.id != own_submission.id
        assert db_bounty.submission_count == 1

    async def test_withdraw_never_goes_negative(self, async_session, db_bounty, db_builder, own_submission):
        db_bounty.submission_count = 0
        await async_session.commit()

        await withdraw_submission(async_session, db_bounty.id, db_builder.id)

        assert db_bounty.submission_count == 0

    async def test_withdraw_without_entry(self, async_session, db_bounty, db_builders):
        with pytest.raises(NotFoundError):
            await withdraw_submission(async_session, db_bounty.id, db_builders[0].id)


async def test_counters_are_independent_per_entity(async_session, db_org, db_builder):
    first = BountyFactory.create(db_org.id)
    second = BountyFactory.create(db_org.id)
    async_session.add_all([first, second])
    await async_session.commit()

    await create_submission(async_session, first.id, db_builder.id, {})
    other_user = UserFactory.create()
    async_session.add(other_user)
    await async_session.commit()
    await create_submission(async_session, first.id, other_user.id, {})
    await create_submission(async_session, second.id, db_builder.id, {})

    await async_session.refresh(first)
    await async_session.refresh(second)
    assert (first.submission_count, second.submission_count) == (2, 1)
