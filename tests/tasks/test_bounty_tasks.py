"""
Tests for the bounty lifecycle Celery tasks.
The async task bodies run against the test session; the Celery wrappers are
checked for registration and schedule only.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from backend.celery_app import celery_app
from backend.tasks import bounties as bounty_tasks
from tests.fixtures import BountyFactory, CuratorFactory


@pytest.fixture
def task_env(async_session, fake_sender):
    """Point the task bodies at the test session and fake sender."""

    @asynccontextmanager
    async def session_scope():
        yield async_session
        await async_session.commit()

    with patch.object(bounty_tasks, "get_async_session", session_scope), \
            patch.object(bounty_tasks, "close_db", AsyncMock()) as close_db, \
            patch.object(bounty_tasks, "get_email_sender", return_value=fake_sender):
        yield close_db


class TestBountyTasks:
    async def test_sweep_task_body(self, async_session, db_org, db_curators, fake_sender, task_env):
        bounty = BountyFactory.create(
            db_org.id,
            deadline=datetime.now(timezone.utc) - timedelta(minutes=30),
            submission_count=2,
        )
        async_session.add(bounty)
        await async_session.flush()
        async_session.add(CuratorFactory.for_bounty(bounty.id, db_curators[0].id))
        await async_session.commit()

        result = await bounty_tasks._sweep_expired_bounties_async()

        assert result["updated_count"] == 1
        assert result["reminders_attempted"] == 1
        assert result["notifications_succeeded"] == 1
        assert result["updated_bounties"][0]["id"] == str(bounty.id)
        task_env.assert_awaited_once()

    async def test_reminder_task_body(self, task_env):
        result = await bounty_tasks._send_winner_announcement_reminders_async()

        assert result == {
            "bounties_processed": 0,
            "notifications_attempted": 0,
            "notifications_succeeded": 0,
        }
        task_env.assert_awaited_once()

    async def test_deadline_reminder_task_body(self, async_session, db_org, db_owner, fake_sender, task_env):
        async_session.add(BountyFactory.create(db_org.id, deadline=datetime.now(timezone.utc) + timedelta(days=3)))
        await async_session.commit()

        result = await bounty_tasks._send_deadline_approaching_reminders_async()

        assert result == {
            "bounties_processed": 1,
            "notifications_attempted": 1,
            "notifications_succeeded": 1,
        }
        assert fake_sender.recipients_of("deadline_approaching") == [db_owner.email]
        task_env.assert_awaited_once()


class TestSchedule:
    def test_tasks_registered(self):
        assert "backend.tasks.bounties.sweep_expired_bounties_task" in celery_app.tasks
        assert "backend.tasks.bounties.send_winner_announcement_reminders_task" in celery_app.tasks
        assert "backend.tasks.bounties.send_deadline_approaching_reminders_task" in celery_app.tasks

    def test_beat_schedule(self):
        schedule = celery_app.conf.beat_schedule
        assert schedule["bounty-deadline-sweep"]["schedule"] == timedelta(minutes=15)
        assert schedule["winner-announcement-reminder"]["schedule"] == timedelta(hours=12)
        assert schedule["bounty-deadline-reminder"]["schedule"] == timedelta(hours=6)
