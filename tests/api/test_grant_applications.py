"""
Tests for the grant application endpoints.

Covers:
- POST /api/grants/{grant_ref}/applications
- PATCH /api/grants/{grant_ref}/applications/{application_id}/review
"""
import uuid

from backend.models import GrantStatus
from tests.fixtures import GrantApplicationFactory, auth_headers_for

PAYLOAD = {
    "title": "Open-source indexer",
    "description": "We will build and maintain an indexer.",
    "budget": 2500,
}


class TestSubmitApplication:
    """Tests for POST /api/grants/{grant_ref}/applications."""

    async def test_requires_authentication(self, client, db_grant):
        response = await client.post(f"/api/grants/{db_grant.id}/applications", json=PAYLOAD)

        assert response.status_code == 401
        body = response.json()
        assert body["error"] is True
        assert body["kind"] == "Unauthenticated"

    async def test_invalid_token(self, client, db_grant):
        response = await client.post(
            f"/api/grants/{db_grant.id}/applications",
            json=PAYLOAD,
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    async def test_apply_by_slug(self, client, db_grant, db_builder, db_curators, fake_sender):
        response = await client.post(
            "/api/grants/ecosystem-fund/applications",
            json=PAYLOAD,
            headers=auth_headers_for(db_builder),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["application"]["status"] == "SUBMITTED"
        assert data["application"]["grant_id"] == str(db_grant.id)
        assert data["application"]["applicant"]["id"] == str(db_builder.id)
        assert len(fake_sender.calls_of("first_application")) == len(db_curators)

    async def test_duplicate(self, client, db_grant, db_builder):
        headers = auth_headers_for(db_builder)
        await client.post(f"/api/grants/{db_grant.id}/applications", json=PAYLOAD, headers=headers)

        response = await client.post(f"/api/grants/{db_grant.id}/applications", json=PAYLOAD, headers=headers)

        assert response.status_code == 409
        assert response.json()["kind"] == "Duplicate"

    async def test_closed_grant(self, client, async_session, db_grant, db_builder):
        db_grant.status = GrantStatus.CLOSED
        await async_session.commit()

        response = await client.post(
            f"/api/grants/{db_grant.id}/applications",
            json={},
            headers=auth_headers_for(db_builder),
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidState"

    async def test_self_dealing(self, client, db_grant, db_org_member):
        response = await client.post(
            f"/api/grants/{db_grant.id}/applications",
            json=PAYLOAD,
            headers=auth_headers_for(db_org_member),
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "SelfDealing"

    async def test_invalid_body(self, client, db_grant, db_builder):
        response = await client.post(
            f"/api/grants/{db_grant.id}/applications",
            json={"title": "Missing description"},
            headers=auth_headers_for(db_builder),
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "ValidationFailed"

    async def test_unknown_grant(self, client, db_builder):
        response = await client.post(
            f"/api/grants/{uuid.uuid4()}/applications",
            json=PAYLOAD,
            headers=auth_headers_for(db_builder),
        )
        assert response.status_code == 404
        assert response.json()["kind"] == "NotFound"


class TestReviewApplication:
    """Tests for PATCH /api/grants/{grant_ref}/applications/{application_id}/review."""

    async def create_application(self, session, grant, user):
        application = GrantApplicationFactory.create(grant.id, user.id)
        session.add(application)
        await session.commit()
        return application

    async def test_approve(self, client, async_session, db_grant, db_builder, db_owner, fake_sender):
        application = await self.create_application(async_session, db_grant, db_builder)

        response = await client.patch(
            f"/api/grants/{db_grant.id}/applications/{application.id}/review",
            json={"status": "APPROVED"},
            headers=auth_headers_for(db_owner),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Application approved"
        assert data["application"]["status"] == "APPROVED"
        assert fake_sender.recipients_of("application_status") == [db_builder.email]

    async def test_reject_without_feedback(self, client, async_session, db_grant, db_builder, db_owner):
        application = await self.create_application(async_session, db_grant, db_builder)

        response = await client.patch(
            f"/api/grants/{db_grant.id}/applications/{application.id}/review",
            json={"status": "REJECTED"},
            headers=auth_headers_for(db_owner),
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "ValidationFailed"

    async def test_unknown_decision(self, client, async_session, db_grant, db_builder, db_owner):
        application = await self.create_application(async_session, db_grant, db_builder)

        response = await client.patch(
            f"/api/grants/{db_grant.id}/applications/{application.id}/review",
            json={"status": "MAYBE"},
            headers=auth_headers_for(db_owner),
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "ValidationFailed"

    async def test_non_reviewer(self, client, async_session, db_grant, db_builder, db_builders):
        application = await self.create_application(async_session, db_grant, db_builder)

        response = await client.patch(
            f"/api/grants/{db_grant.id}/applications/{application.id}/review",
            json={"status": "APPROVED"},
            headers=auth_headers_for(db_builders[0]),
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "Forbidden"
