"""
Tests for team registration requests and their review.
"""

import pytest

from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.team import RegistrationCreate, RegistrationReview
from team_hub_api.app.services.registration_service import RegistrationService
from team_hub_api.app.services.team_service import TeamService


def registration(name="Cards SRE", **overrides):
    data = {
        "team_name": name,
        "user_group": "CARD_USERS",
        "admin_group": "CARD_ADMINS",
        "contact_name": "Casey Cards",
        "contact_email": "casey@example.com",
    }
    data.update(overrides)
    return RegistrationCreate(**data)


class TestNameCheck:
    """Availability of a requested team name"""

    @pytest.mark.asyncio
    async def test_existing_team_is_an_error(self, create_team):
        create_team("Payments SRE")
        result = await RegistrationService.check_team_name("Payments SRE")
        assert (result.available, result.type) == (False, "error")

    @pytest.mark.asyncio
    async def test_pending_request_is_a_warning(self, team_user):
        await RegistrationService.create_request(registration(), team_user)
        result = await RegistrationService.check_team_name(" Cards SRE ")
        assert (result.available, result.type) == (False, "warning")
        assert "pending" in result.message

    @pytest.mark.asyncio
    async def test_free_name(self):
        result = await RegistrationService.check_team_name("Brand New")
        assert (result.available, result.type) == (True, "success")

    @pytest.mark.asyncio
    async def test_blank_name(self):
        result = await RegistrationService.check_team_name("   ")
        assert result.type == "error"


class TestRegistrationService:
    """Submitting and reviewing requests"""

    @pytest.mark.asyncio
    async def test_create_is_pending(self, team_user):
        request = await RegistrationService.create_request(registration(), team_user)
        assert request.status == "pending"
        assert request.requested_by == "jdoe"
        assert request.team_id is None

    @pytest.mark.asyncio
    async def test_duplicate_names_conflict(self, create_team, team_user):
        create_team("Payments SRE")
        with pytest.raises(ConflictError):
            await RegistrationService.create_request(registration("Payments SRE"), team_user)

        await RegistrationService.create_request(registration(), team_user)
        with pytest.raises(ConflictError):
            await RegistrationService.create_request(registration(), team_user)

    @pytest.mark.asyncio
    async def test_approval_creates_team(self, team_user, make_principal):
        portal_admin = make_principal("root", ["TEAMHUB_ADMINS"], is_portal_admin=True)
        request = await RegistrationService.create_request(registration(), team_user)

        reviewed = await RegistrationService.review_request(
            request.id, RegistrationReview(action="approve", comments="ok"), portal_admin
        )

        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == "root"
        assert reviewed.team_id is not None
        team = await TeamService.find_team(reviewed.team_id)
        assert team.name == "Cards SRE"
        assert (team.user_group, team.admin_group) == ("CARD_USERS", "CARD_ADMINS")
        assert team.is_active

    @pytest.mark.asyncio
    async def test_rejection_creates_nothing(self, team_user, make_principal):
        portal_admin = make_principal("root", ["TEAMHUB_ADMINS"], is_portal_admin=True)
        request = await RegistrationService.create_request(registration(), team_user)

        reviewed = await RegistrationService.review_request(
            request.id, RegistrationReview(action="reject"), portal_admin
        )

        assert reviewed.status == "rejected"
        assert reviewed.team_id is None
        assert await TeamService.list_user_teams({"CARD_ADMINS"}) == []

    @pytest.mark.asyncio
    async def test_cannot_review_twice(self, team_user, make_principal):
        portal_admin = make_principal("root", ["TEAMHUB_ADMINS"], is_portal_admin=True)
        request = await RegistrationService.create_request(registration(), team_user)
        await RegistrationService.review_request(request.id, RegistrationReview(action="reject"), portal_admin)

        with pytest.raises(ConflictError):
            await RegistrationService.review_request(request.id, RegistrationReview(action="approve"), portal_admin)

    @pytest.mark.asyncio
    async def test_missing_request(self, make_principal):
        with pytest.raises(NotFoundError):
            await RegistrationService.review_request(
                42, RegistrationReview(action="approve"), make_principal("root", is_portal_admin=True)
            )

    @pytest.mark.asyncio
    async def test_stats(self, team_user, make_principal):
        portal_admin = make_principal("root", ["TEAMHUB_ADMINS"], is_portal_admin=True)
        first = await RegistrationService.create_request(registration("One"), team_user)
        await RegistrationService.create_request(registration("Two"), team_user)
        await RegistrationService.review_request(first.id, RegistrationReview(action="approve"), portal_admin)

        stats = await RegistrationService.dashboard_stats()

        assert (stats.pending, stats.approved, stats.rejected, stats.total) == (1, 1, 0, 2)


class TestRegistrationEndpoints:
    """HTTP surface of registrations"""

    PAYLOAD = {
        "team_name": "Cards SRE",
        "user_group": "CARD_USERS",
        "admin_group": "CARD_ADMINS",
        "contact_name": "Casey Cards",
        "contact_email": "casey@example.com",
    }

    def test_submit_and_approve(self, client, user_headers, portal_admin_headers, auth_headers):
        response = client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers)
        assert response.status_code == 201
        request_id = response.json()["id"]

        response = client.post(
            f"/api/v1/registrations/{request_id}/review", json={"action": "approve"}, headers=portal_admin_headers
        )
        assert response.status_code == 200
        team_id = response.json()["team_id"]

        response = client.get(f"/api/v1/teams/{team_id}", headers=auth_headers("casey", ["CARD_ADMINS"]))
        assert response.status_code == 200

    def test_duplicate_is_409(self, client, user_headers):
        assert client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers).status_code == 201
        assert client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers).status_code == 409

    def test_review_requires_portal_admin(self, client, user_headers, admin_headers):
        request_id = client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers).json()["id"]
        response = client.post(
            f"/api/v1/registrations/{request_id}/review", json={"action": "approve"}, headers=admin_headers
        )
        assert response.status_code == 403

    def test_requests_are_private_to_their_author(self, client, user_headers, auth_headers, portal_admin_headers):
        request_id = client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers).json()["id"]

        assert client.get(f"/api/v1/registrations/{request_id}", headers=user_headers).status_code == 200
        assert client.get(f"/api/v1/registrations/{request_id}", headers=auth_headers("other")).status_code == 404
        assert client.get(f"/api/v1/registrations/{request_id}", headers=portal_admin_headers).status_code == 200

    def test_check_name(self, client, user_headers):
        response = client.get("/api/v1/registrations/check-name?name=Fresh", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["type"] == "success"

    def test_list_filters_by_status(self, client, user_headers, portal_admin_headers):
        client.post("/api/v1/registrations/", json=self.PAYLOAD, headers=user_headers)
        response = client.get("/api/v1/registrations/?status=approved", headers=portal_admin_headers)
        assert response.status_code == 200
        assert response.json() == []
        assert len(client.get("/api/v1/registrations/mine", headers=user_headers).json()) == 1
