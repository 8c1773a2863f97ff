"""
Tests for team access resolution and team-scoped authorization.
"""

from types import SimpleNamespace

import pytest

from team_hub_api.app.core.access import AccessLevel, resolve_access_level
from team_hub_api.app.services.team_service import TeamService


def make_team(is_active=True, user_group="PAY_USERS", admin_group="PAY_ADMINS"):
    return SimpleNamespace(is_active=is_active, user_group=user_group, admin_group=admin_group)


class TestResolveAccessLevel:
    """Access is derived from group membership only"""

    def test_missing_team_is_none(self):
        assert resolve_access_level(None, {"PAY_ADMINS"}) is AccessLevel.NONE

    def test_inactive_team_is_none_even_for_admins(self):
        team = make_team(is_active=False)
        assert resolve_access_level(team, {"PAY_ADMINS", "PAY_USERS"}) is AccessLevel.NONE

    def test_admin_group_wins_over_user_group(self):
        assert resolve_access_level(make_team(), {"PAY_USERS", "PAY_ADMINS"}) is AccessLevel.ADMIN

    def test_user_group_gives_user(self):
        assert resolve_access_level(make_team(), {"PAY_USERS"}) is AccessLevel.USER

    def test_unrelated_groups_give_none(self):
        assert resolve_access_level(make_team(), {"OTHER"}) is AccessLevel.NONE
        assert resolve_access_level(make_team(), set()) is AccessLevel.NONE

    def test_group_names_are_case_sensitive(self):
        assert resolve_access_level(make_team(), {"pay_admins"}) is AccessLevel.NONE

    def test_levels_are_ordered(self):
        assert AccessLevel.ADMIN.satisfies(AccessLevel.USER)
        assert AccessLevel.USER.satisfies(AccessLevel.USER)
        assert not AccessLevel.USER.satisfies(AccessLevel.ADMIN)
        assert not AccessLevel.NONE.satisfies(AccessLevel.USER)


class TestListUserTeams:
    """Listing only returns teams the caller can access"""

    @pytest.mark.asyncio
    async def test_filters_teams_without_access(self, create_team):
        payments = create_team("Payments SRE", "PAY_USERS", "PAY_ADMINS")
        cards = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        create_team("Legacy", "LEG_USERS", "LEG_ADMINS", is_active=False)

        teams = await TeamService.list_user_teams({"PAY_ADMINS", "CARD_USERS", "LEG_ADMINS"})

        levels = {team.id: team.access_level for team in teams}
        assert levels == {payments: AccessLevel.ADMIN, cards: AccessLevel.USER}

    @pytest.mark.asyncio
    async def test_empty_groups_return_nothing(self, create_team):
        create_team()
        assert await TeamService.list_user_teams(set()) == []

    @pytest.mark.asyncio
    async def test_has_admin_access(self, create_team):
        create_team()
        assert await TeamService.has_admin_access({"PAY_ADMINS"})
        assert not await TeamService.has_admin_access({"PAY_USERS"})


class TestTeamEndpoints:
    """HTTP behaviour of team-scoped authorization"""

    def test_requires_authentication(self, client, team_id):
        response = client.get(f"/api/v1/teams/{team_id}")
        assert response.status_code == 401

    def test_rejects_tampered_token(self, client, team_id, user_headers):
        token = user_headers["Authorization"]
        response = client.get(f"/api/v1/teams/{team_id}", headers={"Authorization": token[:-2] + "xx"})
        assert response.status_code == 401

    def test_rejects_non_ascii_token(self, client, team_id):
        response = client.get(f"/api/v1/teams/{team_id}", headers={"Authorization": b"Bearer a.b.\xe9"})
        assert response.status_code == 401

    def test_rejects_malformed_groups_claim(self, client, team_id):
        from team_hub_api.app.core.security import create_access_token

        token = create_access_token({"sub": "jdoe", "groups": "PAY_USERS"})
        response = client.get(f"/api/v1/teams/{team_id}", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_rejects_reserved_subject(self, client, team_id, auth_headers):
        response = client.get(f"/api/v1/teams/{team_id}", headers=auth_headers("automation", ["PAY_ADMINS"]))
        assert response.status_code == 401

    def test_member_can_read_team(self, client, team_id, user_headers):
        response = client.get(f"/api/v1/teams/{team_id}", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Payments SRE"

    def test_foreign_team_looks_missing(self, client, create_team, user_headers):
        other = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        foreign = client.get(f"/api/v1/teams/{other}", headers=user_headers)
        missing = client.get("/api/v1/teams/9999", headers=user_headers)
        assert foreign.status_code == missing.status_code == 404
        assert foreign.json() == missing.json()

    def test_inactive_team_is_hidden_from_admins(self, client, create_team, admin_headers):
        inactive = create_team(is_active=False)
        response = client.get(f"/api/v1/teams/{inactive}", headers=admin_headers)
        assert response.status_code == 404

    def test_user_gets_403_on_admin_route(self, client, team_id, user_headers):
        response = client.post(f"/api/v1/teams/{team_id}/automation/flag-stale", headers=user_headers)
        assert response.status_code == 403

    def test_my_teams(self, client, create_team, auth_headers):
        create_team("Payments SRE", "PAY_USERS", "PAY_ADMINS")
        create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        response = client.get("/api/v1/teams/mine", headers=auth_headers("jdoe", ["PAY_USERS"]))
        assert response.status_code == 200
        assert [(t["name"], t["access_level"]) for t in response.json()] == [("Payments SRE", "user")]

    def test_access_endpoint_reports_none_for_missing_team(self, client, user_headers):
        response = client.get("/api/v1/teams/9999/access", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["access_level"] == "none"

    def test_deactivation_revokes_access(self, client, team_id, admin_headers, portal_admin_headers):
        assert client.get(f"/api/v1/teams/{team_id}", headers=admin_headers).status_code == 200

        response = client.patch(
            f"/api/v1/teams/{team_id}/active", json={"is_active": False}, headers=portal_admin_headers
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get(f"/api/v1/teams/{team_id}", headers=admin_headers).status_code == 404

    def test_all_teams_requires_portal_admin(self, client, team_id, admin_headers, portal_admin_headers):
        assert client.get("/api/v1/teams/all", headers=admin_headers).status_code == 403
        response = client.get("/api/v1/teams/all", headers=portal_admin_headers)
        assert response.status_code == 200
        assert response.json()[0]["application_count"] == 0
