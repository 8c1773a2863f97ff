"""
Tests for tool settings and the audit log endpoints.
"""

import pytest

from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.settings import ToolSchemaCreate
from team_hub_api.app.services.tool_settings_service import ToolSettingsService


class TestToolSettingsService:
    """Template, global and team level settings"""

    @pytest.mark.asyncio
    async def test_builtin_tools_are_seeded(self):
        keys = {tool["tool_key"] for tool in await ToolSettingsService.list_tools()}
        assert {"links", "turnover", "automation"} <= keys

    @pytest.mark.asyncio
    async def test_effective_settings_merge_levels(self, team_id, team_admin, make_principal):
        portal_admin = make_principal("root", ["TEAMHUB_ADMINS"], is_portal_admin=True)
        await ToolSettingsService.update_settings("links", {"max_pinned_links": 20}, portal_admin)
        await ToolSettingsService.update_settings("links", {"default_visibility": "private"}, team_admin, team_id=team_id)

        team = await ToolSettingsService.get_effective_settings("links", team_id=team_id)
        glob = await ToolSettingsService.get_effective_settings("links")

        assert team["settings"]["max_pinned_links"] == 20
        assert team["settings"]["default_visibility"] == "private"
        assert team["settings"]["enable_click_tracking"] is True
        assert team["has_override"] is True
        assert glob["settings"]["default_visibility"] == "team"
        assert glob["is_global"] is True

    @pytest.mark.asyncio
    async def test_unknown_keys_are_rejected(self, team_id, team_admin):
        with pytest.raises(ValueError):
            await ToolSettingsService.update_settings("links", {"colour": "blue"}, team_admin, team_id=team_id)

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        with pytest.raises(NotFoundError):
            await ToolSettingsService.get_effective_settings("nope")

    @pytest.mark.asyncio
    async def test_reset_and_activity(self, team_id, team_admin):
        await ToolSettingsService.update_settings("turnover", {"stale_hours_threshold": 12}, team_admin, team_id=team_id)

        reset = await ToolSettingsService.reset_settings("turnover", team_admin, team_id=team_id)

        assert reset["settings"]["stale_hours_threshold"] == 24
        assert reset["has_override"] is False
        activity = await ToolSettingsService.list_activity(team_id=team_id)
        assert [a["action"] for a in activity] == ["reset", "updated"]
        assert activity[0]["previous_value"] == {"stale_hours_threshold": 12}
        assert activity[1]["new_value"] == {"stale_hours_threshold": 12}

    @pytest.mark.asyncio
    async def test_create_tool(self, make_principal):
        portal_admin = make_principal("root", is_portal_admin=True)
        data = ToolSchemaCreate(tool_key="oncall", name="On-call", settings_template={"rotation_days": 7})

        created = await ToolSettingsService.create_tool(data, portal_admin)

        assert created["settings_template"] == {"rotation_days": 7}
        with pytest.raises(ConflictError):
            await ToolSettingsService.create_tool(data, portal_admin)


class TestSettingsEndpoints:
    """HTTP surface of tool settings and audit"""

    def test_team_admin_overrides_team_settings(self, client, team_id, admin_headers, user_headers):
        url = f"/api/v1/teams/{team_id}/settings/tools/links"
        response = client.put(url, json={"settings": {"max_pinned_links": 5}}, headers=admin_headers)
        assert response.status_code == 200

        response = client.get(url, headers=user_headers)
        assert response.json()["settings"]["max_pinned_links"] == 5

    def test_members_cannot_change_settings(self, client, team_id, user_headers):
        response = client.put(
            f"/api/v1/teams/{team_id}/settings/tools/links",
            json={"settings": {"max_pinned_links": 5}},
            headers=user_headers,
        )
        assert response.status_code == 403

    def test_unknown_key_is_400(self, client, team_id, admin_headers):
        response = client.put(
            f"/api/v1/teams/{team_id}/settings/tools/links", json={"settings": {"bogus": 1}}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_global_settings_require_portal_admin(self, client, admin_headers, portal_admin_headers):
        body = {"settings": {"max_pinned_links": 15}}
        assert client.put("/api/v1/settings/tools/links", json=body, headers=admin_headers).status_code == 403
        assert client.put("/api/v1/settings/tools/links", json=body, headers=portal_admin_headers).status_code == 200

    def test_team_audit_log(self, client, team_id, user_headers, admin_headers):
        client.post(
            f"/api/v1/teams/{team_id}/links",
            json={"title": "Runbook", "url": "https://wiki.example.com/run"},
            headers=user_headers,
        )

        assert client.get(f"/api/v1/teams/{team_id}/audit/logs", headers=user_headers).status_code == 403
        response = client.get(f"/api/v1/teams/{team_id}/audit/logs", headers=admin_headers)
        assert response.status_code == 200
        logs = response.json()
        assert logs[0]["object_type"] == "link"
        assert logs[0]["actor"] == "jdoe"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"
