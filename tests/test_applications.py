"""
Tests for applications, the central inventory client and sub-applications.
"""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from team_hub_api.app.core.central_api import CentralApiClient
from team_hub_api.app.core.exceptions import CentralApiError, ConflictError, NotFoundError
from team_hub_api.app.schemas.application import ApplicationCreate, ApplicationUpdate, SubApplicationCreate
from team_hub_api.app.services.application_service import ApplicationService
from team_hub_api.app.services.sub_application_service import SubApplicationService

CENTRAL_PAYLOAD = {
    "data": {
        "application": {
            "name": "Payments Gateway",
            "assetId": 200001,
            "lifeCycleStatus": "Production",
            "risk": {"bia": "Tier 1"},
            "ownershipInfo": {
                "productionSupportOwner": {"fullName": "Dana Director", "email": "dana@example.com", "band": "E"},
                "productionSupportOwnerLeader1": {"fullName": "Vic President", "email": "vic@example.com", "band": "F"},
                "applicationowner": {"fullName": "Olive Owner", "email": "olive@example.com", "band": "D"},
            },
        }
    }
}


def central_client(payload=None, error=None):
    """CentralApiClient backed by a mocked requests session."""
    response = Mock()
    response.json.return_value = payload if payload is not None else CENTRAL_PAYLOAD
    response.raise_for_status.return_value = None
    session = Mock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    return CentralApiClient(base_url="https://inventory.example.com/api/app", timeout=5, session=session)


class TestCentralApiClient:
    """Validation and error mapping of the inventory client"""

    def test_fetches_by_asset_id(self):
        client = central_client()
        application = client.fetch_application(200001)

        assert application.name == "Payments Gateway"
        kwargs = client.session.request.call_args.kwargs
        assert kwargs["params"] == {"assetId": 200001}
        assert kwargs["timeout"] == 5

    def test_transport_error(self):
        client = central_client(error=requests.ConnectionError("refused"))
        with pytest.raises(CentralApiError):
            client.fetch_application(1)

    def test_http_error_keeps_status(self):
        response = Mock(status_code=503)
        client = central_client()
        client.session.request.return_value.raise_for_status.side_effect = requests.HTTPError(response=response)
        with pytest.raises(CentralApiError) as exc_info:
            client.fetch_application(1)
        assert exc_info.value.status_code == 503

    def test_unexpected_payload(self):
        client = central_client(payload={"data": {"application": {"assetId": "not-a-number"}}})
        with pytest.raises(CentralApiError):
            client.fetch_application(1)


class TestApplicationService:
    """Registering and maintaining applications"""

    @pytest.mark.asyncio
    async def test_add_maps_ownership(self, team_id, team_admin):
        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla=" pay "), team_admin, client=central_client()
        )

        assert app.tla == "PAY"
        assert app.application_name == "Payments Gateway"
        assert app.tier == "Tier 1"
        assert (app.vp_name, app.vp_email) == ("Vic President", "vic@example.com")
        assert (app.director_name, app.director_email) == ("Dana Director", "dana@example.com")
        assert app.application_owner_band == "D"
        assert app.central_api_sync_status == "success"
        assert app.created_by == "asmith"

    @pytest.mark.asyncio
    async def test_duplicate_tla_is_rejected_before_lookup(self, team_id, team_admin):
        await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        client = central_client()
        with pytest.raises(ConflictError):
            await ApplicationService.add_from_central_api(
                team_id, ApplicationCreate(asset_id=200002, tla="pay"), team_admin, client=client
            )
        client.session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_tla_reusable_after_delete(self, team_id, team_admin):
        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        await ApplicationService.delete_application(app.id, team_admin, team_id=team_id)

        assert await ApplicationService.list_team_applications(team_id) == []
        again = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        assert again.id != app.id

    @pytest.mark.asyncio
    async def test_update_checks_tla_uniqueness(self, team_id, team_admin):
        first = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=1, tla="PAY"), team_admin, client=central_client()
        )
        second = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=2, tla="CRD"), team_admin, client=central_client()
        )
        with pytest.raises(ConflictError):
            await ApplicationService.update_application(second.id, ApplicationUpdate(tla="pay"), team_admin)

        same = await ApplicationService.update_application(
            first.id, ApplicationUpdate(tla="PAY", slack_channel="#pay-oncall"), team_admin
        )
        assert same.slack_channel == "#pay-oncall"

    @pytest.mark.asyncio
    async def test_failed_sync_marks_application(self, team_id, team_admin):
        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        with pytest.raises(CentralApiError):
            await ApplicationService.sync_application(
                app.id, team_admin, client=central_client(error=requests.Timeout("slow"))
            )
        refreshed = await ApplicationService.get_application(app.id)
        assert refreshed.central_api_sync_status == "failed"

    @pytest.mark.asyncio
    async def test_inventory_calls_leave_the_event_loop_thread(self, team_id, team_admin):
        loop_thread = threading.get_ident()
        client = central_client()
        callers = []
        request = client.session.request

        def recording_request(*args, **kwargs):
            callers.append(threading.get_ident())
            return request(*args, **kwargs)

        client.session.request = Mock(side_effect=recording_request)

        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=client
        )
        await ApplicationService.sync_application(app.id, team_admin, client=client)

        assert len(callers) == 2
        assert loop_thread not in callers

    @pytest.mark.asyncio
    async def test_other_team_application_is_not_found(self, create_team, team_id, team_admin):
        other = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        with pytest.raises(NotFoundError):
            await ApplicationService.get_application(app.id, team_id=other)


class TestSubApplications:
    """Sub-application naming rules"""

    @pytest.mark.asyncio
    async def test_names_unique_per_application(self, team_id, team_admin):
        app = await ApplicationService.add_from_central_api(
            team_id, ApplicationCreate(asset_id=200001, tla="PAY"), team_admin, client=central_client()
        )
        created = await SubApplicationService.create_sub_application(
            team_id, app.id, SubApplicationCreate(name="Settlement"), team_admin
        )
        assert created.application_name == "Payments Gateway"
        with pytest.raises(ConflictError):
            await SubApplicationService.create_sub_application(
                team_id, app.id, SubApplicationCreate(name="Settlement"), team_admin
            )
        assert [s.name for s in await SubApplicationService.list_for_team(team_id)] == ["Settlement"]


class TestApplicationEndpoints:
    """HTTP surface of applications"""

    def test_create_and_get_with_sub_applications(self, client, team_id, admin_headers, user_headers):
        with patch(
            "team_hub_api.app.services.application_service.get_central_api_client",
            return_value=central_client(),
        ):
            response = client.post(
                f"/api/v1/teams/{team_id}/applications/",
                json={"asset_id": 200001, "tla": "PAY", "contact_email": "pay@example.com"},
                headers=admin_headers,
            )
        assert response.status_code == 201
        app_id = response.json()["id"]

        response = client.post(
            f"/api/v1/teams/{team_id}/applications/{app_id}/sub-applications",
            json={"name": "Settlement"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        response = client.get(f"/api/v1/teams/{team_id}/applications/{app_id}", headers=user_headers)
        assert response.status_code == 200
        assert [s["name"] for s in response.json()["sub_applications"]] == ["Settlement"]

    def test_members_cannot_register(self, client, team_id, user_headers):
        response = client.post(
            f"/api/v1/teams/{team_id}/applications/", json={"asset_id": 1, "tla": "PAY"}, headers=user_headers
        )
        assert response.status_code == 403

    def test_inventory_failure_is_502(self, client, team_id, admin_headers):
        with patch(
            "team_hub_api.app.services.application_service.get_central_api_client",
            return_value=central_client(error=requests.ConnectionError("refused")),
        ):
            response = client.post(
                f"/api/v1/teams/{team_id}/applications/", json={"asset_id": 1, "tla": "PAY"}, headers=admin_headers
            )
        assert response.status_code == 502

    def test_invalid_email_is_422(self, client, team_id, admin_headers):
        response = client.post(
            f"/api/v1/teams/{team_id}/applications/",
            json={"asset_id": 1, "tla": "PAY", "contact_email": "not-an-email"},
            headers=admin_headers,
        )
        assert response.status_code == 422
