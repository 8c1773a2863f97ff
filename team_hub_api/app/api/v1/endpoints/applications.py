"""
Application and sub-application endpoints for API v1.

Applications are registered by asset id; names, lifecycle status and
ownership are pulled from the central application inventory.  Team
members may read them, team administrators manage them.  Failures of
the inventory are reported as 502.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import require_team_access
from team_hub_api.app.schemas.application import (
    ApplicationCreate,
    ApplicationRead,
    ApplicationUpdate,
    ApplicationWithSubApplications,
    SubApplicationCreate,
    SubApplicationRead,
    SubApplicationUpdate,
)
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.services.application_service import ApplicationService
from team_hub_api.app.services.sub_application_service import SubApplicationService

router = APIRouter()
sub_applications_router = APIRouter()


@router.get("/", response_model=List[ApplicationRead])
async def list_applications(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> List[ApplicationRead]:
    """Return the team's active applications, newest first."""
    return await ApplicationService.list_team_applications(team_id)


@router.post("/", response_model=ApplicationRead, status_code=status.HTTP_201_CREATED)
async def create_application(
    team_id: int,
    data: ApplicationCreate,
    principal: Principal = Depends(require_team_access("admin")),
) -> ApplicationRead:
    """Register an application from the central inventory.

    Returns 409 when the team already has an active application with
    the same TLA and 502 when the inventory lookup fails.
    """
    try:
        return await ApplicationService.add_from_central_api(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/{app_id}", response_model=ApplicationWithSubApplications)
async def get_application(
    team_id: int, app_id: int, principal: Principal = Depends(require_team_access("user"))
) -> ApplicationWithSubApplications:
    try:
        application = await ApplicationService.get_application(app_id, team_id)
        sub_applications = await SubApplicationService.list_by_application(team_id, app_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return ApplicationWithSubApplications(**application.model_dump(), sub_applications=sub_applications)


@router.put("/{app_id}", response_model=ApplicationRead)
async def update_application(
    team_id: int,
    app_id: int,
    data: ApplicationUpdate,
    principal: Principal = Depends(require_team_access("admin")),
) -> ApplicationRead:
    try:
        return await ApplicationService.update_application(app_id, data, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/{app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    team_id: int, app_id: int, principal: Principal = Depends(require_team_access("admin"))
) -> None:
    """Soft-delete an application; it disappears from listings."""
    try:
        await ApplicationService.delete_application(app_id, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None


@router.post("/{app_id}/sync", response_model=ApplicationRead)
async def sync_application(
    team_id: int, app_id: int, principal: Principal = Depends(require_team_access("admin"))
) -> ApplicationRead:
    """Refresh the application from the central inventory."""
    try:
        return await ApplicationService.sync_application(app_id, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/{app_id}/sub-applications", response_model=List[SubApplicationRead])
async def list_sub_applications(
    team_id: int, app_id: int, principal: Principal = Depends(require_team_access("user"))
) -> List[SubApplicationRead]:
    try:
        await ApplicationService.get_application(app_id, team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return await SubApplicationService.list_by_application(team_id, app_id)


@router.post(
    "/{app_id}/sub-applications", response_model=SubApplicationRead, status_code=status.HTTP_201_CREATED
)
async def create_sub_application(
    team_id: int,
    app_id: int,
    data: SubApplicationCreate,
    principal: Principal = Depends(require_team_access("admin")),
) -> SubApplicationRead:
    try:
        return await SubApplicationService.create_sub_application(team_id, app_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


# Sub-applications addressed directly by id: /teams/{team_id}/sub-applications


@sub_applications_router.get("/", response_model=List[SubApplicationRead])
async def list_team_sub_applications(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> List[SubApplicationRead]:
    """Return the sub-applications of all the team's active applications."""
    return await SubApplicationService.list_for_team(team_id)


@sub_applications_router.get("/{sub_app_id}", response_model=SubApplicationRead)
async def get_sub_application(
    team_id: int, sub_app_id: int, principal: Principal = Depends(require_team_access("user"))
) -> SubApplicationRead:
    try:
        return await SubApplicationService.get_sub_application(sub_app_id, team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@sub_applications_router.put("/{sub_app_id}", response_model=SubApplicationRead)
async def update_sub_application(
    team_id: int,
    sub_app_id: int,
    data: SubApplicationUpdate,
    principal: Principal = Depends(require_team_access("admin")),
) -> SubApplicationRead:
    try:
        return await SubApplicationService.update_sub_application(sub_app_id, data, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@sub_applications_router.delete("/{sub_app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sub_application(
    team_id: int, sub_app_id: int, principal: Principal = Depends(require_team_access("admin"))
) -> None:
    try:
        await SubApplicationService.delete_sub_application(sub_app_id, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None
