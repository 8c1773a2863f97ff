"""
Team endpoints for API v1.

A caller sees the teams whose user or admin group they belong to.
Looking up a team the caller has no access to returns 404, exactly as
for a team that does not exist.  Portal administrators may list every
team and activate or deactivate teams.
"""

from typing import List

from fastapi import APIRouter, Depends, Path

from team_hub_api.app.core.access import AccessLevel
from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import get_current_principal, require_portal_admin, require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.team import TeamAccessRead, TeamActiveUpdate, TeamRead, TeamWithStats, UserTeam
from team_hub_api.app.services.team_service import TeamService

router = APIRouter()


@router.get("/mine", response_model=List[UserTeam])
async def list_my_teams(principal: Principal = Depends(get_current_principal)) -> List[UserTeam]:
    """Return the active teams the caller can access, with their access level."""
    return await TeamService.list_user_teams(principal.groups)


@router.get("/all", response_model=List[TeamWithStats])
async def list_all_teams(principal: Principal = Depends(require_portal_admin)) -> List[TeamWithStats]:
    """Return every team, active or not, with its application count (portal admins only)."""
    return await TeamService.list_all_teams()


@router.get("/{team_id}", response_model=TeamRead)
async def get_team(team_id: int, principal: Principal = Depends(require_team_access("user"))) -> TeamRead:
    try:
        return await TeamService.get_team(team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.patch("/{team_id}/active", response_model=TeamRead)
async def set_team_active(
    body: TeamActiveUpdate,
    team_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_portal_admin),
) -> TeamRead:
    """Activate or deactivate a team.  Members of an inactive team lose access to it."""
    try:
        return await TeamService.set_team_active(team_id, body.is_active, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/{team_id}/access", response_model=TeamAccessRead)
async def get_team_access(
    team_id: int = Path(..., ge=1),
    principal: Principal = Depends(get_current_principal),
) -> TeamAccessRead:
    """Report the caller's access level for a team.

    Missing, inactive and foreign teams all report ``none``.
    """
    level = await TeamService.check_team_access(team_id, principal.groups)
    return TeamAccessRead(team_id=team_id, access_level=level, is_admin=level is AccessLevel.ADMIN)
