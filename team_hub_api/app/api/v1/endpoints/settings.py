"""
Tool settings endpoints for API v1.

``router`` (``/settings/tools``) exposes the tool catalogue and the
global settings, which only portal administrators may change.
``team_router`` (``/teams/{team_id}/settings/tools``) exposes a team's
effective settings; team administrators may override them.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import get_current_principal, require_portal_admin, require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.settings import (
    EffectiveSettings,
    SettingsActivityRead,
    SettingsUpdate,
    ToolSchemaCreate,
    ToolSchemaRead,
)
from team_hub_api.app.services.tool_settings_service import ToolSettingsService

router = APIRouter()
team_router = APIRouter()


@router.get("/", response_model=List[ToolSchemaRead])
async def list_tools(principal: Principal = Depends(get_current_principal)) -> List[ToolSchemaRead]:
    return await ToolSettingsService.list_tools()


@router.post("/", response_model=ToolSchemaRead, status_code=status.HTTP_201_CREATED)
async def create_tool(
    data: ToolSchemaCreate, principal: Principal = Depends(require_portal_admin)
) -> ToolSchemaRead:
    try:
        return await ToolSettingsService.create_tool(data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/initialize", response_model=List[str])
async def initialize_default_tools(principal: Principal = Depends(require_portal_admin)) -> List[str]:
    """Register any missing built-in tools and return their keys."""
    return await ToolSettingsService.initialize_default_tools()


@router.get("/activity", response_model=List[SettingsActivityRead])
async def list_global_activity(
    tool_key: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_portal_admin),
) -> List[SettingsActivityRead]:
    return await ToolSettingsService.list_activity(tool_key=tool_key, limit=limit, offset=offset)


@router.get("/{tool_key}", response_model=EffectiveSettings)
async def get_global_settings(
    tool_key: str, principal: Principal = Depends(get_current_principal)
) -> EffectiveSettings:
    try:
        return await ToolSettingsService.get_effective_settings(tool_key)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/{tool_key}", response_model=EffectiveSettings)
async def update_global_settings(
    tool_key: str, data: SettingsUpdate, principal: Principal = Depends(require_portal_admin)
) -> EffectiveSettings:
    try:
        return await ToolSettingsService.update_settings(tool_key, data.settings, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/{tool_key}", response_model=EffectiveSettings)
async def reset_global_settings(
    tool_key: str, principal: Principal = Depends(require_portal_admin)
) -> EffectiveSettings:
    try:
        return await ToolSettingsService.reset_settings(tool_key, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@team_router.get("/activity", response_model=List[SettingsActivityRead])
async def list_team_activity(
    team_id: int,
    tool_key: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_team_access("admin")),
) -> List[SettingsActivityRead]:
    return await ToolSettingsService.list_activity(team_id=team_id, tool_key=tool_key, limit=limit, offset=offset)


@team_router.get("/{tool_key}", response_model=EffectiveSettings)
async def get_team_settings(
    team_id: int, tool_key: str, principal: Principal = Depends(require_team_access("user"))
) -> EffectiveSettings:
    try:
        return await ToolSettingsService.get_effective_settings(tool_key, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@team_router.put("/{tool_key}", response_model=EffectiveSettings)
async def update_team_settings(
    team_id: int,
    tool_key: str,
    data: SettingsUpdate,
    principal: Principal = Depends(require_team_access("admin")),
) -> EffectiveSettings:
    try:
        return await ToolSettingsService.update_settings(tool_key, data.settings, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@team_router.delete("/{tool_key}", response_model=EffectiveSettings)
async def reset_team_settings(
    team_id: int, tool_key: str, principal: Principal = Depends(require_team_access("admin"))
) -> EffectiveSettings:
    """Drop the team's override; global settings apply again."""
    try:
        return await ToolSettingsService.reset_settings(tool_key, principal, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
