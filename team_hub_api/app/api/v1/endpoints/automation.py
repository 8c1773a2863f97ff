"""
Automation endpoints for API v1.

``router`` is mounted under ``/teams/{team_id}/automation`` and lets
team administrators run the staleness sweep and daily snapshots for
their team and edit the automation schedule.  ``scheduler_router`` is
mounted under ``/automation`` and is called by the external scheduler
with one of the ``AUTOMATION_TOKENS`` to sweep every active team.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import require_portal_admin, require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.turnover import (
    AutomationRunResult,
    AutomationSchedule,
    AutomationStatus,
    SnapshotCreate,
    SnapshotRunResult,
    SweepResult,
)
from team_hub_api.app.services.automation_service import AutomationService

router = APIRouter()
scheduler_router = APIRouter()


@router.get("/status", response_model=AutomationStatus)
async def get_automation_status(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> AutomationStatus:
    return await AutomationService.get_automation_status(team_id)


@router.post("/flag-stale", response_model=SweepResult)
async def flag_stale_entries(
    team_id: int,
    hours: Optional[int] = Query(None, ge=1, le=24 * 90, description="Defaults to STALE_HOURS_THRESHOLD"),
    principal: Principal = Depends(require_team_access("admin")),
) -> SweepResult:
    """Run the staleness sweep for this team only."""
    try:
        return await AutomationService.run_sweep(hours_threshold=hours, team_id=team_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/snapshots", response_model=SnapshotRunResult)
async def create_daily_snapshots(
    team_id: int,
    data: Optional[SnapshotCreate] = None,
    principal: Principal = Depends(require_team_access("admin")),
) -> SnapshotRunResult:
    """Snapshot one scope, or every scope with active turnovers when no body is sent."""
    data = data or SnapshotCreate()
    try:
        return await AutomationService.create_daily_snapshots(
            team_id,
            principal,
            application_id=data.application_id,
            sub_application_id=data.sub_application_id,
            snapshot_date=data.snapshot_date,
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/run-all", response_model=AutomationRunResult)
async def run_all(team_id: int, principal: Principal = Depends(require_team_access("admin"))) -> AutomationRunResult:
    """Run the enabled automation jobs for the team."""
    return await AutomationService.run_all(team_id, principal)


@router.get("/schedule", response_model=AutomationSchedule)
async def get_schedule(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> AutomationSchedule:
    return await AutomationService.get_schedule(team_id)


@router.put("/schedule", response_model=AutomationSchedule)
async def update_schedule(
    team_id: int,
    schedule: AutomationSchedule,
    principal: Principal = Depends(require_team_access("admin")),
) -> AutomationSchedule:
    try:
        return await AutomationService.update_schedule(team_id, schedule, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@scheduler_router.post("/sweep", response_model=SweepResult)
async def run_global_sweep(
    hours: Optional[int] = Query(None, ge=1, le=24 * 90),
    principal: Principal = Depends(require_portal_admin),
) -> SweepResult:
    """Run the staleness sweep across all active teams.

    Intended for the scheduler's automation token; portal
    administrators may also trigger it.
    """
    try:
        return await AutomationService.run_sweep(hours_threshold=hours)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
