"""
Turnover endpoints for API v1.

Routes under ``/teams/{team_id}/turnovers`` cover turnovers and their
entries, stale entry listing, snapshots and drafts.  Every team member
may read and write turnovers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.turnover import (
    DraftRead,
    DraftSave,
    EntryCreate,
    EntryRead,
    EntryUpdate,
    FlaggedEntryRead,
    SnapshotCreate,
    SnapshotRead,
    TurnoverCreate,
    TurnoverRead,
    TurnoverStatus,
    TurnoverUpdate,
    TurnoverWithEntries,
)
from team_hub_api.app.services.draft_service import DraftService
from team_hub_api.app.services.turnover_service import TurnoverService

router = APIRouter()


@router.get("/", response_model=List[TurnoverRead])
async def list_turnovers(
    team_id: int,
    application_id: Optional[int] = Query(None),
    sub_application_id: Optional[int] = Query(None),
    status_filter: Optional[TurnoverStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_team_access("user")),
) -> List[TurnoverRead]:
    return await TurnoverService.list_turnovers(
        team_id,
        application_id=application_id,
        sub_application_id=sub_application_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=TurnoverWithEntries, status_code=status.HTTP_201_CREATED)
async def create_turnover(
    team_id: int, data: TurnoverCreate, principal: Principal = Depends(require_team_access("user"))
) -> TurnoverWithEntries:
    try:
        return await TurnoverService.create_turnover(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/latest", response_model=Optional[TurnoverWithEntries])
async def get_latest_turnover(
    team_id: int,
    application_id: Optional[int] = Query(None),
    sub_application_id: Optional[int] = Query(None),
    principal: Principal = Depends(require_team_access("user")),
) -> Optional[TurnoverWithEntries]:
    """Most recent non-archived turnover of the scope, or ``null``."""
    return await TurnoverService.get_latest_turnover(team_id, application_id, sub_application_id)


@router.get("/stale", response_model=List[FlaggedEntryRead])
async def list_stale_entries(
    team_id: int,
    hours: int = Query(24, ge=1, le=24 * 90),
    principal: Principal = Depends(require_team_access("user")),
) -> List[FlaggedEntryRead]:
    return await TurnoverService.list_stale_entries(team_id, hours=hours)


# Snapshots


@router.get("/snapshots", response_model=List[SnapshotRead])
async def list_snapshots(
    team_id: int,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    limit: int = Query(50, ge=1, le=500),
    principal: Principal = Depends(require_team_access("user")),
) -> List[SnapshotRead]:
    return await TurnoverService.list_snapshots(team_id, start_date=start_date, end_date=end_date, limit=limit)


@router.post("/snapshots", response_model=SnapshotRead, status_code=status.HTTP_201_CREATED)
async def create_snapshot(
    team_id: int, data: SnapshotCreate, principal: Principal = Depends(require_team_access("user"))
) -> SnapshotRead:
    try:
        return await TurnoverService.create_snapshot(
            team_id,
            principal,
            application_id=data.application_id,
            sub_application_id=data.sub_application_id,
            snapshot_date=data.snapshot_date,
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/snapshots/{snapshot_id}", response_model=SnapshotRead)
async def get_snapshot(
    team_id: int, snapshot_id: int, principal: Principal = Depends(require_team_access("user"))
) -> SnapshotRead:
    try:
        return await TurnoverService.get_snapshot(team_id, snapshot_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


# Drafts


@router.get("/drafts", response_model=List[DraftRead])
async def list_drafts(team_id: int, principal: Principal = Depends(require_team_access("user"))) -> List[DraftRead]:
    return await DraftService.list_drafts(team_id)


@router.put("/drafts", response_model=DraftRead)
async def save_draft(
    team_id: int, data: DraftSave, principal: Principal = Depends(require_team_access("user"))
) -> DraftRead:
    """Create or overwrite the open draft of the scope."""
    try:
        return await DraftService.save_draft(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/drafts/current", response_model=Optional[DraftRead])
async def get_current_draft(
    team_id: int,
    application_id: Optional[int] = Query(None),
    sub_application_id: Optional[int] = Query(None),
    principal: Principal = Depends(require_team_access("user")),
) -> Optional[DraftRead]:
    return await DraftService.get_draft_for_scope(team_id, application_id, sub_application_id)


@router.get("/drafts/{draft_id}", response_model=DraftRead)
async def get_draft(
    team_id: int, draft_id: int, principal: Principal = Depends(require_team_access("user"))
) -> DraftRead:
    try:
        return await DraftService.get_draft(team_id, draft_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/drafts/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_draft(
    team_id: int, draft_id: int, principal: Principal = Depends(require_team_access("user"))
) -> None:
    try:
        await DraftService.delete_draft(team_id, draft_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None


@router.post("/drafts/{draft_id}/publish", response_model=TurnoverWithEntries, status_code=status.HTTP_201_CREATED)
async def publish_draft(
    team_id: int, draft_id: int, principal: Principal = Depends(require_team_access("user"))
) -> TurnoverWithEntries:
    """Turn the draft into an active turnover."""
    try:
        return await DraftService.publish_draft(team_id, draft_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


# Entries


@router.get("/entries/{entry_id}", response_model=FlaggedEntryRead)
async def get_entry(
    team_id: int, entry_id: int, principal: Principal = Depends(require_team_access("user"))
) -> FlaggedEntryRead:
    try:
        return await TurnoverService.get_entry(team_id, entry_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/entries/{entry_id}", response_model=EntryRead)
async def update_entry(
    team_id: int,
    entry_id: int,
    data: EntryUpdate,
    principal: Principal = Depends(require_team_access("user")),
) -> EntryRead:
    try:
        return await TurnoverService.update_entry(team_id, entry_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    team_id: int, entry_id: int, principal: Principal = Depends(require_team_access("user"))
) -> None:
    try:
        await TurnoverService.delete_entry(team_id, entry_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None


# Individual turnovers


@router.get("/{turnover_id}", response_model=TurnoverWithEntries)
async def get_turnover(
    team_id: int, turnover_id: int, principal: Principal = Depends(require_team_access("user"))
) -> TurnoverWithEntries:
    try:
        return await TurnoverService.get_turnover(team_id, turnover_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/{turnover_id}", response_model=TurnoverWithEntries)
async def update_turnover(
    team_id: int,
    turnover_id: int,
    data: TurnoverUpdate,
    principal: Principal = Depends(require_team_access("user")),
) -> TurnoverWithEntries:
    try:
        return await TurnoverService.update_turnover(team_id, turnover_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/{turnover_id}/entries", response_model=EntryRead, status_code=status.HTTP_201_CREATED)
async def create_entry(
    team_id: int,
    turnover_id: int,
    data: EntryCreate,
    principal: Principal = Depends(require_team_access("user")),
) -> EntryRead:
    try:
        return await TurnoverService.create_entry(team_id, turnover_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
