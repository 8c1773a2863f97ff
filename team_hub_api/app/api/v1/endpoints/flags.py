"""
Flagging endpoints for API v1.

Team members set the priority of turnover entries by hand; these
routes also list flagged entries and report counts per priority.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.link import BulkResult
from team_hub_api.app.schemas.turnover import (
    BulkFlagRequest,
    EntryPriority,
    FlagCounts,
    FlaggedEntryRead,
    FlagRequest,
)
from team_hub_api.app.services.flagging_service import FlaggingService

router = APIRouter()


@router.get("/", response_model=List[FlaggedEntryRead])
async def list_flagged_entries(
    team_id: int,
    priority: Optional[EntryPriority] = Query(None),
    application_id: Optional[int] = Query(None),
    sub_application_id: Optional[int] = Query(None),
    principal: Principal = Depends(require_team_access("user")),
) -> List[FlaggedEntryRead]:
    """Entries above ``normal`` priority, least recently updated first."""
    return await FlaggingService.list_flagged_entries(
        team_id, priority=priority, application_id=application_id, sub_application_id=sub_application_id
    )


@router.get("/counts", response_model=FlagCounts)
async def get_flag_counts(team_id: int, principal: Principal = Depends(require_team_access("user"))) -> FlagCounts:
    return await FlaggingService.get_flag_counts(team_id)


@router.post("/bulk", response_model=BulkResult)
async def bulk_flag_entries(
    team_id: int, data: BulkFlagRequest, principal: Principal = Depends(require_team_access("user"))
) -> BulkResult:
    updated = await FlaggingService.bulk_flag_entries(team_id, data.entry_ids, data.priority, principal)
    return BulkResult(affected=updated)


@router.post("/entries/{entry_id}", response_model=FlaggedEntryRead)
async def flag_entry(
    team_id: int,
    entry_id: int,
    data: FlagRequest,
    principal: Principal = Depends(require_team_access("user")),
) -> FlaggedEntryRead:
    try:
        return await FlaggingService.flag_entry(team_id, entry_id, data.priority, principal, comment=data.comment)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/entries/{entry_id}", response_model=FlaggedEntryRead)
async def unflag_entry(
    team_id: int, entry_id: int, principal: Principal = Depends(require_team_access("user"))
) -> FlaggedEntryRead:
    """Reset an entry to ``normal`` priority."""
    try:
        return await FlaggingService.unflag_entry(team_id, entry_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/entries/{entry_id}/history")
async def get_flagging_history(
    team_id: int, entry_id: int, principal: Principal = Depends(require_team_access("user"))
) -> Dict[str, Any]:
    try:
        return await FlaggingService.get_flagging_history(team_id, entry_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
