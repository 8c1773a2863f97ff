"""
Audit log endpoints for API v1.

Portal administrators may read every audit record; team
administrators may read the records of their team.  Records capture
create, update and delete actions as well as automation runs and
support filtering by actor, object type, action and date range.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from team_hub_api.app.core.security import require_portal_admin, require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.settings import AuditLogRead
from team_hub_api.app.services.audit_service import AuditService

router = APIRouter()
team_router = APIRouter()


@router.get("/logs", response_model=List[AuditLogRead])
async def list_audit_logs(
    actor: Optional[str] = Query(None, description="Filter by acting subject"),
    team_id: Optional[int] = Query(None, description="Filter by team"),
    object_type: Optional[str] = Query(None, description="Filter by object type (link, turnover, team, etc.)"),
    action: Optional[str] = Query(None, description="Filter by action (create, update, delete, stale_flag, ...)"),
    start_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD) for filtering"),
    end_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD) for filtering"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    principal: Principal = Depends(require_portal_admin),
) -> List[AuditLogRead]:
    """Retrieve audit logs with optional filters, newest first."""
    return await AuditService.list_logs(
        actor=actor,
        team_id=team_id,
        object_type=object_type,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@team_router.get("/logs", response_model=List[AuditLogRead])
async def list_team_audit_logs(
    team_id: int,
    object_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_team_access("admin")),
) -> List[AuditLogRead]:
    return await AuditService.list_logs(
        team_id=team_id, object_type=object_type, action=action, limit=limit, offset=offset
    )
