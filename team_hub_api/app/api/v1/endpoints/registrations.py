"""
Team registration endpoints for API v1.

Any authenticated user may request a new team.  Portal administrators
review the requests; approving one creates the team.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import get_current_principal, require_portal_admin
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.team import (
    NameAvailability,
    RegistrationCreate,
    RegistrationRead,
    RegistrationReview,
    RegistrationStats,
)
from team_hub_api.app.services.registration_service import RegistrationService

router = APIRouter()


@router.get("/check-name", response_model=NameAvailability)
async def check_team_name(
    name: str = Query(..., min_length=1, max_length=100),
    principal: Principal = Depends(get_current_principal),
) -> NameAvailability:
    return await RegistrationService.check_team_name(name)


@router.post("/", response_model=RegistrationRead, status_code=status.HTTP_201_CREATED)
async def create_registration(
    data: RegistrationCreate,
    principal: Principal = Depends(get_current_principal),
) -> RegistrationRead:
    """Submit a request for a new team.  Duplicate names are rejected with 409."""
    try:
        return await RegistrationService.create_request(data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/mine", response_model=List[RegistrationRead])
async def list_my_registrations(principal: Principal = Depends(get_current_principal)) -> List[RegistrationRead]:
    return await RegistrationService.list_requests(requested_by=principal.subject)


@router.get("/stats", response_model=RegistrationStats)
async def registration_stats(principal: Principal = Depends(require_portal_admin)) -> RegistrationStats:
    return await RegistrationService.dashboard_stats()


@router.get("/", response_model=List[RegistrationRead])
async def list_registrations(
    status_filter: Optional[Literal["pending", "approved", "rejected"]] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_portal_admin),
) -> List[RegistrationRead]:
    return await RegistrationService.list_requests(status=status_filter, limit=limit, offset=offset)


@router.get("/{request_id}", response_model=RegistrationRead)
async def get_registration(
    request_id: int,
    principal: Principal = Depends(get_current_principal),
) -> RegistrationRead:
    """Return a request.  Only its author and portal administrators may read it."""
    try:
        request = await RegistrationService.get_request(request_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    if request.requested_by != principal.subject and not principal.is_portal_admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration request not found")
    return request


@router.post("/{request_id}/review", response_model=RegistrationRead)
async def review_registration(
    request_id: int,
    review: RegistrationReview,
    principal: Principal = Depends(require_portal_admin),
) -> RegistrationRead:
    """Approve or reject a pending request.  Approval creates the team."""
    try:
        return await RegistrationService.review_request(request_id, review, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
