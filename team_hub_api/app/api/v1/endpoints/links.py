"""
Link library endpoints for API v1.

All routes live under ``/teams/{team_id}``: ``/links`` for the links
themselves (search, pinned, stats, import, bulk operations and click
tracking), ``/categories`` and ``/tags``.  Team members manage links;
deleting categories and tags and bulk deletion require team admin
access.  Private links are only visible to their creator.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from team_hub_api.app.core.exceptions import DOMAIN_ERRORS, to_http_exception
from team_hub_api.app.core.security import require_team_access
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.link import (
    BulkLinkCategory,
    BulkLinkIds,
    BulkLinkTags,
    BulkLinkUpdate,
    BulkResult,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    LinkAccess,
    LinkCreate,
    LinkImportRequest,
    LinkImportResult,
    LinkRead,
    LinkSearch,
    LinkSearchResult,
    LinkStats,
    LinkStatus,
    LinkUpdate,
    LinkVisibility,
    SortField,
    TagCreate,
    TagRead,
    TagUpdate,
)
from team_hub_api.app.services.import_service import LinkImportService
from team_hub_api.app.services.link_service import LinkService

router = APIRouter()


def search_params(
    search: Optional[str] = Query(None, max_length=255, description="Text matched against title, description and URL"),
    category_id: Optional[int] = Query(None),
    application_id: Optional[int] = Query(None),
    visibility: Optional[LinkVisibility] = Query(None),
    status_filter: Optional[LinkStatus] = Query(None, alias="status"),
    is_pinned: Optional[bool] = Query(None),
    tag_ids: List[int] = Query([]),
    sort_by: SortField = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> LinkSearch:
    return LinkSearch(
        search=search,
        category_id=category_id,
        application_id=application_id,
        visibility=visibility,
        status=status_filter,
        is_pinned=is_pinned,
        tag_ids=tag_ids,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )


# ----------------------------------------------------------------------
# Links
# ----------------------------------------------------------------------
@router.get("/links", response_model=LinkSearchResult)
@router.get("/links/search", response_model=LinkSearchResult)
async def search_links(
    team_id: int,
    filters: LinkSearch = Depends(search_params),
    principal: Principal = Depends(require_team_access("user")),
) -> LinkSearchResult:
    """Search the team's links.  ``total`` counts all matches, ignoring limit/offset."""
    return await LinkService.search_links(team_id, filters, principal)


@router.get("/links/pinned", response_model=List[LinkRead])
async def list_pinned_links(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> List[LinkRead]:
    return await LinkService.list_pinned_links(team_id, principal)


@router.get("/links/stats", response_model=LinkStats)
async def get_link_stats(team_id: int, principal: Principal = Depends(require_team_access("user"))) -> LinkStats:
    return await LinkService.get_link_stats(team_id)


@router.get("/links/import/templates")
async def get_import_templates(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> Dict[str, Any]:
    """Example payloads for each supported import format."""
    return LinkImportService.get_templates()


@router.post("/links/import", response_model=LinkImportResult)
async def import_links(
    team_id: int,
    request: LinkImportRequest,
    principal: Principal = Depends(require_team_access("user")),
) -> LinkImportResult:
    """Import links one by one.  Failed items are reported, not fatal."""
    try:
        return await LinkImportService.import_links(team_id, request, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/links/bulk/update", response_model=BulkResult)
async def bulk_update_links(
    team_id: int, data: BulkLinkUpdate, principal: Principal = Depends(require_team_access("user"))
) -> BulkResult:
    try:
        return BulkResult(affected=await LinkService.bulk_update(team_id, data, principal))
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/links/bulk/tags/add", response_model=BulkResult)
async def bulk_add_tags(
    team_id: int, data: BulkLinkTags, principal: Principal = Depends(require_team_access("user"))
) -> BulkResult:
    try:
        return BulkResult(affected=await LinkService.bulk_add_tags(team_id, data.link_ids, data.tag_ids, principal))
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/links/bulk/tags/remove", response_model=BulkResult)
async def bulk_remove_tags(
    team_id: int, data: BulkLinkTags, principal: Principal = Depends(require_team_access("user"))
) -> BulkResult:
    try:
        return BulkResult(
            affected=await LinkService.bulk_remove_tags(team_id, data.link_ids, data.tag_ids, principal)
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/links/bulk/category", response_model=BulkResult)
async def bulk_set_category(
    team_id: int, data: BulkLinkCategory, principal: Principal = Depends(require_team_access("user"))
) -> BulkResult:
    """Move links to a category, or clear their category when ``category_id`` is null."""
    try:
        return BulkResult(
            affected=await LinkService.bulk_set_category(team_id, data.link_ids, data.category_id, principal)
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/links/bulk/delete", response_model=BulkResult)
async def bulk_delete_links(
    team_id: int, data: BulkLinkIds, principal: Principal = Depends(require_team_access("admin"))
) -> BulkResult:
    return BulkResult(affected=await LinkService.bulk_delete(team_id, data.link_ids, principal))


@router.post("/links", response_model=LinkRead, status_code=status.HTTP_201_CREATED)
async def create_link(
    team_id: int, data: LinkCreate, principal: Principal = Depends(require_team_access("user"))
) -> LinkRead:
    try:
        return await LinkService.create_link(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/links/{link_id}", response_model=LinkRead)
async def get_link(
    team_id: int, link_id: int, principal: Principal = Depends(require_team_access("user"))
) -> LinkRead:
    try:
        return await LinkService.get_link(team_id, link_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/links/{link_id}", response_model=LinkRead)
async def update_link(
    team_id: int,
    link_id: int,
    data: LinkUpdate,
    principal: Principal = Depends(require_team_access("user")),
) -> LinkRead:
    """Update a link.  When ``tag_ids`` is given it replaces the link's tags."""
    try:
        return await LinkService.update_link(team_id, link_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    team_id: int, link_id: int, principal: Principal = Depends(require_team_access("user"))
) -> None:
    try:
        await LinkService.delete_link(team_id, link_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None


@router.post("/links/{link_id}/access", response_model=LinkRead)
async def record_link_access(
    team_id: int,
    link_id: int,
    request: Request,
    principal: Principal = Depends(require_team_access("user")),
) -> LinkRead:
    """Record a click on a link and return the updated link."""
    access = LinkAccess(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )
    try:
        return await LinkService.record_access(team_id, link_id, access, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


# ----------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------
@router.get("/categories", response_model=List[CategoryRead])
async def list_categories(
    team_id: int, principal: Principal = Depends(require_team_access("user"))
) -> List[CategoryRead]:
    return await LinkService.list_categories(team_id)


@router.post("/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    team_id: int, data: CategoryCreate, principal: Principal = Depends(require_team_access("user"))
) -> CategoryRead:
    try:
        return await LinkService.create_category(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/categories/{category_id}", response_model=CategoryRead)
async def get_category(
    team_id: int, category_id: int, principal: Principal = Depends(require_team_access("user"))
) -> CategoryRead:
    try:
        return await LinkService.get_category(team_id, category_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/categories/{category_id}", response_model=CategoryRead)
async def update_category(
    team_id: int,
    category_id: int,
    data: CategoryUpdate,
    principal: Principal = Depends(require_team_access("user")),
) -> CategoryRead:
    try:
        return await LinkService.update_category(team_id, category_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/categories/{category_id}", response_model=BulkResult)
async def delete_category(
    team_id: int,
    category_id: int,
    move_links_to_category_id: Optional[int] = Query(None),
    principal: Principal = Depends(require_team_access("admin")),
) -> BulkResult:
    """Delete a category.  Its links move to ``move_links_to_category_id`` or lose their category."""
    try:
        moved = await LinkService.delete_category(
            team_id, category_id, principal, move_links_to_category_id=move_links_to_category_id
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return BulkResult(affected=moved)


# ----------------------------------------------------------------------
# Tags
# ----------------------------------------------------------------------
@router.get("/tags", response_model=List[TagRead])
async def list_tags(team_id: int, principal: Principal = Depends(require_team_access("user"))) -> List[TagRead]:
    return await LinkService.list_tags(team_id)


@router.post("/tags", response_model=TagRead, status_code=status.HTTP_201_CREATED)
async def create_tag(
    team_id: int, data: TagCreate, principal: Principal = Depends(require_team_access("user"))
) -> TagRead:
    try:
        return await LinkService.create_tag(team_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.put("/tags/{tag_id}", response_model=TagRead)
async def update_tag(
    team_id: int,
    tag_id: int,
    data: TagUpdate,
    principal: Principal = Depends(require_team_access("user")),
) -> TagRead:
    try:
        return await LinkService.update_tag(team_id, tag_id, data, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    team_id: int, tag_id: int, principal: Principal = Depends(require_team_access("admin"))
) -> None:
    try:
        await LinkService.delete_tag(team_id, tag_id, principal)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
    return None
