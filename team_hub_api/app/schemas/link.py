"""
Pydantic models for team links, categories and tags.

Links are team bookmarks.  Each link may belong to one category and
carry any number of tags; both are defined per team.  ``team``
visibility links are shared with every member; ``private`` links are
listed only to the member who created them.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

LinkVisibility = Literal["team", "private"]
LinkStatus = Literal["active", "inactive", "archived"]
SortField = Literal["created_at", "updated_at", "title", "click_count", "last_accessed_at"]

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class TagRead(BaseModel):
    id: int
    team_id: int
    name: str
    color: Optional[str] = None
    description: Optional[str] = None
    created_at: str


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    description: Optional[str] = Field(None, max_length=500)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    description: Optional[str] = Field(None, max_length=500)


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN, examples=["#3B82F6"])
    icon: Optional[str] = Field(None, max_length=50)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)


class CategoryRead(BaseModel):
    id: int
    team_id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    link_count: int = 0
    created_at: str
    updated_at: str


class LinkCreate(BaseModel):
    """Schema for creating a link."""

    title: str = Field(..., min_length=1, max_length=255)
    url: HttpUrl
    short_url: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    application_id: Optional[int] = None
    category_id: Optional[int] = None
    visibility: LinkVisibility = "team"
    status: LinkStatus = "active"
    is_pinned: bool = False
    tag_ids: List[int] = Field(default_factory=list)


class LinkUpdate(BaseModel):
    """Partial update.  ``tag_ids``, when given, replaces all tags."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[HttpUrl] = None
    short_url: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    application_id: Optional[int] = None
    category_id: Optional[int] = None
    visibility: Optional[LinkVisibility] = None
    status: Optional[LinkStatus] = None
    is_pinned: Optional[bool] = None
    tag_ids: Optional[List[int]] = None


class LinkRead(BaseModel):
    id: int
    team_id: int
    application_id: Optional[int] = None
    application_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    title: str
    url: str
    short_url: Optional[str] = None
    description: Optional[str] = None
    visibility: str
    status: str
    is_pinned: bool
    click_count: int
    last_accessed_at: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str
    tags: List[TagRead] = Field(default_factory=list)


class LinkSearch(BaseModel):
    """Filters for listing and searching a team's links."""

    search: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = None
    application_id: Optional[int] = None
    visibility: Optional[LinkVisibility] = None
    status: Optional[LinkStatus] = None
    is_pinned: Optional[bool] = None
    tag_ids: List[int] = Field(default_factory=list)
    sort_by: SortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(50, ge=1, le=100)
    offset: int = Field(0, ge=0)


class LinkSearchResult(BaseModel):
    items: List[LinkRead]
    total: int
    limit: int
    offset: int


class LinkStats(BaseModel):
    total_links: int
    active_links: int
    pinned_links: int
    team_links: int
    private_links: int
    total_clicks: int


class LinkAccess(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


class BulkLinkIds(BaseModel):
    link_ids: List[int] = Field(..., min_length=1)


class BulkLinkUpdate(BulkLinkIds):
    is_pinned: Optional[bool] = None
    visibility: Optional[LinkVisibility] = None
    status: Optional[LinkStatus] = None
    category_id: Optional[int] = None
    application_id: Optional[int] = None


class BulkLinkTags(BulkLinkIds):
    tag_ids: List[int] = Field(..., min_length=1)


class BulkLinkCategory(BulkLinkIds):
    category_id: Optional[int] = None


class BulkResult(BaseModel):
    affected: int


class LinkImportItem(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    url: HttpUrl
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = Field(default_factory=list)
    visibility: LinkVisibility = "team"
    is_pinned: bool = False

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        cleaned = []
        for tag in v:
            tag = tag.strip()
            if not tag:
                continue
            if len(tag) > 50:
                raise ValueError("Tag names must be at most 50 characters")
            cleaned.append(tag)
        return cleaned


class LinkImportRequest(BaseModel):
    links: List[LinkImportItem] = Field(..., min_length=1, max_length=500)
    application_id: Optional[int] = None


class LinkImportError(BaseModel):
    link: str
    error: str


class LinkImportResult(BaseModel):
    total: int
    successful: int
    failed: int
    errors: List[LinkImportError] = Field(default_factory=list)
