"""
Pydantic models for teams and team registration requests.

A team is bound to two directory groups: members of ``user_group``
may read and write the team's data, members of ``admin_group`` may
additionally manage it.  New teams are created by approving a
registration request.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from ..core.access import AccessLevel


class TeamRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    user_group: str
    admin_group: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }


class UserTeam(BaseModel):
    """Team as seen by a caller, including the caller's access level."""

    id: int
    name: str
    description: Optional[str] = None
    access_level: AccessLevel


class TeamWithStats(TeamRead):
    application_count: int = 0


class TeamActiveUpdate(BaseModel):
    is_active: bool


class TeamAccessRead(BaseModel):
    team_id: int
    access_level: AccessLevel
    is_admin: bool


class RegistrationCreate(BaseModel):
    """Schema for requesting a new team."""

    team_name: str = Field(..., min_length=1, max_length=100, examples=["Payments SRE"])
    description: Optional[str] = Field(None, max_length=1000)
    user_group: str = Field(..., min_length=1, max_length=100, examples=["PAYMENTS_SRE_USERS"])
    admin_group: str = Field(..., min_length=1, max_length=100, examples=["PAYMENTS_SRE_ADMINS"])
    contact_name: str = Field(..., min_length=1, max_length=255)
    contact_email: EmailStr


class RegistrationRead(BaseModel):
    id: int
    team_name: str
    description: Optional[str] = None
    user_group: str
    admin_group: str
    contact_name: str
    contact_email: str
    status: Literal["pending", "approved", "rejected"]
    requested_by: str
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    review_comments: Optional[str] = None
    team_id: Optional[int] = None
    created_at: str
    updated_at: str


class RegistrationReview(BaseModel):
    action: Literal["approve", "reject"]
    comments: Optional[str] = Field(None, max_length=1000)


class NameAvailability(BaseModel):
    available: bool
    type: Literal["error", "warning", "success"]
    message: str


class RegistrationStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
    recent: List[RegistrationRead]
