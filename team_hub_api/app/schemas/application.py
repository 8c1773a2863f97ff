"""
Pydantic models for applications and sub-applications.

Applications are registered by asset id; their name, lifecycle, tier
and ownership chain come from the central application inventory,
while contact details (emails, ServiceNow group, Slack channel) are
maintained by the team.  The ``Central*`` models describe the
inventory's response and are used to validate it before anything is
written.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class CentralOwner(BaseModel):
    email: Optional[str] = None
    fullName: Optional[str] = None
    band: Optional[str] = None


class CentralRisk(BaseModel):
    bia: Optional[str] = None


class CentralOwnershipInfo(BaseModel):
    applicationowner: Optional[CentralOwner] = None
    applicationManager: Optional[CentralOwner] = None
    applicationOwnerLeader1: Optional[CentralOwner] = None
    applicationOwnerLeader2: Optional[CentralOwner] = None
    ownerSVp: Optional[CentralOwner] = None
    businessOwner: Optional[CentralOwner] = None
    businessOwnerLeader1: Optional[CentralOwner] = None
    productionSupportOwner: Optional[CentralOwner] = None
    productionSupportOwnerLeader1: Optional[CentralOwner] = None
    pmo: Optional[CentralOwner] = None
    unitCIo: Optional[CentralOwner] = None


class CentralApplication(BaseModel):
    name: str
    assetId: int
    lifeCycleStatus: Optional[str] = None
    risk: Optional[CentralRisk] = None
    ownershipInfo: Optional[CentralOwnershipInfo] = None


class _CentralData(BaseModel):
    application: CentralApplication


class CentralApiResponse(BaseModel):
    data: _CentralData


class ApplicationCreate(BaseModel):
    """Register an application by its inventory asset id."""

    asset_id: int = Field(..., ge=1, examples=[200001])
    tla: str = Field(..., min_length=1, max_length=12, examples=["PAY"])
    escalation_email: Optional[EmailStr] = None
    contact_email: Optional[EmailStr] = None
    team_email: Optional[EmailStr] = None
    snow_group: Optional[str] = Field(None, max_length=255)
    slack_channel: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class ApplicationUpdate(BaseModel):
    """Team-maintained fields; only provided values are written."""

    tla: Optional[str] = Field(None, min_length=1, max_length=12)
    escalation_email: Optional[EmailStr] = None
    contact_email: Optional[EmailStr] = None
    team_email: Optional[EmailStr] = None
    snow_group: Optional[str] = Field(None, max_length=255)
    slack_channel: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class ApplicationRead(BaseModel):
    id: int
    team_id: int
    asset_id: int
    application_name: str
    tla: str
    life_cycle_status: Optional[str] = None
    tier: Optional[str] = None
    vp_name: Optional[str] = None
    vp_email: Optional[str] = None
    director_name: Optional[str] = None
    director_email: Optional[str] = None
    escalation_email: Optional[str] = None
    contact_email: Optional[str] = None
    team_email: Optional[str] = None
    application_owner_name: Optional[str] = None
    application_owner_email: Optional[str] = None
    application_owner_band: Optional[str] = None
    application_manager_name: Optional[str] = None
    application_manager_email: Optional[str] = None
    application_manager_band: Optional[str] = None
    application_owner_leader1_name: Optional[str] = None
    application_owner_leader1_email: Optional[str] = None
    application_owner_leader1_band: Optional[str] = None
    application_owner_leader2_name: Optional[str] = None
    application_owner_leader2_email: Optional[str] = None
    application_owner_leader2_band: Optional[str] = None
    owner_svp_name: Optional[str] = None
    owner_svp_email: Optional[str] = None
    owner_svp_band: Optional[str] = None
    business_owner_name: Optional[str] = None
    business_owner_email: Optional[str] = None
    business_owner_band: Optional[str] = None
    business_owner_leader1_name: Optional[str] = None
    business_owner_leader1_email: Optional[str] = None
    business_owner_leader1_band: Optional[str] = None
    production_support_owner_name: Optional[str] = None
    production_support_owner_email: Optional[str] = None
    production_support_owner_band: Optional[str] = None
    production_support_owner_leader1_name: Optional[str] = None
    production_support_owner_leader1_email: Optional[str] = None
    production_support_owner_leader1_band: Optional[str] = None
    pmo_name: Optional[str] = None
    pmo_email: Optional[str] = None
    pmo_band: Optional[str] = None
    unit_cio_name: Optional[str] = None
    unit_cio_email: Optional[str] = None
    unit_cio_band: Optional[str] = None
    snow_group: Optional[str] = None
    slack_channel: Optional[str] = None
    description: Optional[str] = None
    status: str
    last_central_api_sync: Optional[str] = None
    central_api_sync_status: str
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }


SubApplicationStatus = Literal["active", "inactive", "archived"]


class SubApplicationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=12)
    description: Optional[str] = None
    status: SubApplicationStatus = "active"


class SubApplicationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=12)
    description: Optional[str] = None
    status: Optional[SubApplicationStatus] = None


class SubApplicationRead(BaseModel):
    id: int
    application_id: int
    application_name: Optional[str] = None
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    status: str
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str


class ApplicationWithSubApplications(ApplicationRead):
    sub_applications: List[SubApplicationRead] = Field(default_factory=list)
