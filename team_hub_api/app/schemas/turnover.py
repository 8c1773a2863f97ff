"""
Pydantic models for turnovers (shift handovers), their entries,
snapshots and drafts.

A turnover groups entries under a (team, application, sub-application)
scope.  Each entry is one handover item (a change request, incident,
alert, major incident, email/Slack thread or plain FYI) with a
priority that users set explicitly and the staleness sweep escalates.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

TurnoverStatus = Literal["draft", "active", "completed", "archived"]
EntryType = Literal["rfc", "inc", "alert", "mim", "email_slack", "fyi"]
EntryPriority = Literal["normal", "important", "flagged", "needs_action", "long_pending"]

# Ordered from least to most severe.
PRIORITY_ORDER: List[str] = ["normal", "important", "flagged", "needs_action", "long_pending"]


class EntryFields(BaseModel):
    """Type-specific entry content.  Which fields matter depends on ``entry_type``."""

    rfc_number: Optional[str] = Field(None, max_length=50)
    rfc_status: Optional[str] = Field(None, max_length=50)
    rfc_validated_by: Optional[str] = Field(None, max_length=255)
    rfc_description: Optional[str] = None
    inc_number: Optional[str] = Field(None, max_length=50)
    incident_description: Optional[str] = None
    alerts_issues: Optional[str] = None
    mim_link: Optional[str] = None
    mim_slack_link: Optional[str] = None
    email_subject_slack_link: Optional[str] = None
    fyi_info: Optional[str] = None
    comments: Optional[str] = None


class EntryCreate(EntryFields):
    entry_type: EntryType
    priority: EntryPriority = "normal"


class EntryUpdate(EntryFields):
    entry_type: Optional[EntryType] = None
    priority: Optional[EntryPriority] = None


class EntryRead(EntryFields):
    id: int
    turnover_id: int
    entry_type: str
    priority: str
    last_classified_at: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str


class FlaggedEntryRead(EntryRead):
    """Entry with the scope of the turnover it belongs to."""

    team_id: int
    application_id: Optional[int] = None
    application_name: Optional[str] = None
    sub_application_id: Optional[int] = None
    sub_application_name: Optional[str] = None
    handover_from: str
    handover_to: str


class TurnoverCreate(BaseModel):
    application_id: Optional[int] = None
    sub_application_id: Optional[int] = None
    handover_from: str = Field(..., min_length=1, max_length=255)
    handover_to: str = Field(..., min_length=1, max_length=255)
    status: TurnoverStatus = "active"
    turnover_date: Optional[datetime] = None
    entries: List[EntryCreate] = Field(default_factory=list)


class TurnoverUpdate(BaseModel):
    handover_from: Optional[str] = Field(None, min_length=1, max_length=255)
    handover_to: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[TurnoverStatus] = None
    turnover_date: Optional[datetime] = None


class TurnoverRead(BaseModel):
    id: int
    team_id: int
    application_id: Optional[int] = None
    application_name: Optional[str] = None
    sub_application_id: Optional[int] = None
    sub_application_name: Optional[str] = None
    handover_from: str
    handover_to: str
    status: str
    turnover_date: str
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str


class TurnoverWithEntries(TurnoverRead):
    entries: List[EntryRead] = Field(default_factory=list)


class SnapshotCreate(BaseModel):
    application_id: Optional[int] = None
    sub_application_id: Optional[int] = None
    snapshot_date: Optional[datetime] = None


class SnapshotRead(BaseModel):
    id: int
    team_id: int
    application_id: Optional[int] = None
    sub_application_id: Optional[int] = None
    snapshot_date: str
    snapshot_data: Dict[str, Any]
    created_by: Optional[str] = None
    created_at: str


class DraftSave(BaseModel):
    application_id: Optional[int] = None
    sub_application_id: Optional[int] = None
    handover_from: Optional[str] = Field(None, max_length=255)
    handover_to: Optional[str] = Field(None, max_length=255)
    entries: List[EntryCreate] = Field(default_factory=list)


class DraftRead(BaseModel):
    id: int
    team_id: int
    application_id: Optional[int] = None
    sub_application_id: Optional[int] = None
    handover_from: Optional[str] = None
    handover_to: Optional[str] = None
    entries: List[EntryCreate]
    status: str
    turnover_id: Optional[int] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str


class FlagRequest(BaseModel):
    priority: EntryPriority
    comment: Optional[str] = Field(None, max_length=1000)


class BulkFlagRequest(BaseModel):
    entry_ids: List[int] = Field(..., min_length=1)
    priority: EntryPriority


class FlagCounts(BaseModel):
    important: int = 0
    flagged: int = 0
    needs_action: int = 0
    long_pending: int = 0
    total: int = 0


class SweepFailure(BaseModel):
    entry_id: int
    error: str


class SweepChange(BaseModel):
    entry_id: int
    previous_priority: str
    new_priority: str
    hours_since_update: int


class SweepResult(BaseModel):
    flagged_count: int
    failures: List[SweepFailure] = Field(default_factory=list)
    changes: List[SweepChange] = Field(default_factory=list)
    message: str


class SnapshotRunResult(BaseModel):
    snapshot_count: int
    snapshot_ids: List[int]
    message: str


class AutomationStatus(BaseModel):
    team_id: int
    priority_counts: Dict[str, int]
    recent_snapshots: List[SnapshotRead]
    last_sweep_at: Optional[str] = None
    last_snapshot_at: Optional[str] = None


class AutomationSchedule(BaseModel):
    enable_stale_flagging: bool = True
    enable_daily_snapshots: bool = True
    stale_flagging_interval: int = Field(6, ge=1, le=168, description="Hours between sweeps")
    daily_snapshot_time: str = Field("00:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class AutomationRunResult(BaseModel):
    sweep: SweepResult
    snapshots: SnapshotRunResult
