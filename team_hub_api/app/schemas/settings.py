"""
Pydantic models for tool settings and the audit log.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ToolSchemaCreate(BaseModel):
    tool_key: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: str = Field("tool", max_length=50)
    settings_template: Dict[str, Any]
    is_team_configurable: bool = True
    is_admin_configurable: bool = True


class ToolSchemaRead(BaseModel):
    tool_key: str
    name: str
    description: Optional[str] = None
    category: str
    settings_template: Dict[str, Any]
    is_team_configurable: bool
    is_admin_configurable: bool


class EffectiveSettings(BaseModel):
    tool_key: str
    settings: Dict[str, Any]
    is_global: bool
    has_override: bool


class SettingsUpdate(BaseModel):
    """New values for some or all keys of a tool's template."""

    settings: Dict[str, Any]


class SettingsActivityRead(BaseModel):
    id: int
    team_id: Optional[int] = None
    tool_key: str
    action: str
    scope: str
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    created_at: str


class AuditLogRead(BaseModel):
    id: int
    actor: Optional[str] = None
    team_id: Optional[int] = None
    action: str
    object_type: str
    object_id: Optional[int] = None
    timestamp: str
    details: Optional[Any] = None
