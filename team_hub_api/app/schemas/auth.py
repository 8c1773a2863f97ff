"""
Authenticated caller identity.

A ``Principal`` is built once per request from the decoded bearer
token.  The ``groups`` claim is validated here so that services and
the access resolver can treat it as a trusted set of strings.
"""

from typing import FrozenSet, Optional

from pydantic import BaseModel, Field, field_validator

AUTOMATION_SUBJECT = "automation"


class Principal(BaseModel):
    """Caller identity passed explicitly to every mutating service call."""

    subject: str = Field(..., min_length=1, description="Stable user identifier (token ``sub``)")
    email: Optional[str] = None
    name: Optional[str] = None
    groups: FrozenSet[str] = Field(default_factory=frozenset)
    is_portal_admin: bool = False

    model_config = {"frozen": True}

    @field_validator("groups", mode="before")
    @classmethod
    def validate_groups(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, str) or not hasattr(v, "__iter__"):
            raise ValueError("groups must be a list of strings")
        cleaned = set()
        for item in v:
            if not isinstance(item, str):
                raise ValueError("each group must be a string")
            if item.strip():
                cleaned.add(item.strip())
        return frozenset(cleaned)

    @property
    def is_automation(self) -> bool:
        return self.subject == AUTOMATION_SUBJECT

    @property
    def display_name(self) -> str:
        return self.email or self.subject


class TokenRequest(BaseModel):
    """Claims for a development token minted by ``create_token.py``."""

    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    groups: list[str] = Field(default_factory=list)
