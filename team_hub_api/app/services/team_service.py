"""
Service layer for teams.

Teams are never created directly; approving a registration request
creates them (see ``registration_service``).  This module answers the
questions the rest of the portal asks about teams: does it exist, is
it active, and what access does a set of directory groups grant on it.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import AbstractSet, List, Optional

from team_hub_api.app.core.access import AccessLevel, resolve_access_level
from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.team import TeamRead, TeamWithStats, UserTeam
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class TeamService:
    """Lookup and access resolution for teams."""

    @classmethod
    async def find_team(cls, team_id: int) -> Optional[TeamRead]:
        """Return the team or ``None``.  Inactive teams are returned too."""
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
            return cls._row_to_team(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def get_team(cls, team_id: int) -> TeamRead:
        team = await cls.find_team(team_id)
        if team is None:
            raise NotFoundError("Team not found")
        return team

    @classmethod
    async def get_team_by_name(cls, name: str) -> Optional[TeamRead]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM teams WHERE name = ?", (name,)).fetchone()
            return cls._row_to_team(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def list_active_teams(cls) -> List[TeamRead]:
        conn = get_connection()
        try:
            rows = conn.execute("SELECT * FROM teams WHERE is_active = 1 ORDER BY name").fetchall()
            return [cls._row_to_team(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def list_all_teams(cls) -> List[TeamWithStats]:
        """Return every team, active or not, with its active application count."""
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT t.*,
                       (SELECT COUNT(*) FROM applications a
                        WHERE a.team_id = t.id AND a.status = 'active') AS application_count
                FROM teams t
                ORDER BY t.name
                """
            ).fetchall()
            return [
                TeamWithStats(**cls._row_to_team(row).model_dump(), application_count=row["application_count"])
                for row in rows
            ]
        finally:
            conn.close()

    @classmethod
    async def list_user_teams(cls, groups: AbstractSet[str]) -> List[UserTeam]:
        """Return the active teams ``groups`` can access, with the access level.

        Teams resolving to ``NONE`` are filtered out here, before any
        serialization, so the result never reveals teams the caller
        cannot see.  An empty group set short-circuits to an empty list.
        """
        if not groups:
            return []
        result: List[UserTeam] = []
        for team in await cls.list_active_teams():
            level = resolve_access_level(team, groups)
            if level is AccessLevel.NONE:
                continue
            result.append(
                UserTeam(id=team.id, name=team.name, description=team.description, access_level=level)
            )
        return result

    @classmethod
    async def check_team_access(cls, team_id: int, groups: AbstractSet[str]) -> AccessLevel:
        """Resolve access on one team.  Missing and inactive teams yield ``NONE``."""
        team = await cls.find_team(team_id)
        return resolve_access_level(team, groups)

    @classmethod
    async def has_admin_access(cls, groups: AbstractSet[str]) -> bool:
        """Return ``True`` if ``groups`` make the caller admin of any active team."""
        teams = await cls.list_user_teams(groups)
        return any(team.access_level is AccessLevel.ADMIN for team in teams)

    @classmethod
    async def set_team_active(cls, team_id: int, is_active: bool, principal: Principal) -> TeamRead:
        """Activate or deactivate a team.  Deactivation revokes all access to it."""
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE teams SET is_active = ?, updated_by = ?, updated_at = ? WHERE id = ?",
                (1 if is_active else 0, principal.subject, format_timestamp(utc_now()), team_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Team not found")
            conn.commit()
        finally:
            conn.close()
        logger.info("Team %s set active=%s by %s", team_id, is_active, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action="activate" if is_active else "deactivate",
            object_type="team",
            object_id=team_id,
            team_id=team_id,
        )
        return await cls.get_team(team_id)

    @staticmethod
    def _row_to_team(row: sqlite3.Row) -> TeamRead:
        return TeamRead(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            user_group=row["user_group"],
            admin_group=row["admin_group"],
            contact_name=row["contact_name"],
            contact_email=row["contact_email"],
            is_active=bool(row["is_active"]),
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
