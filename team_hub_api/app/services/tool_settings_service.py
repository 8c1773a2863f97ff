"""
Service layer for per-tool settings.

Every tool (links, turnover, automation) declares a settings template
in ``tool_settings_schemas``.  Portal administrators may store global
overrides and team administrators team overrides; the effective
settings are the template with the relevant override merged on top.
Every change is written to ``settings_activity_log``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from team_hub_api.app.core.db import (
    DEFAULT_TOOL_SCHEMAS,
    format_timestamp,
    get_connection,
    seed_tool_schemas,
    utc_now,
)
from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.settings import ToolSchemaCreate
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class ToolSettingsService:
    """Templates, overrides and the activity log for tool settings."""

    @classmethod
    async def list_tools(cls) -> List[Dict[str, Any]]:
        conn = get_connection()
        try:
            rows = conn.execute("SELECT * FROM tool_settings_schemas ORDER BY category, name").fetchall()
            return [cls._row_to_schema(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_tool(cls, tool_key: str) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM tool_settings_schemas WHERE tool_key = ?", (tool_key,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError(f"Tool schema not found for: {tool_key}")
        return cls._row_to_schema(row)

    @classmethod
    async def get_effective_settings(cls, tool_key: str, team_id: Optional[int] = None) -> Dict[str, Any]:
        """Return the effective settings of a tool.

        The template is overlaid with the global settings and then, when
        ``team_id`` is given, with the team's active override.

        Returns
        -------
        dict
            ``{"tool_key", "settings", "is_global", "has_override"}``
            where ``has_override`` refers to the requested level.
        """
        tool = await cls.get_tool(tool_key)
        merged = dict(tool["settings_template"])
        conn = get_connection()
        try:
            global_row = conn.execute(
                "SELECT settings FROM global_tool_settings WHERE tool_key = ?", (tool_key,)
            ).fetchone()
            team_row = None
            if team_id is not None:
                team_row = conn.execute(
                    "SELECT settings FROM team_tool_settings WHERE team_id = ? AND tool_key = ? AND is_active = 1",
                    (team_id, tool_key),
                ).fetchone()
        finally:
            conn.close()
        for row in (global_row, team_row):
            if row:
                merged.update(json.loads(row["settings"]))
        return {
            "tool_key": tool_key,
            "settings": merged,
            "is_global": team_id is None,
            "has_override": (team_row if team_id is not None else global_row) is not None,
        }

    @classmethod
    async def update_settings(
        cls,
        tool_key: str,
        values: Dict[str, Any],
        principal: Principal,
        team_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Store an override for a team (or globally) and log the change.

        Keys not present in the tool's template are rejected.
        """
        tool = await cls.get_tool(tool_key)
        unknown = set(values) - set(tool["settings_template"])
        if unknown:
            raise ValueError(f"Unknown settings for {tool_key}: {', '.join(sorted(unknown))}")
        if team_id is not None and not tool["is_team_configurable"]:
            raise ValueError(f"Tool {tool_key} is not configurable at team level")
        if team_id is None and not tool["is_admin_configurable"]:
            raise ValueError(f"Tool {tool_key} is not configurable at global level")

        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            if team_id is not None:
                previous = conn.execute(
                    "SELECT settings FROM team_tool_settings WHERE team_id = ? AND tool_key = ?",
                    (team_id, tool_key),
                ).fetchone()
                conn.execute(
                    """
                    INSERT INTO team_tool_settings (team_id, tool_key, settings, is_active, updated_by, updated_at)
                    VALUES (?, ?, ?, 1, ?, ?)
                    ON CONFLICT(team_id, tool_key) DO UPDATE SET
                        settings = excluded.settings, is_active = 1,
                        updated_by = excluded.updated_by, updated_at = excluded.updated_at
                    """,
                    (team_id, tool_key, json.dumps(values), principal.subject, now),
                )
            else:
                previous = conn.execute(
                    "SELECT settings FROM global_tool_settings WHERE tool_key = ?", (tool_key,)
                ).fetchone()
                conn.execute(
                    """
                    INSERT INTO global_tool_settings (tool_key, settings, updated_by, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(tool_key) DO UPDATE SET
                        settings = excluded.settings, updated_by = excluded.updated_by,
                        updated_at = excluded.updated_at
                    """,
                    (tool_key, json.dumps(values), principal.subject, now),
                )
            cls._log_activity(
                conn,
                team_id,
                tool_key,
                "updated",
                previous["settings"] if previous else None,
                json.dumps(values),
                principal,
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Settings for %s updated (%s) by %s", tool_key, f"team {team_id}" if team_id else "global", principal.subject)
        return await cls.get_effective_settings(tool_key, team_id=team_id)

    @classmethod
    async def reset_settings(
        cls, tool_key: str, principal: Principal, team_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Drop the override so the template (or global settings) apply again."""
        await cls.get_tool(tool_key)
        conn = get_connection()
        try:
            if team_id is not None:
                previous = conn.execute(
                    "SELECT settings FROM team_tool_settings WHERE team_id = ? AND tool_key = ?",
                    (team_id, tool_key),
                ).fetchone()
                conn.execute(
                    "DELETE FROM team_tool_settings WHERE team_id = ? AND tool_key = ?", (team_id, tool_key)
                )
            else:
                previous = conn.execute(
                    "SELECT settings FROM global_tool_settings WHERE tool_key = ?", (tool_key,)
                ).fetchone()
                conn.execute("DELETE FROM global_tool_settings WHERE tool_key = ?", (tool_key,))
            cls._log_activity(
                conn, team_id, tool_key, "reset", previous["settings"] if previous else None, None, principal
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Settings for %s reset (%s)", tool_key, f"team {team_id}" if team_id else "global")
        return await cls.get_effective_settings(tool_key, team_id=team_id)

    @classmethod
    async def list_activity(
        cls,
        team_id: Optional[int] = None,
        tool_key: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        where: List[str] = []
        params: List[Any] = []
        if team_id is not None:
            where.append("team_id = ?")
            params.append(team_id)
        if tool_key:
            where.append("tool_key = ?")
            params.append(tool_key)
        query = "SELECT * FROM settings_activity_log"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()
        activity = []
        for row in rows:
            item = dict(row)
            for field in ("previous_value", "new_value"):
                item[field] = json.loads(item[field]) if item[field] else None
            activity.append(item)
        return activity

    @classmethod
    async def initialize_default_tools(cls) -> List[str]:
        """Register the built-in tools that are missing.  Existing templates are left alone."""
        conn = get_connection()
        try:
            seed_tool_schemas(conn.cursor())
            conn.commit()
        finally:
            conn.close()
        return [tool["tool_key"] for tool in DEFAULT_TOOL_SCHEMAS]

    @classmethod
    async def create_tool(cls, data: ToolSchemaCreate, principal: Principal) -> Dict[str, Any]:
        conn = get_connection()
        try:
            if conn.execute("SELECT 1 FROM tool_settings_schemas WHERE tool_key = ?", (data.tool_key,)).fetchone():
                raise ConflictError(f"Tool {data.tool_key} already exists")
            conn.execute(
                """
                INSERT INTO tool_settings_schemas
                    (tool_key, name, description, category, settings_template,
                     is_team_configurable, is_admin_configurable)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.tool_key,
                    data.name,
                    data.description,
                    data.category,
                    json.dumps(data.settings_template),
                    int(data.is_team_configurable),
                    int(data.is_admin_configurable),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Tool %s registered by %s", data.tool_key, principal.subject)
        await AuditService.log(
            actor=principal.subject, action="create", object_type="tool_settings_schema", details={"tool_key": data.tool_key}
        )
        return await cls.get_tool(data.tool_key)

    @staticmethod
    def _log_activity(
        conn,
        team_id: Optional[int],
        tool_key: str,
        action: str,
        previous_value: Optional[str],
        new_value: Optional[str],
        principal: Principal,
    ) -> None:
        conn.execute(
            """
            INSERT INTO settings_activity_log
                (team_id, tool_key, action, scope, previous_value, new_value, user_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                team_id,
                tool_key,
                action,
                "team" if team_id is not None else "global",
                previous_value,
                new_value,
                principal.subject,
                format_timestamp(utc_now()),
            ),
        )

    @staticmethod
    def _row_to_schema(row) -> Dict[str, Any]:
        return {
            "tool_key": row["tool_key"],
            "name": row["name"],
            "description": row["description"],
            "category": row["category"],
            "settings_template": json.loads(row["settings_template"]),
            "is_team_configurable": bool(row["is_team_configurable"]),
            "is_admin_configurable": bool(row["is_admin_configurable"]),
        }
