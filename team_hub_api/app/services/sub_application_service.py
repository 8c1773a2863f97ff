"""
Service layer for sub-applications.

Sub-applications split a large application into components that get
their own turnovers.  Names are unique within their application.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.application import (
    SubApplicationCreate,
    SubApplicationRead,
    SubApplicationUpdate,
)
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

_SELECT = """
    SELECT s.*, a.application_name AS application_name, a.team_id AS team_id
    FROM sub_applications s
    JOIN applications a ON a.id = s.application_id
"""


class SubApplicationService:
    """CRUD for sub-applications, always scoped to the owning team."""

    @classmethod
    async def list_by_application(cls, team_id: int, application_id: int) -> List[SubApplicationRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                _SELECT + " WHERE s.application_id = ? AND a.team_id = ? ORDER BY s.name",
                (application_id, team_id),
            ).fetchall()
            return [cls._row_to_sub_application(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def list_for_team(cls, team_id: int) -> List[SubApplicationRead]:
        """Every sub-application of the team's active applications, with the application name."""
        conn = get_connection()
        try:
            rows = conn.execute(
                _SELECT + " WHERE a.team_id = ? AND a.status = 'active' ORDER BY a.application_name, s.name",
                (team_id,),
            ).fetchall()
            return [cls._row_to_sub_application(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_sub_application(cls, sub_app_id: int, team_id: Optional[int] = None) -> SubApplicationRead:
        conn = get_connection()
        try:
            row = conn.execute(_SELECT + " WHERE s.id = ?", (sub_app_id,)).fetchone()
        finally:
            conn.close()
        if not row or (team_id is not None and row["team_id"] != team_id):
            raise NotFoundError("Sub-application not found")
        return cls._row_to_sub_application(row)

    @classmethod
    async def create_sub_application(
        cls, team_id: int, application_id: int, data: SubApplicationCreate, principal: Principal
    ) -> SubApplicationRead:
        name = data.name.strip()
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            app_row = conn.execute(
                "SELECT id FROM applications WHERE id = ? AND team_id = ? AND status != 'deleted'",
                (application_id, team_id),
            ).fetchone()
            if not app_row:
                raise NotFoundError("Application not found")
            if cls._name_taken(conn, application_id, name):
                raise ConflictError("Sub-application with this name already exists for this application")
            cursor = conn.execute(
                """
                INSERT INTO sub_applications
                    (application_id, name, code, description, status, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    application_id,
                    name,
                    data.code,
                    data.description,
                    data.status,
                    principal.subject,
                    principal.subject,
                    now,
                    now,
                ),
            )
            sub_app_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Sub-application %s created under application %s", sub_app_id, application_id)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="sub_application",
            object_id=sub_app_id,
            details={"application_id": application_id, "name": name},
            team_id=team_id,
        )
        return await cls.get_sub_application(sub_app_id)

    @classmethod
    async def update_sub_application(
        cls, sub_app_id: int, data: SubApplicationUpdate, principal: Principal, team_id: Optional[int] = None
    ) -> SubApplicationRead:
        current = await cls.get_sub_application(sub_app_id, team_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k in {"code", "description"}}
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        if not updates:
            return current
        conn = get_connection()
        try:
            if "name" in updates and updates["name"] != current.name:
                if cls._name_taken(conn, current.application_id, updates["name"], exclude_id=sub_app_id):
                    raise ConflictError("Sub-application with this name already exists for this application")
            updates["updated_by"] = principal.subject
            updates["updated_at"] = format_timestamp(utc_now())
            assignments = ", ".join(f"{field} = ?" for field in updates)
            conn.execute(
                f"UPDATE sub_applications SET {assignments} WHERE id = ?",
                (*updates.values(), sub_app_id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Sub-application %s updated", sub_app_id)
        await AuditService.log(
            actor=principal.subject,
            action="update",
            object_type="sub_application",
            object_id=sub_app_id,
            details={k: v for k, v in updates.items() if k not in {"updated_by", "updated_at"}},
            team_id=team_id,
        )
        return await cls.get_sub_application(sub_app_id)

    @classmethod
    async def delete_sub_application(cls, sub_app_id: int, principal: Principal, team_id: Optional[int] = None) -> None:
        await cls.get_sub_application(sub_app_id, team_id)
        conn = get_connection()
        try:
            conn.execute("DELETE FROM sub_applications WHERE id = ?", (sub_app_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Sub-application %s deleted", sub_app_id)
        await AuditService.log(
            actor=principal.subject,
            action="delete",
            object_type="sub_application",
            object_id=sub_app_id,
            team_id=team_id,
        )

    @staticmethod
    def _name_taken(
        conn: sqlite3.Connection, application_id: int, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        query = "SELECT 1 FROM sub_applications WHERE application_id = ? AND name = ?"
        params: list = [application_id, name]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        return conn.execute(query, tuple(params)).fetchone() is not None

    @staticmethod
    def _row_to_sub_application(row: sqlite3.Row) -> SubApplicationRead:
        return SubApplicationRead(
            id=row["id"],
            application_id=row["application_id"],
            application_name=row["application_name"],
            name=row["name"],
            code=row["code"],
            description=row["description"],
            status=row["status"],
            created_by=row["created_by"],
            updated_by=row["updated_by"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
