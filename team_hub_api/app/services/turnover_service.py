"""
Service layer for turnovers, turnover entries and snapshots.

Besides the CRUD used by the API, this module is the entry store the
automation sweep works through: ``list_entries_updated_before`` and
``update_entry_priority`` are the only two calls the sweep makes, so
they can be replaced in tests.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.turnover import (
    EntryCreate,
    EntryFields,
    EntryRead,
    EntryUpdate,
    FlaggedEntryRead,
    SnapshotRead,
    TurnoverCreate,
    TurnoverRead,
    TurnoverUpdate,
    TurnoverWithEntries,
)
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

ENTRY_CONTENT_FIELDS = list(EntryFields.model_fields.keys())

_TURNOVER_SELECT = """
    SELECT t.*, a.application_name AS application_name, s.name AS sub_application_name
    FROM turnovers t
    LEFT JOIN applications a ON a.id = t.application_id
    LEFT JOIN sub_applications s ON s.id = t.sub_application_id
"""

ENTRY_WITH_SCOPE_SELECT = """
    SELECT e.*, t.team_id AS team_id, t.application_id AS application_id,
           t.sub_application_id AS sub_application_id, t.handover_from AS handover_from,
           t.handover_to AS handover_to, a.application_name AS application_name,
           s.name AS sub_application_name
    FROM turnover_entries e
    JOIN turnovers t ON t.id = e.turnover_id
    LEFT JOIN applications a ON a.id = t.application_id
    LEFT JOIN sub_applications s ON s.id = t.sub_application_id
"""


def scope_clause(alias: str, application_id: Optional[int], sub_application_id: Optional[int]) -> tuple[str, list]:
    """SQL matching a (application, sub-application) scope where ``None`` means "no value"."""
    clauses = []
    params: list = []
    for column, value in (("application_id", application_id), ("sub_application_id", sub_application_id)):
        if value is None:
            clauses.append(f"{alias}.{column} IS NULL")
        else:
            clauses.append(f"{alias}.{column} = ?")
            params.append(value)
    return " AND ".join(clauses), params


class TurnoverService:
    """Turnovers, their entries and point-in-time snapshots."""

    # ------------------------------------------------------------------
    # Turnovers
    # ------------------------------------------------------------------
    @classmethod
    async def create_turnover(cls, team_id: int, data: TurnoverCreate, principal: Principal) -> TurnoverWithEntries:
        """Create a turnover together with its initial entries in one transaction."""
        now = utc_now()
        turnover_date = format_timestamp(data.turnover_date or now)
        conn = get_connection()
        try:
            cls.check_scope(conn, team_id, data.application_id, data.sub_application_id)
            cursor = conn.execute(
                """
                INSERT INTO turnovers
                    (team_id, application_id, sub_application_id, handover_from, handover_to, status,
                     turnover_date, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    data.application_id,
                    data.sub_application_id,
                    data.handover_from.strip(),
                    data.handover_to.strip(),
                    data.status,
                    turnover_date,
                    principal.subject,
                    principal.subject,
                    format_timestamp(now),
                    format_timestamp(now),
                ),
            )
            turnover_id = cursor.lastrowid
            for entry in data.entries:
                cls.insert_entry(conn, turnover_id, entry, principal, now)
            conn.commit()
        finally:
            conn.close()
        logger.info("Turnover %s created in team %s with %s entries", turnover_id, team_id, len(data.entries))
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="turnover",
            object_id=turnover_id,
            details={"entries": len(data.entries)},
            team_id=team_id,
        )
        return await cls.get_turnover(team_id, turnover_id)

    @classmethod
    async def list_turnovers(
        cls,
        team_id: int,
        application_id: Optional[int] = None,
        sub_application_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TurnoverRead]:
        """Return turnovers matching the filters, most recent turnover date first."""
        where = ["t.team_id = ?"]
        params: List[Any] = [team_id]
        if application_id is not None:
            where.append("t.application_id = ?")
            params.append(application_id)
        if sub_application_id is not None:
            where.append("t.sub_application_id = ?")
            params.append(sub_application_id)
        if status:
            where.append("t.status = ?")
            params.append(status)
        query = _TURNOVER_SELECT + " WHERE " + " AND ".join(where)
        query += " ORDER BY t.turnover_date DESC, t.id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
            return [TurnoverRead(**dict(row)) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_turnover(cls, team_id: int, turnover_id: int) -> TurnoverWithEntries:
        conn = get_connection()
        try:
            row = conn.execute(
                _TURNOVER_SELECT + " WHERE t.id = ? AND t.team_id = ?", (turnover_id, team_id)
            ).fetchone()
            if not row:
                raise NotFoundError("Turnover not found")
            entries = conn.execute(
                "SELECT * FROM turnover_entries WHERE turnover_id = ? ORDER BY created_at, id",
                (turnover_id,),
            ).fetchall()
            return TurnoverWithEntries(**dict(row), entries=[EntryRead(**dict(e)) for e in entries])
        finally:
            conn.close()

    @classmethod
    async def get_latest_turnover(
        cls, team_id: int, application_id: Optional[int] = None, sub_application_id: Optional[int] = None
    ) -> Optional[TurnoverWithEntries]:
        """Return the most recent non-archived turnover for the scope, or ``None``."""
        scope_sql, scope_params = scope_clause("t", application_id, sub_application_id)
        conn = get_connection()
        try:
            row = conn.execute(
                f"""
                SELECT t.id FROM turnovers t
                WHERE t.team_id = ? AND {scope_sql} AND t.status != 'archived'
                ORDER BY t.turnover_date DESC, t.id DESC LIMIT 1
                """,
                (team_id, *scope_params),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return await cls.get_turnover(team_id, row["id"])

    @classmethod
    async def update_turnover(
        cls, team_id: int, turnover_id: int, data: TurnoverUpdate, principal: Principal
    ) -> TurnoverWithEntries:
        await cls.get_turnover(team_id, turnover_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "turnover_date" in updates:
            updates["turnover_date"] = format_timestamp(updates["turnover_date"])
        if updates:
            updates["updated_by"] = principal.subject
            updates["updated_at"] = format_timestamp(utc_now())
            assignments = ", ".join(f"{field} = ?" for field in updates)
            conn = get_connection()
            try:
                conn.execute(f"UPDATE turnovers SET {assignments} WHERE id = ?", (*updates.values(), turnover_id))
                conn.commit()
            finally:
                conn.close()
            logger.info("Turnover %s updated", turnover_id)
            await AuditService.log(
                actor=principal.subject,
                action="update",
                object_type="turnover",
                object_id=turnover_id,
                details={k: v for k, v in updates.items() if k not in {"updated_by", "updated_at"}},
                team_id=team_id,
            )
        return await cls.get_turnover(team_id, turnover_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    @classmethod
    async def create_entry(
        cls, team_id: int, turnover_id: int, data: EntryCreate, principal: Principal
    ) -> EntryRead:
        await cls.get_turnover(team_id, turnover_id)
        conn = get_connection()
        try:
            entry_id = cls.insert_entry(conn, turnover_id, data, principal, utc_now())
            conn.commit()
        finally:
            conn.close()
        logger.info("Entry %s (%s) added to turnover %s", entry_id, data.entry_type, turnover_id)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="turnover_entry",
            object_id=entry_id,
            details={"turnover_id": turnover_id, "entry_type": data.entry_type},
            team_id=team_id,
        )
        return await cls.get_entry(team_id, entry_id)

    @classmethod
    async def get_entry(cls, team_id: int, entry_id: int) -> FlaggedEntryRead:
        conn = get_connection()
        try:
            row = conn.execute(
                ENTRY_WITH_SCOPE_SELECT + " WHERE e.id = ? AND t.team_id = ?", (entry_id, team_id)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Turnover entry not found")
        return FlaggedEntryRead(**dict(row))

    @classmethod
    async def update_entry(cls, team_id: int, entry_id: int, data: EntryUpdate, principal: Principal) -> EntryRead:
        """Update entry content.  Any edit counts as activity and resets the staleness clock."""
        await cls.get_entry(team_id, entry_id)
        updates = data.model_dump(exclude_unset=True)
        for field in ("entry_type", "priority"):
            if field in updates and updates[field] is None:
                updates.pop(field)
        if updates:
            updates["updated_by"] = principal.subject
            updates["updated_at"] = format_timestamp(utc_now())
            assignments = ", ".join(f"{field} = ?" for field in updates)
            conn = get_connection()
            try:
                conn.execute(
                    f"UPDATE turnover_entries SET {assignments} WHERE id = ?", (*updates.values(), entry_id)
                )
                conn.commit()
            finally:
                conn.close()
            logger.info("Entry %s updated", entry_id)
            await AuditService.log(
                actor=principal.subject,
                action="update",
                object_type="turnover_entry",
                object_id=entry_id,
                details={"fields": sorted(k for k in updates if k not in {"updated_by", "updated_at"})},
                team_id=team_id,
            )
        return await cls.get_entry(team_id, entry_id)

    @classmethod
    async def delete_entry(cls, team_id: int, entry_id: int, principal: Principal) -> None:
        await cls.get_entry(team_id, entry_id)
        conn = get_connection()
        try:
            conn.execute("DELETE FROM turnover_entries WHERE id = ?", (entry_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Entry %s deleted", entry_id)
        await AuditService.log(
            actor=principal.subject,
            action="delete",
            object_type="turnover_entry",
            object_id=entry_id,
            team_id=team_id,
        )

    @classmethod
    async def list_stale_entries(
        cls, team_id: int, hours: int = 24, now: Optional[datetime] = None
    ) -> List[FlaggedEntryRead]:
        """Return the team's entries untouched for at least ``hours``, oldest first."""
        cutoff = (now or utc_now()) - timedelta(hours=hours)
        conn = get_connection()
        try:
            rows = conn.execute(
                ENTRY_WITH_SCOPE_SELECT + " WHERE t.team_id = ? AND e.updated_at <= ? ORDER BY e.updated_at, e.id",
                (team_id, format_timestamp(cutoff)),
            ).fetchall()
            return [FlaggedEntryRead(**dict(row)) for row in rows]
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Entry store used by the staleness sweep
    # ------------------------------------------------------------------
    @classmethod
    def list_entries_updated_before(
        cls, cutoff: datetime, team_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return ``{id, priority, updated_at, team_id}`` for entries with ``updated_at <= cutoff``.

        Entries already at ``long_pending`` are excluded.  Only entries
        of active teams are considered.
        """
        query = """
            SELECT e.id, e.priority, e.updated_at, t.team_id
            FROM turnover_entries e
            JOIN turnovers t ON t.id = e.turnover_id
            JOIN teams tm ON tm.id = t.team_id
            WHERE e.updated_at <= ? AND e.priority != 'long_pending' AND tm.is_active = 1
        """
        params: List[Any] = [format_timestamp(cutoff)]
        if team_id is not None:
            query += " AND t.team_id = ?"
            params.append(team_id)
        query += " ORDER BY e.updated_at, e.id"
        conn = get_connection()
        try:
            return [dict(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    def update_entry_priority(cls, entry_id: int, priority: str, updated_at: datetime) -> None:
        """Persist an automated reclassification.

        Both ``updated_at`` and ``last_classified_at`` are set to
        ``updated_at``.
        """
        stamp = format_timestamp(updated_at)
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE turnover_entries SET priority = ?, updated_at = ?, last_classified_at = ? WHERE id = ?",
                (priority, stamp, stamp, entry_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Turnover entry not found")
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    @classmethod
    async def create_snapshot(
        cls,
        team_id: int,
        principal: Principal,
        application_id: Optional[int] = None,
        sub_application_id: Optional[int] = None,
        snapshot_date: Optional[datetime] = None,
    ) -> SnapshotRead:
        """Freeze the scope's active turnovers and their entries as JSON."""
        now = utc_now()
        date = snapshot_date or now
        scope_sql, scope_params = scope_clause("t", application_id, sub_application_id)
        conn = get_connection()
        try:
            rows = conn.execute(
                _TURNOVER_SELECT + f" WHERE t.team_id = ? AND {scope_sql} AND t.status = 'active' ORDER BY t.id",
                (team_id, *scope_params),
            ).fetchall()
            turnovers = []
            for row in rows:
                entries = conn.execute(
                    "SELECT * FROM turnover_entries WHERE turnover_id = ? ORDER BY id", (row["id"],)
                ).fetchall()
                turnover = dict(row)
                turnover["entries"] = [dict(entry) for entry in entries]
                turnovers.append(turnover)
            snapshot_data = {
                "team_id": team_id,
                "application_id": application_id,
                "sub_application_id": sub_application_id,
                "captured_at": format_timestamp(now),
                "turnovers": turnovers,
            }
            cursor = conn.execute(
                """
                INSERT INTO turnover_snapshots
                    (team_id, application_id, sub_application_id, snapshot_date, snapshot_data, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    application_id,
                    sub_application_id,
                    format_timestamp(date),
                    json.dumps(snapshot_data),
                    principal.subject,
                    format_timestamp(now),
                ),
            )
            snapshot_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Snapshot %s created for team %s (%s turnovers)", snapshot_id, team_id, len(turnovers))
        return await cls.get_snapshot(team_id, snapshot_id)

    @classmethod
    async def get_snapshot(cls, team_id: int, snapshot_id: int) -> SnapshotRead:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM turnover_snapshots WHERE id = ? AND team_id = ?", (snapshot_id, team_id)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Snapshot not found")
        return cls._row_to_snapshot(row)

    @classmethod
    async def list_snapshots(
        cls,
        team_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 50,
    ) -> List[SnapshotRead]:
        where = ["team_id = ?"]
        params: List[Any] = [team_id]
        if start_date:
            where.append("snapshot_date >= ?")
            params.append(start_date)
        if end_date:
            where.append("snapshot_date <= ?")
            params.append(end_date)
        params.append(limit)
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM turnover_snapshots WHERE "
                + " AND ".join(where)
                + " ORDER BY snapshot_date DESC, id DESC LIMIT ?",
                tuple(params),
            ).fetchall()
            return [cls._row_to_snapshot(row) for row in rows]
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Helpers shared with drafts
    # ------------------------------------------------------------------
    @staticmethod
    def check_scope(
        conn: sqlite3.Connection, team_id: int, application_id: Optional[int], sub_application_id: Optional[int]
    ) -> None:
        """Ensure the application belongs to the team and the sub-application to the application."""
        if application_id is not None and not conn.execute(
            "SELECT 1 FROM applications WHERE id = ? AND team_id = ? AND status != 'deleted'",
            (application_id, team_id),
        ).fetchone():
            raise NotFoundError("Application not found")
        if sub_application_id is not None:
            if application_id is None:
                raise ValueError("sub_application_id requires application_id")
            if not conn.execute(
                "SELECT 1 FROM sub_applications WHERE id = ? AND application_id = ?",
                (sub_application_id, application_id),
            ).fetchone():
                raise NotFoundError("Sub-application not found")

    @staticmethod
    def insert_entry(
        conn: sqlite3.Connection, turnover_id: int, entry: EntryCreate, principal: Principal, now: datetime
    ) -> int:
        stamp = format_timestamp(now)
        content = [getattr(entry, field) for field in ENTRY_CONTENT_FIELDS]
        columns = ["turnover_id", "entry_type", "priority", *ENTRY_CONTENT_FIELDS, "created_by", "updated_by", "created_at", "updated_at"]
        cursor = conn.execute(
            f"INSERT INTO turnover_entries ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            (turnover_id, entry.entry_type, entry.priority, *content, principal.subject, principal.subject, stamp, stamp),
        )
        return cursor.lastrowid

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row) -> SnapshotRead:
        data = dict(row)
        data["snapshot_data"] = json.loads(data["snapshot_data"])
        return SnapshotRead(**data)
