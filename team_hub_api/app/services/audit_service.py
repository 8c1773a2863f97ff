"""
Audit service for recording and querying portal actions.

Every mutating service call records who did what to which object in
the ``audit_logs`` table.  Automation runs are recorded the same way
under the ``automation`` actor, which is how the automation status
reports the last sweep and snapshot times.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from team_hub_api.app.core.db import get_connection

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        actor: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
        team_id: Optional[int] = None,
    ) -> None:
        """Insert a new audit record.

        A failure to write the audit record is logged and swallowed:
        auditing must never roll back or fail the action it describes.

        Parameters
        ----------
        actor : Optional[str]
            Subject of the principal performing the action.
        action : str
            Short verb, e.g. ``"create"``, ``"update"``, ``"stale_sweep"``.
        object_type : str
            Type of object affected, e.g. ``"link"`` or ``"turnover"``.
        object_id : Optional[int]
            Primary key of the affected object, if applicable.
        details : Optional[dict]
            Additional structured data, stored as JSON.
        team_id : Optional[int]
            Team the object belongs to, if any.
        """
        try:
            conn = get_connection()
            try:
                conn.execute(
                    """
                    INSERT INTO audit_logs (actor, team_id, action, object_type, object_id, details)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        actor,
                        team_id,
                        action,
                        object_type,
                        object_id,
                        json.dumps(details, default=str) if details else None,
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Failed to write audit record %s %s/%s", action, object_type, object_id)

    @classmethod
    async def list_logs(
        cls,
        actor: Optional[str] = None,
        team_id: Optional[int] = None,
        object_type: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit records with optional filters, newest first.

        Date filters accept ``YYYY-MM-DD`` (or full timestamp) strings
        and apply to the ``timestamp`` column.
        """
        conn = get_connection()
        try:
            where_clauses: List[str] = []
            params: List[Any] = []
            if actor:
                where_clauses.append("actor = ?")
                params.append(actor)
            if team_id is not None:
                where_clauses.append("team_id = ?")
                params.append(team_id)
            if object_type:
                where_clauses.append("object_type = ?")
                params.append(object_type)
            if action:
                where_clauses.append("action = ?")
                params.append(action)
            if start_date:
                where_clauses.append("timestamp >= ?")
                params.append(start_date)
            if end_date:
                where_clauses.append("timestamp <= ?")
                params.append(end_date)
            query = "SELECT id, actor, team_id, action, object_type, object_id, timestamp, details FROM audit_logs"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = conn.execute(query, tuple(params)).fetchall()
            return [cls._row_to_dict(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def last_action_time(
        cls, action: str, team_id: Optional[int] = None
    ) -> Optional[str]:
        """Return the timestamp of the most recent ``action`` (optionally for a team)."""
        conn = get_connection()
        try:
            if team_id is None:
                row = conn.execute(
                    "SELECT MAX(timestamp) AS ts FROM audit_logs WHERE action = ?",
                    (action,),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT MAX(timestamp) AS ts FROM audit_logs WHERE action = ? AND (team_id = ? OR team_id IS NULL)",
                    (action, team_id),
                ).fetchone()
            return row["ts"] if row else None
        finally:
            conn.close()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        details_data = None
        if row["details"]:
            try:
                details_data = json.loads(row["details"])
            except json.JSONDecodeError:
                details_data = row["details"]
        return {
            "id": row["id"],
            "actor": row["actor"],
            "team_id": row["team_id"],
            "action": row["action"],
            "object_type": row["object_type"],
            "object_id": row["object_id"],
            "timestamp": row["timestamp"],
            "details": details_data,
        }
