"""
Service layer for turnover drafts.

A team keeps at most one open draft per (application, sub-application)
scope.  Saving a draft for a scope that already has one overwrites
it.  Publishing turns the draft into an active turnover with its
entries and marks the draft ``completed``.
"""

import json
import logging
import sqlite3
from typing import List, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.turnover import DraftRead, DraftSave, TurnoverWithEntries
from team_hub_api.app.services.audit_service import AuditService
from team_hub_api.app.services.turnover_service import TurnoverService, scope_clause

logger = logging.getLogger(__name__)


class DraftService:
    """Save, load, publish and discard turnover drafts."""

    @classmethod
    async def save_draft(cls, team_id: int, data: DraftSave, principal: Principal) -> DraftRead:
        now = format_timestamp(utc_now())
        entries = json.dumps([entry.model_dump() for entry in data.entries])
        scope_sql, scope_params = scope_clause("d", data.application_id, data.sub_application_id)
        conn = get_connection()
        try:
            TurnoverService.check_scope(conn, team_id, data.application_id, data.sub_application_id)
            existing = conn.execute(
                f"SELECT d.id FROM turnover_drafts d WHERE d.team_id = ? AND {scope_sql} AND d.status = 'draft'",
                (team_id, *scope_params),
            ).fetchone()
            if existing:
                draft_id = existing["id"]
                conn.execute(
                    """
                    UPDATE turnover_drafts
                    SET handover_from = ?, handover_to = ?, entries = ?, updated_by = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (data.handover_from, data.handover_to, entries, principal.subject, now, draft_id),
                )
            else:
                cursor = conn.execute(
                    """
                    INSERT INTO turnover_drafts
                        (team_id, application_id, sub_application_id, handover_from, handover_to, entries,
                         status, created_by, updated_by, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, 'draft', ?, ?, ?, ?)
                    """,
                    (
                        team_id,
                        data.application_id,
                        data.sub_application_id,
                        data.handover_from,
                        data.handover_to,
                        entries,
                        principal.subject,
                        principal.subject,
                        now,
                        now,
                    ),
                )
                draft_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Draft %s saved for team %s (%s entries)", draft_id, team_id, len(data.entries))
        return await cls.get_draft(team_id, draft_id)

    @classmethod
    async def get_draft(cls, team_id: int, draft_id: int) -> DraftRead:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM turnover_drafts WHERE id = ? AND team_id = ?", (draft_id, team_id)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Draft not found")
        return cls._row_to_draft(row)

    @classmethod
    async def get_draft_for_scope(
        cls, team_id: int, application_id: Optional[int] = None, sub_application_id: Optional[int] = None
    ) -> Optional[DraftRead]:
        """Return the open draft for the scope, or ``None``."""
        scope_sql, scope_params = scope_clause("d", application_id, sub_application_id)
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT d.* FROM turnover_drafts d WHERE d.team_id = ? AND {scope_sql} AND d.status = 'draft'",
                (team_id, *scope_params),
            ).fetchone()
        finally:
            conn.close()
        return cls._row_to_draft(row) if row else None

    @classmethod
    async def list_drafts(cls, team_id: int, status: Optional[str] = "draft") -> List[DraftRead]:
        query = "SELECT * FROM turnover_drafts WHERE team_id = ?"
        params: list = [team_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY updated_at DESC, id DESC"
        conn = get_connection()
        try:
            return [cls._row_to_draft(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def delete_draft(cls, team_id: int, draft_id: int, principal: Principal) -> None:
        await cls.get_draft(team_id, draft_id)
        conn = get_connection()
        try:
            conn.execute("DELETE FROM turnover_drafts WHERE id = ?", (draft_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Draft %s deleted by %s", draft_id, principal.subject)

    @classmethod
    async def publish_draft(cls, team_id: int, draft_id: int, principal: Principal) -> TurnoverWithEntries:
        """Create an active turnover (with entries) from the draft and close the draft.

        Raises
        ------
        ValueError
            If the draft was already published or lacks handover names.
        """
        draft = await cls.get_draft(team_id, draft_id)
        if draft.status != "draft":
            raise ValueError("Draft has already been published")
        if not draft.handover_from or not draft.handover_to:
            raise ValueError("handover_from and handover_to are required to publish a draft")

        now = utc_now()
        conn = get_connection()
        try:
            TurnoverService.check_scope(conn, team_id, draft.application_id, draft.sub_application_id)
            cursor = conn.execute(
                """
                INSERT INTO turnovers
                    (team_id, application_id, sub_application_id, handover_from, handover_to, status,
                     turnover_date, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 'active', ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    draft.application_id,
                    draft.sub_application_id,
                    draft.handover_from.strip(),
                    draft.handover_to.strip(),
                    format_timestamp(now),
                    principal.subject,
                    principal.subject,
                    format_timestamp(now),
                    format_timestamp(now),
                ),
            )
            turnover_id = cursor.lastrowid
            for entry in draft.entries:
                TurnoverService.insert_entry(conn, turnover_id, entry, principal, now)
            conn.execute(
                "UPDATE turnover_drafts SET status = 'completed', turnover_id = ?, updated_by = ?, updated_at = ? WHERE id = ?",
                (turnover_id, principal.subject, format_timestamp(now), draft_id),
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Draft %s published as turnover %s", draft_id, turnover_id)
        await AuditService.log(
            actor=principal.subject,
            action="publish",
            object_type="turnover_draft",
            object_id=draft_id,
            details={"turnover_id": turnover_id, "entries": len(draft.entries)},
            team_id=team_id,
        )
        return await TurnoverService.get_turnover(team_id, turnover_id)

    @staticmethod
    def _row_to_draft(row: sqlite3.Row) -> DraftRead:
        data = dict(row)
        data["entries"] = json.loads(data["entries"] or "[]")
        return DraftRead(**data)
