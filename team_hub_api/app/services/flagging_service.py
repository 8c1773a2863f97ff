"""
User-driven priority changes on turnover entries.

Unlike the automated staleness sweep, a user may move an entry from
any priority to any other one, including back to ``normal``.  Each
change bumps ``updated_at`` because it is user activity.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.turnover import FlagCounts, FlaggedEntryRead
from team_hub_api.app.services.audit_service import AuditService
from team_hub_api.app.services.turnover_service import ENTRY_WITH_SCOPE_SELECT, TurnoverService

logger = logging.getLogger(__name__)


class FlaggingService:
    """Flag, unflag and list flagged turnover entries."""

    @classmethod
    async def flag_entry(
        cls,
        team_id: int,
        entry_id: int,
        priority: str,
        principal: Principal,
        comment: Optional[str] = None,
    ) -> FlaggedEntryRead:
        """Set an entry's priority.  A comment is appended to the entry's comments."""
        entry = await TurnoverService.get_entry(team_id, entry_id)
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            if comment:
                line = f"[{now}] {principal.display_name}: {comment}"
                comments = f"{entry.comments}\n{line}" if entry.comments else line
                conn.execute(
                    "UPDATE turnover_entries SET priority = ?, comments = ?, updated_by = ?, updated_at = ? WHERE id = ?",
                    (priority, comments, principal.subject, now, entry_id),
                )
            else:
                conn.execute(
                    "UPDATE turnover_entries SET priority = ?, updated_by = ?, updated_at = ? WHERE id = ?",
                    (priority, principal.subject, now, entry_id),
                )
            conn.commit()
        finally:
            conn.close()
        logger.info("Entry %s priority %s -> %s by %s", entry_id, entry.priority, priority, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action="flag" if priority != "normal" else "unflag",
            object_type="turnover_entry",
            object_id=entry_id,
            details={"previous_priority": entry.priority, "priority": priority},
            team_id=team_id,
        )
        return await TurnoverService.get_entry(team_id, entry_id)

    @classmethod
    async def unflag_entry(cls, team_id: int, entry_id: int, principal: Principal) -> FlaggedEntryRead:
        return await cls.flag_entry(team_id, entry_id, "normal", principal)

    @classmethod
    async def bulk_flag_entries(
        cls, team_id: int, entry_ids: List[int], priority: str, principal: Principal
    ) -> int:
        """Set ``priority`` on every listed entry of the team in one transaction.

        Ids that do not belong to the team are ignored.  Returns the
        number of entries updated.
        """
        ids = sorted(set(entry_ids))
        placeholders = ", ".join("?" for _ in ids)
        conn = get_connection()
        try:
            cursor = conn.execute(
                f"""
                UPDATE turnover_entries
                SET priority = ?, updated_by = ?, updated_at = ?
                WHERE id IN ({placeholders})
                  AND turnover_id IN (SELECT id FROM turnovers WHERE team_id = ?)
                """,
                (priority, principal.subject, format_timestamp(utc_now()), *ids, team_id),
            )
            updated = cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        logger.info("Bulk flagged %s entries as %s in team %s", updated, priority, team_id)
        await AuditService.log(
            actor=principal.subject,
            action="bulk_flag",
            object_type="turnover_entry",
            details={"entry_ids": ids, "priority": priority, "updated": updated},
            team_id=team_id,
        )
        return updated

    @classmethod
    async def list_flagged_entries(
        cls,
        team_id: int,
        priority: Optional[str] = None,
        application_id: Optional[int] = None,
        sub_application_id: Optional[int] = None,
    ) -> List[FlaggedEntryRead]:
        """Entries above ``normal`` priority, least recently touched first."""
        where = ["t.team_id = ?", "e.priority != 'normal'"]
        params: list = [team_id]
        if priority:
            where.append("e.priority = ?")
            params.append(priority)
        if application_id is not None:
            where.append("t.application_id = ?")
            params.append(application_id)
        if sub_application_id is not None:
            where.append("t.sub_application_id = ?")
            params.append(sub_application_id)
        conn = get_connection()
        try:
            rows = conn.execute(
                ENTRY_WITH_SCOPE_SELECT + " WHERE " + " AND ".join(where) + " ORDER BY e.updated_at, e.id",
                tuple(params),
            ).fetchall()
            return [FlaggedEntryRead(**dict(row)) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_flag_counts(cls, team_id: int) -> FlagCounts:
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT e.priority, COUNT(*) AS cnt
                FROM turnover_entries e JOIN turnovers t ON t.id = e.turnover_id
                WHERE t.team_id = ? AND e.priority != 'normal'
                GROUP BY e.priority
                """,
                (team_id,),
            ).fetchall()
        finally:
            conn.close()
        counts = {row["priority"]: row["cnt"] for row in rows}
        return FlagCounts(**counts, total=sum(counts.values()))

    @classmethod
    async def get_flagging_history(cls, team_id: int, entry_id: int) -> dict:
        """Current state of the entry plus every recorded priority change, newest first."""
        entry = await TurnoverService.get_entry(team_id, entry_id)
        history = await AuditService.list_logs(team_id=team_id, object_type="turnover_entry", limit=1000)
        changes = [
            log
            for log in history
            if log["object_id"] == entry_id and log["action"] in {"flag", "unflag", "stale_flag"}
        ]
        return {"entry": entry, "history": changes}
