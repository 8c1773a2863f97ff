"""
Service layer for team registration requests.

Anyone authenticated may ask for a new team by naming it and the two
directory groups that will govern it.  Portal administrators approve
or reject pending requests; approval creates the team in the same
transaction as the status change so a request can never be marked
approved without its team (or vice versa).
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.team import (
    NameAvailability,
    RegistrationCreate,
    RegistrationRead,
    RegistrationReview,
    RegistrationStats,
)
from team_hub_api.app.services.audit_service import AuditService
from team_hub_api.app.services.team_service import TeamService

logger = logging.getLogger(__name__)


class RegistrationService:
    """Create, list and review team registration requests."""

    @classmethod
    async def check_team_name(cls, name: str) -> NameAvailability:
        """Tell whether ``name`` can be requested.

        Returns type ``error`` when a team already has the name,
        ``warning`` when a request with that name exists and
        ``success`` otherwise.
        """
        name = name.strip()
        if not name:
            return NameAvailability(available=False, type="error", message="Team name is required")
        if await TeamService.get_team_by_name(name):
            return NameAvailability(available=False, type="error", message="A team with this name already exists")
        conn = get_connection()
        try:
            request = conn.execute(
                "SELECT status FROM team_registration_requests WHERE team_name = ?",
                (name,),
            ).fetchone()
            if request:
                return NameAvailability(
                    available=False,
                    type="warning",
                    message=f"A registration request for this name is already {request['status']}",
                )
            return NameAvailability(available=True, type="success", message="Team name is available")
        finally:
            conn.close()

    @classmethod
    async def create_request(cls, data: RegistrationCreate, principal: Principal) -> RegistrationRead:
        name = data.team_name.strip()
        conn = get_connection()
        try:
            if conn.execute("SELECT 1 FROM teams WHERE name = ?", (name,)).fetchone():
                raise ConflictError("A team with this name already exists")
            if conn.execute(
                "SELECT 1 FROM team_registration_requests WHERE team_name = ?", (name,)
            ).fetchone():
                raise ConflictError("A registration request for this team name already exists")
            now = format_timestamp(utc_now())
            cursor = conn.execute(
                """
                INSERT INTO team_registration_requests
                    (team_name, description, user_group, admin_group, contact_name, contact_email,
                     status, requested_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?)
                """,
                (
                    name,
                    data.description,
                    data.user_group.strip(),
                    data.admin_group.strip(),
                    data.contact_name,
                    data.contact_email,
                    principal.subject,
                    now,
                    now,
                ),
            )
            request_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Registration request %s for team %r submitted by %s", request_id, name, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="team_registration",
            object_id=request_id,
            details={"team_name": name},
        )
        return await cls.get_request(request_id)

    @classmethod
    async def get_request(cls, request_id: int) -> RegistrationRead:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM team_registration_requests WHERE id = ?", (request_id,)
            ).fetchone()
            if not row:
                raise NotFoundError("Registration request not found")
            return cls._row_to_request(row)
        finally:
            conn.close()

    @classmethod
    async def list_requests(
        cls,
        status: Optional[str] = None,
        requested_by: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RegistrationRead]:
        conn = get_connection()
        try:
            where: List[str] = []
            params: List[Any] = []
            if status:
                where.append("status = ?")
                params.append(status)
            if requested_by:
                where.append("requested_by = ?")
                params.append(requested_by)
            query = "SELECT * FROM team_registration_requests"
            if where:
                query += " WHERE " + " AND ".join(where)
            query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = conn.execute(query, tuple(params)).fetchall()
            return [cls._row_to_request(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def review_request(
        cls, request_id: int, review: RegistrationReview, principal: Principal
    ) -> RegistrationRead:
        """Approve or reject a pending request.

        Raises
        ------
        NotFoundError
            If the request does not exist.
        ConflictError
            If the request was already reviewed, or (on approval) a team
            with the requested name appeared in the meantime.
        """
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM team_registration_requests WHERE id = ?", (request_id,)
            ).fetchone()
            if not row:
                raise NotFoundError("Registration request not found")
            if row["status"] != "pending":
                raise ConflictError(f"Registration request has already been {row['status']}")

            team_id = None
            if review.action == "approve":
                try:
                    cursor = conn.execute(
                        """
                        INSERT INTO teams
                            (name, description, user_group, admin_group, contact_name, contact_email,
                             is_active, created_by, updated_by, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?, ?)
                        """,
                        (
                            row["team_name"],
                            row["description"],
                            row["user_group"],
                            row["admin_group"],
                            row["contact_name"],
                            row["contact_email"],
                            principal.subject,
                            principal.subject,
                            now,
                            now,
                        ),
                    )
                except sqlite3.IntegrityError as exc:
                    conn.rollback()
                    raise ConflictError("A team with this name already exists") from exc
                team_id = cursor.lastrowid
            new_status = "approved" if review.action == "approve" else "rejected"
            conn.execute(
                """
                UPDATE team_registration_requests
                SET status = ?, reviewed_by = ?, reviewed_at = ?, review_comments = ?,
                    team_id = ?, updated_at = ?
                WHERE id = ?
                """,
                (new_status, principal.subject, now, review.comments, team_id, now, request_id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Registration request %s %s by %s", request_id, new_status, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action=review.action,
            object_type="team_registration",
            object_id=request_id,
            details={"team_id": team_id, "comments": review.comments},
            team_id=team_id,
        )
        return await cls.get_request(request_id)

    @classmethod
    async def dashboard_stats(cls) -> RegistrationStats:
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS cnt FROM team_registration_requests GROUP BY status"
            ).fetchall()
        finally:
            conn.close()
        counts: Dict[str, int] = {row["status"]: row["cnt"] for row in rows}
        recent = await cls.list_requests(limit=5)
        return RegistrationStats(
            pending=counts.get("pending", 0),
            approved=counts.get("approved", 0),
            rejected=counts.get("rejected", 0),
            total=sum(counts.values()),
            recent=recent,
        )

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> RegistrationRead:
        return RegistrationRead(**dict(row))
