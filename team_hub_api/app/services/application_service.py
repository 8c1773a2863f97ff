"""
Service layer for team applications.

An application is added by asset id: the service fetches the record
from the central inventory, maps the ownership chain onto flat
columns and stores it together with the team-maintained contact
details.  ``sync_application`` refreshes the inventory-owned columns
later.  Deleting an application only marks it ``deleted`` so that
turnovers and links referring to it keep their history.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from team_hub_api.app.core.central_api import CentralApiClient, get_central_api_client
from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import CentralApiError, ConflictError, NotFoundError
from team_hub_api.app.schemas.application import (
    ApplicationCreate,
    ApplicationRead,
    ApplicationUpdate,
    CentralApplication,
)
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Inventory ownership role -> column prefix.  Each role fills
# ``<prefix>_name``, ``<prefix>_email`` and ``<prefix>_band``.
OWNER_ROLE_COLUMNS = {
    "applicationowner": "application_owner",
    "applicationManager": "application_manager",
    "applicationOwnerLeader1": "application_owner_leader1",
    "applicationOwnerLeader2": "application_owner_leader2",
    "ownerSVp": "owner_svp",
    "businessOwner": "business_owner",
    "businessOwnerLeader1": "business_owner_leader1",
    "productionSupportOwner": "production_support_owner",
    "productionSupportOwnerLeader1": "production_support_owner_leader1",
    "pmo": "pmo",
    "unitCIo": "unit_cio",
}


def map_central_application(central: CentralApplication) -> Dict[str, Any]:
    """Flatten an inventory record into ``applications`` columns.

    The VP is the production support owner's leader and the director
    is the production support owner.  The tier is the business impact
    assessment rating.
    """
    ownership = central.ownershipInfo
    columns: Dict[str, Any] = {
        "asset_id": central.assetId,
        "application_name": central.name,
        "life_cycle_status": central.lifeCycleStatus,
        "tier": central.risk.bia if central.risk else None,
    }
    for role, prefix in OWNER_ROLE_COLUMNS.items():
        owner = getattr(ownership, role) if ownership else None
        columns[f"{prefix}_name"] = owner.fullName if owner else None
        columns[f"{prefix}_email"] = owner.email if owner else None
        columns[f"{prefix}_band"] = owner.band if owner else None
    columns["vp_name"] = columns["production_support_owner_leader1_name"]
    columns["vp_email"] = columns["production_support_owner_leader1_email"]
    columns["director_name"] = columns["production_support_owner_name"]
    columns["director_email"] = columns["production_support_owner_email"]
    return columns


class ApplicationService:
    """CRUD and inventory synchronisation for applications."""

    @classmethod
    async def add_from_central_api(
        cls,
        team_id: int,
        data: ApplicationCreate,
        principal: Principal,
        client: Optional[CentralApiClient] = None,
    ) -> ApplicationRead:
        """Register an application for a team.

        Parameters
        ----------
        team_id : int
            Owning team.
        data : ApplicationCreate
            Asset id, TLA and team-maintained contact details.
        principal : Principal
            Caller, recorded as creator.
        client : Optional[CentralApiClient]
            Inventory client; defaults to one built from settings.

        Raises
        ------
        ConflictError
            If an active application with the same TLA exists in the team.
        CentralApiError
            If the inventory lookup fails.
        """
        tla = data.tla.strip().upper()
        if await cls._tla_taken(team_id, tla):
            raise ConflictError(f"Application with TLA {tla} already exists in this team")

        client = client or get_central_api_client()
        central = await run_in_threadpool(client.fetch_application, data.asset_id)

        now = format_timestamp(utc_now())
        columns = map_central_application(central)
        columns.update(
            {
                "team_id": team_id,
                "tla": tla,
                "escalation_email": data.escalation_email,
                "contact_email": data.contact_email,
                "team_email": data.team_email,
                "snow_group": data.snow_group,
                "slack_channel": data.slack_channel,
                "description": data.description,
                "status": "active",
                "last_central_api_sync": now,
                "central_api_sync_status": "success",
                "created_by": principal.subject,
                "updated_by": principal.subject,
                "created_at": now,
                "updated_at": now,
            }
        )
        names = list(columns.keys())
        conn = get_connection()
        try:
            cursor = conn.execute(
                f"INSERT INTO applications ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
                tuple(columns.values()),
            )
            app_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Application %s (%s) added to team %s", app_id, tla, team_id)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="application",
            object_id=app_id,
            details={"asset_id": data.asset_id, "tla": tla},
            team_id=team_id,
        )
        return await cls.get_application(app_id)

    @classmethod
    async def list_team_applications(cls, team_id: int) -> List[ApplicationRead]:
        """Return the team's active applications, newest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM applications WHERE team_id = ? AND status = 'active' ORDER BY created_at DESC, id DESC",
                (team_id,),
            ).fetchall()
            return [cls._row_to_application(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_application(cls, app_id: int, team_id: Optional[int] = None) -> ApplicationRead:
        """Return one application.  With ``team_id``, applications of other teams are not found."""
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM applications WHERE id = ?", (app_id,)).fetchone()
        finally:
            conn.close()
        if not row or (team_id is not None and row["team_id"] != team_id):
            raise NotFoundError("Application not found")
        return cls._row_to_application(row)

    @classmethod
    async def update_application(
        cls, app_id: int, data: ApplicationUpdate, principal: Principal, team_id: Optional[int] = None
    ) -> ApplicationRead:
        current = await cls.get_application(app_id, team_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("tla") is None:
            updates.pop("tla", None)
        else:
            updates["tla"] = updates["tla"].strip().upper()
            if updates["tla"] != current.tla and await cls._tla_taken(current.team_id, updates["tla"], exclude_id=app_id):
                raise ConflictError(f"Application with TLA {updates['tla']} already exists in this team")
        if not updates:
            return current
        updates["updated_by"] = principal.subject
        updates["updated_at"] = format_timestamp(utc_now())
        assignments = ", ".join(f"{field} = ?" for field in updates)
        params = list(updates.values())
        conn = get_connection()
        try:
            conn.execute(f"UPDATE applications SET {assignments} WHERE id = ?", (*params, app_id))
            conn.commit()
        finally:
            conn.close()
        logger.info("Application %s updated by %s", app_id, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action="update",
            object_type="application",
            object_id=app_id,
            details={k: v for k, v in updates.items() if k not in {"updated_by", "updated_at"}},
            team_id=current.team_id,
        )
        return await cls.get_application(app_id)

    @classmethod
    async def delete_application(cls, app_id: int, principal: Principal, team_id: Optional[int] = None) -> None:
        """Soft delete: the row stays with status ``deleted``."""
        current = await cls.get_application(app_id, team_id)
        conn = get_connection()
        try:
            conn.execute(
                "UPDATE applications SET status = 'deleted', updated_by = ?, updated_at = ? WHERE id = ?",
                (principal.subject, format_timestamp(utc_now()), app_id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Application %s deleted by %s", app_id, principal.subject)
        await AuditService.log(
            actor=principal.subject,
            action="delete",
            object_type="application",
            object_id=app_id,
            team_id=current.team_id,
        )

    @classmethod
    async def sync_application(
        cls,
        app_id: int,
        principal: Principal,
        team_id: Optional[int] = None,
        client: Optional[CentralApiClient] = None,
    ) -> ApplicationRead:
        """Refresh inventory-owned columns from the central API.

        On failure the row is marked ``central_api_sync_status =
        'failed'`` and the ``CentralApiError`` is re-raised.
        """
        current = await cls.get_application(app_id, team_id)
        client = client or get_central_api_client()
        now = format_timestamp(utc_now())
        try:
            central = await run_in_threadpool(client.fetch_application, current.asset_id)
        except CentralApiError:
            conn = get_connection()
            try:
                conn.execute(
                    "UPDATE applications SET central_api_sync_status = 'failed', updated_at = ? WHERE id = ?",
                    (now, app_id),
                )
                conn.commit()
            finally:
                conn.close()
            logger.warning("Central API sync failed for application %s", app_id)
            raise

        columns = map_central_application(central)
        columns.update(
            {
                "last_central_api_sync": now,
                "central_api_sync_status": "success",
                "updated_by": principal.subject,
                "updated_at": now,
            }
        )
        assignments = ", ".join(f"{field} = ?" for field in columns)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE applications SET {assignments} WHERE id = ?", (*columns.values(), app_id))
            conn.commit()
        finally:
            conn.close()
        logger.info("Application %s synced from central API", app_id)
        await AuditService.log(
            actor=principal.subject,
            action="sync",
            object_type="application",
            object_id=app_id,
            team_id=current.team_id,
        )
        return await cls.get_application(app_id)

    @staticmethod
    async def _tla_taken(team_id: int, tla: str, exclude_id: Optional[int] = None) -> bool:
        conn = get_connection()
        try:
            query = "SELECT 1 FROM applications WHERE team_id = ? AND tla = ? AND status = 'active'"
            params: List[Any] = [team_id, tla]
            if exclude_id is not None:
                query += " AND id != ?"
                params.append(exclude_id)
            return conn.execute(query, tuple(params)).fetchone() is not None
        finally:
            conn.close()

    @staticmethod
    def _row_to_application(row: sqlite3.Row) -> ApplicationRead:
        return ApplicationRead(**dict(row))
