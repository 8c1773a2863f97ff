"""
Automation jobs for turnovers: the staleness sweep and daily snapshots.

The staleness sweep escalates the priority of entries nobody has
touched for a while:

* entries updated at or before ``now - hours_threshold`` are
  candidates; entries already at ``long_pending`` are skipped;
* ``hours = floor((now - updated_at) / 1h)``; 72 or more gives
  ``long_pending``, 48 or more ``needs_action``, anything else
  ``flagged``;
* the sweep only ever moves an entry to a more severe priority, and a
  changed entry gets ``updated_at = now`` (restarting its clock) and
  ``last_classified_at = now``.

Because of the ``updated_at`` bump, running the sweep twice in a row
changes nothing the second time.  A failure writing one entry is
recorded in the result and the sweep carries on with the rest.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from team_hub_api.app.core.config import settings
from team_hub_api.app.core.db import get_connection, parse_timestamp, utc_now
from team_hub_api.app.core.exceptions import NotFoundError
from team_hub_api.app.schemas.auth import AUTOMATION_SUBJECT, Principal
from team_hub_api.app.schemas.turnover import (
    PRIORITY_ORDER,
    AutomationRunResult,
    AutomationSchedule,
    AutomationStatus,
    SnapshotRunResult,
    SweepChange,
    SweepFailure,
    SweepResult,
)
from team_hub_api.app.services.audit_service import AuditService
from team_hub_api.app.services.tool_settings_service import ToolSettingsService
from team_hub_api.app.services.turnover_service import TurnoverService

logger = logging.getLogger(__name__)

LONG_PENDING_HOURS = 72
NEEDS_ACTION_HOURS = 48

_SEVERITY: Dict[str, int] = {priority: rank for rank, priority in enumerate(PRIORITY_ORDER)}

AUTOMATION_PRINCIPAL = Principal(subject=AUTOMATION_SUBJECT, is_portal_admin=True)


def hours_since(updated_at: datetime, now: datetime) -> int:
    """Whole hours elapsed between ``updated_at`` and ``now`` (floored)."""
    return int((now - updated_at).total_seconds() // 3600)


def classify_staleness(updated_at: datetime, now: datetime) -> str:
    """Return the priority bucket for an entry last updated at ``updated_at``.

    Thresholds are inclusive lower bounds checked from the most severe
    down: ``long_pending`` at 72h, ``needs_action`` at 48h, otherwise
    ``flagged``.
    """
    hours = hours_since(updated_at, now)
    if hours >= LONG_PENDING_HOURS:
        return "long_pending"
    if hours >= NEEDS_ACTION_HOURS:
        return "needs_action"
    return "flagged"


def is_escalation(current: str, proposed: str) -> bool:
    """``True`` if ``proposed`` is strictly more severe than ``current``."""
    return _SEVERITY.get(proposed, 0) > _SEVERITY.get(current, 0)


class AutomationService:
    """Staleness sweep, snapshots and the automation schedule."""

    @classmethod
    async def run_sweep(
        cls,
        hours_threshold: Optional[int] = None,
        team_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """Escalate stale turnover entries.

        Parameters
        ----------
        hours_threshold : Optional[int]
            Minimum age in hours for an entry to be considered.
            Defaults to ``settings.stale_hours_threshold`` (24).
        team_id : Optional[int]
            Restrict the sweep to one team; ``None`` sweeps every
            active team.
        now : Optional[datetime]
            Reference time (naive UTC); defaults to the current time.

        Returns
        -------
        SweepResult
            ``flagged_count`` is the number of entries whose priority
            changed; ``failures`` lists entries that could not be
            written.
        """
        threshold = settings.stale_hours_threshold if hours_threshold is None else hours_threshold
        if threshold < 1:
            raise ValueError("hours_threshold must be at least 1")
        now = now or utc_now()
        cutoff = now - timedelta(hours=threshold)

        candidates = TurnoverService.list_entries_updated_before(cutoff, team_id=team_id)
        changes: List[SweepChange] = []
        failures: List[SweepFailure] = []
        for entry in candidates:
            current = entry["priority"]
            if current == "long_pending":
                continue
            updated_at = parse_timestamp(entry["updated_at"])
            if updated_at is None:
                continue
            proposed = classify_staleness(updated_at, now)
            if not is_escalation(current, proposed):
                continue
            try:
                TurnoverService.update_entry_priority(entry["id"], proposed, now)
            except (sqlite3.Error, NotFoundError) as exc:
                logger.warning("Staleness sweep could not update entry %s: %s", entry["id"], exc)
                failures.append(SweepFailure(entry_id=entry["id"], error=str(exc)))
                continue
            change = SweepChange(
                entry_id=entry["id"],
                previous_priority=current,
                new_priority=proposed,
                hours_since_update=hours_since(updated_at, now),
            )
            changes.append(change)
            await AuditService.log(
                actor=AUTOMATION_SUBJECT,
                action="stale_flag",
                object_type="turnover_entry",
                object_id=entry["id"],
                details=change.model_dump(),
                team_id=entry.get("team_id"),
            )

        if failures:
            logger.warning(
                "Staleness sweep finished with %s failures (%s entries escalated)", len(failures), len(changes)
            )
        else:
            logger.info("Staleness sweep escalated %s of %s candidate entries", len(changes), len(candidates))
        await AuditService.log(
            actor=AUTOMATION_SUBJECT,
            action="stale_sweep",
            object_type="automation",
            details={"threshold_hours": threshold, "flagged": len(changes), "failed": len(failures)},
            team_id=team_id,
        )
        message = f"Flagged {len(changes)} stale entries"
        if failures:
            message += f"; {len(failures)} entries could not be updated"
        return SweepResult(flagged_count=len(changes), failures=failures, changes=changes, message=message)

    @classmethod
    async def create_daily_snapshots(
        cls,
        team_id: int,
        principal: Principal = AUTOMATION_PRINCIPAL,
        application_id: Optional[int] = None,
        sub_application_id: Optional[int] = None,
        snapshot_date: Optional[datetime] = None,
    ) -> SnapshotRunResult:
        """Snapshot active turnovers of a team.

        With ``application_id`` a single snapshot of that scope is taken.
        Otherwise one snapshot is taken for every distinct
        (application, sub-application) scope that has active turnovers.
        """
        if application_id is not None or sub_application_id is not None:
            scopes = [(application_id, sub_application_id)]
        else:
            conn = get_connection()
            try:
                rows = conn.execute(
                    """
                    SELECT DISTINCT application_id, sub_application_id FROM turnovers
                    WHERE team_id = ? AND status = 'active'
                    ORDER BY application_id, sub_application_id
                    """,
                    (team_id,),
                ).fetchall()
            finally:
                conn.close()
            scopes = [(row["application_id"], row["sub_application_id"]) for row in rows]

        snapshot_ids: List[int] = []
        for app_id, sub_app_id in scopes:
            snapshot = await TurnoverService.create_snapshot(
                team_id,
                principal,
                application_id=app_id,
                sub_application_id=sub_app_id,
                snapshot_date=snapshot_date,
            )
            snapshot_ids.append(snapshot.id)
        await AuditService.log(
            actor=principal.subject,
            action="daily_snapshot",
            object_type="automation",
            details={"snapshot_ids": snapshot_ids},
            team_id=team_id,
        )
        logger.info("Created %s snapshots for team %s", len(snapshot_ids), team_id)
        return SnapshotRunResult(
            snapshot_count=len(snapshot_ids),
            snapshot_ids=snapshot_ids,
            message=f"Created {len(snapshot_ids)} snapshots",
        )

    @classmethod
    async def get_automation_status(cls, team_id: int) -> AutomationStatus:
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT e.priority, COUNT(*) AS cnt
                FROM turnover_entries e JOIN turnovers t ON t.id = e.turnover_id
                WHERE t.team_id = ?
                GROUP BY e.priority
                """,
                (team_id,),
            ).fetchall()
        finally:
            conn.close()
        counts = {priority: 0 for priority in PRIORITY_ORDER}
        counts.update({row["priority"]: row["cnt"] for row in rows})
        return AutomationStatus(
            team_id=team_id,
            priority_counts=counts,
            recent_snapshots=await TurnoverService.list_snapshots(team_id, limit=7),
            last_sweep_at=await AuditService.last_action_time("stale_sweep", team_id),
            last_snapshot_at=await AuditService.last_action_time("daily_snapshot", team_id),
        )

    @classmethod
    async def run_all(
        cls, team_id: int, principal: Principal = AUTOMATION_PRINCIPAL, now: Optional[datetime] = None
    ) -> AutomationRunResult:
        """Run the team's sweep with the default threshold, then take its daily snapshots."""
        schedule = await cls.get_schedule(team_id)
        if schedule.enable_stale_flagging:
            sweep = await cls.run_sweep(team_id=team_id, now=now)
        else:
            sweep = SweepResult(flagged_count=0, message="Stale flagging is disabled")
        if schedule.enable_daily_snapshots:
            snapshots = await cls.create_daily_snapshots(team_id, principal)
        else:
            snapshots = SnapshotRunResult(snapshot_count=0, snapshot_ids=[], message="Daily snapshots are disabled")
        return AutomationRunResult(sweep=sweep, snapshots=snapshots)

    @classmethod
    async def get_schedule(cls, team_id: int) -> AutomationSchedule:
        effective = await ToolSettingsService.get_effective_settings("automation", team_id=team_id)
        return AutomationSchedule(**{k: v for k, v in effective["settings"].items() if k in AutomationSchedule.model_fields})

    @classmethod
    async def update_schedule(
        cls, team_id: int, schedule: AutomationSchedule, principal: Principal
    ) -> AutomationSchedule:
        await ToolSettingsService.update_settings("automation", schedule.model_dump(), principal, team_id=team_id)
        return await cls.get_schedule(team_id)
