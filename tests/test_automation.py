"""
Tests for the staleness sweep, daily snapshots and automation endpoints.
"""

import sqlite3
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from team_hub_api.app.core.db import format_timestamp, get_connection
from team_hub_api.app.schemas.turnover import AutomationSchedule, EntryCreate, TurnoverCreate
from team_hub_api.app.services.automation_service import (
    AutomationService,
    classify_staleness,
    hours_since,
    is_escalation,
)
from team_hub_api.app.services.turnover_service import TurnoverService

NOW = datetime(2024, 5, 1, 12, 0, 0)


async def create_entries(team_id, principal, priorities):
    turnover = await TurnoverService.create_turnover(
        team_id,
        TurnoverCreate(
            handover_from="Night shift",
            handover_to="Day shift",
            entries=[EntryCreate(entry_type="fyi", priority=p, fyi_info=f"item {i}") for i, p in enumerate(priorities)],
        ),
        principal,
    )
    return [entry.id for entry in turnover.entries]


def age_entry(entry_id, hours, now=NOW):
    conn = get_connection()
    try:
        conn.execute(
            "UPDATE turnover_entries SET updated_at = ? WHERE id = ?",
            (format_timestamp(now - timedelta(hours=hours)), entry_id),
        )
        conn.commit()
    finally:
        conn.close()


def read_entry(entry_id):
    conn = get_connection()
    try:
        return dict(conn.execute("SELECT * FROM turnover_entries WHERE id = ?", (entry_id,)).fetchone())
    finally:
        conn.close()


class TestClassification:
    """Pure staleness helpers"""

    def test_hours_are_floored(self):
        assert hours_since(NOW - timedelta(hours=47, minutes=59), NOW) == 47

    @pytest.mark.parametrize(
        "hours,expected",
        [(24, "flagged"), (47, "flagged"), (48, "needs_action"), (71, "needs_action"), (72, "long_pending"), (500, "long_pending")],
    )
    def test_buckets(self, hours, expected):
        assert classify_staleness(NOW - timedelta(hours=hours), NOW) == expected

    def test_escalation_is_strict(self):
        assert is_escalation("normal", "flagged")
        assert is_escalation("important", "flagged")
        assert is_escalation("flagged", "needs_action")
        assert not is_escalation("needs_action", "flagged")
        assert not is_escalation("flagged", "flagged")


class TestStalenessSweep:
    """Sweep behaviour against the database"""

    @pytest.mark.asyncio
    async def test_escalates_by_age(self, team_id, team_user):
        ids = await create_entries(team_id, team_user, ["normal", "normal", "normal", "normal"])
        for entry_id, hours in zip(ids, [30, 50, 80, 10]):
            age_entry(entry_id, hours)

        result = await AutomationService.run_sweep(now=NOW)

        assert result.flagged_count == 3
        assert result.failures == []
        assert [read_entry(i)["priority"] for i in ids] == ["flagged", "needs_action", "long_pending", "normal"]

    @pytest.mark.asyncio
    async def test_changed_entries_restart_their_clock(self, team_id, team_user):
        (entry_id,) = await create_entries(team_id, team_user, ["normal"])
        age_entry(entry_id, 30)

        await AutomationService.run_sweep(now=NOW)

        row = read_entry(entry_id)
        assert row["updated_at"] == format_timestamp(NOW)
        assert row["last_classified_at"] == format_timestamp(NOW)

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, team_id, team_user):
        ids = await create_entries(team_id, team_user, ["normal", "important"])
        age_entry(ids[0], 30)
        age_entry(ids[1], 60)

        first = await AutomationService.run_sweep(now=NOW)
        second = await AutomationService.run_sweep(now=NOW)

        assert first.flagged_count == 2
        assert second.flagged_count == 0

    @pytest.mark.asyncio
    async def test_long_pending_entries_are_untouched(self, team_id, team_user):
        (entry_id,) = await create_entries(team_id, team_user, ["long_pending"])
        age_entry(entry_id, 200)
        before = read_entry(entry_id)

        result = await AutomationService.run_sweep(now=NOW)

        assert result.flagged_count == 0
        assert read_entry(entry_id) == before

    @pytest.mark.asyncio
    async def test_never_downgrades(self, team_id, team_user):
        (entry_id,) = await create_entries(team_id, team_user, ["needs_action"])
        age_entry(entry_id, 30)
        before = read_entry(entry_id)

        result = await AutomationService.run_sweep(now=NOW)

        assert result.flagged_count == 0
        assert read_entry(entry_id) == before

    @pytest.mark.asyncio
    async def test_threshold_boundary_is_inclusive(self, team_id, team_user):
        ids = await create_entries(team_id, team_user, ["normal", "normal"])
        age_entry(ids[0], 24)
        conn = get_connection()
        try:
            conn.execute(
                "UPDATE turnover_entries SET updated_at = ? WHERE id = ?",
                (format_timestamp(NOW - timedelta(hours=23, minutes=59, seconds=59)), ids[1]),
            )
            conn.commit()
        finally:
            conn.close()

        result = await AutomationService.run_sweep(hours_threshold=24, now=NOW)

        assert [change.entry_id for change in result.changes] == [ids[0]]

    @pytest.mark.asyncio
    async def test_custom_threshold(self, team_id, team_user):
        (entry_id,) = await create_entries(team_id, team_user, ["normal"])
        age_entry(entry_id, 5)

        assert (await AutomationService.run_sweep(now=NOW)).flagged_count == 0
        assert (await AutomationService.run_sweep(hours_threshold=4, now=NOW)).flagged_count == 1
        assert read_entry(entry_id)["priority"] == "flagged"

    @pytest.mark.asyncio
    async def test_rejects_threshold_below_one(self):
        with pytest.raises(ValueError):
            await AutomationService.run_sweep(hours_threshold=0, now=NOW)

    @pytest.mark.asyncio
    async def test_team_scope(self, create_team, make_principal):
        payments = create_team("Payments SRE", "PAY_USERS", "PAY_ADMINS")
        cards = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        (pay_entry,) = await create_entries(payments, make_principal("a", ["PAY_USERS"]), ["normal"])
        (card_entry,) = await create_entries(cards, make_principal("b", ["CARD_USERS"]), ["normal"])
        age_entry(pay_entry, 30)
        age_entry(card_entry, 30)

        result = await AutomationService.run_sweep(team_id=payments, now=NOW)

        assert result.flagged_count == 1
        assert read_entry(pay_entry)["priority"] == "flagged"
        assert read_entry(card_entry)["priority"] == "normal"

    @pytest.mark.asyncio
    async def test_inactive_teams_are_skipped(self, create_team, make_principal):
        legacy = create_team("Legacy", "LEG_USERS", "LEG_ADMINS")
        (entry_id,) = await create_entries(legacy, make_principal("a", ["LEG_USERS"]), ["normal"])
        age_entry(entry_id, 30)
        conn = get_connection()
        try:
            conn.execute("UPDATE teams SET is_active = 0 WHERE id = ?", (legacy,))
            conn.commit()
        finally:
            conn.close()

        result = await AutomationService.run_sweep(now=NOW)

        assert result.flagged_count == 0

    @pytest.mark.asyncio
    async def test_failed_write_is_reported_and_sweep_continues(self, team_id, team_user):
        ids = await create_entries(team_id, team_user, ["normal", "normal", "normal"])
        for entry_id in ids:
            age_entry(entry_id, 30)
        original = TurnoverService.update_entry_priority

        def flaky_update(entry_id, priority, updated_at):
            if entry_id == ids[1]:
                raise sqlite3.OperationalError("database is locked")
            return original(entry_id, priority, updated_at)

        with patch.object(TurnoverService, "update_entry_priority", side_effect=flaky_update):
            result = await AutomationService.run_sweep(now=NOW)

        assert result.flagged_count == 2
        assert [(f.entry_id, f.error) for f in result.failures] == [(ids[1], "database is locked")]
        assert [read_entry(i)["priority"] for i in ids] == ["flagged", "normal", "flagged"]

    @pytest.mark.asyncio
    async def test_sweep_is_audited(self, team_id, team_user):
        (entry_id,) = await create_entries(team_id, team_user, ["normal"])
        age_entry(entry_id, 30)

        await AutomationService.run_sweep(now=NOW)

        status = await AutomationService.get_automation_status(team_id)
        assert status.last_sweep_at is not None
        assert status.priority_counts["flagged"] == 1


class TestSnapshotsAndSchedule:
    """Daily snapshots and the automation schedule"""

    @pytest.mark.asyncio
    async def test_one_snapshot_per_scope(self, team_id, team_user):
        await create_entries(team_id, team_user, ["normal"])
        await create_entries(team_id, team_user, ["important"])

        result = await AutomationService.create_daily_snapshots(team_id, team_user)

        assert result.snapshot_count == 1
        snapshot = await TurnoverService.get_snapshot(team_id, result.snapshot_ids[0])
        assert len(snapshot.snapshot_data["turnovers"]) == 2
        assert sum(len(t["entries"]) for t in snapshot.snapshot_data["turnovers"]) == 2

    @pytest.mark.asyncio
    async def test_no_active_turnovers_no_snapshots(self, team_id, team_user):
        result = await AutomationService.create_daily_snapshots(team_id, team_user)
        assert result.snapshot_count == 0

    @pytest.mark.asyncio
    async def test_schedule_defaults_and_update(self, team_id, team_admin):
        schedule = await AutomationService.get_schedule(team_id)
        assert schedule.enable_stale_flagging is True
        assert schedule.stale_flagging_interval == 6

        updated = await AutomationService.update_schedule(
            team_id, AutomationSchedule(enable_daily_snapshots=False, stale_flagging_interval=12), team_admin
        )
        assert updated.enable_daily_snapshots is False
        assert updated.stale_flagging_interval == 12

    @pytest.mark.asyncio
    async def test_run_all_respects_schedule(self, team_id, team_user, team_admin):
        (entry_id,) = await create_entries(team_id, team_user, ["normal"])
        age_entry(entry_id, 30)
        await AutomationService.update_schedule(
            team_id, AutomationSchedule(enable_stale_flagging=False), team_admin
        )

        result = await AutomationService.run_all(team_id, team_admin, now=NOW)

        assert result.sweep.flagged_count == 0
        assert result.snapshots.snapshot_count == 1
        assert read_entry(entry_id)["priority"] == "normal"


class TestAutomationEndpoints:
    """HTTP surface of automation"""

    def test_scheduler_token_runs_global_sweep(self, client, scheduler_headers):
        response = client.post("/api/v1/automation/sweep", headers=scheduler_headers)
        assert response.status_code == 200
        assert response.json()["flagged_count"] == 0

    def test_team_admin_cannot_run_global_sweep(self, client, team_id, admin_headers):
        response = client.post("/api/v1/automation/sweep", headers=admin_headers)
        assert response.status_code == 403

    def test_scheduler_token_acts_as_team_admin(self, client, team_id, scheduler_headers):
        response = client.post(f"/api/v1/teams/{team_id}/automation/run-all", headers=scheduler_headers)
        assert response.status_code == 200

    def test_team_admin_runs_team_sweep(self, client, team_id, admin_headers):
        response = client.post(f"/api/v1/teams/{team_id}/automation/flag-stale?hours=12", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Flagged 0 stale entries"

    def test_status_for_members(self, client, team_id, user_headers):
        response = client.get(f"/api/v1/teams/{team_id}/automation/status", headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["team_id"] == team_id
        assert body["last_sweep_at"] is None

    def test_schedule_validation(self, client, team_id, admin_headers):
        response = client.put(
            f"/api/v1/teams/{team_id}/automation/schedule",
            json={"daily_snapshot_time": "25:00"},
            headers=admin_headers,
        )
        assert response.status_code == 422
