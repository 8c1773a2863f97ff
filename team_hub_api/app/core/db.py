"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), a cursor context manager and ``init_db`` which
applies the ordered migration list on application start.  Applied
versions are stored in the ``migrations`` table.

All timestamps are stored as UTC text in SQLite's own
``CURRENT_TIMESTAMP`` layout (``YYYY-MM-DD HH:MM:SS``) so that values
written from Python and defaults written by SQLite compare correctly
as plain strings.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .config import settings

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime, truncated to seconds."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp back into a naive UTC datetime.

    Accepts the storage layout as well as ISO strings with a ``T``
    separator, fractional seconds or an offset, which may appear in
    rows created by external tools.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # team_hub_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name, and foreign key enforcement is switched on for the lifetime
    of the connection.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor, commits and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: teams, registration requests, applications
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS teams (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            user_group TEXT NOT NULL,
            admin_group TEXT NOT NULL,
            contact_name TEXT,
            contact_email TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS team_registration_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_name TEXT NOT NULL UNIQUE,
            description TEXT,
            user_group TEXT NOT NULL,
            admin_group TEXT NOT NULL,
            contact_name TEXT NOT NULL,
            contact_email TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            requested_by TEXT NOT NULL,
            reviewed_by TEXT,
            reviewed_at TIMESTAMP,
            review_comments TEXT,
            team_id INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id)
        );

        CREATE TABLE IF NOT EXISTS applications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            asset_id INTEGER NOT NULL,
            application_name TEXT NOT NULL,
            tla TEXT NOT NULL,
            life_cycle_status TEXT,
            tier TEXT,
            vp_name TEXT,
            vp_email TEXT,
            director_name TEXT,
            director_email TEXT,
            escalation_email TEXT,
            contact_email TEXT,
            team_email TEXT,
            application_owner_name TEXT,
            application_owner_email TEXT,
            application_owner_band TEXT,
            application_manager_name TEXT,
            application_manager_email TEXT,
            application_manager_band TEXT,
            application_owner_leader1_name TEXT,
            application_owner_leader1_email TEXT,
            application_owner_leader1_band TEXT,
            application_owner_leader2_name TEXT,
            application_owner_leader2_email TEXT,
            application_owner_leader2_band TEXT,
            owner_svp_name TEXT,
            owner_svp_email TEXT,
            owner_svp_band TEXT,
            business_owner_name TEXT,
            business_owner_email TEXT,
            business_owner_band TEXT,
            business_owner_leader1_name TEXT,
            business_owner_leader1_email TEXT,
            business_owner_leader1_band TEXT,
            production_support_owner_name TEXT,
            production_support_owner_email TEXT,
            production_support_owner_band TEXT,
            production_support_owner_leader1_name TEXT,
            production_support_owner_leader1_email TEXT,
            production_support_owner_leader1_band TEXT,
            pmo_name TEXT,
            pmo_email TEXT,
            pmo_band TEXT,
            unit_cio_name TEXT,
            unit_cio_email TEXT,
            unit_cio_band TEXT,
            snow_group TEXT,
            slack_channel TEXT,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            last_central_api_sync TIMESTAMP,
            central_api_sync_status TEXT NOT NULL DEFAULT 'pending',
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS idx_applications_team ON applications(team_id, status);

        CREATE TABLE IF NOT EXISTS sub_applications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            application_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            code TEXT,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(application_id) REFERENCES applications(id) ON DELETE CASCADE
        );
        """,
    ),
    # Migration 2: links, categories, tags and access logs
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS link_categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            color TEXT,
            icon TEXT,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(team_id, name),
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS link_tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            color TEXT,
            description TEXT,
            created_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(team_id, name),
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS links (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            application_id INTEGER,
            category_id INTEGER,
            title TEXT NOT NULL,
            url TEXT NOT NULL,
            short_url TEXT,
            description TEXT,
            visibility TEXT NOT NULL DEFAULT 'team',
            status TEXT NOT NULL DEFAULT 'active',
            is_pinned INTEGER NOT NULL DEFAULT 0,
            click_count INTEGER NOT NULL DEFAULT 0,
            last_accessed_at TIMESTAMP,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE,
            FOREIGN KEY(application_id) REFERENCES applications(id) ON DELETE SET NULL,
            FOREIGN KEY(category_id) REFERENCES link_categories(id) ON DELETE SET NULL
        );
        CREATE INDEX IF NOT EXISTS idx_links_team ON links(team_id);

        CREATE TABLE IF NOT EXISTS link_tag_associations (
            link_id INTEGER NOT NULL,
            tag_id INTEGER NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY(link_id, tag_id),
            FOREIGN KEY(link_id) REFERENCES links(id) ON DELETE CASCADE,
            FOREIGN KEY(tag_id) REFERENCES link_tags(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS link_access_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            link_id INTEGER NOT NULL,
            accessed_by TEXT,
            ip_address TEXT,
            user_agent TEXT,
            referer TEXT,
            accessed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(link_id) REFERENCES links(id) ON DELETE CASCADE
        );
        """,
    ),
    # Migration 3: turnovers, entries, snapshots and drafts
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS turnovers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            application_id INTEGER,
            sub_application_id INTEGER,
            handover_from TEXT NOT NULL,
            handover_to TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active',
            turnover_date TIMESTAMP NOT NULL,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE,
            FOREIGN KEY(application_id) REFERENCES applications(id) ON DELETE SET NULL,
            FOREIGN KEY(sub_application_id) REFERENCES sub_applications(id) ON DELETE SET NULL
        );
        CREATE INDEX IF NOT EXISTS idx_turnovers_team ON turnovers(team_id, turnover_date);

        CREATE TABLE IF NOT EXISTS turnover_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            turnover_id INTEGER NOT NULL,
            entry_type TEXT NOT NULL,
            priority TEXT NOT NULL DEFAULT 'normal'
                CHECK (priority IN ('normal', 'important', 'flagged', 'needs_action', 'long_pending')),
            rfc_number TEXT,
            rfc_status TEXT,
            rfc_validated_by TEXT,
            rfc_description TEXT,
            inc_number TEXT,
            incident_description TEXT,
            alerts_issues TEXT,
            mim_link TEXT,
            mim_slack_link TEXT,
            email_subject_slack_link TEXT,
            fyi_info TEXT,
            comments TEXT,
            last_classified_at TIMESTAMP,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(turnover_id) REFERENCES turnovers(id) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS idx_entries_updated ON turnover_entries(updated_at, priority);

        CREATE TABLE IF NOT EXISTS turnover_snapshots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            application_id INTEGER,
            sub_application_id INTEGER,
            snapshot_date TIMESTAMP NOT NULL,
            snapshot_data TEXT NOT NULL,
            created_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS turnover_drafts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            application_id INTEGER,
            sub_application_id INTEGER,
            handover_from TEXT,
            handover_to TEXT,
            entries TEXT NOT NULL DEFAULT '[]',
            status TEXT NOT NULL DEFAULT 'draft',
            turnover_id INTEGER,
            created_by TEXT,
            updated_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE,
            FOREIGN KEY(turnover_id) REFERENCES turnovers(id) ON DELETE SET NULL
        );
        """,
    ),
    # Migration 4: tool settings and audit log
    (
        4,
        """
        CREATE TABLE IF NOT EXISTS tool_settings_schemas (
            tool_key TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            category TEXT NOT NULL DEFAULT 'tool',
            settings_template TEXT NOT NULL,
            is_team_configurable INTEGER NOT NULL DEFAULT 1,
            is_admin_configurable INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS global_tool_settings (
            tool_key TEXT PRIMARY KEY,
            settings TEXT NOT NULL,
            updated_by TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(tool_key) REFERENCES tool_settings_schemas(tool_key) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS team_tool_settings (
            team_id INTEGER NOT NULL,
            tool_key TEXT NOT NULL,
            settings TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            updated_by TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY(team_id, tool_key),
            FOREIGN KEY(team_id) REFERENCES teams(id) ON DELETE CASCADE,
            FOREIGN KEY(tool_key) REFERENCES tool_settings_schemas(tool_key) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS settings_activity_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER,
            tool_key TEXT NOT NULL,
            action TEXT NOT NULL,
            scope TEXT NOT NULL,
            previous_value TEXT,
            new_value TEXT,
            user_id TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actor TEXT,
            team_id INTEGER,
            action TEXT NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_audit_lookup ON audit_logs(team_id, object_type, action);
        """,
    ),
]


# Built-in tools whose settings teams can override.  Templates hold the
# default values; global and team overrides are merged on top of them.
DEFAULT_TOOL_SCHEMAS: list[dict] = [
    {
        "tool_key": "links",
        "name": "Links",
        "description": "Team bookmarks, categories and tags",
        "category": "tool",
        "settings_template": {
            "default_visibility": "team",
            "allow_private_links": True,
            "max_pinned_links": 10,
            "enable_click_tracking": True,
        },
    },
    {
        "tool_key": "turnover",
        "name": "Turnover",
        "description": "Shift handover notes and entries",
        "category": "tool",
        "settings_template": {
            "enabled_entry_types": ["rfc", "inc", "alert", "mim", "email_slack", "fyi"],
            "require_handover_to": True,
            "stale_hours_threshold": 24,
        },
    },
    {
        "tool_key": "automation",
        "name": "Automation",
        "description": "Stale entry flagging and daily snapshots",
        "category": "automation",
        "settings_template": {
            "enable_stale_flagging": True,
            "enable_daily_snapshots": True,
            "stale_flagging_interval": 6,
            "daily_snapshot_time": "00:00",
        },
    },
]


def seed_tool_schemas(cursor: sqlite3.Cursor) -> None:
    for tool in DEFAULT_TOOL_SCHEMAS:
        cursor.execute(
            """
            INSERT OR IGNORE INTO tool_settings_schemas (tool_key, name, description, category, settings_template)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                tool["tool_key"],
                tool["name"],
                tool["description"],
                tool["category"],
                json.dumps(tool["settings_template"]),
            ),
        )


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version and applies any newer entries of
    ``MIGRATIONS`` in order.  When adding a migration, append it with
    an incremented version number.
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        cursor.execute("SELECT MAX(version) AS version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
                logger.info("Applied migration %s", version)
                current_version = version

        seed_tool_schemas(cursor)
        conn.commit()
    finally:
        conn.close()
