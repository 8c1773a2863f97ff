"""
Shared pytest fixtures for the Team Hub API tests.

Provides:
- An isolated SQLite database per test (migrations applied)
- Team, principal and bearer token factories
- A FastAPI TestClient bound to the application
"""

from typing import Callable, Dict, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from team_hub_api.app.core.config import settings
from team_hub_api.app.core.db import format_timestamp, get_cursor, init_db, utc_now
from team_hub_api.app.core.security import create_access_token
from team_hub_api.app.schemas.auth import Principal

SCHEDULER_TOKEN = "scheduler-test-token"


# ============================================================================
# Database
# ============================================================================

@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point the application at a fresh database file and run migrations."""
    db_file = tmp_path / "team_hub_test.db"
    monkeypatch.setattr(settings, "database_url", str(db_file))
    monkeypatch.setattr(settings, "automation_tokens", SCHEDULER_TOKEN)
    monkeypatch.setattr(settings, "portal_admin_groups", "TEAMHUB_ADMINS")
    init_db()
    return db_file


@pytest.fixture
def create_team() -> Callable[..., int]:
    """Insert a team directly and return its id."""

    def _create(
        name: str = "Payments SRE",
        user_group: str = "PAY_USERS",
        admin_group: str = "PAY_ADMINS",
        is_active: bool = True,
    ) -> int:
        now = format_timestamp(utc_now())
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO teams (name, user_group, admin_group, is_active, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, 'fixture', ?, ?)
                """,
                (name, user_group, admin_group, int(is_active), now, now),
            )
            return cursor.lastrowid

    return _create


@pytest.fixture
def team_id(create_team) -> int:
    return create_team()


# ============================================================================
# Identity
# ============================================================================

@pytest.fixture
def make_principal() -> Callable[..., Principal]:
    def _make(subject: str = "jdoe", groups: Iterable[str] = (), is_portal_admin: bool = False) -> Principal:
        return Principal(
            subject=subject,
            email=f"{subject}@example.com",
            groups=list(groups),
            is_portal_admin=is_portal_admin,
        )

    return _make


@pytest.fixture
def team_user(make_principal) -> Principal:
    return make_principal("jdoe", ["PAY_USERS"])


@pytest.fixture
def team_admin(make_principal) -> Principal:
    return make_principal("asmith", ["PAY_ADMINS"])


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build an ``Authorization`` header for a subject and its groups."""

    def _headers(subject: str = "jdoe", groups: Optional[Iterable[str]] = None) -> Dict[str, str]:
        claims = {"sub": subject, "email": f"{subject}@example.com", "groups": list(groups or [])}
        return {"Authorization": f"Bearer {create_access_token(claims)}"}

    return _headers


@pytest.fixture
def user_headers(auth_headers) -> Dict[str, str]:
    return auth_headers("jdoe", ["PAY_USERS"])


@pytest.fixture
def admin_headers(auth_headers) -> Dict[str, str]:
    return auth_headers("asmith", ["PAY_ADMINS"])


@pytest.fixture
def portal_admin_headers(auth_headers) -> Dict[str, str]:
    return auth_headers("root", ["TEAMHUB_ADMINS"])


@pytest.fixture
def scheduler_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {SCHEDULER_TOKEN}"}


# ============================================================================
# API client
# ============================================================================

@pytest.fixture
def client(test_db):
    from team_hub_api.app.main import app

    with TestClient(app) as test_client:
        yield test_client
