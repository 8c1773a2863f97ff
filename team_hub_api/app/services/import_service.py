"""
Bulk import of links into a team.

Each imported link is processed in its own transaction, so one bad
row never prevents the others from being stored.  A link whose URL
already exists in the team is reported as failed.  Categories and
tags are referenced by name and created on demand.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.link import (
    LinkImportError,
    LinkImportItem,
    LinkImportRequest,
    LinkImportResult,
)
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

IMPORT_TEMPLATES: Dict[str, Any] = {
    "json": [
        {
            "title": "Example Link",
            "url": "https://example.com",
            "description": "An example link",
            "category": "Documentation",
            "tags": ["example", "demo"],
        }
    ],
    "csv": "Title,URL,Description,Tags\nExample Link,https://example.com,An example link,example;demo",
    "html": '<a href="https://example.com" title="An example link">Example Link</a>',
    "markdown": "[Example Link](https://example.com)",
}


class DuplicateLinkError(ValueError):
    pass


class LinkImportService:
    """Import many links at once and report per-link outcomes."""

    @classmethod
    def get_templates(cls) -> Dict[str, Any]:
        return IMPORT_TEMPLATES

    @classmethod
    async def import_links(cls, team_id: int, request: LinkImportRequest, principal: Principal) -> LinkImportResult:
        if request.application_id is not None:
            conn = get_connection()
            try:
                if not conn.execute(
                    "SELECT 1 FROM applications WHERE id = ? AND team_id = ? AND status != 'deleted'",
                    (request.application_id, team_id),
                ).fetchone():
                    raise NotFoundError("Application not found")
            finally:
                conn.close()

        result = LinkImportResult(total=len(request.links), successful=0, failed=0)
        for item in request.links:
            try:
                cls._import_one(team_id, item, request.application_id, principal)
            except DuplicateLinkError as exc:
                result.failed += 1
                result.errors.append(LinkImportError(link=str(item.url), error=str(exc)))
            except sqlite3.Error as exc:
                logger.warning("Import of %s into team %s failed: %s", item.url, team_id, exc)
                result.failed += 1
                result.errors.append(LinkImportError(link=str(item.url), error=str(exc)))
            else:
                result.successful += 1

        logger.info(
            "Imported %s/%s links into team %s", result.successful, result.total, team_id
        )
        await AuditService.log(
            actor=principal.subject,
            action="import",
            object_type="link",
            details={"total": result.total, "successful": result.successful, "failed": result.failed},
            team_id=team_id,
        )
        return result

    @classmethod
    def _import_one(
        cls, team_id: int, item: LinkImportItem, application_id: Optional[int], principal: Principal
    ) -> int:
        url = str(item.url)
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            if conn.execute("SELECT 1 FROM links WHERE team_id = ? AND url = ?", (team_id, url)).fetchone():
                raise DuplicateLinkError("Link with this URL already exists")
            category_id = None
            if item.category:
                category_id = cls._get_or_create(
                    conn,
                    "link_categories",
                    team_id,
                    item.category.strip(),
                    "INSERT INTO link_categories (team_id, name, created_by, updated_by, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (team_id, item.category.strip(), principal.subject, principal.subject, now, now),
                )
            cursor = conn.execute(
                """
                INSERT INTO links
                    (team_id, application_id, category_id, title, url, description, visibility,
                     status, is_pinned, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 'active', ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    application_id,
                    category_id,
                    item.title.strip(),
                    url,
                    item.description,
                    item.visibility,
                    1 if item.is_pinned else 0,
                    principal.subject,
                    principal.subject,
                    now,
                    now,
                ),
            )
            link_id = cursor.lastrowid
            for tag_name in dict.fromkeys(item.tags):
                tag_id = cls._get_or_create(
                    conn,
                    "link_tags",
                    team_id,
                    tag_name,
                    "INSERT INTO link_tags (team_id, name, created_by, created_at) VALUES (?, ?, ?, ?)",
                    (team_id, tag_name, principal.subject, now),
                )
                conn.execute(
                    "INSERT OR IGNORE INTO link_tag_associations (link_id, tag_id) VALUES (?, ?)",
                    (link_id, tag_id),
                )
            conn.commit()
            return link_id
        finally:
            conn.close()

    @staticmethod
    def _get_or_create(
        conn: sqlite3.Connection, table: str, team_id: int, name: str, insert_sql: str, insert_params: tuple
    ) -> int:
        row = conn.execute(f"SELECT id FROM {table} WHERE team_id = ? AND name = ?", (team_id, name)).fetchone()
        if row:
            return row["id"]
        return conn.execute(insert_sql, insert_params).lastrowid
