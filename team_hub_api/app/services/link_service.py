"""
Service layer for team links, link categories and tags.

All methods are scoped to a team: ids belonging to another team are
treated as missing.  Operations touching several rows (create or
update with tags, category deletion, access recording and every bulk
operation) run in a single SQLite transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence

from team_hub_api.app.core.db import format_timestamp, get_connection, utc_now
from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.auth import Principal
from team_hub_api.app.schemas.link import (
    BulkLinkUpdate,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    LinkAccess,
    LinkCreate,
    LinkRead,
    LinkSearch,
    LinkSearchResult,
    LinkStats,
    LinkUpdate,
    TagCreate,
    TagRead,
    TagUpdate,
)
from team_hub_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

_LINK_SELECT = """
    SELECT l.*, c.name AS category_name, a.application_name AS application_name
    FROM links l
    LEFT JOIN link_categories c ON c.id = l.category_id
    LEFT JOIN applications a ON a.id = l.application_id
"""

# Private links are listed only to the member who created them.
_VISIBLE = "(l.visibility = 'team' OR l.created_by = ?)"


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class LinkService:
    """Links, categories, tags and bulk operations for one team."""

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------
    @classmethod
    async def create_link(cls, team_id: int, data: LinkCreate, principal: Principal) -> LinkRead:
        """Insert a link and its tag associations in one transaction."""
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            cls._check_references(conn, team_id, data.category_id, data.application_id, data.tag_ids)
            cursor = conn.execute(
                """
                INSERT INTO links
                    (team_id, application_id, category_id, title, url, short_url, description,
                     visibility, status, is_pinned, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    data.application_id,
                    data.category_id,
                    data.title.strip(),
                    str(data.url),
                    data.short_url,
                    data.description,
                    data.visibility,
                    data.status,
                    1 if data.is_pinned else 0,
                    principal.subject,
                    principal.subject,
                    now,
                    now,
                ),
            )
            link_id = cursor.lastrowid
            cls._add_tags(conn, [link_id], data.tag_ids)
            conn.commit()
        finally:
            conn.close()
        logger.info("Link %s created in team %s", link_id, team_id)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="link",
            object_id=link_id,
            details={"title": data.title, "url": str(data.url)},
            team_id=team_id,
        )
        return await cls.get_link(team_id, link_id, principal)

    @classmethod
    async def get_link(cls, team_id: int, link_id: int, principal: Principal) -> LinkRead:
        conn = get_connection()
        try:
            row = conn.execute(
                _LINK_SELECT + f" WHERE l.id = ? AND l.team_id = ? AND {_VISIBLE}",
                (link_id, team_id, principal.subject),
            ).fetchone()
            if not row:
                raise NotFoundError("Link not found")
            tags = cls._tags_for_links(conn, [link_id])
            return cls._row_to_link(row, tags.get(link_id, []))
        finally:
            conn.close()

    @classmethod
    async def update_link(cls, team_id: int, link_id: int, data: LinkUpdate, principal: Principal) -> LinkRead:
        await cls.get_link(team_id, link_id, principal)
        updates = data.model_dump(exclude_unset=True)
        tag_ids = updates.pop("tag_ids", None)
        for field in ("title", "url", "visibility", "status", "is_pinned"):
            if field in updates and updates[field] is None:
                updates.pop(field)
        if "url" in updates:
            updates["url"] = str(updates["url"])
        if "is_pinned" in updates:
            updates["is_pinned"] = 1 if updates["is_pinned"] else 0
        conn = get_connection()
        try:
            cls._check_references(
                conn, team_id, updates.get("category_id"), updates.get("application_id"), tag_ids or []
            )
            updates["updated_by"] = principal.subject
            updates["updated_at"] = format_timestamp(utc_now())
            assignments = ", ".join(f"{field} = ?" for field in updates)
            conn.execute(f"UPDATE links SET {assignments} WHERE id = ?", (*updates.values(), link_id))
            if tag_ids is not None:
                conn.execute("DELETE FROM link_tag_associations WHERE link_id = ?", (link_id,))
                cls._add_tags(conn, [link_id], tag_ids)
            conn.commit()
        finally:
            conn.close()
        logger.info("Link %s updated", link_id)
        await AuditService.log(
            actor=principal.subject,
            action="update",
            object_type="link",
            object_id=link_id,
            details={"fields": sorted(k for k in updates if k not in {"updated_by", "updated_at"}), "tag_ids": tag_ids},
            team_id=team_id,
        )
        return await cls.get_link(team_id, link_id, principal)

    @classmethod
    async def delete_link(cls, team_id: int, link_id: int, principal: Principal) -> None:
        await cls.get_link(team_id, link_id, principal)
        conn = get_connection()
        try:
            conn.execute("DELETE FROM links WHERE id = ?", (link_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Link %s deleted", link_id)
        await AuditService.log(
            actor=principal.subject, action="delete", object_type="link", object_id=link_id, team_id=team_id
        )

    @classmethod
    async def search_links(cls, team_id: int, filters: LinkSearch, principal: Principal) -> LinkSearchResult:
        """Filter, sort and paginate the team's links visible to ``principal``.

        ``search`` matches title, description or URL (case
        insensitive).  ``tag_ids`` keeps links carrying any of the
        given tags.
        """
        where = ["l.team_id = ?", _VISIBLE]
        params: List[Any] = [team_id, principal.subject]
        if filters.search:
            where.append("(l.title LIKE ? OR l.description LIKE ? OR l.url LIKE ?)")
            pattern = f"%{filters.search}%"
            params.extend([pattern, pattern, pattern])
        if filters.category_id is not None:
            where.append("l.category_id = ?")
            params.append(filters.category_id)
        if filters.application_id is not None:
            where.append("l.application_id = ?")
            params.append(filters.application_id)
        if filters.visibility:
            where.append("l.visibility = ?")
            params.append(filters.visibility)
        if filters.status:
            where.append("l.status = ?")
            params.append(filters.status)
        if filters.is_pinned is not None:
            where.append("l.is_pinned = ?")
            params.append(1 if filters.is_pinned else 0)
        if filters.tag_ids:
            where.append(
                f"l.id IN (SELECT link_id FROM link_tag_associations WHERE tag_id IN ({_placeholders(filters.tag_ids)}))"
            )
            params.extend(filters.tag_ids)
        where_sql = " WHERE " + " AND ".join(where)
        # sort_by and sort_order are restricted to literals by LinkSearch
        order_sql = f" ORDER BY l.{filters.sort_by} {filters.sort_order.upper()}, l.id {filters.sort_order.upper()}"

        conn = get_connection()
        try:
            total = conn.execute("SELECT COUNT(*) AS cnt FROM links l" + where_sql, tuple(params)).fetchone()["cnt"]
            rows = conn.execute(
                _LINK_SELECT + where_sql + order_sql + " LIMIT ? OFFSET ?",
                (*params, filters.limit, filters.offset),
            ).fetchall()
            tags = cls._tags_for_links(conn, [row["id"] for row in rows])
            items = [cls._row_to_link(row, tags.get(row["id"], [])) for row in rows]
        finally:
            conn.close()
        return LinkSearchResult(items=items, total=total, limit=filters.limit, offset=filters.offset)

    @classmethod
    async def list_pinned_links(cls, team_id: int, principal: Principal) -> List[LinkRead]:
        result = await cls.search_links(
            team_id,
            LinkSearch(is_pinned=True, status="active", sort_by="title", sort_order="asc", limit=100),
            principal,
        )
        return result.items

    @classmethod
    async def get_link_stats(cls, team_id: int) -> LinkStats:
        conn = get_connection()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(status = 'active'), 0) AS active,
                       COALESCE(SUM(is_pinned = 1), 0) AS pinned,
                       COALESCE(SUM(visibility = 'team'), 0) AS team_visible,
                       COALESCE(SUM(visibility = 'private'), 0) AS private,
                       COALESCE(SUM(click_count), 0) AS clicks
                FROM links WHERE team_id = ?
                """,
                (team_id,),
            ).fetchone()
        finally:
            conn.close()
        return LinkStats(
            total_links=row["total"],
            active_links=row["active"],
            pinned_links=row["pinned"],
            team_links=row["team_visible"],
            private_links=row["private"],
            total_clicks=row["clicks"],
        )

    @classmethod
    async def record_access(
        cls, team_id: int, link_id: int, access: LinkAccess, principal: Principal
    ) -> LinkRead:
        """Log one access and bump the click counter atomically."""
        await cls.get_link(team_id, link_id, principal)
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO link_access_logs (link_id, accessed_by, ip_address, user_agent, referer, accessed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (link_id, principal.subject, access.ip_address, access.user_agent, access.referer, now),
            )
            conn.execute(
                "UPDATE links SET click_count = click_count + 1, last_accessed_at = ? WHERE id = ?",
                (now, link_id),
            )
            conn.commit()
        finally:
            conn.close()
        return await cls.get_link(team_id, link_id, principal)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    @classmethod
    async def create_category(cls, team_id: int, data: CategoryCreate, principal: Principal) -> CategoryRead:
        now = format_timestamp(utc_now())
        conn = get_connection()
        try:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO link_categories
                        (team_id, name, description, color, icon, created_by, updated_by, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        team_id,
                        data.name.strip(),
                        data.description,
                        data.color,
                        data.icon,
                        principal.subject,
                        principal.subject,
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Category with this name already exists") from exc
            category_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Link category %s created in team %s", category_id, team_id)
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="link_category",
            object_id=category_id,
            details={"name": data.name},
            team_id=team_id,
        )
        return await cls.get_category(team_id, category_id)

    @classmethod
    async def get_category(cls, team_id: int, category_id: int) -> CategoryRead:
        conn = get_connection()
        try:
            row = conn.execute(
                """
                SELECT c.*, (SELECT COUNT(*) FROM links l WHERE l.category_id = c.id) AS link_count
                FROM link_categories c WHERE c.id = ? AND c.team_id = ?
                """,
                (category_id, team_id),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Category not found")
        return CategoryRead(**dict(row))

    @classmethod
    async def list_categories(cls, team_id: int) -> List[CategoryRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT c.*, (SELECT COUNT(*) FROM links l WHERE l.category_id = c.id) AS link_count
                FROM link_categories c WHERE c.team_id = ? ORDER BY c.name
                """,
                (team_id,),
            ).fetchall()
            return [CategoryRead(**dict(row)) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def update_category(
        cls, team_id: int, category_id: int, data: CategoryUpdate, principal: Principal
    ) -> CategoryRead:
        await cls.get_category(team_id, category_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("name") is None:
            updates.pop("name", None)
        if not updates:
            return await cls.get_category(team_id, category_id)
        updates["updated_by"] = principal.subject
        updates["updated_at"] = format_timestamp(utc_now())
        assignments = ", ".join(f"{field} = ?" for field in updates)
        conn = get_connection()
        try:
            try:
                conn.execute(
                    f"UPDATE link_categories SET {assignments} WHERE id = ?",
                    (*updates.values(), category_id),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Category with this name already exists") from exc
            conn.commit()
        finally:
            conn.close()
        await AuditService.log(
            actor=principal.subject,
            action="update",
            object_type="link_category",
            object_id=category_id,
            team_id=team_id,
        )
        return await cls.get_category(team_id, category_id)

    @classmethod
    async def delete_category(
        cls,
        team_id: int,
        category_id: int,
        principal: Principal,
        move_links_to_category_id: Optional[int] = None,
    ) -> int:
        """Delete a category, moving its links elsewhere or uncategorising them.

        Returns the number of links that were moved.
        """
        await cls.get_category(team_id, category_id)
        if move_links_to_category_id is not None:
            if move_links_to_category_id == category_id:
                raise ValueError("Cannot move links into the category being deleted")
            await cls.get_category(team_id, move_links_to_category_id)
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE links SET category_id = ?, updated_at = ? WHERE category_id = ? AND team_id = ?",
                (move_links_to_category_id, format_timestamp(utc_now()), category_id, team_id),
            )
            moved = cursor.rowcount
            conn.execute("DELETE FROM link_categories WHERE id = ?", (category_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Link category %s deleted, %s links moved", category_id, moved)
        await AuditService.log(
            actor=principal.subject,
            action="delete",
            object_type="link_category",
            object_id=category_id,
            details={"moved_links": moved, "target_category_id": move_links_to_category_id},
            team_id=team_id,
        )
        return moved

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    @classmethod
    async def create_tag(cls, team_id: int, data: TagCreate, principal: Principal) -> TagRead:
        conn = get_connection()
        try:
            try:
                tag_id = cls._insert_tag(conn, team_id, data.name.strip(), data.color, data.description, principal)
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Tag with this name already exists") from exc
            conn.commit()
        finally:
            conn.close()
        await AuditService.log(
            actor=principal.subject,
            action="create",
            object_type="link_tag",
            object_id=tag_id,
            details={"name": data.name},
            team_id=team_id,
        )
        return await cls.get_tag(team_id, tag_id)

    @classmethod
    async def get_tag(cls, team_id: int, tag_id: int) -> TagRead:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM link_tags WHERE id = ? AND team_id = ?", (tag_id, team_id)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Tag not found")
        return cls._row_to_tag(row)

    @classmethod
    async def list_tags(cls, team_id: int) -> List[TagRead]:
        conn = get_connection()
        try:
            rows = conn.execute("SELECT * FROM link_tags WHERE team_id = ? ORDER BY name", (team_id,)).fetchall()
            return [cls._row_to_tag(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def update_tag(cls, team_id: int, tag_id: int, data: TagUpdate, principal: Principal) -> TagRead:
        await cls.get_tag(team_id, tag_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("name") is None:
            updates.pop("name", None)
        if updates:
            assignments = ", ".join(f"{field} = ?" for field in updates)
            conn = get_connection()
            try:
                try:
                    conn.execute(f"UPDATE link_tags SET {assignments} WHERE id = ?", (*updates.values(), tag_id))
                except sqlite3.IntegrityError as exc:
                    raise ConflictError("Tag with this name already exists") from exc
                conn.commit()
            finally:
                conn.close()
            await AuditService.log(
                actor=principal.subject, action="update", object_type="link_tag", object_id=tag_id, team_id=team_id
            )
        return await cls.get_tag(team_id, tag_id)

    @classmethod
    async def delete_tag(cls, team_id: int, tag_id: int, principal: Principal) -> None:
        await cls.get_tag(team_id, tag_id)
        conn = get_connection()
        try:
            conn.execute("DELETE FROM link_tag_associations WHERE tag_id = ?", (tag_id,))
            conn.execute("DELETE FROM link_tags WHERE id = ?", (tag_id,))
            conn.commit()
        finally:
            conn.close()
        await AuditService.log(
            actor=principal.subject, action="delete", object_type="link_tag", object_id=tag_id, team_id=team_id
        )

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------
    @classmethod
    async def bulk_update(cls, team_id: int, data: BulkLinkUpdate, principal: Principal) -> int:
        """Apply the provided fields to every listed link of the team."""
        updates = data.model_dump(exclude_unset=True, exclude={"link_ids"})
        for field in ("is_pinned", "visibility", "status"):
            if field in updates and updates[field] is None:
                updates.pop(field)
        if not updates:
            raise ValueError("No fields to update")
        if "is_pinned" in updates:
            updates["is_pinned"] = 1 if updates["is_pinned"] else 0
        conn = get_connection()
        try:
            cls._check_references(conn, team_id, updates.get("category_id"), updates.get("application_id"), [])
            link_ids = cls._team_link_ids(conn, team_id, data.link_ids)
            if link_ids:
                updates["updated_by"] = principal.subject
                updates["updated_at"] = format_timestamp(utc_now())
                assignments = ", ".join(f"{field} = ?" for field in updates)
                conn.execute(
                    f"UPDATE links SET {assignments} WHERE id IN ({_placeholders(link_ids)})",
                    (*updates.values(), *link_ids),
                )
            conn.commit()
        finally:
            conn.close()
        await cls._audit_bulk(principal, team_id, "bulk_update", link_ids)
        return len(link_ids)

    @classmethod
    async def bulk_add_tags(cls, team_id: int, link_ids: List[int], tag_ids: List[int], principal: Principal) -> int:
        """Attach tags to links, skipping pairs that already exist.  Returns associations created."""
        conn = get_connection()
        try:
            cls._check_references(conn, team_id, None, None, tag_ids)
            ids = cls._team_link_ids(conn, team_id, link_ids)
            created = cls._add_tags(conn, ids, tag_ids)
            conn.commit()
        finally:
            conn.close()
        await cls._audit_bulk(principal, team_id, "bulk_add_tags", ids, {"tag_ids": tag_ids})
        return created

    @classmethod
    async def bulk_remove_tags(
        cls, team_id: int, link_ids: List[int], tag_ids: List[int], principal: Principal
    ) -> int:
        conn = get_connection()
        try:
            ids = cls._team_link_ids(conn, team_id, link_ids)
            removed = 0
            if ids:
                cursor = conn.execute(
                    f"DELETE FROM link_tag_associations WHERE link_id IN ({_placeholders(ids)})"
                    f" AND tag_id IN ({_placeholders(tag_ids)})",
                    (*ids, *tag_ids),
                )
                removed = cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        await cls._audit_bulk(principal, team_id, "bulk_remove_tags", ids, {"tag_ids": tag_ids})
        return removed

    @classmethod
    async def bulk_set_category(
        cls, team_id: int, link_ids: List[int], category_id: Optional[int], principal: Principal
    ) -> int:
        """Move links into ``category_id``, or clear their category when it is ``None``."""
        return await cls.bulk_update(
            team_id, BulkLinkUpdate(link_ids=link_ids, category_id=category_id), principal
        )

    @classmethod
    async def bulk_delete(cls, team_id: int, link_ids: List[int], principal: Principal) -> int:
        conn = get_connection()
        try:
            ids = cls._team_link_ids(conn, team_id, link_ids)
            if ids:
                conn.execute(f"DELETE FROM links WHERE id IN ({_placeholders(ids)})", tuple(ids))
            conn.commit()
        finally:
            conn.close()
        await cls._audit_bulk(principal, team_id, "bulk_delete", ids)
        return len(ids)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _team_link_ids(conn: sqlite3.Connection, team_id: int, link_ids: Iterable[int]) -> List[int]:
        ids = sorted(set(link_ids))
        if not ids:
            return []
        rows = conn.execute(
            f"SELECT id FROM links WHERE team_id = ? AND id IN ({_placeholders(ids)})",
            (team_id, *ids),
        ).fetchall()
        return [row["id"] for row in rows]

    @staticmethod
    def _check_references(
        conn: sqlite3.Connection,
        team_id: int,
        category_id: Optional[int],
        application_id: Optional[int],
        tag_ids: Sequence[int],
    ) -> None:
        if category_id is not None and not conn.execute(
            "SELECT 1 FROM link_categories WHERE id = ? AND team_id = ?", (category_id, team_id)
        ).fetchone():
            raise NotFoundError("Category not found")
        if application_id is not None and not conn.execute(
            "SELECT 1 FROM applications WHERE id = ? AND team_id = ? AND status != 'deleted'",
            (application_id, team_id),
        ).fetchone():
            raise NotFoundError("Application not found")
        if tag_ids:
            unique = set(tag_ids)
            row = conn.execute(
                f"SELECT COUNT(*) AS cnt FROM link_tags WHERE team_id = ? AND id IN ({_placeholders(list(unique))})",
                (team_id, *unique),
            ).fetchone()
            if row["cnt"] != len(unique):
                raise NotFoundError("Tag not found")

    @staticmethod
    def _add_tags(conn: sqlite3.Connection, link_ids: Sequence[int], tag_ids: Sequence[int]) -> int:
        created = 0
        for link_id in link_ids:
            for tag_id in set(tag_ids):
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO link_tag_associations (link_id, tag_id) VALUES (?, ?)",
                    (link_id, tag_id),
                )
                created += cursor.rowcount
        return created

    @staticmethod
    def _insert_tag(
        conn: sqlite3.Connection,
        team_id: int,
        name: str,
        color: Optional[str],
        description: Optional[str],
        principal: Principal,
    ) -> int:
        cursor = conn.execute(
            """
            INSERT INTO link_tags (team_id, name, color, description, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (team_id, name, color, description, principal.subject, format_timestamp(utc_now())),
        )
        return cursor.lastrowid

    @classmethod
    def _tags_for_links(cls, conn: sqlite3.Connection, link_ids: Sequence[int]) -> Dict[int, List[TagRead]]:
        if not link_ids:
            return {}
        rows = conn.execute(
            f"""
            SELECT a.link_id, t.* FROM link_tag_associations a
            JOIN link_tags t ON t.id = a.tag_id
            WHERE a.link_id IN ({_placeholders(link_ids)})
            ORDER BY t.name
            """,
            tuple(link_ids),
        ).fetchall()
        result: Dict[int, List[TagRead]] = {}
        for row in rows:
            result.setdefault(row["link_id"], []).append(cls._row_to_tag(row))
        return result

    @staticmethod
    async def _audit_bulk(
        principal: Principal, team_id: int, action: str, link_ids: List[int], extra: Optional[dict] = None
    ) -> None:
        logger.info("%s on %s links in team %s", action, len(link_ids), team_id)
        details = {"link_ids": link_ids}
        if extra:
            details.update(extra)
        await AuditService.log(
            actor=principal.subject, action=action, object_type="link", details=details, team_id=team_id
        )

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> TagRead:
        return TagRead(
            id=row["id"],
            team_id=row["team_id"],
            name=row["name"],
            color=row["color"],
            description=row["description"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_link(row: sqlite3.Row, tags: List[TagRead]) -> LinkRead:
        data = dict(row)
        data["is_pinned"] = bool(data["is_pinned"])
        return LinkRead(**data, tags=tags)
