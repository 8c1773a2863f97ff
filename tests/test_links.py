"""
Tests for team links, categories, tags, bulk operations and import.
"""

import pytest

from team_hub_api.app.core.exceptions import ConflictError, NotFoundError
from team_hub_api.app.schemas.link import (
    BulkLinkUpdate,
    CategoryCreate,
    LinkAccess,
    LinkCreate,
    LinkImportItem,
    LinkImportRequest,
    LinkSearch,
    LinkUpdate,
    TagCreate,
)
from team_hub_api.app.services.import_service import LinkImportService
from team_hub_api.app.services.link_service import LinkService


def link(title, url, **kwargs):
    return LinkCreate(title=title, url=url, **kwargs)


class TestLinkService:
    """Creating, reading and searching links"""

    @pytest.mark.asyncio
    async def test_create_with_category_and_tags(self, team_id, team_user):
        category = await LinkService.create_category(team_id, CategoryCreate(name="Runbooks"), team_user)
        tag = await LinkService.create_tag(team_id, TagCreate(name="oncall", color="#FF0000"), team_user)

        created = await LinkService.create_link(
            team_id,
            link("Pager runbook", "https://wiki.example.com/pager", category_id=category.id, tag_ids=[tag.id]),
            team_user,
        )

        assert created.category_name == "Runbooks"
        assert [t.name for t in created.tags] == ["oncall"]
        assert created.created_by == "jdoe"
        assert created.click_count == 0
        assert (await LinkService.get_category(team_id, category.id)).link_count == 1

    @pytest.mark.asyncio
    async def test_unknown_tag_is_rejected(self, team_id, team_user):
        with pytest.raises(NotFoundError):
            await LinkService.create_link(team_id, link("Docs", "https://docs.example.com/a", tag_ids=[999]), team_user)

    @pytest.mark.asyncio
    async def test_category_from_another_team_is_rejected(self, create_team, team_id, team_user, make_principal):
        other = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        foreign = await LinkService.create_category(
            other, CategoryCreate(name="Cards"), make_principal("b", ["CARD_USERS"])
        )
        with pytest.raises(NotFoundError):
            await LinkService.create_link(
                team_id, link("Docs", "https://docs.example.com/a", category_id=foreign.id), team_user
            )

    @pytest.mark.asyncio
    async def test_private_links_are_hidden_from_other_members(self, team_id, team_user, make_principal):
        colleague = make_principal("bwayne", ["PAY_USERS"])
        private = await LinkService.create_link(
            team_id, link("My notes", "https://notes.example.com/me", visibility="private"), team_user
        )
        await LinkService.create_link(team_id, link("Dashboard", "https://grafana.example.com/d/pay"), team_user)

        mine = await LinkService.search_links(team_id, LinkSearch(), team_user)
        theirs = await LinkService.search_links(team_id, LinkSearch(), colleague)

        assert mine.total == 2
        assert [item.title for item in theirs.items] == ["Dashboard"]
        with pytest.raises(NotFoundError):
            await LinkService.get_link(team_id, private.id, colleague)

    @pytest.mark.asyncio
    async def test_search_filters_and_paginates(self, team_id, team_user):
        for i in range(3):
            await LinkService.create_link(
                team_id, link(f"Grafana board {i}", f"https://grafana.example.com/d/{i}"), team_user
            )
        await LinkService.create_link(team_id, link("Splunk", "https://splunk.example.com/search"), team_user)

        result = await LinkService.search_links(
            team_id, LinkSearch(search="grafana", sort_by="title", sort_order="asc", limit=2), team_user
        )

        assert result.total == 3
        assert [item.title for item in result.items] == ["Grafana board 0", "Grafana board 1"]

    @pytest.mark.asyncio
    async def test_update_replaces_tags(self, team_id, team_user):
        first = await LinkService.create_tag(team_id, TagCreate(name="first"), team_user)
        second = await LinkService.create_tag(team_id, TagCreate(name="second"), team_user)
        created = await LinkService.create_link(
            team_id, link("Docs", "https://docs.example.com/a", tag_ids=[first.id]), team_user
        )

        updated = await LinkService.update_link(
            team_id, created.id, LinkUpdate(tag_ids=[second.id], is_pinned=True), team_user
        )

        assert [t.name for t in updated.tags] == ["second"]
        assert updated.is_pinned is True
        assert [l.id for l in await LinkService.list_pinned_links(team_id, team_user)] == [created.id]

    @pytest.mark.asyncio
    async def test_record_access(self, team_id, team_user):
        created = await LinkService.create_link(team_id, link("Docs", "https://docs.example.com/a"), team_user)

        await LinkService.record_access(team_id, created.id, LinkAccess(ip_address="10.0.0.1"), team_user)
        updated = await LinkService.record_access(team_id, created.id, LinkAccess(), team_user)

        assert updated.click_count == 2
        assert updated.last_accessed_at is not None
        assert (await LinkService.get_link_stats(team_id)).total_clicks == 2


class TestCategoriesAndTags:
    """Per-team categories and tags"""

    @pytest.mark.asyncio
    async def test_names_unique_per_team(self, create_team, team_id, team_user, make_principal):
        await LinkService.create_category(team_id, CategoryCreate(name="Runbooks"), team_user)
        with pytest.raises(ConflictError):
            await LinkService.create_category(team_id, CategoryCreate(name="Runbooks"), team_user)

        other = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        await LinkService.create_category(other, CategoryCreate(name="Runbooks"), make_principal("b", ["CARD_USERS"]))

        await LinkService.create_tag(team_id, TagCreate(name="oncall"), team_user)
        with pytest.raises(ConflictError):
            await LinkService.create_tag(team_id, TagCreate(name="oncall"), team_user)

    @pytest.mark.asyncio
    async def test_delete_category_moves_links(self, team_id, team_user, team_admin):
        old = await LinkService.create_category(team_id, CategoryCreate(name="Old"), team_user)
        new = await LinkService.create_category(team_id, CategoryCreate(name="New"), team_user)
        created = await LinkService.create_link(
            team_id, link("Docs", "https://docs.example.com/a", category_id=old.id), team_user
        )

        moved = await LinkService.delete_category(team_id, old.id, team_admin, move_links_to_category_id=new.id)

        assert moved == 1
        assert (await LinkService.get_link(team_id, created.id, team_user)).category_id == new.id
        with pytest.raises(NotFoundError):
            await LinkService.get_category(team_id, old.id)

    @pytest.mark.asyncio
    async def test_delete_category_without_target_uncategorises(self, team_id, team_user, team_admin):
        category = await LinkService.create_category(team_id, CategoryCreate(name="Old"), team_user)
        created = await LinkService.create_link(
            team_id, link("Docs", "https://docs.example.com/a", category_id=category.id), team_user
        )

        await LinkService.delete_category(team_id, category.id, team_admin)

        assert (await LinkService.get_link(team_id, created.id, team_user)).category_id is None

    @pytest.mark.asyncio
    async def test_cannot_move_links_into_deleted_category(self, team_id, team_user, team_admin):
        category = await LinkService.create_category(team_id, CategoryCreate(name="Old"), team_user)
        with pytest.raises(ValueError):
            await LinkService.delete_category(team_id, category.id, team_admin, move_links_to_category_id=category.id)


class TestBulkOperations:
    """Bulk operations only touch links of the given team"""

    @pytest.mark.asyncio
    async def test_bulk_update_ignores_foreign_links(self, create_team, team_id, team_user, make_principal):
        other = create_team("Cards SRE", "CARD_USERS", "CARD_ADMINS")
        mine = await LinkService.create_link(team_id, link("Mine", "https://a.example.com/x"), team_user)
        foreign = await LinkService.create_link(
            other, link("Theirs", "https://b.example.com/x"), make_principal("b", ["CARD_USERS"])
        )

        affected = await LinkService.bulk_update(
            team_id, BulkLinkUpdate(link_ids=[mine.id, foreign.id], status="archived"), team_user
        )

        assert affected == 1
        assert (await LinkService.get_link(team_id, mine.id, team_user)).status == "archived"
        theirs = await LinkService.get_link(other, foreign.id, make_principal("b", ["CARD_USERS"]))
        assert theirs.status == "active"

    @pytest.mark.asyncio
    async def test_bulk_update_requires_fields(self, team_id, team_user):
        with pytest.raises(ValueError):
            await LinkService.bulk_update(team_id, BulkLinkUpdate(link_ids=[1]), team_user)

    @pytest.mark.asyncio
    async def test_bulk_tags(self, team_id, team_user):
        tag = await LinkService.create_tag(team_id, TagCreate(name="oncall"), team_user)
        first = await LinkService.create_link(team_id, link("A", "https://a.example.com/x"), team_user)
        second = await LinkService.create_link(
            team_id, link("B", "https://b.example.com/x", tag_ids=[tag.id]), team_user
        )

        added = await LinkService.bulk_add_tags(team_id, [first.id, second.id], [tag.id], team_user)
        assert added == 1

        removed = await LinkService.bulk_remove_tags(team_id, [first.id, second.id], [tag.id], team_user)
        assert removed == 2
        result = await LinkService.search_links(team_id, LinkSearch(tag_ids=[tag.id]), team_user)
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_bulk_delete(self, team_id, team_user, team_admin):
        created = await LinkService.create_link(team_id, link("A", "https://a.example.com/x"), team_user)

        assert await LinkService.bulk_delete(team_id, [created.id, 12345], team_admin) == 1
        assert (await LinkService.get_link_stats(team_id)).total_links == 0


class TestLinkImport:
    """Importing links in bulk"""

    @pytest.mark.asyncio
    async def test_import_creates_categories_and_tags(self, team_id, team_user):
        request = LinkImportRequest(
            links=[
                LinkImportItem(
                    title="Runbook", url="https://wiki.example.com/run", category="Docs", tags=["oncall", " oncall "]
                ),
                LinkImportItem(title="Board", url="https://grafana.example.com/d/1", category="Docs"),
            ]
        )

        result = await LinkImportService.import_links(team_id, request, team_user)

        assert (result.total, result.successful, result.failed) == (2, 2, 0)
        categories = await LinkService.list_categories(team_id)
        assert [(c.name, c.link_count) for c in categories] == [("Docs", 2)]
        assert [t.name for t in await LinkService.list_tags(team_id)] == ["oncall"]

    @pytest.mark.asyncio
    async def test_duplicate_urls_are_reported(self, team_id, team_user):
        await LinkService.create_link(team_id, link("Existing", "https://wiki.example.com/run"), team_user)
        request = LinkImportRequest(
            links=[
                LinkImportItem(title="Again", url="https://wiki.example.com/run"),
                LinkImportItem(title="New", url="https://wiki.example.com/new"),
            ]
        )

        result = await LinkImportService.import_links(team_id, request, team_user)

        assert (result.successful, result.failed) == (1, 1)
        assert result.errors[0].link == "https://wiki.example.com/run"

    def test_templates_are_available(self):
        templates = LinkImportService.get_templates()
        assert templates


class TestLinkEndpoints:
    """HTTP surface of links"""

    def test_create_search_and_click(self, client, team_id, user_headers):
        response = client.post(
            f"/api/v1/teams/{team_id}/links",
            json={"title": "Runbook", "url": "https://wiki.example.com/run"},
            headers=user_headers,
        )
        assert response.status_code == 201
        link_id = response.json()["id"]

        response = client.get(f"/api/v1/teams/{team_id}/links/search?search=runbook", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.post(
            f"/api/v1/teams/{team_id}/links/{link_id}/access",
            headers={**user_headers, "User-Agent": "pytest"},
        )
        assert response.status_code == 200
        assert response.json()["click_count"] == 1

    def test_invalid_url_is_422(self, client, team_id, user_headers):
        response = client.post(
            f"/api/v1/teams/{team_id}/links", json={"title": "Bad", "url": "not a url"}, headers=user_headers
        )
        assert response.status_code == 422

    def test_members_cannot_bulk_delete(self, client, team_id, user_headers):
        response = client.post(
            f"/api/v1/teams/{team_id}/links/bulk/delete", json={"link_ids": [1]}, headers=user_headers
        )
        assert response.status_code == 403

    def test_duplicate_category_is_409(self, client, team_id, user_headers):
        url = f"/api/v1/teams/{team_id}/categories"
        assert client.post(url, json={"name": "Runbooks"}, headers=user_headers).status_code == 201
        assert client.post(url, json={"name": "Runbooks"}, headers=user_headers).status_code == 409

    def test_missing_link_is_404(self, client, team_id, user_headers):
        response = client.get(f"/api/v1/teams/{team_id}/links/999", headers=user_headers)
        assert response.status_code == 404
