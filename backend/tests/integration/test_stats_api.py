"""Integration tests for stats API endpoints."""

import pytest
from httpx import AsyncClient


class TestStatsEndpoints:
    """Test stats endpoints."""

    @pytest.mark.asyncio
    async def test_item_stats_default(self, client: AsyncClient, content):
        """Test stats of an item nobody interacted with."""
        response = await client.get(f"/api/stats/items/{content.chapter_id}")

        assert response.status_code == 200
        assert response.json() == {
            "views": 0,
            "likes": 0,
            "dislikes": 0,
            "rating_avg": 0.0,
            "rating_count": 0,
        }

    @pytest.mark.asyncio
    async def test_story_and_batch_stats(self, client: AsyncClient, auth_headers, content):
        """Test story stats and batch stats after interactions."""
        await client.post(f"/api/interactions/{content.chapter_id}/like", headers=auth_headers)
        await client.post(f"/api/interactions/{content.chapter_id}/view")
        await client.put(f"/api/interactions/{content.story_id}/follow", headers=auth_headers)

        story = await client.get(f"/api/stats/stories/{content.story_id}")
        assert story.json()["likes"] == 1
        assert story.json()["views"] == 1
        assert story.json()["follow_count"] == 1

        batch = await client.post(
            "/api/stats/items/batch", json={"ids": [content.chapter_id, content.other_chapter_id]}
        )
        data = batch.json()
        assert data[str(content.chapter_id)]["likes"] == 1
        assert data[str(content.other_chapter_id)]["likes"] == 0


class TestRankingEndpoints:
    """Test ranking endpoints."""

    @pytest.mark.asyncio
    async def test_rankings(self, client: AsyncClient, auth_headers, content):
        """Test the ranking endpoints over a small data set."""
        await client.post(f"/api/interactions/{content.other_chapter_id}/view")
        await client.post(f"/api/interactions/{content.other_chapter_id}/view")
        await client.post(f"/api/interactions/{content.chapter_id}/view")
        await client.put(
            f"/api/interactions/{content.chapter_id}/rating",
            json={"rating": 4.0},
            headers=auth_headers,
        )
        await client.put(f"/api/interactions/{content.story_id}/follow", headers=auth_headers)

        viewed = await client.get("/api/stats/rankings/most-viewed", params={"period": "week"})
        assert viewed.json() == [
            {"story_id": content.other_story_id, "views": 2},
            {"story_id": content.story_id, "views": 1},
        ]

        trending = await client.get("/api/stats/rankings/trending")
        assert trending.json() == [content.other_story_id, content.story_id]

        top = await client.get("/api/stats/rankings/top-rated", params={"min_ratings": 1})
        assert top.json() == [{"story_id": content.story_id, "rating": 4.0, "count": 1}]

        followed = await client.get("/api/stats/rankings/most-followed")
        assert followed.json() == [{"story_id": content.story_id, "follow_count": 1}]

        recent = await client.get("/api/stats/rankings/recently-rated")
        assert recent.json() == [content.story_id]

    @pytest.mark.asyncio
    async def test_limit_is_validated(self, client: AsyncClient):
        """Test that oversized limits are rejected."""
        response = await client.get("/api/stats/rankings/most-viewed", params={"limit": 1000})

        assert response.status_code == 422
