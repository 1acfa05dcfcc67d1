"""Tests for the Supabase repositories against a recording query-builder fake."""

from __future__ import annotations

from collections import defaultdict, deque
from types import SimpleNamespace

import pytest

from flavortown.core.cache import CachedSearch
from flavortown.repositories import (
    CityRepository,
    EpisodeRepository,
    Err,
    Ok,
    RestaurantRepository,
    SupabaseSearchCache,
)
from flavortown.schemas.records import LongFormContent, RestaurantEnrichmentData, StatusCriteria

RID = "3f2b8c1e-9d4a-4b6f-8a2e-1c5d7e9f0a3b"


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, table: str, response):
        self.table = table
        self.response = response
        self.calls: list[tuple] = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def called(self, name):
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]


class FakeSupabase:
    def __init__(self):
        self._responses: dict[str, deque] = defaultdict(deque)
        self.queries: list[FakeQuery] = []

    def respond(self, table: str, data=None, count=None, error: Exception | None = None):
        self._responses[table].append(error or SimpleNamespace(data=data, count=count))
        return self

    def table(self, name: str) -> FakeQuery:
        queue = self._responses[name]
        response = queue.popleft() if queue else SimpleNamespace(data=[], count=0)
        query = FakeQuery(name, response)
        self.queries.append(query)
        return query


ROW = {
    "id": RID,
    "name": "Mama's Kitchen",
    "city": "Denver",
    "state": "CO",
    "status": None,
    "enrichment_status": None,
    "google_place_id": "p1",
    "last_enriched_at": "2026-01-02T03:04:05+00:00",
    "is_public": True,
}


class TestRestaurantReads:
    @pytest.mark.asyncio
    async def test_get_by_id(self):
        db = FakeSupabase().respond("restaurants", [ROW])
        result = await RestaurantRepository(db).get_by_id(RID)

        assert isinstance(result, Ok)
        assert result.data.name == "Mama's Kitchen"
        assert result.data.status == "unknown"
        assert result.data.enrichment_status == "pending"
        assert db.queries[0].called("eq") == [(("id", RID), {})]

    @pytest.mark.asyncio
    async def test_get_by_id_not_found(self):
        db = FakeSupabase().respond("restaurants", [])
        result = await RestaurantRepository(db).get_by_id(RID)

        assert isinstance(result, Err)
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_client_exception_becomes_err(self):
        db = FakeSupabase().respond("restaurants", error=RuntimeError("connection reset"))
        result = await RestaurantRepository(db).get_by_id(RID)

        assert result.success is False
        assert result.error == f"get_by_id exception for restaurant {RID}: connection reset"

    @pytest.mark.asyncio
    async def test_get_all_pending_oldest_first(self):
        db = FakeSupabase().respond("restaurants", [ROW])
        result = await RestaurantRepository(db).get_all_pending()

        assert result.data[0].id == RID
        query = db.queries[0]
        assert query.called("eq") == [(("enrichment_status", "pending"), {})]
        assert query.called("order") == [(("created_at",), {"desc": False})]

    @pytest.mark.asyncio
    async def test_get_all_stale_orders_nulls_first(self):
        db = FakeSupabase().respond("restaurants", [ROW])
        result = await RestaurantRepository(db).get_all_stale(90, limit=5)

        assert len(result.data) == 1
        query = db.queries[0]
        (filter_arg,), _ = query.called("or_")[0]
        assert filter_arg.startswith("last_enriched_at.is.null,last_enriched_at.lt.")
        assert query.called("order") == [(("last_enriched_at",), {"desc": False, "nullsfirst": True})]
        assert query.called("limit") == [((5,), {})]

    @pytest.mark.asyncio
    async def test_status_check_applies_criteria(self):
        db = FakeSupabase().respond("restaurants", [ROW])
        criteria = StatusCriteria(not_verified_in_days=180, status="open", city="Denver")

        await RestaurantRepository(db).find_for_status_check(criteria, limit=20)

        query = db.queries[0]
        assert (("status", "open"), {}) in query.called("eq")
        assert (("city", "Denver"), {}) in query.called("eq")
        (filter_arg,), _ = query.called("or_")[0]
        assert filter_arg.startswith("last_verified.is.null,last_verified.lt.")
        assert query.called("limit") == [((20,), {})]

    @pytest.mark.asyncio
    async def test_count_for_status_check(self):
        db = FakeSupabase().respond("restaurants", [], count=42)
        result = await RestaurantRepository(db).count_for_status_check(StatusCriteria())

        assert result.data == 42
        assert db.queries[0].called("select") == [(("id",), {"count": "exact"})]
        assert db.queries[0].called("or_") == []

    @pytest.mark.asyncio
    async def test_find_for_long_form_flattens_joins(self):
        row = {
            **ROW,
            "restaurant_cuisines": [{"cuisines": {"name": "American"}}, {"cuisines": None}],
            "restaurant_episodes": [{"segment_notes": "Chicken fried steak"}, {"segment_notes": "Pie"}],
        }
        db = FakeSupabase().respond("restaurants", [row])

        result = await RestaurantRepository(db).find_for_long_form(limit=3)

        candidate = result.data[0]
        assert candidate.cuisines == ["American"]
        assert candidate.segment_notes == "Chicken fried steak"
        query = db.queries[0]
        assert query.called("is_") == [(("long_form_enriched_at", "null"), {})]
        assert (("is_public", True), {}) in query.called("eq")

    @pytest.mark.asyncio
    async def test_find_for_long_form_include_enriched(self):
        db = FakeSupabase().respond("restaurants", [])
        await RestaurantRepository(db).find_for_long_form(include_enriched=True)
        assert db.queries[0].called("is_") == []


class TestRestaurantWrites:
    @pytest.mark.asyncio
    async def test_update_enrichment_data_relinks_cuisines(self):
        db = (
            FakeSupabase()
            .respond("restaurants", [])
            .respond("cuisines", [{"id": "c1", "slug": "american"}, {"id": "c2", "slug": "bbq"}])
        )
        data = RestaurantEnrichmentData(
            description="Great diner.", cuisine_tags=["american", "bbq"], price_tier="$$",
        )

        result = await RestaurantRepository(db).update_enrichment_data(RID, data)

        assert isinstance(result, Ok)
        update_query, cuisine_query, delete_query, insert_query = db.queries
        (values,), _ = update_query.called("update")[0]
        assert values["description"] == "Great diner."
        assert values["price_tier"] == "$$"
        assert "guy_quote" not in values
        assert delete_query.called("delete")
        assert delete_query.called("eq") == [(("restaurant_id", RID), {})]
        (links,), _ = insert_query.called("insert")[0]
        assert links == [
            {"restaurant_id": RID, "cuisine_id": "c1"},
            {"restaurant_id": RID, "cuisine_id": "c2"},
        ]

    @pytest.mark.asyncio
    async def test_unknown_cuisines_are_an_error(self):
        db = FakeSupabase().respond("cuisines", [])
        result = await RestaurantRepository(db).update_cuisines(RID, ["martian"])

        assert isinstance(result, Err)
        assert "no matching cuisines found for slugs [martian]" in result.error

    @pytest.mark.asyncio
    async def test_update_status_records_source(self):
        db = FakeSupabase()
        result = await RestaurantRepository(db).update_status(RID, "closed", 0.9, "Closure announced")

        assert isinstance(result, Ok)
        (values,), _ = db.queries[0].called("update")[0]
        assert values["status"] == "closed"
        assert values["verification_source"] == "llm_confidence_0.90: Closure announced"
        assert values["last_verified"] == values["updated_at"]

    @pytest.mark.asyncio
    async def test_set_enrichment_timestamp(self):
        db = FakeSupabase()
        result = await RestaurantRepository(db).set_enrichment_timestamp(RID)

        (values,), _ = db.queries[0].called("update")[0]
        assert values["enrichment_status"] == "completed"
        assert values["last_enriched_at"] == result.data

    @pytest.mark.asyncio
    async def test_update_google_place_id(self):
        db = FakeSupabase()
        await RestaurantRepository(db).update_google_place_id(RID, "p9", rating=4.5)

        (values,), _ = db.queries[0].called("update")[0]
        assert values["google_place_id"] == "p9"
        assert values["google_rating"] == 4.5
        assert "google_review_count" not in values

    @pytest.mark.asyncio
    async def test_update_long_form_content(self):
        db = FakeSupabase()
        content = LongFormContent(
            about_story="a", culinary_philosophy="b", history_highlights="c", why_visit="d", city_context="e",
        )
        await RestaurantRepository(db).update_long_form_content(RID, content)

        (values,), _ = db.queries[0].called("update")[0]
        assert values["about_story"] == "a"
        assert "long_form_enriched_at" in values


class TestEpisodeRepository:
    @pytest.mark.asyncio
    async def test_find_for_meta_description(self):
        db = FakeSupabase().respond("episodes", [{"id": "e1", "title": "Pilot", "season": 1, "episode_number": 1}])

        result = await EpisodeRepository(db).find_for_meta_description(limit=10)

        assert result.data[0].title == "Pilot"
        query = db.queries[0]
        assert query.called("is_") == [(("meta_description", "null"), {})]
        assert [args[0] for args, _ in query.called("order")] == ["season", "episode_number"]

    @pytest.mark.asyncio
    async def test_get_episode_restaurants_flattens_join(self):
        db = FakeSupabase().respond("restaurant_episodes", [
            {"restaurant_id": "r1", "restaurants": {"id": "r1", "name": "Mama's Kitchen", "city": "Denver"}},
            {"restaurant_id": "r2", "restaurants": None},
        ])

        result = await EpisodeRepository(db).get_episode_restaurants("e1")

        assert [r.name for r in result.data] == ["Mama's Kitchen"]

    @pytest.mark.asyncio
    async def test_update_meta_description(self):
        db = FakeSupabase()
        result = await EpisodeRepository(db).update_meta_description("e1", "meta")

        assert isinstance(result, Ok)
        (values,), _ = db.queries[0].called("update")[0]
        assert values["meta_description"] == "meta"

    @pytest.mark.asyncio
    async def test_get_all_episodes_orders_by_season_then_episode(self):
        db = FakeSupabase().respond("episodes", [
            {"id": "e1", "title": "Pilot", "season": 1, "episode_number": 1, "cities_visited": ["Denver"]},
        ])

        result = await EpisodeRepository(db).get_all_episodes()

        assert result.data[0].cities_visited == ["Denver"]
        query = db.queries[0]
        assert query.table == "episodes"
        assert query.called("order") == [
            (("season",), {"desc": False}),
            (("episode_number",), {"desc": False}),
        ]

    @pytest.mark.asyncio
    async def test_get_all_episodes_error(self):
        db = FakeSupabase().respond("episodes", error=RuntimeError("timeout"))
        result = await EpisodeRepository(db).get_all_episodes()
        assert result.error == "get_all_episodes exception: timeout"

    @pytest.mark.asyncio
    async def test_update_summary(self):
        db = FakeSupabase()
        result = await EpisodeRepository(db).update_summary("e1", "Guy hits three diners.")

        assert isinstance(result, Ok)
        query = db.queries[0]
        (values,), _ = query.called("update")[0]
        assert values["episode_summary"] == "Guy hits three diners."
        assert "updated_at" in values
        assert query.called("eq") == [(("id", "e1"), {})]

    @pytest.mark.asyncio
    async def test_update_cities_visited(self):
        db = FakeSupabase()
        result = await EpisodeRepository(db).update_cities_visited("e1", ["Denver", "Austin"])

        assert isinstance(result, Ok)
        (values,), _ = db.queries[0].called("update")[0]
        assert values["cities_visited"] == ["Denver", "Austin"]

    @pytest.mark.asyncio
    async def test_update_error_names_operation(self):
        db = FakeSupabase().respond("episodes", error=RuntimeError("denied"))
        result = await EpisodeRepository(db).update_cities_visited("e1", [])
        assert result.error == "update_cities_visited exception for episode e1: denied"


class TestCityRepository:
    @pytest.mark.asyncio
    async def test_resolves_state_code(self):
        db = (
            FakeSupabase()
            .respond("states", [{"name": "Colorado"}])
            .respond("cities", [{"id": "c1", "name": "Denver", "state_name": "Colorado"}])
        )

        result = await CityRepository(db).get_by_name("Denver", "co")

        assert result.data.state_name == "Colorado"
        assert db.queries[0].called("eq") == [(("abbreviation", "CO"), {})]
        assert (("state_name", "Colorado"), {}) in db.queries[1].called("eq")

    @pytest.mark.asyncio
    async def test_get_city_restaurants_filters_public(self):
        db = (
            FakeSupabase()
            .respond("states", [{"name": "Colorado"}])
            .respond("restaurants", [{"id": "r1", "name": "Mama's Kitchen", "status": "open", "price_tier": "$$"}])
        )

        result = await CityRepository(db).get_city_restaurants("Denver", "CO")

        assert [r.name for r in result.data] == ["Mama's Kitchen"]
        query = db.queries[1]
        assert query.table == "restaurants"
        assert query.called("eq") == [
            (("city", "Denver"), {}),
            (("state", "Colorado"), {}),
            (("is_public", True), {}),
        ]
        assert query.called("order") == [(("name",), {"desc": False})]

    @pytest.mark.asyncio
    async def test_full_state_name_skips_lookup(self):
        db = FakeSupabase().respond("cities", [{"id": "c1", "name": "Denver", "restaurant_count": 4}])

        result = await CityRepository(db).get_cities_by_state("Colorado")

        assert result.data[0].restaurant_count == 4
        assert [q.table for q in db.queries] == ["cities"]
        query = db.queries[0]
        assert query.called("eq") == [(("state_name", "Colorado"), {})]
        assert query.called("order") == [(("restaurant_count",), {"desc": True})]

    @pytest.mark.asyncio
    async def test_get_all_cities_busiest_first(self):
        db = FakeSupabase().respond("cities", [
            {"id": "c1", "name": "Denver", "restaurant_count": 9},
            {"id": "c2", "name": "Austin", "restaurant_count": 3},
        ])

        result = await CityRepository(db).get_all_cities()

        assert [c.name for c in result.data] == ["Denver", "Austin"]
        assert db.queries[0].called("order") == [(("restaurant_count",), {"desc": True})]

    @pytest.mark.asyncio
    async def test_update_description_writes_meta_description(self):
        db = FakeSupabase()
        result = await CityRepository(db).update_description("c1", "Denver's diner scene.")

        assert isinstance(result, Ok)
        query = db.queries[0]
        (values,), _ = query.called("update")[0]
        assert values["meta_description"] == "Denver's diner scene."
        assert "updated_at" in values
        assert query.called("eq") == [(("id", "c1"), {})]

    @pytest.mark.asyncio
    async def test_state_lookup_failure_becomes_err(self):
        db = FakeSupabase().respond("states", error=RuntimeError("offline"))
        result = await CityRepository(db).get_cities_by_state("CO")
        assert result.error == "get_cities_by_state exception for CO: offline"


class TestSupabaseSearchCache:
    @pytest.mark.asyncio
    async def test_get_parses_row(self):
        db = FakeSupabase().respond("cache", [{
            "query": "q",
            "query_hash": "h",
            "entity_type": "restaurant",
            "results": [{"title": "t"}],
            "fetched_at": "2026-01-01T00:00:00Z",
            "expires_at": None,
        }])

        entry = await SupabaseSearchCache(db).get("h")

        assert entry.results == [{"title": "t"}]
        assert entry.expires_at is None
        assert entry.fetched_at > 0

    @pytest.mark.asyncio
    async def test_get_miss(self):
        assert await SupabaseSearchCache(FakeSupabase()).get("h") is None

    @pytest.mark.asyncio
    async def test_put_writes_iso_timestamps(self):
        db = FakeSupabase()
        await SupabaseSearchCache(db).put(CachedSearch(
            query="q", query_hash="h", entity_type="restaurant", results=[{}, {}],
            fetched_at=0.0, expires_at=86400.0,
        ))

        (row,), _ = db.queries[0].called("insert")[0]
        assert row["result_count"] == 2
        assert row["fetched_at"] == "1970-01-01T00:00:00+00:00"
        assert row["expires_at"] == "1970-01-02T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_stats(self):
        db = FakeSupabase().respond("cache", [
            {"entity_type": "restaurant", "source": "tavily", "expires_at": "2000-01-01T00:00:00+00:00"},
            {"entity_type": "episode", "source": "tavily", "expires_at": None},
        ])

        stats = await SupabaseSearchCache(db).stats()

        assert stats.total == 2
        assert stats.expired == 1
        assert stats.by_type == {"restaurant": 1, "episode": 1}
        assert stats.by_source == {"tavily": 2}

    @pytest.mark.asyncio
    async def test_invalidate_counts_deleted_rows(self):
        db = FakeSupabase().respond("cache", [{"id": 1}, {"id": 2}])

        deleted = await SupabaseSearchCache(db).invalidate("restaurant", RID)

        assert deleted == 2
        assert db.queries[0].called("eq") == [(("entity_type", "restaurant"), {}), (("entity_id", RID), {})]
