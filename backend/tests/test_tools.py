"""
Unit tests for the tool catalog: handlers, projections, caching and dispatch.

All tools run against the in-memory store seeded with the sample businesses.
"""
import pytest

from bizfinder.core.errors import BackendUnavailableError
from bizfinder.models.business import BusinessRecord
from bizfinder.services.search.category_detection import list_categories
from bizfinder.services.cache.result_cache import MemoryResultCache
from bizfinder.services.store import InMemoryRecordStore
from bizfinder.services.store.samples import sample_businesses
from bizfinder.services.tools import ToolContext, ToolKind, build_default_registry
from bizfinder.services.tools.projections import HOURS_NOT_SPECIFIED, NOT_AVAILABLE


class CountingStore(InMemoryRecordStore):
    """In-memory store that counts queries."""

    def __init__(self, records):
        super().__init__(records)
        self.calls = 0

    async def find_one(self, record_filter):
        self.calls += 1
        return await super().find_one(record_filter)

    async def find_many(self, record_filter, sort=None, skip=0, limit=None):
        self.calls += 1
        if sort is None:
            return await super().find_many(record_filter, skip=skip, limit=limit)
        return await super().find_many(record_filter, sort=sort, skip=skip, limit=limit)


class FailingStore(InMemoryRecordStore):
    async def find_many(self, record_filter, sort=None, skip=0, limit=None):
        raise BackendUnavailableError("Record store query timed out (find_many)", backend="store")


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def store():
    return CountingStore(sample_businesses())


@pytest.fixture
def context(store):
    return ToolContext(store=store)


async def _call(registry, context, name, payload=None):
    result = await registry.dispatch("toolu_test", name, payload or {}, context)
    assert result.tool_use_id == "toolu_test"
    assert result.tool_name == name
    return result


# ----------------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------------

def test_catalog_definitions(registry):
    definitions = registry.definitions()

    assert len(definitions) == 10
    assert registry.names[0] == "search_businesses"
    for definition in definitions:
        assert definition["description"]
        assert definition["input_schema"]["type"] == "object"
        assert "title" not in definition["input_schema"]


def test_tool_kinds(registry):
    assert registry.kind_of("search_businesses") == ToolKind.SEARCH
    assert registry.kind_of("smart_search") == ToolKind.SEARCH
    assert registry.kind_of("search_by_category") == ToolKind.SEARCH
    assert registry.kind_of("search_by_location") == ToolKind.SEARCH
    assert registry.kind_of("explore_categories") == ToolKind.EXPLORE
    assert registry.kind_of("share_business_with_user") == ToolKind.SHARE
    assert registry.kind_of("get_business_details") == ToolKind.LOOKUP
    assert registry.kind_of("nope") is None


# ----------------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_businesses_by_id(registry, context):
    result = await _call(registry, context, "search_businesses", {"id": "biz-001"})

    assert not result.is_error
    assert [hit["id"] for hit in result.content] == ["biz-001"]
    assert "relevance" not in result.content[0]


@pytest.mark.asyncio
async def test_search_businesses_by_keywords_is_ranked(registry, context):
    result = await _call(registry, context, "search_businesses", {"query": "flores"})

    ids = [hit["id"] for hit in result.content]
    assert ids[:2] == ["biz-001", "biz-006"]
    assert result.content[0]["relevance"] >= result.content[1]["relevance"]
    assert len(ids) <= 5


def _pizza_store() -> CountingStore:
    fillers = [
        BusinessRecord(
            id=f"filler-{i}",
            name=f"Local {i}",
            description="<p>Pizza al horno de leña</p>",
            tags=["pizza"],
            views=1000,
        )
        for i in range(250)
    ]
    best = BusinessRecord(
        id="napoli",
        slug="pizzeria-napoli",
        name="Pizzeria Napoli",
        tags=["pizzeria", "napoli"],
        verified=True,
        views=5,
    )
    return CountingStore([*fillers, best])


@pytest.mark.asyncio
async def test_search_ranks_matches_beyond_the_first_store_page(registry):
    store = _pizza_store()
    context = ToolContext(store=store)

    result = await _call(registry, context, "search_businesses", {"query": "pizzeria napoli"})

    ids = [hit["id"] for hit in result.content]
    assert ids[0] == "napoli"
    assert len(ids) == 5
    assert store.calls == 2


@pytest.mark.asyncio
async def test_smart_search_ranks_matches_beyond_the_first_store_page(registry):
    context = ToolContext(store=_pizza_store())

    result = await _call(registry, context, "smart_search", {"terms": ["pizzeria", "napoli"], "limit": 3})

    assert [item["id"] for item in result.content][0] == "napoli"


@pytest.mark.asyncio
async def test_search_businesses_without_criteria_returns_most_viewed(registry, context):
    result = await _call(registry, context, "search_businesses", {})

    assert [hit["id"] for hit in result.content] == [
        "biz-002", "biz-003", "biz-001", "biz-004", "biz-005",
    ]


@pytest.mark.asyncio
async def test_search_businesses_unknown_id(registry, context):
    result = await _call(registry, context, "search_businesses", {"id": "missing"})

    assert result.content == []
    assert not result.is_error


@pytest.mark.asyncio
async def test_smart_search_includes_address_only_matches(registry, context):
    result = await _call(registry, context, "smart_search", {"terms": ["arce"]})

    assert [item["id"] for item in result.content] == ["biz-006"]


@pytest.mark.asyncio
async def test_smart_search_rejects_blank_terms(registry, context):
    result = await _call(registry, context, "smart_search", {"terms": ["  ", ""]})

    assert result.is_error
    assert result.content["kind"] == "ToolExecutionError"


@pytest.mark.asyncio
async def test_list_businesses_filters_and_paginates(registry, context):
    verified = await _call(registry, context, "list_businesses", {"verified": True, "limit": 2})
    page = await _call(registry, context, "list_businesses", {"limit": 2, "offset": 1})

    assert [item["id"] for item in verified.content] == ["biz-002", "biz-001"]
    assert [item["id"] for item in page.content] == ["biz-003", "biz-001"]


@pytest.mark.asyncio
async def test_get_business_details(registry, context):
    result = await _call(registry, context, "get_business_details", {"id": "biz-001"})

    detail = result.content
    assert detail["name"] == "Moment's Events"
    assert "<p>" not in detail["description"]
    assert detail["hours"] == "8:00 - 18:00"
    assert detail["stats"]["views"] == 340
    assert detail["discount"] == 0


@pytest.mark.asyncio
async def test_get_business_details_not_found_is_null(registry, context):
    result = await _call(registry, context, "get_business_details", {"id": "missing"})

    assert result.content is None
    assert not result.is_error


@pytest.mark.asyncio
async def test_get_business_contact(registry, context):
    result = await _call(registry, context, "get_business_contact", {"id": "biz-001"})

    contact = result.content
    assert contact["contact"]["whatsapp"] == "+50377771111"
    assert contact["contact"]["phone"] == "2222-1111"
    assert contact["social"]["facebook"] == NOT_AVAILABLE
    assert contact["hours"] == "From 8:00 to 18:00"


@pytest.mark.asyncio
async def test_get_business_contact_placeholders(registry, context):
    result = await _call(registry, context, "get_business_contact", {"id": "biz-002"})

    assert result.content["contact"]["whatsapp"] == NOT_AVAILABLE
    assert result.content["hours"] == HOURS_NOT_SPECIFIED


@pytest.mark.asyncio
async def test_search_by_category(registry, context):
    result = await _call(registry, context, "search_by_category", {"tag": "flores"})

    assert [item["id"] for item in result.content] == ["biz-001", "biz-006"]


@pytest.mark.asyncio
async def test_list_verified_businesses(registry, context):
    result = await _call(registry, context, "list_verified_businesses", {})

    assert [item["id"] for item in result.content] == ["biz-002", "biz-001", "biz-004"]
    assert all(len(item["description"]) <= 153 for item in result.content)


@pytest.mark.asyncio
async def test_search_by_location_city(registry, context):
    result = await _call(registry, context, "search_by_location", {"city": "San Salvador"})

    assert [item["id"] for item in result.content] == ["biz-001", "biz-003", "biz-004", "biz-006"]


@pytest.mark.asyncio
async def test_search_by_location_requires_city_or_address(registry, context):
    result = await _call(registry, context, "search_by_location", {})

    assert result.is_error
    assert "city or address" in result.content["error"]


@pytest.mark.asyncio
async def test_explore_categories(registry, context):
    result = await _call(registry, context, "explore_categories", {"limit": 2})

    assert result.content["total_categories"] == 2
    assert result.content["popular_categories"][0] == {"category": "flores", "business_count": 2}
    assert result.content["search_categories"] == list_categories()


@pytest.mark.asyncio
async def test_share_business_with_user(registry, context):
    payload = {"id": "biz-001", "slug": "moments-events", "name": "Moment's Events"}
    result = await _call(registry, context, "share_business_with_user", payload)

    assert result.content["success"] is True
    assert result.content["data"] == payload


# ----------------------------------------------------------------------------
# Dispatch: caching and failures
# ----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cached_results_skip_the_store(registry, store):
    context = ToolContext(store=store, cache=MemoryResultCache())

    first = await _call(registry, context, "list_businesses", {"limit": 3})
    second = await _call(registry, context, "list_businesses", {"limit": 3, "offset": 0})

    assert first.content == second.content
    assert store.calls == 1


@pytest.mark.asyncio
async def test_not_found_results_are_not_cached(registry, store):
    context = ToolContext(store=store, cache=MemoryResultCache())

    await _call(registry, context, "get_business_details", {"id": "missing"})
    await _call(registry, context, "get_business_details", {"id": "missing"})

    assert store.calls == 2


@pytest.mark.asyncio
async def test_share_is_never_cached(registry, context):
    cache = MemoryResultCache()
    context = ToolContext(store=context.store, cache=cache)
    payload = {"id": "biz-001", "slug": "moments-events", "name": "Moment's Events"}

    await _call(registry, context, "share_business_with_user", payload)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error_result(registry, context):
    result = await _call(registry, context, "delete_everything", {})

    assert result.is_error
    assert result.content["kind"] == "ToolNotFound"
    assert "delete_everything" in result.content["error"]


@pytest.mark.asyncio
async def test_store_failure_is_an_error_result(registry):
    context = ToolContext(store=FailingStore(sample_businesses()))

    result = await _call(registry, context, "list_businesses", {})

    assert result.is_error
    assert result.content["kind"] == "BackendUnavailable"
    assert "timed out" in result.content_text()
