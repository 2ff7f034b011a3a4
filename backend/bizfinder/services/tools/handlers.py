"""
Tool handlers.

Each handler takes its validated input model and the ToolContext and
returns a JSON-ready result (list, dict, or None for "not found"). Handlers
only read the record store; every store query is restricted to active
records. Caching and error wrapping happen in the registry.
"""
from typing import Any, Dict, List, Optional, Sequence

from bizfinder.core.logging import get_logger
from bizfinder.services.ranking.score import SearchQuery, rank
from bizfinder.services.search.category_detection import (
    detect_category,
    get_category_terms,
    list_categories,
)
from bizfinder.services.search.normalization import tokenize_query
from bizfinder.services.store.base import DEFAULT_TEXT_FIELDS, TEXT_FIELDS, RecordFilter, RecordSort

from .context import ToolContext
from .projections import (
    project_categories,
    project_category_item,
    project_contact,
    project_detail,
    project_list_item,
    project_location_item,
    project_search_hit,
    project_share,
    project_verified_item,
)
from .schemas import (
    ExploreCategoriesInput,
    GetBusinessContactInput,
    GetBusinessDetailsInput,
    ListBusinessesInput,
    ListVerifiedBusinessesInput,
    SearchBusinessesInput,
    SearchByCategoryInput,
    SearchByLocationInput,
    ShareBusinessInput,
    SmartSearchInput,
)

logger = get_logger(__name__)

SEARCH_RESULT_LIMIT = 5
# Page size for pulling keyword matches out of the store before ranking.
CANDIDATE_BATCH_SIZE = 200


async def _fetch_all_matches(context: ToolContext, record_filter: RecordFilter):
    """Page through every match in store order."""
    matches = []
    while True:
        batch = await context.store.find_many(
            record_filter,
            sort=RecordSort.STORE_ORDER,
            skip=len(matches),
            limit=CANDIDATE_BATCH_SIZE,
        )
        matches.extend(batch)
        if len(batch) < CANDIDATE_BATCH_SIZE:
            return matches


async def _ranked_candidates(
    context: ToolContext,
    text: str,
    fields: Sequence[str],
    extra_terms: Sequence[str] = (),
):
    keywords = tokenize_query(text)
    category_terms = get_category_terms(detect_category(text))
    terms = list(dict.fromkeys([*keywords, *extra_terms, *category_terms]))
    if not terms:
        return [], []

    candidates = await _fetch_all_matches(
        context, RecordFilter(text_terms=terms, text_fields=tuple(fields))
    )
    ranked = rank(SearchQuery(text=text), candidates, limit=len(candidates))
    return candidates, ranked


async def search_businesses(
    params: SearchBusinessesInput, context: ToolContext
) -> List[Dict[str, Any]]:
    """Exact id/slug lookup, else name or keyword search ranked by relevance."""
    if params.id or params.slug:
        record_filter = RecordFilter(id=params.id) if params.id else RecordFilter(slug=params.slug)
        record = await context.store.find_one(record_filter)
        return [project_search_hit(record)] if record else []

    text = params.name or params.query
    if not text:
        records = await context.store.find_many(
            RecordFilter(), sort=RecordSort.VIEWS_DESC, limit=SEARCH_RESULT_LIMIT
        )
        return [project_search_hit(r) for r in records]

    fields = ("name",) if params.name else DEFAULT_TEXT_FIELDS
    _, ranked = await _ranked_candidates(context, text, fields, extra_terms=[text.strip()])
    return [project_search_hit(c.record, c.score) for c in ranked[:SEARCH_RESULT_LIMIT]]


async def smart_search(params: SmartSearchInput, context: ToolContext) -> List[Dict[str, Any]]:
    """
    Any-term search over name, description, tags and address.

    Ranked matches come first; matches the ranking engine scores at zero
    (e.g. address-only hits) follow in store order.
    """
    text = " ".join(params.terms)
    candidates, ranked = await _ranked_candidates(
        context, text, TEXT_FIELDS, extra_terms=params.terms
    )
    ranked_ids = {c.record.id for c in ranked}
    ordered = [c.record for c in ranked] + [r for r in candidates if r.id not in ranked_ids]
    return [project_category_item(r) for r in ordered[:params.limit]]


async def list_businesses(params: ListBusinessesInput, context: ToolContext) -> List[Dict[str, Any]]:
    records = await context.store.find_many(
        RecordFilter(verified=params.verified, featured=params.featured),
        sort=RecordSort.VIEWS_DESC,
        skip=params.offset,
        limit=params.limit,
    )
    return [project_list_item(r) for r in records]


async def get_business_details(
    params: GetBusinessDetailsInput, context: ToolContext
) -> Optional[Dict[str, Any]]:
    record = await context.store.find_one(RecordFilter(id=params.id))
    if record is None:
        logger.info("business_not_found", tool="get_business_details", business_id=params.id)
        return None
    return project_detail(record)


async def search_by_category(
    params: SearchByCategoryInput, context: ToolContext
) -> List[Dict[str, Any]]:
    records = await context.store.find_many(
        RecordFilter(tag_contains=params.tag), limit=params.limit
    )
    return [project_category_item(r) for r in records]


async def get_business_contact(
    params: GetBusinessContactInput, context: ToolContext
) -> Optional[Dict[str, Any]]:
    record = await context.store.find_one(RecordFilter(id=params.id))
    if record is None:
        logger.info("business_not_found", tool="get_business_contact", business_id=params.id)
        return None
    return project_contact(record)


async def list_verified_businesses(
    params: ListVerifiedBusinessesInput, context: ToolContext
) -> List[Dict[str, Any]]:
    records = await context.store.find_many(
        RecordFilter(verified=True), sort=RecordSort.VIEWS_DESC, limit=params.limit
    )
    return [project_verified_item(r) for r in records]


async def search_by_location(
    params: SearchByLocationInput, context: ToolContext
) -> List[Dict[str, Any]]:
    if params.city:
        record_filter = RecordFilter(city=params.city)
    else:
        record_filter = RecordFilter(address=params.address)
    records = await context.store.find_many(record_filter, limit=params.limit)
    return [project_location_item(r) for r in records]


async def explore_categories(
    params: ExploreCategoriesInput, context: ToolContext
) -> Dict[str, Any]:
    counts = await context.store.aggregate_tag_counts(RecordFilter(), limit=params.limit)
    return project_categories(counts, list_categories())


async def share_business_with_user(
    params: ShareBusinessInput, context: ToolContext
) -> Dict[str, Any]:
    logger.info("business_shared", business_id=params.id, slug=params.slug)
    return project_share(params.id, params.slug, params.name)
