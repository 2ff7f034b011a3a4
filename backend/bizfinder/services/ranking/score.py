"""
Weighted-term relevance ranking for business records.

score = relevance + quality, where

relevance (per keyword of the query):
    name contains keyword            +10
    each tag containing keyword       +5
    cleaned description contains it   +2
  plus a flat +15 when the query maps to a category and the record's name,
  description or tags mention one of that category's terms.

quality (only when relevance > 0):
    verified                          +3
    each populated contact channel    +1  (phone, WhatsApp, address)

Records with score 0 are excluded. Ordering: score desc, views desc, then
the order in which the candidates were supplied.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from bizfinder.core.logging import get_logger
from bizfinder.models.business import BusinessRecord
from bizfinder.services.search.category_detection import (
    detect_category,
    get_category_terms,
)
from bizfinder.services.search.normalization import clean_html, tokenize_query

logger = get_logger(__name__)

WEIGHTS = {
    "name": 10,
    "tag": 5,
    "description": 2,
    "category": 15,
    "verified": 3,
    "contact_channel": 1,
}

DEFAULT_LIMIT = 10


class SearchQuery(BaseModel):
    """Free text plus structured filters for one ranking pass."""

    text: str = ""
    city: Optional[str] = None
    tag: Optional[str] = None
    verified_only: bool = False
    featured_only: bool = False
    limit: int = Field(DEFAULT_LIMIT, ge=1)
    offset: int = Field(0, ge=0)


class ScoredCandidate(BaseModel):
    """A record with its relevance score and the per-component breakdown."""

    model_config = ConfigDict(frozen=True)

    record: BusinessRecord
    score: int = Field(..., ge=0)
    breakdown: Dict[str, int] = Field(default_factory=dict)


def matches_filters(record: BusinessRecord, query: SearchQuery) -> bool:
    """Apply the structured filters of a query to one record."""
    if query.verified_only and not record.verified:
        return False
    if query.featured_only and not record.featured:
        return False
    if query.city:
        needle = query.city.casefold()
        haystacks = [record.city or "", record.address or ""]
        if not any(needle in h.casefold() for h in haystacks):
            return False
    if query.tag:
        needle = query.tag.casefold()
        if not any(needle in t.casefold() for t in record.tags):
            return False
    return True


def score_record(
    record: BusinessRecord,
    keywords: Sequence[str],
    category_terms: Sequence[str] = (),
) -> Tuple[int, Dict[str, int]]:
    """
    Score one record against pre-tokenized keywords.

    Returns:
        (score, breakdown) where breakdown holds each weighted component.
    """
    name = record.name.casefold()
    description = clean_html(record.description).casefold()
    tags = [t.casefold() for t in record.tags]

    breakdown = {
        "name": 0,
        "tag": 0,
        "description": 0,
        "category": 0,
        "verified": 0,
        "contact_channel": 0,
    }

    for keyword in keywords:
        if keyword in name:
            breakdown["name"] += WEIGHTS["name"]
        breakdown["tag"] += WEIGHTS["tag"] * sum(1 for t in tags if keyword in t)
        if keyword in description:
            breakdown["description"] += WEIGHTS["description"]

    if category_terms:
        fields = [name, description, *tags]
        if any(term in field for term in category_terms for field in fields):
            breakdown["category"] = WEIGHTS["category"]

    relevance = sum(breakdown.values())
    if relevance == 0:
        return 0, breakdown

    if record.verified:
        breakdown["verified"] = WEIGHTS["verified"]
    channels = (record.phone, record.whatsapp, record.address)
    breakdown["contact_channel"] = WEIGHTS["contact_channel"] * sum(
        1 for channel in channels if channel and str(channel).strip()
    )

    return sum(breakdown.values()), breakdown


def rank(
    query: SearchQuery,
    candidates: Iterable[BusinessRecord],
    limit: Optional[int] = None,
) -> List[ScoredCandidate]:
    """
    Rank candidates for a query.

    Args:
        query: Text and filters; query.limit/offset paginate the ranked list
        candidates: Records in store order (used as the final tie-break)
        limit: Overrides query.limit when given

    Returns:
        ScoredCandidates with score > 0, best first.
    """
    keywords = tokenize_query(query.text)
    category = detect_category(query.text)
    category_terms = get_category_terms(category)
    limit = limit if limit is not None else query.limit

    if not keywords and not category_terms:
        logger.debug("ranking_no_keywords", query=query.text)
        return []

    scored: List[ScoredCandidate] = []
    candidates_count = 0
    for record in candidates:
        candidates_count += 1
        if not matches_filters(record, query):
            continue
        score, breakdown = score_record(record, keywords, category_terms)
        if score <= 0:
            continue
        scored.append(ScoredCandidate(record=record, score=score, breakdown=breakdown))

    # list.sort is stable, so equal (score, views) keep candidate order
    scored.sort(key=lambda c: (c.score, c.record.views), reverse=True)
    ranked = scored[query.offset:query.offset + limit]

    logger.debug(
        "ranking_completed",
        query=query.text,
        keywords=keywords,
        category=category,
        candidates_count=candidates_count,
        scored_count=len(scored),
        returned_count=len(ranked),
    )
    return ranked
