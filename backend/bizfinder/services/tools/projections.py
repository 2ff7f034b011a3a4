"""
Result projections: the JSON-ready views of a BusinessRecord returned to the model.

Each call site exposes a different subset of fields and a different
description excerpt length. Missing contact fields in the contact view are
reported with a placeholder so the model does not invent them.
"""
from typing import Any, Dict, List, Optional, Tuple

from bizfinder.models.business import BusinessRecord
from bizfinder.services.search.normalization import (
    EXCERPT_LONG,
    EXCERPT_MEDIUM,
    EXCERPT_SHORT,
    clean_html,
    excerpt,
)

NOT_AVAILABLE = "Not available"
HOURS_NOT_SPECIFIED = "Hours not specified"


def _or_placeholder(value: Optional[str]) -> str:
    return value if value else NOT_AVAILABLE


def _datetime(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def project_search_hit(record: BusinessRecord, score: Optional[int] = None) -> Dict[str, Any]:
    hit = {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": excerpt(record.description, EXCERPT_LONG),
        "address": _or_placeholder(record.address),
        "phone": record.phone,
        "verified": record.verified,
        "featured": record.featured,
        "tags": list(record.tags),
    }
    if score is not None:
        hit["relevance"] = score
    return hit


def project_list_item(record: BusinessRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": excerpt(record.description, EXCERPT_MEDIUM),
        "address": _or_placeholder(record.address),
        "verified": record.verified,
        "featured": record.featured,
        "views": record.views,
        "rating": record.rating_avg,
    }


def project_category_item(record: BusinessRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": excerpt(record.description, EXCERPT_MEDIUM),
        "address": _or_placeholder(record.address),
        "phone": record.phone,
        "whatsapp": record.whatsapp,
        "verified": record.verified,
        "tags": list(record.tags),
        "rating": record.rating_avg,
    }


def project_verified_item(record: BusinessRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": excerpt(record.description, EXCERPT_SHORT),
        "address": _or_placeholder(record.address),
        "phone": record.phone,
        "whatsapp": record.whatsapp,
        "tags": list(record.tags),
        "rating": record.rating_avg,
        "views": record.views,
    }


def project_location_item(record: BusinessRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": excerpt(record.description, EXCERPT_SHORT),
        "address": _or_placeholder(record.address),
        "city": record.city,
        "phone": record.phone,
        "whatsapp": record.whatsapp,
        "location": {"latitude": record.lat, "longitude": record.lng},
        "verified": record.verified,
    }


def project_detail(record: BusinessRecord) -> Dict[str, Any]:
    """Everything the model may tell the user about one business."""
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "description": clean_html(record.description),
        "description_html": record.description,
        "contact": {
            "address": _or_placeholder(record.address),
            "phone": record.phone,
            "whatsapp": record.whatsapp,
            "email": record.email,
        },
        "social": {
            "facebook": record.facebook,
            "instagram": record.instagram,
            "website": record.website,
            "tiktok": record.tiktok,
            "youtube": record.youtube,
        },
        "hours": record.hours_label or HOURS_NOT_SPECIFIED,
        "opening": record.opening,
        "closing": record.closing,
        "location": {"latitude": record.lat, "longitude": record.lng},
        "price": record.price,
        "sale_price": record.sale_price,
        "discount": record.discount or 0,
        "net_price": record.net_price,
        "verified": record.verified,
        "featured": record.featured,
        "active": record.is_active,
        "new_arrival": record.is_new_arrival,
        "available": not record.is_not_available,
        "stats": {
            "views": record.views,
            "likes": record.like_count,
            "ratings": record.rating_count,
            "rating_avg": record.rating_avg,
        },
        "tags": list(record.tags),
        "brand": record.brand,
        "featured_image": record.featured_image,
        "images": list(record.images),
        "created_at": _datetime(record.created_at),
        "updated_at": _datetime(record.updated_at),
    }


def project_contact(record: BusinessRecord) -> Dict[str, Any]:
    if record.opening is not None and record.closing is not None:
        hours = f"From {record.opening}:00 to {record.closing}:00"
    else:
        hours = HOURS_NOT_SPECIFIED
    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug,
        "contact": {
            "phone": _or_placeholder(record.phone),
            "whatsapp": f"+{record.whatsapp.lstrip('+')}" if record.whatsapp else NOT_AVAILABLE,
            "email": _or_placeholder(record.email),
            "address": _or_placeholder(record.address),
        },
        "social": {
            "facebook": _or_placeholder(record.facebook),
            "instagram": _or_placeholder(record.instagram),
            "website": _or_placeholder(record.website),
            "tiktok": record.tiktok,
            "youtube": record.youtube,
        },
        "hours": hours,
        "verified": record.verified,
    }


def project_categories(
    counts: List[Tuple[str, int]], search_categories: List[str]
) -> Dict[str, Any]:
    return {
        "total_categories": len(counts),
        "popular_categories": [
            {"category": tag, "business_count": count} for tag, count in counts
        ],
        "search_categories": search_categories,
        "message": f"{len(counts)} categories available",
    }


def project_share(business_id: str, slug: str, name: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": f"Business {name} shared successfully",
        "data": {"id": business_id, "slug": slug, "name": name},
    }
