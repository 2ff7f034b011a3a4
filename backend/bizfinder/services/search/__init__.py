"""Query normalization and category detection."""

from .category_detection import detect_category, get_category_terms, list_categories
from .normalization import clean_html, excerpt, tokenize_query

__all__ = [
    "clean_html",
    "detect_category",
    "excerpt",
    "get_category_terms",
    "list_categories",
    "tokenize_query",
]
