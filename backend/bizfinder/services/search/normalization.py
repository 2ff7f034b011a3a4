"""
Text normalization shared by ranking and result projection.

- clean_html: strip tags and decode the common entities in business descriptions
- excerpt: bounded, user-facing slice of a cleaned description
- tokenize_query: keywords used by the ranking engine
"""
import re
from typing import List, Optional

MIN_KEYWORD_LENGTH = 3

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_PUNCTUATION = ".,;:!?¡¿\"'()[]{}<>«»"

_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

EXCERPT_SHORT = 150
EXCERPT_MEDIUM = 200
EXCERPT_LONG = 600


def clean_html(html: Optional[str]) -> str:
    """Strip tags, decode &nbsp; &amp; &lt; &gt; &quot; &#39; and trim."""
    if not html:
        return ""
    text = _TAG_RE.sub("", html)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return text.strip()


def excerpt(html: Optional[str], max_length: int = EXCERPT_MEDIUM) -> str:
    """Cleaned description truncated to max_length, with an ellipsis when cut."""
    text = _WHITESPACE_RE.sub(" ", clean_html(html))
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + "..."


def tokenize_query(query: Optional[str]) -> List[str]:
    """
    Split a free-text query into ranking keywords.

    Whitespace split, case-fold, edge punctuation stripped, tokens shorter
    than MIN_KEYWORD_LENGTH dropped, duplicates removed (first occurrence kept).
    """
    if not query:
        return []

    keywords: List[str] = []
    seen = set()
    for raw in query.casefold().split():
        token = raw.strip(_EDGE_PUNCTUATION)
        if len(token) < MIN_KEYWORD_LENGTH or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords
