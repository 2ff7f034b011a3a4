"""Ranking services for deterministic relevance ranking."""

from .score import SearchQuery, ScoredCandidate, rank, score_record

__all__ = ["SearchQuery", "ScoredCandidate", "rank", "score_record"]
