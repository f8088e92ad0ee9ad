"""Similarity ranking over embedded entities.

This module implements:
- cosine_similarity: dot(a, b) / (|a| * |b|), 0.0 when either norm is zero
- DelegatedRanking: the store ranks with pgvector cosine distance (similarity = 1 - distance)
- ApplicationRanking: scan every embedded entity and rank in Python
- build_index: pick a strategy by name

Both strategies return a RetrievedContext of at most top_k items, sorted by
descending similarity, and an empty list (not an error) when nothing is embedded.
Store failures are raised as RetrievalError.
"""
import logging
from typing import List, Sequence

import numpy as np
from sqlalchemy.exc import SQLAlchemyError

from routerag.entities import RetrievedContext, ScoredEntity
from routerag.errors import RetrievalError

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        float: Score in [-1, 1]; 0.0 if either vector has zero norm.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class DelegatedRanking:
    """Let the storage engine compute cosine similarity and return sorted top-k rows."""

    def __init__(self, store, top_k: int):
        self.store = store
        self.top_k = top_k

    def search(self, query_vector: Sequence[float]) -> RetrievedContext:
        try:
            rows = self.store.rank_by_similarity(query_vector, self.top_k)
        except SQLAlchemyError as e:
            logger.error("Vector search failed: %s", e)
            raise RetrievalError(f"similarity search failed: {e}") from e
        context = [ScoredEntity(entity=ent, score=score) for ent, score in rows[: self.top_k]]
        logger.info("Delegated ranking returned %d candidates", len(context))
        return context


class ApplicationRanking:
    """Rank all embedded entities in-process.

    Candidates without an embedding or with a dimension different from the query
    vector are skipped. Ties keep the store's scan order.
    """

    def __init__(self, store, top_k: int):
        self.store = store
        self.top_k = top_k

    def search(self, query_vector: Sequence[float]) -> RetrievedContext:
        try:
            candidates = self.store.list_embedded()
        except SQLAlchemyError as e:
            logger.error("Candidate scan failed: %s", e)
            raise RetrievalError(f"similarity search failed: {e}") from e

        dim = len(query_vector)
        scored: List[ScoredEntity] = []
        skipped = 0
        for ent in candidates:
            if ent.embedding is None or len(ent.embedding) != dim:
                skipped += 1
                continue
            scored.append(ScoredEntity(entity=ent, score=cosine_similarity(query_vector, ent.embedding)))

        # sorted() is stable, also with reverse=True
        scored = sorted(scored, key=lambda s: s.score, reverse=True)[: self.top_k]
        logger.info(
            "Application ranking scanned %d candidates (%d skipped), kept %d",
            len(candidates), skipped, len(scored),
        )
        return scored


def build_index(strategy: str, store, top_k: int):
    """Return the ranking strategy named by settings.RANKING_STRATEGY."""
    if strategy == "application":
        return ApplicationRanking(store, top_k)
    if strategy == "delegated":
        return DelegatedRanking(store, top_k)
    raise ValueError(f"unknown ranking strategy: {strategy}")
