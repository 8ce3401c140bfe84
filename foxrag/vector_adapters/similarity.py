"""Similarity ranking shared by the document store backends."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from contracts.errors import StoreError
from contracts.vector_db import Document, SearchResult


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise StoreError(f"Embedding dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    return dot / norm


def rank(
    query_vector: Sequence[float],
    documents: Iterable[Document],
    limit: int | None = None,
) -> list[SearchResult]:
    """Order documents most to least similar; ties keep insertion order."""
    scored = [
        SearchResult(
            id=doc.id,
            content=doc.content,
            similarity=cosine_similarity(query_vector, doc.embedding),
        )
        for doc in documents
    ]
    scored.sort(key=lambda r: r.similarity, reverse=True)
    if limit is not None:
        return scored[:limit]
    return scored
