"""Reciprocal Rank Fusion of a vector ranking and a full-text ranking."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

RRF_K = 60
SCORE_FIELD = "_score"


def rrf_score(rank: int, k: int = RRF_K) -> float:
    """Partial score of a row at zero-based ``rank``."""
    return 1.0 / (k + rank + 1)


def reciprocal_rank_fusion(
    vector_rows: Iterable[Mapping[str, Any]],
    text_rows: Iterable[Mapping[str, Any]],
    limit: int,
    k: int = RRF_K,
    id_field: str = "id",
) -> list[dict[str, Any]]:
    """Merge two best-first row lists into one list ranked by fused score.

    Rows sharing an id across the two lists have their partial scores
    summed. Within one list only the best-ranked occurrence of an id
    counts; later repeats still occupy their rank. The payload kept for
    such a row is the first one seen, and vector rows are walked before
    text rows, so the vector-side row wins; fields are never merged. Ties
    keep encounter order. Each returned row is a shallow copy with the
    fused score stored under ``_score``.

    Raises:
        ValueError: if ``limit`` is not a positive integer.
    """
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")

    fused: dict[Any, tuple[Mapping[str, Any], float]] = {}
    for rows in (vector_rows, text_rows):
        seen: set[Any] = set()
        for rank, row in enumerate(rows):
            row_id = row[id_field]
            if row_id in seen:
                continue
            seen.add(row_id)
            kept, score = fused.get(row_id, (row, 0.0))
            fused[row_id] = (kept, score + rrf_score(rank, k))

    # sorted() is stable and dicts keep insertion order, so ties stay in encounter order
    ranked = sorted(fused.values(), key=lambda item: item[1], reverse=True)
    return [{**row, SCORE_FIELD: score} for row, score in ranked[:limit]]
