from __future__ import annotations

import math
from collections.abc import Iterable

from .types import CandidateItem, UrgencyLabel
from .urgency import URGENCY_PRIORITY

MAX_PLAN_ITEMS = 10


def _relevance_key(relevance: float | None) -> float:
    # Higher relevance first; missing or NaN scores go after any real score.
    if relevance is None or math.isnan(relevance):
        return math.inf
    return -relevance


def rank_candidates(
    annotated: Iterable[tuple[CandidateItem, UrgencyLabel]],
    limit: int = MAX_PLAN_ITEMS,
) -> list[tuple[CandidateItem, UrgencyLabel]]:
    """Dedupe by ``source_id`` (first wins) and order by urgency, relevance, retrieval order."""
    seen: set[str] = set()
    unique: list[tuple[int, CandidateItem, UrgencyLabel]] = []
    for order, (candidate, label) in enumerate(annotated):
        if candidate.source_id in seen:
            continue
        seen.add(candidate.source_id)
        unique.append((order, candidate, label))

    unique.sort(
        key=lambda entry: (
            URGENCY_PRIORITY[entry[2]],
            _relevance_key(entry[1].relevance),
            entry[0],
        )
    )
    return [(candidate, label) for _, candidate, label in unique[: max(0, limit)]]


__all__ = ["MAX_PLAN_ITEMS", "rank_candidates"]
