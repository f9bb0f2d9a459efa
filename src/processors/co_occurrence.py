from __future__ import annotations

from collections import Counter
from itertools import combinations
from typing import Iterable

from entity_graph.models import Relation


def cap_entity_ids(entity_ids: list[str], limit: int, keep: str | None = None) -> list[str]:
    """Deduplicate (first occurrence wins) and bound the ids paired for one article.

    `keep` is always retained, replacing the last slot when the list is full.
    """
    unique = list(dict.fromkeys(entity_ids))
    if limit <= 0 or len(unique) <= limit:
        return unique
    if keep is None or keep in unique[:limit]:
        return unique[:limit]
    return unique[: limit - 1] + [keep]


def detect_co_occurrence_pairs(article_entity_ids: Iterable[list[str]]) -> list[Relation]:
    """Count, per unordered pair of distinct entities, the articles they share."""
    counts: Counter[tuple[str, str]] = Counter()
    for entity_ids in article_entity_ids:
        unique = sorted(set(entity_ids))
        for left, right in combinations(unique, 2):
            counts[(left, right)] += 1

    return [
        Relation(source_id=left, target_id=right, strength=strength)
        for (left, right), strength in counts.items()
    ]
