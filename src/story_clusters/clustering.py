from __future__ import annotations

from typing import Callable

from entity_graph.models import Article
from processors.similarity import article_similarity

SIMILARITY_THRESHOLD = 0.3


def cluster_articles(
    articles: list[Article],
    threshold: float = SIMILARITY_THRESHOLD,
    score: Callable[[Article, Article], float] = article_similarity,
) -> list[list[Article]]:
    """Greedy single-pass partition of articles into story groups.

    Each unassigned article, in input order, seeds a group and pulls in every
    later unassigned article scoring at least `threshold` against the seed.
    Membership is decided against the seed only, so results depend on input
    order. Articles are assigned by id; a repeated id joins nothing new.
    """
    clusters: list[list[Article]] = []
    assigned: set[str] = set()

    for seed in articles:
        if seed.id in assigned:
            continue
        cluster = [seed]
        assigned.add(seed.id)

        for other in articles:
            if other.id in assigned:
                continue
            if score(seed, other) >= threshold:
                cluster.append(other)
                assigned.add(other.id)

        clusters.append(cluster)

    return clusters
