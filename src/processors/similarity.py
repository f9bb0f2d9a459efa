from __future__ import annotations

from entity_graph.models import Article

TIME_WINDOW_DAYS = 7.0
WORD_WEIGHT = 0.8
TIME_WEIGHT = 0.2
MIN_SIGNIFICANT_WORD_LENGTH = 4

CLUSTER_STOP_WORDS = frozenset(
    {"this", "that", "with", "from", "have", "been", "will", "were", "what", "when", "where", "which"}
)


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def similarity(a: str, b: str) -> float:
    """Word-overlap similarity between two strings, in [0, 1]."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return jaccard(set(a.lower().split()), set(b.lower().split()))


def significant_words(text: str) -> set[str]:
    return {
        word
        for word in text.lower().split()
        if len(word) >= MIN_SIGNIFICANT_WORD_LENGTH and word not in CLUSTER_STOP_WORDS
    }


def time_proximity(a: Article, b: Article) -> float:
    days = abs((a.published_at - b.published_at).total_seconds()) / 86400.0
    if days >= TIME_WINDOW_DAYS:
        return 0.0
    return 1.0 - days / TIME_WINDOW_DAYS


def article_similarity(a: Article, b: Article) -> float:
    """Blend of title+description word overlap and publish-time proximity."""
    words_a = significant_words(f"{a.title} {a.description or ''}")
    words_b = significant_words(f"{b.title} {b.description or ''}")
    return WORD_WEIGHT * jaccard(words_a, words_b) + TIME_WEIGHT * time_proximity(a, b)
