from .clustering import SIMILARITY_THRESHOLD, cluster_articles
from .engine import ClusterBuildStats, StoryClusteringEngine, fallback_summary, find_topic_match

__all__ = [
    "SIMILARITY_THRESHOLD",
    "ClusterBuildStats",
    "StoryClusteringEngine",
    "cluster_articles",
    "fallback_summary",
    "find_topic_match",
]
