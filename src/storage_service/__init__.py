from .errors import ParseError, PersistenceError
from .kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore, RedisKeyValueStore, build_store
from .repository import (
    RESOURCE_ARTICLES,
    RESOURCE_CLUSTERS,
    RESOURCE_GRAPH,
    Repository,
)

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "ParseError",
    "PersistenceError",
    "RESOURCE_ARTICLES",
    "RESOURCE_CLUSTERS",
    "RESOURCE_GRAPH",
    "RedisKeyValueStore",
    "Repository",
    "build_store",
]
