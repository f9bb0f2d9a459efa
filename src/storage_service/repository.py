from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from entity_graph.models import Article, ChangelogEntry, EntityGraph, StoryCluster
from entity_graph.wire_models import (
    ArticleValue,
    ChangelogEntryValue,
    CompletionConfigValue,
    EntityGraphValue,
    StoryClusterValue,
)

from .errors import ParseError, PersistenceError
from .kv_store import KeyValueStore
from .metrics import PERSISTENCE_FAILURES, UNREADABLE_RECORDS
from .utils import unwrap_record, utc_now, wrap_record

logger = logging.getLogger(__name__)

ARTICLES_KEY = "papertrail-articles"
CHANGELOG_KEY = "papertrail-changelog"
ENTITIES_KEY = "papertrail-entities"
CLUSTERS_KEY = "papertrail-story-clusters"
API_CONFIG_KEY = "papertrail-api-config"

RESOURCE_ARTICLES = "articles"
RESOURCE_GRAPH = "graph"
RESOURCE_CLUSTERS = "clusters"

W = TypeVar("W", bound=BaseModel)
T = TypeVar("T")


class Repository:
    """Typed access to the persisted records, one method set per record.

    Every record is written whole, wrapped in a schema-versioned envelope.
    Reads never raise for missing, unreadable or malformed data: they log
    and return the empty default. Writes raise PersistenceError.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, resource: str) -> asyncio.Lock:
        """Single-flight guard: one in-flight mutating operation per logical resource."""
        if resource not in self._locks:
            self._locks[resource] = asyncio.Lock()
        return self._locks[resource]

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Any | None:
        try:
            payload = self.store.get(key)
        except PersistenceError:
            PERSISTENCE_FAILURES.labels(record=key, operation="read").inc()
            logger.exception("record read failed key=%s; treating as empty", key)
            return None
        if payload is None:
            return None
        try:
            return unwrap_record(payload)
        except ParseError as exc:
            UNREADABLE_RECORDS.labels(record=key).inc()
            logger.warning("record unreadable key=%s error=%s; treating as empty", key, exc)
            return None

    def _write(self, key: str, data: Any) -> None:
        try:
            self.store.set(key, wrap_record(data))
        except PersistenceError:
            PERSISTENCE_FAILURES.labels(record=key, operation="write").inc()
            raise

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except PersistenceError:
            PERSISTENCE_FAILURES.labels(record=key, operation="delete").inc()
            raise

    @staticmethod
    def _decode_items(key: str, raw: Any, wire: type[W], convert: Callable[[W], T]) -> list[T]:
        if not isinstance(raw, list):
            if raw is not None:
                UNREADABLE_RECORDS.labels(record=key).inc()
                logger.warning("record unreadable key=%s expected=list got=%s", key, type(raw).__name__)
            return []
        items: list[T] = []
        skipped = 0
        for item in raw:
            try:
                items.append(convert(wire.model_validate(item)))
            except ValidationError:
                skipped += 1
        if skipped:
            UNREADABLE_RECORDS.labels(record=key).inc()
            logger.warning("record key=%s skipped=%d malformed item(s)", key, skipped)
        return items

    # ------------------------------------------------------------------
    # Article cache + changelog log
    # ------------------------------------------------------------------

    def load_articles(self) -> dict[str, Article]:
        raw = self._read(ARTICLES_KEY)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            UNREADABLE_RECORDS.labels(record=ARTICLES_KEY).inc()
            logger.warning("record unreadable key=%s expected=object got=%s", ARTICLES_KEY, type(raw).__name__)
            return {}
        articles = self._decode_items(ARTICLES_KEY, list(raw.values()), ArticleValue, ArticleValue.to_domain)
        return {article.id: article for article in articles}

    def load_changelog(self) -> list[ChangelogEntry]:
        return self._decode_items(
            CHANGELOG_KEY,
            self._read(CHANGELOG_KEY),
            ChangelogEntryValue,
            ChangelogEntryValue.to_domain,
        )

    def save_article_state(self, articles: dict[str, Article], changelog: list[ChangelogEntry]) -> None:
        """Write the article cache and the changelog log as one unit.

        The cache is written first. If the changelog write fails the cache
        record is put back to what it held before, then the error is raised.
        """
        articles_data = {
            article_id: ArticleValue.from_domain(article).to_json_dict()
            for article_id, article in articles.items()
        }
        changelog_data = [ChangelogEntryValue.from_domain(entry).to_json_dict() for entry in changelog]

        try:
            previous = self.store.get(ARTICLES_KEY)
        except PersistenceError as exc:
            # An unreadable cache rolls back to no cache at all.
            PERSISTENCE_FAILURES.labels(record=ARTICLES_KEY, operation="read").inc()
            logger.warning("rollback snapshot unavailable key=%s error=%s", ARTICLES_KEY, exc)
            previous = None
        self._write(ARTICLES_KEY, articles_data)
        try:
            self._write(CHANGELOG_KEY, changelog_data)
        except PersistenceError:
            self._restore(ARTICLES_KEY, previous)
            raise

    def _restore(self, key: str, previous: Any | None) -> None:
        try:
            if previous is None:
                self.store.delete(key)
            else:
                self.store.set(key, previous)
            logger.warning("record rolled back key=%s", key)
        except PersistenceError:
            PERSISTENCE_FAILURES.labels(record=key, operation="rollback").inc()
            logger.exception("record rollback failed key=%s; cache may be ahead of changelog", key)

    def clear_article_state(self) -> None:
        self._delete(ARTICLES_KEY)
        self._delete(CHANGELOG_KEY)

    # ------------------------------------------------------------------
    # Entity graph
    # ------------------------------------------------------------------

    def load_graph(self) -> EntityGraph | None:
        raw = self._read(ENTITIES_KEY)
        if raw is None:
            return None
        try:
            return EntityGraphValue.model_validate(raw).to_domain()
        except ValidationError as exc:
            UNREADABLE_RECORDS.labels(record=ENTITIES_KEY).inc()
            logger.warning("record unreadable key=%s errors=%d", ENTITIES_KEY, exc.error_count())
            return None

    def save_graph(self, graph: EntityGraph) -> None:
        self._write(ENTITIES_KEY, EntityGraphValue.from_domain(graph).to_json_dict())

    def clear_graph(self) -> None:
        self._delete(ENTITIES_KEY)

    # ------------------------------------------------------------------
    # Story clusters
    # ------------------------------------------------------------------

    def load_clusters(self) -> list[StoryCluster]:
        return self._decode_items(
            CLUSTERS_KEY,
            self._read(CLUSTERS_KEY),
            StoryClusterValue,
            StoryClusterValue.to_domain,
        )

    def save_clusters(self, clusters: list[StoryCluster]) -> None:
        self._write(CLUSTERS_KEY, [StoryClusterValue.from_domain(cluster).to_json_dict() for cluster in clusters])

    def clear_clusters(self) -> None:
        self._delete(CLUSTERS_KEY)

    # ------------------------------------------------------------------
    # AI configuration
    # ------------------------------------------------------------------

    def load_completion_config(self) -> CompletionConfigValue | None:
        raw = self._read(API_CONFIG_KEY)
        if raw is None:
            return None
        try:
            return CompletionConfigValue.model_validate(raw)
        except ValidationError as exc:
            UNREADABLE_RECORDS.labels(record=API_CONFIG_KEY).inc()
            logger.warning("record unreadable key=%s errors=%d", API_CONFIG_KEY, exc.error_count())
            return None

    def save_completion_config(self, config: CompletionConfigValue) -> CompletionConfigValue:
        stored = config.model_copy(update={"last_updated": utc_now()})
        self._write(API_CONFIG_KEY, stored.to_json_dict())
        return stored

    def clear_completion_config(self) -> None:
        self._delete(API_CONFIG_KEY)
