from __future__ import annotations

import logging
from typing import Any

import httpx
from prometheus_client import Histogram

from change_tracking.detector import ChangeDetector
from completion.client import CompletionClient, build_client
from completion.config import (
    CompletionConfig,
    build_completion_config,
    config_from_record,
    is_complete,
    record_is_complete,
)
from entity_graph.models import Article, ChangelogEntry, Entity, EntityGraph, StoryCluster
from entity_graph.wire_models import CompletionConfigValue
from graph_state.builder import EntityGraphBuilder
from storage_service.kv_store import build_store
from storage_service.repository import Repository
from story_clusters.engine import StoryClusteringEngine

from .config import Settings

logger = logging.getLogger(__name__)

BUILD_LATENCY_SECONDS = Histogram(
    "story_build_latency_seconds",
    "Latency of the mutating story operations",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)


class StoryService:
    """Wires the three story components to one repository; each build gets its own completion client."""

    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or Settings()
        self._transport = transport
        self.detector = ChangeDetector(repository)
        self.graph_builder = EntityGraphBuilder(
            repository,
            max_entities=self.settings.MAX_GRAPH_ENTITIES,
            max_entities_per_article=self.settings.MAX_ENTITIES_PER_ARTICLE,
        )
        self.cluster_engine = StoryClusteringEngine(
            repository,
            similarity_threshold=self.settings.CLUSTER_SIMILARITY_THRESHOLD,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "StoryService":
        settings = settings or Settings()
        store = build_store(settings.STORE_BACKEND, path=settings.STORE_PATH, redis_url=settings.REDIS_URL)
        logger.info("story service configured store=%s", settings.STORE_BACKEND)
        return cls(Repository(store), settings)

    # ------------------------------------------------------------------
    # Completion service
    # ------------------------------------------------------------------

    def completion_config(self) -> CompletionConfig | None:
        """Persisted AI configuration when enabled and complete, else the environment settings."""
        timeout = self.settings.AI_TIMEOUT_SECONDS
        stored = config_from_record(self.repository.load_completion_config(), timeout)
        if stored is not None:
            return stored
        return build_completion_config(
            enabled=self.settings.AI_ENABLED,
            base_url=self.settings.AI_BASE_URL,
            api_key=self.settings.AI_API_KEY,
            model=self.settings.AI_MODEL,
            dialect=self.settings.AI_DIALECT,
            timeout_seconds=timeout,
        )

    def completion_client(self) -> CompletionClient | None:
        """Fresh client for the current configuration. Each build resolves one and keeps it."""
        return build_client(self.completion_config(), transport=self._transport)

    def completion_configured(self) -> bool:
        if record_is_complete(self.repository.load_completion_config()):
            return True
        return is_complete(
            self.settings.AI_ENABLED,
            self.settings.AI_BASE_URL,
            self.settings.AI_API_KEY,
            self.settings.AI_MODEL,
        )

    def get_ai_config(self) -> CompletionConfigValue | None:
        return self.repository.load_completion_config()

    def save_ai_config(self, config: CompletionConfigValue) -> CompletionConfigValue:
        stored = self.repository.save_completion_config(config)
        logger.info("ai configuration saved enabled=%s model=%s", stored.ai_enabled, stored.ai_model)
        return stored

    def clear_ai_config(self) -> None:
        self.repository.clear_completion_config()
        logger.info("ai configuration cleared")

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def process_articles(self, articles: list[Article]) -> list[ChangelogEntry]:
        with BUILD_LATENCY_SECONDS.labels(operation="process_articles").time():
            return await self.detector.process_articles(articles)

    async def build_graph(self, articles: list[Article]) -> EntityGraph:
        client = self.completion_client()
        with BUILD_LATENCY_SECONDS.labels(operation="build_graph").time():
            return await self.graph_builder.build_graph(articles, completion=client)

    async def build_clusters(self, articles: list[Article]) -> list[StoryCluster]:
        client = self.completion_client()
        with BUILD_LATENCY_SECONDS.labels(operation="build_clusters").time():
            return await self.cluster_engine.build_clusters(articles, completion=client)

    async def clear_all(self) -> None:
        await self.detector.clear_all()
        await self.graph_builder.clear_graph()
        await self.cluster_engine.clear_clusters()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_changelog(self) -> list[ChangelogEntry]:
        return self.detector.get_changelog()

    def get_article_changes(self, article_id: str) -> list[ChangelogEntry]:
        return self.detector.get_article_changes(article_id)

    def get_change_count(self, article_id: str) -> int:
        return self.detector.get_change_count(article_id)

    def get_graph(self) -> EntityGraph | None:
        return self.graph_builder.get_graph()

    def get_related_entities(self, entity_id: str) -> list[Entity]:
        return self.graph_builder.get_related_entities(entity_id)

    def get_entity_articles(self, entity_id: str) -> list[str]:
        return self.graph_builder.get_entity_articles(entity_id)

    def get_clusters(self) -> list[StoryCluster]:
        return self.cluster_engine.get_clusters()

    def get_stats(self) -> dict[str, Any]:
        graph = self.get_graph()
        clusters = self.get_clusters()
        return {
            **self.detector.get_stats(),
            "totalEntities": len(graph.entities) if graph else 0,
            "totalRelations": len(graph.relations) if graph else 0,
            "totalClusters": len(clusters),
            "graphLastUpdated": graph.last_updated.isoformat() if graph else None,
            "aiConfigured": self.completion_configured(),
        }
