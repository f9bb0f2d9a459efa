from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from pydantic import ValidationError

from completion.client import CompletionClient
from completion.errors import ExternalServiceError
from completion.prompts import (
    CHANGE_DETECTION_MAX_TOKENS,
    SUMMARY_MAX_TOKENS,
    build_change_detection_prompt,
    build_summary_prompt,
)
from completion.result import CompletionResult
from entity_graph.models import Article, ChangelogEntry, StoryCluster, StorySummary
from entity_graph.wire_models import StoryChangeValue, StorySummaryValue
from storage_service.errors import PersistenceError
from storage_service.repository import RESOURCE_CLUSTERS, Repository
from storage_service.utils import utc_now

from .clustering import SIMILARITY_THRESHOLD, cluster_articles

logger = logging.getLogger(__name__)

TITLE_LIMIT = 80


@dataclass(slots=True)
class ClusterBuildStats:
    articles: int = 0
    clusters: int = 0
    remote_summaries: int = 0
    fallback_summaries: int = 0
    previous_clusters: int = 0
    matched_clusters: int = 0
    failed_change_detections: int = 0
    carried_entries: int = 0
    detected_entries: int = 0


def fallback_summary(articles: list[Article]) -> StorySummary:
    first = articles[0]
    return StorySummary(
        title=first.title[:TITLE_LIMIT],
        summary=first.description or first.title,
        topics=[],
        significance="low",
    )


def find_topic_match(cluster: StoryCluster, previous: list[StoryCluster]) -> StoryCluster | None:
    """First previously stored cluster sharing any topic string with `cluster`.

    Generic topics shared by unrelated stories can match the wrong history.
    """
    topics = set(cluster.topics)
    for old in previous:
        if topics.intersection(old.topics):
            return old
    return None


class StoryClusteringEngine:
    """Groups articles into stories, summarizes them and carries story changelogs across rebuilds."""

    def __init__(
        self,
        repository: Repository,
        completion: CompletionClient | None = None,
        *,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self.repository = repository
        self.completion = completion
        self.similarity_threshold = similarity_threshold
        self.last_stats = ClusterBuildStats()

    async def build_clusters(
        self,
        articles: list[Article],
        completion: CompletionClient | None = None,
    ) -> list[StoryCluster]:
        """Rebuild the story set from `articles`.

        `completion` overrides the engine's client for this build only. The
        client is fixed once the cluster lock is held.
        """
        async with self.repository.lock(RESOURCE_CLUSTERS):
            client = completion if completion is not None else self.completion
            stats = ClusterBuildStats(articles=len(articles))
            if client is None:
                logger.warning("completion service not configured; clusters use fallback summaries")

            groups = cluster_articles(articles, threshold=self.similarity_threshold)
            logger.info("found story clusters=%d articles=%d", len(groups), len(articles))

            clusters: list[StoryCluster] = []
            for group in groups:
                ordered = sorted(group, key=lambda article: article.published_at)
                summary = await self._summary_for(client, ordered, stats)
                clusters.append(
                    StoryCluster(
                        id=str(uuid.uuid4()),
                        title=summary.title,
                        summary=summary.summary,
                        article_ids=[article.id for article in ordered],
                        first_seen_at=ordered[0].published_at,
                        last_updated_at=ordered[-1].published_at,
                        update_count=len(ordered) - 1,
                        significance=summary.significance,
                        topics=list(summary.topics),
                        changelog=[],
                    )
                )

            await self._carry_forward(client, clusters, articles, stats)

            try:
                self.repository.save_clusters(clusters)
            except PersistenceError:
                logger.exception("story clusters not persisted clusters=%d", len(clusters))

            stats.clusters = len(clusters)
            self.last_stats = stats

        logger.info(
            "built story clusters=%d remote_summaries=%d fallback_summaries=%d matched=%d",
            stats.clusters,
            stats.remote_summaries,
            stats.fallback_summaries,
            stats.matched_clusters,
        )
        return clusters

    async def _summary_for(
        self, client: CompletionClient | None, ordered: list[Article], stats: ClusterBuildStats
    ) -> StorySummary:
        result = await self._summarize(client, ordered)
        if result.ok and result.value is not None:
            stats.remote_summaries += 1
            return result.value
        stats.fallback_summaries += 1
        return fallback_summary(ordered)

    async def summarize(self, articles: list[Article]) -> CompletionResult[StorySummary]:
        return await self._summarize(self.completion, articles)

    async def _summarize(self, client: CompletionClient | None, articles: list[Article]) -> CompletionResult[StorySummary]:
        if client is None:
            return CompletionResult.failure(ExternalServiceError("no completion service configured"))
        result = await client.complete_json(
            build_summary_prompt(articles),
            expect=dict,
            purpose="summary",
            max_tokens=SUMMARY_MAX_TOKENS,
        )
        if result.error is not None:
            return CompletionResult.failure(result.error)
        try:
            return CompletionResult.success(StorySummaryValue.model_validate(result.value).to_domain())
        except ValidationError as exc:
            logger.warning("summary response rejected errors=%d", exc.error_count())
            return CompletionResult.failure(ExternalServiceError(f"invalid summary payload: {exc.error_count()} error(s)"))

    async def detect_changes(self, previous: StoryCluster, articles: list[Article]) -> CompletionResult[list[ChangelogEntry]]:
        return await self._detect_changes(self.completion, previous, articles)

    async def _detect_changes(
        self, client: CompletionClient | None, previous: StoryCluster, articles: list[Article]
    ) -> CompletionResult[list[ChangelogEntry]]:
        if client is None:
            return CompletionResult.failure(ExternalServiceError("no completion service configured"))
        result = await client.complete_json(
            build_change_detection_prompt(previous, articles),
            expect=list,
            purpose="change_detection",
            max_tokens=CHANGE_DETECTION_MAX_TOKENS,
        )
        if result.error is not None:
            return CompletionResult.failure(result.error)

        anchor = articles[0]
        detected_at = utc_now()
        entries: list[ChangelogEntry] = []
        for item in result.value or []:
            try:
                change = StoryChangeValue.model_validate(item)
            except ValidationError:
                logger.debug("change descriptor dropped cluster=%s", previous.id)
                continue
            entries.append(
                ChangelogEntry(
                    id=str(uuid.uuid4()),
                    article_id=anchor.id,
                    article_url=anchor.url,
                    article_title=anchor.title,
                    field=change.field,
                    previous_value=change.previous_value,
                    new_value=change.new_value,
                    detected_at=detected_at,
                    change_type=change.change_type,
                    significance=change.significance,
                )
            )
        return CompletionResult.success(entries)

    async def _carry_forward(
        self,
        client: CompletionClient | None,
        clusters: list[StoryCluster],
        articles: list[Article],
        stats: ClusterBuildStats,
    ) -> None:
        previous = self.repository.load_clusters()
        stats.previous_clusters = len(previous)
        if not previous:
            return
        if client is None:
            logger.info("story changelogs not carried forward; completion service not configured")
            return

        for cluster in clusters:
            match = find_topic_match(cluster, previous)
            if match is None:
                continue
            stats.matched_clusters += 1
            members = set(cluster.article_ids)
            cluster_articles_in_input_order = [article for article in articles if article.id in members]

            result = await self._detect_changes(client, match, cluster_articles_in_input_order)
            if result.error is not None:
                stats.failed_change_detections += 1
            new_entries = result.unwrap_or([])
            cluster.changelog = [*match.changelog, *new_entries]
            stats.carried_entries += len(match.changelog)
            stats.detected_entries += len(new_entries)
            logger.debug(
                "story changelog carried cluster=%s from=%s carried=%d detected=%d",
                cluster.id,
                match.id,
                len(match.changelog),
                len(new_entries),
            )

    def get_clusters(self) -> list[StoryCluster]:
        return self.repository.load_clusters()

    async def clear_clusters(self) -> None:
        async with self.repository.lock(RESOURCE_CLUSTERS):
            try:
                self.repository.clear_clusters()
            except PersistenceError:
                logger.exception("story clusters not cleared")

    @staticmethod
    def get_cluster_articles(cluster: StoryCluster, articles: list[Article]) -> list[Article]:
        members = set(cluster.article_ids)
        return [article for article in articles if article.id in members]
