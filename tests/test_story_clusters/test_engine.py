from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx

from completion.client import OpenAIChatClient
from completion.config import CompletionConfig
from entity_graph.models import Article, ArticleSource
from storage_service.kv_store import InMemoryKeyValueStore
from storage_service.repository import Repository
from story_clusters.clustering import cluster_articles
from story_clusters.engine import StoryClusteringEngine, fallback_summary

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _article(article_id: str, title: str, *, hours: float = 0.0, description: str | None = None) -> Article:
    published = BASE_TIME + timedelta(hours=hours)
    return Article(
        id=article_id,
        url=f"https://news.example/{article_id}",
        title=title,
        source=ArticleSource(name="Wire"),
        published_at=published,
        fetched_at=published,
        description=description,
    )


def _batch() -> list[Article]:
    return [
        _article("a1", "Storm floods coastal towns", hours=2),
        _article("a2", "Coastal towns flooded as storm stalls"),
        _article("a3", "Markets rally after earnings", hours=24),
    ]


def _chat(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


class FakeCompletionService:
    """Answers summary and change-detection prompts like a well-behaved model."""

    def __init__(self) -> None:
        self.fail_changes = False
        self.summary_text: str | None = None
        self.change_payload: list = [
            {"changeType": "Development", "previousValue": "old", "newValue": "new", "significance": "major"}
        ]
        self.prompts: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        prompt = json.loads(request.content)["messages"][0]["content"]
        self.prompts.append(prompt)
        if "OLD NARRATIVE" in prompt:
            if self.fail_changes:
                return httpx.Response(500)
            return _chat(json.dumps(self.change_payload))
        if self.summary_text is not None:
            return _chat(self.summary_text)
        if "Storm" in prompt:
            summary = {
                "title": "Coastal storm",
                "summary": "A storm floods towns.",
                "topics": ["weather", "storm"],
                "significance": "High",
            }
        else:
            summary = {"title": "Markets", "summary": "Stocks up.", "topics": ["markets"], "significance": "medium"}
        return _chat(json.dumps(summary))

    def client(self) -> OpenAIChatClient:
        config = CompletionConfig(
            base_url="https://llm.example/v1",
            api_key="secret",
            model="test-model",
            dialect="openai_chat",
        )
        return OpenAIChatClient(config, transport=httpx.MockTransport(self.handler))


def test_clustering_partitions_input() -> None:
    articles = _batch()

    clusters = cluster_articles(articles)

    ids = [article.id for cluster in clusters for article in cluster]
    assert sorted(ids) == ["a1", "a2", "a3"]
    assert [[article.id for article in cluster] for cluster in clusters] == [["a1", "a2"], ["a3"]]


def test_clustering_ignores_repeated_ids() -> None:
    article = _article("a1", "Storm floods coastal towns")
    assert [[item.id for item in cluster] for cluster in cluster_articles([article, article])] == [["a1"]]


def test_disjoint_articles_one_day_apart_stay_separate() -> None:
    clusters = cluster_articles(
        [_article("a1", "Storm floods coastal towns"), _article("a2", "Markets rally after earnings", hours=24)]
    )
    assert len(clusters) == 2


def test_fallback_summary() -> None:
    long_title = "Storm " + "x" * 100
    summary = fallback_summary([_article("a1", long_title, description="Heavy rain")])
    assert summary.title == long_title[:80]
    assert summary.summary == "Heavy rain"
    assert summary.topics == []
    assert summary.significance == "low"
    assert fallback_summary([_article("a1", "Short")]).summary == "Short"


def test_build_without_client_uses_fallback() -> None:
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()))

    clusters = asyncio.run(engine.build_clusters(_batch()))

    storm = clusters[0]
    assert storm.article_ids == ["a2", "a1"]
    assert storm.title == "Coastal towns flooded as storm stalls"
    assert storm.first_seen_at == BASE_TIME
    assert storm.last_updated_at == BASE_TIME + timedelta(hours=2)
    assert storm.update_count == 1
    assert storm.significance == "low"
    assert storm.changelog == []
    assert clusters[1].update_count == 0
    assert engine.last_stats.fallback_summaries == 2
    assert engine.get_clusters() == clusters


def test_remote_summaries() -> None:
    service = FakeCompletionService()
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())

    clusters = asyncio.run(engine.build_clusters(_batch()))

    assert clusters[0].title == "Coastal storm"
    assert clusters[0].topics == ["weather", "storm"]
    assert clusters[0].significance == "high"
    assert clusters[1].significance == "medium"
    assert engine.last_stats.remote_summaries == 2
    assert '[1] Wire: "Coastal towns flooded as storm stalls"' in service.prompts[0]


def test_build_completion_is_used_for_summaries_and_changes() -> None:
    service = FakeCompletionService()
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()))

    asyncio.run(engine.build_clusters(_batch(), completion=service.client()))
    clusters = asyncio.run(engine.build_clusters(_batch(), completion=service.client()))

    assert engine.completion is None
    assert engine.last_stats.remote_summaries == 2
    assert [len(cluster.changelog) for cluster in clusters] == [1, 1]


def test_garbage_summary_falls_back() -> None:
    service = FakeCompletionService()
    service.summary_text = "Sure! This story is about a storm."
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())

    clusters = asyncio.run(engine.build_clusters(_batch()))

    assert clusters[0].title == "Coastal towns flooded as storm stalls"
    assert clusters[0].significance == "low"
    assert engine.last_stats.fallback_summaries == 2


def test_incomplete_summary_falls_back() -> None:
    service = FakeCompletionService()
    service.summary_text = json.dumps({"title": "No summary field"})
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())

    clusters = asyncio.run(engine.build_clusters(_batch()))

    assert clusters[0].title == "Coastal towns flooded as storm stalls"


def test_changelog_carries_forward_and_only_grows() -> None:
    service = FakeCompletionService()
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())

    first = asyncio.run(engine.build_clusters(_batch()))
    second = asyncio.run(engine.build_clusters(_batch()))
    third = asyncio.run(engine.build_clusters(_batch()))

    assert [cluster.changelog for cluster in first] == [[], []]
    assert [len(cluster.changelog) for cluster in second] == [1, 1]
    assert [len(cluster.changelog) for cluster in third] == [2, 2]
    for before, after in zip(second, third):
        assert after.changelog[: len(before.changelog)] == before.changelog
        assert after.id != before.id

    entry = second[0].changelog[0]
    assert entry.article_id == "a1"
    assert entry.article_url == "https://news.example/a1"
    assert entry.field == "content"
    assert entry.change_type == "development"
    assert entry.significance == "major"
    assert engine.last_stats.matched_clusters == 2
    assert engine.last_stats.carried_entries == 2


def test_failed_change_detection_keeps_old_changelog() -> None:
    service = FakeCompletionService()
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())
    asyncio.run(engine.build_clusters(_batch()))
    second = asyncio.run(engine.build_clusters(_batch()))

    service.fail_changes = True
    third = asyncio.run(engine.build_clusters(_batch()))

    assert third[0].changelog == second[0].changelog
    assert engine.last_stats.failed_change_detections == 2


def test_malformed_change_descriptors_are_dropped() -> None:
    service = FakeCompletionService()
    service.change_payload = [{"changeType": "rumour"}, {"newValue": "Death toll revised", "previousValue": None}, 7]
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())
    asyncio.run(engine.build_clusters(_batch()))

    clusters = asyncio.run(engine.build_clusters(_batch()))

    entries = clusters[0].changelog
    assert len(entries) == 1
    assert entries[0].change_type == "update"
    assert entries[0].previous_value == ""
    assert entries[0].new_value == "Death toll revised"


def test_no_topic_match_starts_fresh_changelog() -> None:
    service = FakeCompletionService()
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()), service.client())
    asyncio.run(engine.build_clusters(_batch()))
    asyncio.run(engine.build_clusters(_batch()))

    service.summary_text = json.dumps({"title": "T", "summary": "S", "topics": ["sports"], "significance": "low"})
    clusters = asyncio.run(engine.build_clusters(_batch()))

    assert [cluster.changelog for cluster in clusters] == [[], []]
    assert engine.last_stats.matched_clusters == 0


def test_without_client_changelog_is_not_carried() -> None:
    repository = Repository(InMemoryKeyValueStore())
    service = FakeCompletionService()
    asyncio.run(StoryClusteringEngine(repository, service.client()).build_clusters(_batch()))
    asyncio.run(StoryClusteringEngine(repository, service.client()).build_clusters(_batch()))

    clusters = asyncio.run(StoryClusteringEngine(repository).build_clusters(_batch()))

    assert [cluster.changelog for cluster in clusters] == [[], []]


def test_cluster_queries() -> None:
    engine = StoryClusteringEngine(Repository(InMemoryKeyValueStore()))
    articles = _batch()
    clusters = asyncio.run(engine.build_clusters(articles))

    assert [article.id for article in engine.get_cluster_articles(clusters[0], articles)] == ["a1", "a2"]

    asyncio.run(engine.clear_clusters())
    assert engine.get_clusters() == []
