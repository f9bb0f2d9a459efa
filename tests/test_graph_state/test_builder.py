from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import httpx

from completion.client import OpenAIChatClient
from completion.config import CompletionConfig
from entity_graph.models import Article, ArticleSource
from graph_state.builder import EntityGraphBuilder
from storage_service.kv_store import InMemoryKeyValueStore
from storage_service.repository import Repository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _article(article_id: str, title: str, source: str = "Reuters", description: str | None = None) -> Article:
    return Article(
        id=article_id,
        url=f"https://news.example/{article_id}",
        title=title,
        source=ArticleSource(name=source),
        published_at=NOW,
        fetched_at=NOW,
        description=description,
    )


def _client(handler) -> OpenAIChatClient:
    config = CompletionConfig(
        base_url="https://llm.example/v1",
        api_key="secret",
        model="test-model",
        dialect="openai_chat",
    )
    return OpenAIChatClient(config, transport=httpx.MockTransport(handler))


def _chat_response(payload) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": json.dumps(payload)}}]})


def test_entities_merge_across_casings() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))

    graph = asyncio.run(
        builder.build_graph(
            [
                _article("a1", "NASA launches probe", source="Reuters"),
                _article("a2", "Nasa budget approved", source="reuters"),
            ]
        )
    )

    by_id = {entity.id: entity for entity in graph.entities}
    assert set(by_id) == {"nasa", "reuters"}
    assert by_id["nasa"].name == "NASA"
    assert by_id["nasa"].article_ids == ["a1", "a2"]
    assert by_id["nasa"].mention_count == 2
    assert by_id["reuters"].type == "source"
    assert [(rel.source_id, rel.target_id, rel.strength) for rel in graph.relations] == [("nasa", "reuters", 2)]


def test_repeated_article_counts_once() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))

    graph = asyncio.run(builder.build_graph([_article("a1", "NASA and Nasa agree"), _article("a1", "NASA again")]))

    nasa = next(entity for entity in graph.entities if entity.id == "nasa")
    assert nasa.article_ids == ["a1"]
    assert nasa.mention_count == 1


def test_graph_is_bounded_and_relations_point_at_kept_entities() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))
    articles = [_article(f"a{i}", "Acme Corp reports quarterly results", source=f"Source {i:03d}") for i in range(60)]

    graph = asyncio.run(builder.build_graph(articles))

    ids = {entity.id for entity in graph.entities}
    assert len(graph.entities) == 50
    assert graph.entities[0].id == "acmecorp"
    assert graph.entities[0].mention_count == 60
    assert graph.entities[1].id == "source000"
    assert len(graph.relations) == 49
    for relation in graph.relations:
        assert relation.source_id in ids
        assert relation.target_id in ids
        assert relation.source_id <= relation.target_id
    assert builder.last_stats.entities_before_pruning == 61
    assert builder.last_stats.relations_before_pruning == 60


def test_custom_entity_cap() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()), max_entities=5)
    articles = [_article(f"a{i}", "quiet day", source=f"Outlet {i}") for i in range(8)]

    graph = asyncio.run(builder.build_graph(articles))

    assert len(graph.entities) == 5
    assert graph.relations == []


def test_zero_entity_cap_is_honoured() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()), max_entities=0)

    graph = asyncio.run(builder.build_graph([_article("a1", "Jane Doe visits Paris")]))

    assert graph.entities == []
    assert graph.relations == []
    assert builder.last_stats.entities_before_pruning == 3


def test_build_completion_overrides_builder_client() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_response([{"name": "Federal Reserve", "type": "organization"}])

    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))

    graph = asyncio.run(builder.build_graph([_article("a1", "rates rise again")], completion=_client(handler)))

    assert {entity.id for entity in graph.entities} == {"federalreserve", "reuters"}
    assert builder.completion is None


def test_relations_sorted_by_strength() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))
    articles = [
        _article("a1", "Jane Doe visits Paris", source="Wire"),
        _article("a2", "Jane Doe returns", source="Wire"),
        _article("a3", "Paris weather", source="Daily"),
    ]

    graph = asyncio.run(builder.build_graph(articles))

    strengths = [relation.strength for relation in graph.relations]
    assert strengths == sorted(strengths, reverse=True)
    assert strengths[0] == 2


def test_remote_extraction_is_used_when_configured() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_response([{"name": "Federal Reserve", "type": "organization"}, {"name": "Jerome Powell"}])

    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()), _client(handler))

    graph = asyncio.run(builder.build_graph([_article("a1", "rates rise again")]))

    by_id = {entity.id: entity for entity in graph.entities}
    assert by_id["federalreserve"].type == "organization"
    assert by_id["jeromepowell"].type == "topic"
    assert "reuters" in by_id
    assert len(graph.relations) == 3
    assert builder.last_stats.remote_extractions == 1


def test_remote_failure_falls_back_per_article() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()), _client(handler))

    graph = asyncio.run(builder.build_graph([_article("a1", "Jane Doe visits Paris")]))

    assert {entity.id for entity in graph.entities} == {"janedoe", "paris", "reuters"}
    assert builder.last_stats.heuristic_extractions == 1
    assert builder.last_stats.failed_remote_extractions == 1


def test_graph_replaces_previous_and_supports_queries() -> None:
    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()))
    asyncio.run(builder.build_graph([_article("old", "Old Story", source="Archive")]))

    asyncio.run(
        builder.build_graph(
            [
                _article("a1", "Jane Doe visits Paris"),
                _article("a2", "Jane Doe returns", source="Wire"),
            ]
        )
    )

    graph = builder.get_graph()
    assert "archive" not in {entity.id for entity in graph.entities}
    assert {entity.id for entity in builder.get_related_entities("reuters")} == {"janedoe", "paris"}
    assert builder.get_entity_articles("janedoe") == ["a1", "a2"]
    assert builder.get_entity_articles("unknown") == []
    assert builder.get_related_entities("unknown") == []

    asyncio.run(builder.clear_graph())
    assert builder.get_graph() is None
    assert builder.get_related_entities("reuters") == []


def test_concurrent_builds_do_not_overlap() -> None:
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return _chat_response([{"name": "Jane Doe", "type": "person"}])

    builder = EntityGraphBuilder(Repository(InMemoryKeyValueStore()), _client(handler))
    batch = [_article("a1", "x"), _article("a2", "y")]

    async def run_both() -> None:
        await asyncio.gather(builder.build_graph(batch), builder.build_graph(batch))

    asyncio.run(run_both())

    assert peak == 1
    assert builder.get_graph() is not None
