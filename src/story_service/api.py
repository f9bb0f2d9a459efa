from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from completion.config import AI_PRESETS
from entity_graph.wire_models import (
    ArticleValue,
    ChangelogEntryValue,
    CompletionConfigValue,
    EntityGraphValue,
    EntityValue,
    StoryClusterValue,
)
from storage_service.errors import PersistenceError

from .service import StoryService


def _masked(config: CompletionConfigValue | None) -> dict[str, Any] | None:
    if config is None:
        return None
    payload = config.to_json_dict()
    key = config.ai_api_key
    payload["aiApiKey"] = f"...{key[-4:]}" if key and len(key) > 4 else ("***" if key else None)
    return payload


def create_app(service: StoryService | None = None) -> FastAPI:
    service = service or StoryService.from_settings()
    app = FastAPI(title="Story Tracker Service")
    app.state.service = service

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/articles")
    async def post_articles(articles: list[ArticleValue]) -> list[dict]:
        entries = await service.process_articles([item.to_domain() for item in articles])
        return [ChangelogEntryValue.from_domain(entry).to_json_dict() for entry in entries]

    @app.post("/graph/build")
    async def post_graph_build(articles: list[ArticleValue]) -> dict:
        graph = await service.build_graph([item.to_domain() for item in articles])
        return EntityGraphValue.from_domain(graph).to_json_dict()

    @app.post("/clusters/build")
    async def post_clusters_build(articles: list[ArticleValue]) -> list[dict]:
        clusters = await service.build_clusters([item.to_domain() for item in articles])
        return [StoryClusterValue.from_domain(cluster).to_json_dict() for cluster in clusters]

    @app.get("/changelog")
    def get_changelog() -> list[dict]:
        return [ChangelogEntryValue.from_domain(entry).to_json_dict() for entry in service.get_changelog()]

    @app.get("/changelog/{article_id}")
    def get_article_changelog(article_id: str) -> list[dict]:
        return [
            ChangelogEntryValue.from_domain(entry).to_json_dict()
            for entry in service.get_article_changes(article_id)
        ]

    @app.get("/changelog/{article_id}/count")
    def get_article_change_count(article_id: str) -> dict:
        count = service.get_change_count(article_id)
        return {"articleId": article_id, "count": count, "hasChanges": count > 0}

    @app.get("/graph")
    def get_graph() -> dict | None:
        graph = service.get_graph()
        return EntityGraphValue.from_domain(graph).to_json_dict() if graph else None

    @app.get("/graph/entities/{entity_id}/related")
    def get_related_entities(entity_id: str) -> list[dict]:
        return [EntityValue.from_domain(entity).to_json_dict() for entity in service.get_related_entities(entity_id)]

    @app.get("/graph/entities/{entity_id}/articles")
    def get_entity_articles(entity_id: str) -> list[str]:
        return service.get_entity_articles(entity_id)

    @app.get("/clusters")
    def get_clusters() -> list[dict]:
        return [StoryClusterValue.from_domain(cluster).to_json_dict() for cluster in service.get_clusters()]

    @app.get("/stats")
    def get_stats() -> dict:
        return service.get_stats()

    @app.get("/config/ai")
    def get_ai_config() -> dict | None:
        return _masked(service.get_ai_config())

    @app.get("/config/ai/presets")
    def get_ai_presets() -> dict:
        return AI_PRESETS

    @app.put("/config/ai")
    def put_ai_config(payload: CompletionConfigValue) -> dict | None:
        try:
            return _masked(service.save_ai_config(payload))
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.delete("/config/ai")
    def delete_ai_config() -> dict:
        try:
            service.clear_ai_config()
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"cleared": True}

    @app.delete("/cache")
    async def delete_cache() -> dict:
        await service.clear_all()
        return {"cleared": True}

    return app


app = create_app()
