from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from pydantic import TypeAdapter

from entity_graph.models import Article
from entity_graph.wire_models import ArticleValue

from .config import Settings, configure_logging
from .service import StoryService

logger = logging.getLogger("story-tracker")

_ARTICLES = TypeAdapter(list[ArticleValue])


def load_articles(path: Path) -> list[Article]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return [item.to_domain() for item in _ARTICLES.validate_python(raw)]


async def run(service: StoryService, articles: list[Article], *, skip_graph: bool, skip_clusters: bool) -> None:
    changes = await service.process_articles(articles)
    logger.info("batch processed articles=%d changes=%d", len(articles), len(changes))

    if not skip_graph:
        graph = await service.build_graph(articles)
        logger.info("batch graph entities=%d relations=%d", len(graph.entities), len(graph.relations))

    if not skip_clusters:
        clusters = await service.build_clusters(articles)
        logger.info("batch clusters=%d", len(clusters))

    logger.info("stats %s", json.dumps(service.get_stats()))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Track changes, entities and stories for a batch of articles")
    parser.add_argument("articles", type=Path, help="JSON file holding a list of articles")
    parser.add_argument("--skip-graph", action="store_true", help="do not rebuild the entity graph")
    parser.add_argument("--skip-clusters", action="store_true", help="do not rebuild story clusters")
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)

    articles = load_articles(args.articles)
    service = StoryService.from_settings(settings)
    asyncio.run(run(service, articles, skip_graph=args.skip_graph, skip_clusters=args.skip_clusters))


if __name__ == "__main__":
    main()
