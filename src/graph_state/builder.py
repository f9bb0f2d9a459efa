from __future__ import annotations

import logging
from dataclasses import dataclass

from completion.client import CompletionClient
from entity_graph.models import Article, Entity, EntityCandidate, EntityGraph
from processors.co_occurrence import cap_entity_ids, detect_co_occurrence_pairs
from processors.entity_extractor import EntityExtractor, entity_id
from storage_service.errors import PersistenceError
from storage_service.repository import RESOURCE_GRAPH, Repository
from storage_service.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GraphBuildStats:
    articles: int = 0
    remote_extractions: int = 0
    heuristic_extractions: int = 0
    failed_remote_extractions: int = 0
    entities_before_pruning: int = 0
    relations_before_pruning: int = 0


class EntityGraphBuilder:
    """Builds the entity co-occurrence graph for a batch of articles and replaces the stored one."""

    MAX_ENTITIES = 50
    MAX_ENTITIES_PER_ARTICLE = 25

    def __init__(
        self,
        repository: Repository,
        completion: CompletionClient | None = None,
        *,
        max_entities: int | None = None,
        max_entities_per_article: int | None = None,
    ) -> None:
        self.repository = repository
        self.completion = completion
        self.max_entities = self.MAX_ENTITIES if max_entities is None else max_entities
        self.max_entities_per_article = (
            self.MAX_ENTITIES_PER_ARTICLE if max_entities_per_article is None else max_entities_per_article
        )
        self.last_stats = GraphBuildStats()

    @staticmethod
    def article_text(article: Article) -> str:
        return f"{article.title}. {article.description or ''}"

    async def build_graph(self, articles: list[Article], completion: CompletionClient | None = None) -> EntityGraph:
        """Rebuild the graph from `articles`.

        `completion` overrides the builder's client for this build only. The
        client is fixed once the graph lock is held and used for every article.
        """
        async with self.repository.lock(RESOURCE_GRAPH):
            extractor = EntityExtractor(completion if completion is not None else self.completion)
            stats = GraphBuildStats(articles=len(articles))
            entities: dict[str, Entity] = {}
            article_entity_ids: list[list[str]] = []

            for article in articles:
                extraction = await extractor.extract(self.article_text(article))
                if extraction.source == "remote":
                    stats.remote_extractions += 1
                else:
                    stats.heuristic_extractions += 1
                if extraction.error is not None:
                    stats.failed_remote_extractions += 1

                candidates = list(extraction.candidates)
                candidates.append(EntityCandidate(name=article.source.name, type="source"))
                source_id = entity_id(article.source.name)

                ids: list[str] = []
                for candidate in candidates:
                    candidate_id = self._register(entities, candidate, article.id)
                    if candidate_id:
                        ids.append(candidate_id)
                article_entity_ids.append(
                    cap_entity_ids(ids, self.max_entities_per_article, keep=source_id or None)
                )

            relations = detect_co_occurrence_pairs(article_entity_ids)
            stats.entities_before_pruning = len(entities)
            stats.relations_before_pruning = len(relations)

            kept = sorted(entities.values(), key=lambda entity: entity.mention_count, reverse=True)[: self.max_entities]
            kept_ids = {entity.id for entity in kept}
            kept_relations = sorted(
                (relation for relation in relations if relation.source_id in kept_ids and relation.target_id in kept_ids),
                key=lambda relation: relation.strength,
                reverse=True,
            )

            graph = EntityGraph(entities=kept, relations=kept_relations, last_updated=utc_now())
            try:
                self.repository.save_graph(graph)
            except PersistenceError:
                logger.exception("entity graph not persisted entities=%d relations=%d", len(kept), len(kept_relations))

            self.last_stats = stats

        logger.info(
            "built graph entities=%d relations=%d articles=%d remote=%d heuristic=%d",
            len(graph.entities),
            len(graph.relations),
            stats.articles,
            stats.remote_extractions,
            stats.heuristic_extractions,
        )
        return graph

    @staticmethod
    def _register(entities: dict[str, Entity], candidate: EntityCandidate, article_id: str) -> str | None:
        candidate_id = entity_id(candidate.name)
        if not candidate_id:
            return None
        entity = entities.get(candidate_id)
        if entity is None:
            entities[candidate_id] = Entity(
                id=candidate_id,
                name=candidate.name,
                type=candidate.type,
                article_ids=[article_id],
                mention_count=1,
            )
        elif article_id not in entity.article_ids:
            entity.article_ids.append(article_id)
            entity.mention_count += 1
        return candidate_id

    def get_graph(self) -> EntityGraph | None:
        return self.repository.load_graph()

    async def clear_graph(self) -> None:
        async with self.repository.lock(RESOURCE_GRAPH):
            try:
                self.repository.clear_graph()
            except PersistenceError:
                logger.exception("entity graph not cleared")

    def get_related_entities(self, target_id: str) -> list[Entity]:
        graph = self.get_graph()
        if graph is None:
            return []
        related: set[str] = set()
        for relation in graph.relations:
            if relation.source_id == target_id:
                related.add(relation.target_id)
            elif relation.target_id == target_id:
                related.add(relation.source_id)
        return [entity for entity in graph.entities if entity.id in related]

    def get_entity_articles(self, target_id: str) -> list[str]:
        graph = self.get_graph()
        if graph is None:
            return []
        for entity in graph.entities:
            if entity.id == target_id:
                return list(entity.article_ids)
        return []
