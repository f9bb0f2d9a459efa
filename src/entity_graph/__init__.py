from .models import (
    ARTICLE_CHANGE_TYPES,
    ENTITY_TYPES,
    Article,
    ArticleSource,
    ChangelogEntry,
    Entity,
    EntityCandidate,
    EntityGraph,
    Relation,
    StoryCluster,
    StorySummary,
)
from .wire_models import (
    ArticleValue,
    ChangelogEntryValue,
    CompletionConfigValue,
    EntityGraphValue,
    EntityValue,
    ExtractedEntityValue,
    RelationValue,
    StoryChangeValue,
    StoryClusterValue,
    StorySummaryValue,
    ensure_utc,
)

__all__ = [
    "ARTICLE_CHANGE_TYPES",
    "ENTITY_TYPES",
    "Article",
    "ArticleSource",
    "ArticleValue",
    "ChangelogEntry",
    "ChangelogEntryValue",
    "CompletionConfigValue",
    "Entity",
    "EntityCandidate",
    "EntityGraph",
    "EntityGraphValue",
    "EntityValue",
    "ExtractedEntityValue",
    "Relation",
    "RelationValue",
    "StoryChangeValue",
    "StoryCluster",
    "StoryClusterValue",
    "StorySummary",
    "StorySummaryValue",
    "ensure_utc",
]
