from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

ChangeField = Literal["title", "description", "content"]
ChangeType = Literal["update", "correction", "retraction", "clarification", "development"]
ChangeSignificance = Literal["minor", "moderate", "major"]
EntityType = Literal["person", "organization", "location", "topic", "source"]
StorySignificance = Literal["low", "medium", "high"]

ARTICLE_CHANGE_TYPES: tuple[str, ...] = ("update", "correction", "retraction", "clarification")
ENTITY_TYPES: tuple[str, ...] = ("person", "organization", "location", "topic", "source")


@dataclass(slots=True)
class ArticleSource:
    name: str
    id: str | None = None


@dataclass(slots=True)
class Article:
    id: str
    url: str
    title: str
    source: ArticleSource
    published_at: datetime
    fetched_at: datetime
    description: str | None = None
    image_url: str | None = None
    author: str | None = None
    provider: str | None = None


@dataclass(slots=True)
class ChangelogEntry:
    id: str
    article_id: str
    article_url: str
    article_title: str
    field: ChangeField
    previous_value: str
    new_value: str
    detected_at: datetime
    change_type: ChangeType
    significance: ChangeSignificance | None = None


@dataclass(slots=True)
class Entity:
    id: str
    name: str
    type: EntityType
    article_ids: list[str] = field(default_factory=list)
    mention_count: int = 0


@dataclass(slots=True)
class Relation:
    source_id: str
    target_id: str
    strength: int


@dataclass(slots=True)
class EntityGraph:
    entities: list[Entity]
    relations: list[Relation]
    last_updated: datetime


@dataclass(slots=True)
class EntityCandidate:
    name: str
    type: EntityType


@dataclass(slots=True)
class StorySummary:
    title: str
    summary: str
    topics: list[str]
    significance: StorySignificance


@dataclass(slots=True)
class StoryCluster:
    id: str
    title: str
    summary: str
    article_ids: list[str]
    first_seen_at: datetime
    last_updated_at: datetime
    update_count: int
    significance: StorySignificance
    topics: list[str] = field(default_factory=list)
    changelog: list[ChangelogEntry] = field(default_factory=list)
