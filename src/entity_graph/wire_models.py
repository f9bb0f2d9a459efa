from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from . import models


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class WireModel(BaseModel):
    """JSON shape used for persisted records and the HTTP surface (camelCase keys)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ArticleSourceValue(WireModel):
    id: str | None = None
    name: str

    @classmethod
    def from_domain(cls, source: models.ArticleSource) -> "ArticleSourceValue":
        return cls(id=source.id, name=source.name)

    def to_domain(self) -> models.ArticleSource:
        return models.ArticleSource(name=self.name, id=self.id)


class ArticleValue(WireModel):
    id: str
    url: str
    title: str
    description: str | None = None
    source: ArticleSourceValue
    published_at: UtcDatetime
    fetched_at: UtcDatetime
    image_url: str | None = None
    author: str | None = None
    provider: str | None = None

    @classmethod
    def from_domain(cls, article: models.Article) -> "ArticleValue":
        return cls(
            id=article.id,
            url=article.url,
            title=article.title,
            description=article.description,
            source=ArticleSourceValue.from_domain(article.source),
            published_at=article.published_at,
            fetched_at=article.fetched_at,
            image_url=article.image_url,
            author=article.author,
            provider=article.provider,
        )

    def to_domain(self) -> models.Article:
        return models.Article(
            id=self.id,
            url=self.url,
            title=self.title,
            source=self.source.to_domain(),
            published_at=self.published_at,
            fetched_at=self.fetched_at,
            description=self.description,
            image_url=self.image_url,
            author=self.author,
            provider=self.provider,
        )


class ChangelogEntryValue(WireModel):
    id: str
    article_id: str
    article_url: str
    article_title: str
    field: models.ChangeField
    previous_value: str
    new_value: str
    detected_at: UtcDatetime
    change_type: models.ChangeType
    significance: models.ChangeSignificance | None = None

    @classmethod
    def from_domain(cls, entry: models.ChangelogEntry) -> "ChangelogEntryValue":
        return cls(
            id=entry.id,
            article_id=entry.article_id,
            article_url=entry.article_url,
            article_title=entry.article_title,
            field=entry.field,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            detected_at=entry.detected_at,
            change_type=entry.change_type,
            significance=entry.significance,
        )

    def to_domain(self) -> models.ChangelogEntry:
        return models.ChangelogEntry(
            id=self.id,
            article_id=self.article_id,
            article_url=self.article_url,
            article_title=self.article_title,
            field=self.field,
            previous_value=self.previous_value,
            new_value=self.new_value,
            detected_at=self.detected_at,
            change_type=self.change_type,
            significance=self.significance,
        )


class EntityValue(WireModel):
    id: str
    name: str
    type: models.EntityType
    article_ids: list[str] = Field(default_factory=list)
    mention_count: int = 0

    @classmethod
    def from_domain(cls, entity: models.Entity) -> "EntityValue":
        return cls(
            id=entity.id,
            name=entity.name,
            type=entity.type,
            article_ids=list(entity.article_ids),
            mention_count=entity.mention_count,
        )

    def to_domain(self) -> models.Entity:
        return models.Entity(
            id=self.id,
            name=self.name,
            type=self.type,
            article_ids=list(self.article_ids),
            mention_count=self.mention_count,
        )


class RelationValue(WireModel):
    source_id: str
    target_id: str
    strength: int

    @classmethod
    def from_domain(cls, relation: models.Relation) -> "RelationValue":
        return cls(source_id=relation.source_id, target_id=relation.target_id, strength=relation.strength)

    def to_domain(self) -> models.Relation:
        return models.Relation(source_id=self.source_id, target_id=self.target_id, strength=self.strength)


class EntityGraphValue(WireModel):
    entities: list[EntityValue] = Field(default_factory=list)
    relations: list[RelationValue] = Field(default_factory=list)
    last_updated: UtcDatetime

    @classmethod
    def from_domain(cls, graph: models.EntityGraph) -> "EntityGraphValue":
        return cls(
            entities=[EntityValue.from_domain(item) for item in graph.entities],
            relations=[RelationValue.from_domain(item) for item in graph.relations],
            last_updated=graph.last_updated,
        )

    def to_domain(self) -> models.EntityGraph:
        return models.EntityGraph(
            entities=[item.to_domain() for item in self.entities],
            relations=[item.to_domain() for item in self.relations],
            last_updated=self.last_updated,
        )


class StoryClusterValue(WireModel):
    id: str
    title: str
    summary: str
    article_ids: list[str] = Field(default_factory=list)
    first_seen_at: UtcDatetime
    last_updated_at: UtcDatetime
    update_count: int
    significance: models.StorySignificance
    topics: list[str] = Field(default_factory=list)
    changelog: list[ChangelogEntryValue] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, cluster: models.StoryCluster) -> "StoryClusterValue":
        return cls(
            id=cluster.id,
            title=cluster.title,
            summary=cluster.summary,
            article_ids=list(cluster.article_ids),
            first_seen_at=cluster.first_seen_at,
            last_updated_at=cluster.last_updated_at,
            update_count=cluster.update_count,
            significance=cluster.significance,
            topics=list(cluster.topics),
            changelog=[ChangelogEntryValue.from_domain(item) for item in cluster.changelog],
        )

    def to_domain(self) -> models.StoryCluster:
        return models.StoryCluster(
            id=self.id,
            title=self.title,
            summary=self.summary,
            article_ids=list(self.article_ids),
            first_seen_at=self.first_seen_at,
            last_updated_at=self.last_updated_at,
            update_count=self.update_count,
            significance=self.significance,
            topics=list(self.topics),
            changelog=[item.to_domain() for item in self.changelog],
        )


# Payloads returned by the completion service. Field names follow the prompts.


class ExtractedEntityValue(WireModel):
    name: str
    type: models.EntityType = "topic"

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("entity name must not be empty")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        lowered = str(value or "").strip().lower()
        return lowered if lowered in models.ENTITY_TYPES and lowered != "source" else "topic"

    def to_domain(self) -> models.EntityCandidate:
        return models.EntityCandidate(name=self.name, type=self.type)


class StorySummaryValue(WireModel):
    title: str
    summary: str
    topics: list[str] = Field(default_factory=list)
    significance: models.StorySignificance = "low"

    @field_validator("significance", mode="before")
    @classmethod
    def _lower_significance(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    def to_domain(self) -> models.StorySummary:
        return models.StorySummary(
            title=self.title,
            summary=self.summary,
            topics=[topic for topic in self.topics if topic],
            significance=self.significance,
        )


class StoryChangeValue(WireModel):
    field: models.ChangeField = "content"
    change_type: models.ChangeType = "update"
    previous_value: str = ""
    new_value: str = ""
    significance: models.ChangeSignificance | None = None

    @field_validator("previous_value", "new_value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("change_type", "significance", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class CompletionConfigValue(WireModel):
    ai_enabled: bool = False
    ai_base_url: str | None = None
    ai_api_key: str | None = None
    ai_model: str | None = None
    ai_dialect: Literal["anthropic_messages", "openai_chat"] | None = None
    last_updated: UtcDatetime | None = None

    @field_validator("ai_base_url", "ai_api_key", "ai_model", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value
