from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from entity_graph.models import ARTICLE_CHANGE_TYPES, Article, ChangeField, ChangelogEntry
from processors.change_classifier import classify_change
from storage_service.errors import PersistenceError
from storage_service.repository import RESOURCE_ARTICLES, Repository
from storage_service.utils import utc_now

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Diffs incoming articles against the cached copy and keeps an append-only changelog."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def process_articles(self, new_articles: list[Article]) -> list[ChangelogEntry]:
        async with self.repository.lock(RESOURCE_ARTICLES):
            cached = self.repository.load_articles()
            changelog = self.repository.load_changelog()
            detected_at = utc_now()
            new_entries: list[ChangelogEntry] = []

            for article in new_articles:
                previous = cached.get(article.id)
                if previous is not None:
                    if previous.title != article.title:
                        new_entries.append(
                            self._entry(article, "title", previous.title, article.title, detected_at)
                        )
                    if previous.description and article.description and previous.description != article.description:
                        new_entries.append(
                            self._entry(article, "description", previous.description, article.description, detected_at)
                        )
                cached[article.id] = article

            changelog.extend(new_entries)
            try:
                self.repository.save_article_state(cached, changelog)
            except PersistenceError:
                logger.exception(
                    "article state not persisted articles=%d new_changes=%d",
                    len(new_articles),
                    len(new_entries),
                )

        if new_entries:
            logger.info("detected changes count=%d articles=%d", len(new_entries), len(new_articles))
        return new_entries

    @staticmethod
    def _entry(article: Article, field: ChangeField, previous: str, new: str, detected_at: datetime) -> ChangelogEntry:
        return ChangelogEntry(
            id=str(uuid.uuid4()),
            article_id=article.id,
            article_url=article.url,
            article_title=article.title,
            field=field,
            previous_value=previous,
            new_value=new,
            detected_at=detected_at,
            change_type=classify_change(previous, new, field),
        )

    def get_cached_articles(self) -> dict[str, Article]:
        return self.repository.load_articles()

    def get_changelog(self) -> list[ChangelogEntry]:
        return self.repository.load_changelog()

    def get_article_changes(self, article_id: str) -> list[ChangelogEntry]:
        return [entry for entry in self.get_changelog() if entry.article_id == article_id]

    def has_changes(self, article_id: str) -> bool:
        return any(entry.article_id == article_id for entry in self.get_changelog())

    def get_change_count(self, article_id: str) -> int:
        return len(self.get_article_changes(article_id))

    def get_stats(self) -> dict[str, Any]:
        changelog = self.get_changelog()
        changes_by_type = {change_type: 0 for change_type in ARTICLE_CHANGE_TYPES}
        for entry in changelog:
            changes_by_type[entry.change_type] = changes_by_type.get(entry.change_type, 0) + 1
        return {
            "totalArticles": len(self.get_cached_articles()),
            "totalChanges": len(changelog),
            "changesByType": changes_by_type,
        }

    async def clear_all(self) -> None:
        async with self.repository.lock(RESOURCE_ARTICLES):
            try:
                self.repository.clear_article_state()
            except PersistenceError:
                logger.exception("article cache and changelog not cleared")
                return
        logger.info("article cache and changelog cleared")
