from __future__ import annotations

from entity_graph.models import Article, StoryCluster

EXTRACTION_MAX_TOKENS = 1024
SUMMARY_MAX_TOKENS = 1024
CHANGE_DETECTION_MAX_TOKENS = 2048

EXTRACTION_PROMPT = """Extract named entities from the following news headlines and descriptions.
For each entity, identify its type: person, organization, location, or topic.
Return JSON array: [{"name": "Entity Name", "type": "person|organization|location|topic"}]
Only return the JSON array, no other text.

Text to analyze:
"""


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_PROMPT + text


def build_summary_prompt(articles: list[Article]) -> str:
    excerpts = "\n\n".join(
        f'[{index}] {article.source.name}: "{article.title}"\n{article.description or ""}'
        for index, article in enumerate(articles, start=1)
    )
    return f"""Analyze these {len(articles)} news articles that are about the same story:

{excerpts}

Provide a JSON response with:
{{
  "title": "A concise title for this story (under 80 chars)",
  "summary": "A 2-3 sentence summary capturing the key narrative",
  "topics": ["topic1", "topic2", "topic3"],
  "significance": "low|medium|high"
}}

Only return valid JSON, no other text."""


def build_change_detection_prompt(previous: StoryCluster, articles: list[Article]) -> str:
    new_text = "\n\n".join(
        f'{article.source.name}: "{article.title}"\n{article.description or ""}' for article in articles
    )
    return f"""You are tracking how a news story evolves over time.

OLD NARRATIVE:
Previous summary:
"{previous.summary}"

NEW ARTICLES:
{new_text}

Detect if there are any:
- Updates (new developments)
- Corrections (factual fixes)
- Clarifications (added context)
- Retractions (story withdrawn)

Return JSON array of changes:
[{{
  "field": "content",
  "changeType": "update|correction|clarification|retraction|development",
  "previousValue": "what was said before",
  "newValue": "what changed",
  "significance": "minor|moderate|major"
}}]

If no significant changes, return []. Only return valid JSON."""
