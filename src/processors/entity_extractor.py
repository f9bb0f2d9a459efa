from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

from pydantic import ValidationError

from completion.client import CompletionClient
from completion.errors import ExternalServiceError
from completion.prompts import EXTRACTION_MAX_TOKENS, build_extraction_prompt
from completion.result import CompletionResult
from entity_graph.models import EntityCandidate, EntityType
from entity_graph.wire_models import ExtractedEntityValue

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    """
    the a an and or but in on at to for of with by from as is was are were been be have has had do does did
    will would could should may might can this that these those it its he she they we you i my your his her
    their our who what when where why how which there here all any both each more most other some such no not
    only same so than too very just also now new says said after before about over into through during against
    between under above up down out off then
    """.split()
)

ORGANIZATION_INDICATORS = ("inc", "corp", "company", "group", "llc", "ltd", "association", "foundation")
LOCATION_INDICATORS = ("city", "state", "country", "street", "avenue", "road")

_NON_NAME_CHARS = re.compile(r"[^a-zA-Z'-]")
_NON_ID_CHARS = re.compile(r"[^a-z0-9]")

MIN_PHRASE_LENGTH = 3


def entity_id(name: str) -> str:
    """Normalized identity of an entity name: case-folded, alphanumerics only."""
    return _NON_ID_CHARS.sub("", name.casefold())


def guess_entity_type(name: str) -> EntityType:
    lower = name.lower()
    if any(indicator in lower for indicator in ORGANIZATION_INDICATORS):
        return "organization"
    if any(indicator in lower for indicator in LOCATION_INDICATORS):
        return "location"
    words = name.split(" ")
    if 2 <= len(words) <= 3 and all(word[:1].isupper() for word in words):
        return "person"
    return "topic"


def _is_capitalized(token: str) -> bool:
    return len(token) > 1 and token[0].isupper()


def extract_simple_entities(text: str) -> list[EntityCandidate]:
    """Capitalized-phrase heuristic used when no completion service is available.

    Consecutive capitalized tokens form a phrase. Capitalized stop words are
    skipped without ending the phrase; any other token ends it.
    """
    candidates: list[EntityCandidate] = []
    phrase: list[str] = []

    def flush() -> None:
        if phrase:
            name = " ".join(phrase)
            if len(name) >= MIN_PHRASE_LENGTH:
                candidates.append(EntityCandidate(name=name, type=guess_entity_type(name)))
            phrase.clear()

    for word in text.split():
        cleaned = _NON_NAME_CHARS.sub("", word)
        if _is_capitalized(cleaned):
            if cleaned.lower() not in STOP_WORDS:
                phrase.append(cleaned)
        else:
            flush()
    flush()
    return candidates


@dataclass(slots=True)
class Extraction:
    candidates: list[EntityCandidate]
    source: Literal["remote", "heuristic"]
    error: ExternalServiceError | None = None


class EntityExtractor:
    """Turns article text into typed entity candidates, remote-assisted when a client is set."""

    def __init__(self, completion: CompletionClient | None = None) -> None:
        self.completion = completion

    async def extract_remote(self, text: str) -> CompletionResult[list[EntityCandidate]]:
        if self.completion is None:
            return CompletionResult.failure(ExternalServiceError("no completion service configured"))
        result = await self.completion.complete_json(
            build_extraction_prompt(text),
            expect=list,
            purpose="extraction",
            max_tokens=EXTRACTION_MAX_TOKENS,
        )
        if result.error is not None:
            return CompletionResult.failure(result.error)

        candidates: list[EntityCandidate] = []
        dropped = 0
        for item in result.value or []:
            try:
                candidates.append(ExtractedEntityValue.model_validate(item).to_domain())
            except ValidationError:
                dropped += 1
        if dropped:
            logger.debug("remote extraction dropped=%d malformed item(s)", dropped)
        return CompletionResult.success(candidates)

    async def extract(self, text: str) -> Extraction:
        if self.completion is None:
            return Extraction(candidates=extract_simple_entities(text), source="heuristic")

        outcome = await self.extract_remote(text)
        if outcome.error is not None:
            return Extraction(candidates=extract_simple_entities(text), source="heuristic", error=outcome.error)
        if not outcome.value:
            logger.debug("remote extraction returned no entities; using heuristic extractor")
            return Extraction(candidates=extract_simple_entities(text), source="heuristic")
        return Extraction(candidates=outcome.value, source="remote")
