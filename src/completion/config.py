from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from entity_graph.wire_models import CompletionConfigValue

logger = logging.getLogger(__name__)

Dialect = Literal["anthropic_messages", "openai_chat"]

DIALECTS: tuple[str, ...] = ("anthropic_messages", "openai_chat")

# Substring that identifies the messages-dialect vendor in a base URL. Only used
# when no dialect is configured explicitly.
LEGACY_DIALECT_MARKER = "anthropic"

AI_PRESETS: dict[str, dict[str, object]] = {
    "anthropic": {
        "name": "Anthropic (Claude)",
        "base_url": "https://api.anthropic.com/v1",
        "dialect": "anthropic_messages",
        "models": ["claude-3-haiku-20240307", "claude-3-sonnet-20240229", "claude-3-opus-20240229"],
    },
    "openai": {
        "name": "OpenAI",
        "base_url": "https://api.openai.com/v1",
        "dialect": "openai_chat",
        "models": ["gpt-4o-mini", "gpt-4o", "gpt-4-turbo"],
    },
    "groq": {
        "name": "Groq",
        "base_url": "https://api.groq.com/openai/v1",
        "dialect": "openai_chat",
        "models": ["llama-3.1-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768"],
    },
    "ollama": {
        "name": "Ollama (Local)",
        "base_url": "http://localhost:11434/v1",
        "dialect": "openai_chat",
        "models": ["llama3.1", "mistral", "phi3"],
    },
}


@dataclass(slots=True, frozen=True)
class CompletionConfig:
    base_url: str
    api_key: str
    model: str
    dialect: Dialect
    timeout_seconds: float = 60.0


def resolve_dialect(base_url: str, dialect: str | None) -> Dialect:
    """Pick the wire dialect once, at configuration time."""
    if dialect:
        if dialect not in DIALECTS:
            raise ValueError(f"unknown completion dialect '{dialect}' (expected one of {', '.join(DIALECTS)})")
        return dialect  # type: ignore[return-value]
    inferred: Dialect = "anthropic_messages" if LEGACY_DIALECT_MARKER in base_url else "openai_chat"
    logger.warning(
        "completion dialect not configured; inferred dialect=%s from base_url=%s "
        "(set it explicitly to avoid URL-based guessing)",
        inferred,
        base_url,
    )
    return inferred


def is_complete(enabled: bool, base_url: str | None, api_key: str | None, model: str | None) -> bool:
    return bool(enabled and base_url and api_key and model)


def build_completion_config(
    *,
    enabled: bool,
    base_url: str | None,
    api_key: str | None,
    model: str | None,
    dialect: str | None = None,
    timeout_seconds: float = 60.0,
) -> CompletionConfig | None:
    """Return a config only when remote assist is enabled and fully specified."""
    if not is_complete(enabled, base_url, api_key, model):
        return None
    base_url = base_url.strip().rstrip("/")
    return CompletionConfig(
        base_url=base_url,
        api_key=api_key.strip(),
        model=model.strip(),
        dialect=resolve_dialect(base_url, dialect),
        timeout_seconds=timeout_seconds,
    )


def record_is_complete(record: CompletionConfigValue | None) -> bool:
    if record is None:
        return False
    return is_complete(record.ai_enabled, record.ai_base_url, record.ai_api_key, record.ai_model)


def config_from_record(record: CompletionConfigValue | None, timeout_seconds: float = 60.0) -> CompletionConfig | None:
    if record is None:
        return None
    return build_completion_config(
        enabled=record.ai_enabled,
        base_url=record.ai_base_url,
        api_key=record.ai_api_key,
        model=record.ai_model,
        dialect=record.ai_dialect,
        timeout_seconds=timeout_seconds,
    )
