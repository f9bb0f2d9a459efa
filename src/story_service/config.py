from __future__ import annotations

import logging
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    STORE_BACKEND: Literal["memory", "file", "redis"] = "memory"
    STORE_PATH: str = "./data"
    REDIS_URL: str = "redis://localhost:6379/0"

    AI_ENABLED: bool = False
    AI_BASE_URL: str | None = None
    AI_API_KEY: str | None = None
    AI_MODEL: str | None = None
    AI_DIALECT: Literal["anthropic_messages", "openai_chat"] | None = None
    AI_TIMEOUT_SECONDS: float = 60.0

    LOG_LEVEL: str = "INFO"

    MAX_GRAPH_ENTITIES: int = 50
    MAX_ENTITIES_PER_ARTICLE: int = 25
    CLUSTER_SIMILARITY_THRESHOLD: float = 0.3


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
