from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
from prometheus_client import Counter

from .config import CompletionConfig
from .errors import ExternalServiceError
from .result import CompletionResult

logger = logging.getLogger(__name__)

COMPLETION_CALLS = Counter(
    "story_completion_calls_total",
    "Completion service calls by purpose and outcome",
    ["purpose", "outcome"],
)


class CompletionClient(ABC):
    """Sends one user prompt to a completion service and returns its text.

    Subclasses own the wire dialect: endpoint path, auth headers, request body
    and where the text sits in the response. Nothing here raises for service
    failures; every outcome comes back as a CompletionResult.
    """

    dialect: ClassVar[str]

    def __init__(self, config: CompletionConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    @abstractmethod
    def _request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json body)."""

    @abstractmethod
    def _extract_text(self, data: Any) -> str | None:
        """Return the completion text from a decoded response body."""

    async def complete(self, prompt: str, *, max_tokens: int = 1024) -> CompletionResult[str]:
        url, headers, body = self._request(prompt, max_tokens)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout_seconds) as client:
                response = await client.post(url, headers=headers, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            return CompletionResult.failure(ExternalServiceError(f"completion API error: {status}", status_code=status))
        except httpx.HTTPError as exc:
            return CompletionResult.failure(ExternalServiceError(f"completion request failed: {exc}"))
        except ValueError as exc:
            return CompletionResult.failure(ExternalServiceError(f"completion response is not JSON: {exc}"))

        text = self._extract_text(data)
        if not isinstance(text, str):
            return CompletionResult.failure(ExternalServiceError("completion response has no text content"))
        return CompletionResult.success(text)

    async def complete_json(
        self,
        prompt: str,
        *,
        expect: type[list] | type[dict],
        purpose: str,
        max_tokens: int = 1024,
    ) -> CompletionResult[Any]:
        """Complete a prompt that asks for bare JSON and decode the answer.

        Text that is not a JSON value of the expected kind is a service failure.
        """
        result = await self.complete(prompt, max_tokens=max_tokens)
        if result.error is not None:
            return self._record(purpose, result)
        try:
            payload = json.loads((result.value or "").strip())
        except ValueError as exc:
            return self._record(purpose, CompletionResult.failure(ExternalServiceError(f"completion text is not JSON: {exc}")))
        if not isinstance(payload, expect):
            return self._record(
                purpose,
                CompletionResult.failure(
                    ExternalServiceError(f"expected JSON {expect.__name__}, got {type(payload).__name__}")
                ),
            )
        return self._record(purpose, CompletionResult.success(payload))

    def _record(self, purpose: str, result: CompletionResult[Any]) -> CompletionResult[Any]:
        if result.error is not None:
            COMPLETION_CALLS.labels(purpose=purpose, outcome="failure").inc()
            logger.warning(
                "completion failed purpose=%s dialect=%s model=%s error=%s",
                purpose,
                self.dialect,
                self.config.model,
                result.error,
            )
        else:
            COMPLETION_CALLS.labels(purpose=purpose, outcome="success").inc()
        return result


class AnthropicMessagesClient(CompletionClient):
    dialect = "anthropic_messages"
    API_VERSION = "2023-06-01"

    def _request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": self.API_VERSION,
        }
        body = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        return f"{self.config.base_url}/messages", headers, body

    def _extract_text(self, data: Any) -> str | None:
        try:
            return data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


class OpenAIChatClient(CompletionClient):
    dialect = "openai_chat"

    def _request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        body = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        return f"{self.config.base_url}/chat/completions", headers, body

    def _extract_text(self, data: Any) -> str | None:
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None


_CLIENTS: dict[str, type[CompletionClient]] = {
    AnthropicMessagesClient.dialect: AnthropicMessagesClient,
    OpenAIChatClient.dialect: OpenAIChatClient,
}


def build_client(
    config: CompletionConfig | None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CompletionClient | None:
    if config is None:
        return None
    client_cls = _CLIENTS[config.dialect]
    logger.info("completion client configured dialect=%s model=%s", config.dialect, config.model)
    return client_cls(config, transport=transport)
