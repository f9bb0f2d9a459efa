from .client import AnthropicMessagesClient, CompletionClient, OpenAIChatClient, build_client
from .config import AI_PRESETS, CompletionConfig, build_completion_config, config_from_record, resolve_dialect
from .errors import ExternalServiceError
from .result import CompletionResult

__all__ = [
    "AI_PRESETS",
    "AnthropicMessagesClient",
    "CompletionClient",
    "CompletionConfig",
    "CompletionResult",
    "ExternalServiceError",
    "OpenAIChatClient",
    "build_client",
    "build_completion_config",
    "config_from_record",
    "resolve_dialect",
]
