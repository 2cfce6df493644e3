"""Perplexity chat completion adapter.

Builds the chat completions request from a task configuration, sends it to
the Perplexity API and extracts the first completion plus token usage.
"""

from perplexity_chat.adapters.perplexity.exceptions import (
    ConfigurationError,
    PerplexityError,
    ProviderError,
    ResponseShapeError,
    TransportError,
)
from perplexity_chat.models.llm.llm_models import (
    ChatMessage,
    ChatMessageType,
    CompletionRequest,
    CompletionResult,
    UsageCounters,
)
from perplexity_chat.tasks.chat_completion import ChatCompletionTask

__all__ = [
    "ChatCompletionTask",
    "ChatMessage",
    "ChatMessageType",
    "CompletionRequest",
    "CompletionResult",
    "ConfigurationError",
    "PerplexityError",
    "ProviderError",
    "ResponseShapeError",
    "TransportError",
    "UsageCounters",
]
