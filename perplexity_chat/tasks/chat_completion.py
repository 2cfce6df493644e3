"""Chat completion task: the configuration surface a workflow host resolves.

Field values arrive already rendered (secrets and templates resolved by the
host). The task only checks that required values are present, builds the
request, sends it and extracts the result.

Example task definition (camelCase keys are accepted)::

    {
        "apiKey": "pplx-...",
        "model": "sonar",
        "messages": [{"type": "USER", "content": "What is 2 plus 2?"}],
        "temperature": 0.7
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from perplexity_chat.adapters.perplexity.exceptions import ConfigurationError
from perplexity_chat.adapters.perplexity.perplexity_client import (
    PerplexityClient,
    redact_request_summary,
)
from perplexity_chat.adapters.perplexity.request_builder import RequestBuilder
from perplexity_chat.config.perplexity import API_URL
from perplexity_chat.core.logging_utils import generate_correlation_id
from perplexity_chat.models.llm.llm_models import ChatMessage, CompletionRequest

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from perplexity_chat.models.llm.llm_models import CompletionResult
    from perplexity_chat.observability.metrics import UsageSink

logger = logging.getLogger(__name__)


class ChatCompletionTask(BaseModel):
    """Ask a Perplexity model a question and return its first completion."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    api_key: str | None = Field(
        default=None, description="The Perplexity API key used for authentication."
    )
    model: str | None = Field(
        default=None, description="The Perplexity model to use (e.g., `sonar`, `sonar-pro`)."
    )
    messages: list[ChatMessage] | None = Field(
        default=None, description="List of chat messages in conversational order."
    )
    temperature: float | None = Field(
        default=None,
        description="The amount of randomness in the response, valued between 0 and 2.",
    )
    top_p: float | None = Field(
        default=None, description="The nucleus sampling threshold, valued between 0 and 1."
    )
    top_k: int | None = Field(
        default=None, description="The number of tokens to keep for top-k filtering."
    )
    stream: bool | None = Field(
        default=None,
        description="Passed through to the API; the response is always read in full.",
    )
    presence_penalty: float | None = Field(
        default=None,
        description="Positive values increase the likelihood of discussing new topics.",
    )
    frequency_penalty: float | None = Field(
        default=None,
        description="Decreases likelihood of repetition based on prior frequency.",
    )
    max_tokens: int | None = Field(
        default=None, description="The maximum number of tokens to generate."
    )
    json_response_schema: str | None = Field(
        default=None,
        description=(
            "JSON schema (as string) to force a custom structured output, sent as "
            'response_format = {type: "json_schema", json_schema: {schema: <schema>}}.'
        ),
    )

    @classmethod
    def from_definition(cls, definition: Mapping[str, Any]) -> ChatCompletionTask:
        """Build a task from a rendered definition mapping.

        Raises:
            ConfigurationError: If the definition does not validate.
        """
        try:
            return cls.model_validate(dict(definition))
        except ValidationError as exc:
            msg = f"Invalid chat completion task definition: {exc}"
            raise ConfigurationError(msg) from exc

    def _require(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            msg = f"Required property '{to_camel(name)}' could not be resolved"
            raise ConfigurationError(msg, context={"parameter": name})
        return value

    def build_request(self) -> CompletionRequest:
        """Resolve and validate the request without touching the network."""
        model = self._require("model")
        messages = self._require("messages")
        return RequestBuilder().build_request(
            model=model,
            messages=messages,
            temperature=self.temperature,
            top_p=self.top_p,
            top_k=self.top_k,
            stream=self.stream,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
            max_tokens=self.max_tokens,
            json_response_schema=self.json_response_schema,
        )

    async def run(
        self,
        *,
        usage_sink: UsageSink | None = None,
        base_url: str = API_URL,
        timeout_sec: float = 60,
        max_response_size_mb: int = 10,
        debug_payloads: bool = False,
        log_truncate_length: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CompletionResult:
        """Build, send and extract one chat completion.

        Usage counters go to ``usage_sink`` when the response reports them.
        """
        api_key = self._require("api_key")
        request = self.build_request()
        cid = generate_correlation_id()

        logger.info(
            "chat_completion_started",
            extra={"cid": cid, **redact_request_summary(request)},
        )

        client = PerplexityClient(
            api_key,
            base_url=base_url,
            timeout_sec=timeout_sec,
            max_response_size_mb=max_response_size_mb,
            debug_payloads=debug_payloads,
            log_truncate_length=log_truncate_length,
            transport=transport,
        )
        try:
            result = await client.chat_completion(request, usage_sink=usage_sink)
        except Exception as exc:
            logger.error(
                "chat_completion_failed",
                extra={
                    "cid": cid,
                    "model": request.model,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        logger.info(
            "chat_completion_finished",
            extra={"cid": cid, "model": request.model, "output_length": len(result.output_text)},
        )
        return result
