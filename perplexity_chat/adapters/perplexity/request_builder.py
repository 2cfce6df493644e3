"""Request builder for Perplexity chat completion calls."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from perplexity_chat.adapters.perplexity.exceptions import ConfigurationError
from perplexity_chat.models.llm.llm_models import (
    ChatMessage,
    CompletionRequest,
    JsonSchemaSpec,
    StructuredOutputWrapper,
    WireMessage,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

DEFAULT_TEMPERATURE = 0.2
DEFAULT_TOP_P = 0.9
DEFAULT_TOP_K = 0
DEFAULT_STREAM = False
DEFAULT_PRESENCE_PENALTY = 0.0
DEFAULT_FREQUENCY_PENALTY = 0.0


def build_response_format(schema_json: str | None) -> StructuredOutputWrapper | None:
    """Wrap a raw JSON Schema string into a ``response_format`` block.

    Returns None when no schema was supplied. A schema that is not valid JSON
    raises ConfigurationError so the call fails before any request is sent.
    """
    if schema_json is None:
        return None

    try:
        json.loads(schema_json)
    except (TypeError, ValueError) as exc:
        msg = f"JSON response schema is not valid JSON: {exc}"
        raise ConfigurationError(
            msg,
            context={"parameter": "json_response_schema"},
        ) from exc

    return StructuredOutputWrapper(json_schema=JsonSchemaSpec(source=schema_json))


class RequestBuilder:
    """Builds and validates HTTP requests for the Perplexity API."""

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key

    def build_headers(self) -> dict[str, str]:
        """Build HTTP headers for the request."""
        if not self._api_key:
            msg = "API key is required to build request headers"
            raise ConfigurationError(msg, context={"parameter": "api_key"})
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_messages(
        self, messages: Iterable[ChatMessage | Mapping[str, Any]]
    ) -> list[WireMessage]:
        """Map configured messages to wire messages, preserving order.

        Null content becomes an empty string; roles outside the closed
        system/assistant/user set are rejected.
        """
        wire_messages: list[WireMessage] = []
        for i, message in enumerate(messages):
            try:
                parsed = (
                    message
                    if isinstance(message, ChatMessage)
                    else ChatMessage.model_validate(message)
                )
            except ValidationError as exc:
                error_msg = f"Message {i} is invalid: {_first_error(exc)}"
                raise ConfigurationError(
                    error_msg,
                    context={"message_index": i, "valid_roles": ["system", "assistant", "user"]},
                ) from exc
            wire_messages.append(
                WireMessage(role=parsed.type.role, content=parsed.content or "")
            )
        return wire_messages

    def build_request(
        self,
        *,
        model: str,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        temperature: float | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        stream: bool | None = None,
        presence_penalty: float | None = None,
        frequency_penalty: float | None = None,
        max_tokens: int | None = None,
        json_response_schema: str | None = None,
    ) -> CompletionRequest:
        """Resolve defaults and validate ranges into an immutable request.

        ``None`` for a sampling parameter means "not supplied" and selects the
        documented default.
        """
        wire_messages = self.build_messages(messages)
        if not wire_messages:
            msg = "Messages list is required and cannot be empty"
            raise ConfigurationError(msg, model=model, context={"messages_count": 0})

        response_format = build_response_format(json_response_schema)

        try:
            return CompletionRequest(
                model=model,
                messages=wire_messages,
                temperature=_default(temperature, DEFAULT_TEMPERATURE),
                top_p=_default(top_p, DEFAULT_TOP_P),
                top_k=_default(top_k, DEFAULT_TOP_K),
                stream=_default(stream, DEFAULT_STREAM),
                presence_penalty=_default(presence_penalty, DEFAULT_PRESENCE_PENALTY),
                frequency_penalty=_default(frequency_penalty, DEFAULT_FREQUENCY_PENALTY),
                max_tokens=max_tokens,
                response_format=response_format,
            )
        except ValidationError as exc:
            errors = exc.errors()
            parameter = ".".join(str(part) for part in errors[0]["loc"]) if errors else None
            msg = f"Invalid request parameter: {_first_error(exc)}"
            raise ConfigurationError(
                msg,
                model=model,
                context={"parameter": parameter},
            ) from exc

    def build_request_body(self, request: CompletionRequest) -> dict[str, Any]:
        """Build the JSON body for the API call.

        ``max_tokens`` and ``response_format`` are only present when set.
        """
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
            "temperature": request.temperature,
            "top_p": request.top_p,
            "top_k": request.top_k,
            "stream": request.stream,
            "presence_penalty": request.presence_penalty,
            "frequency_penalty": request.frequency_penalty,
        }

        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens

        if request.response_format is not None:
            body["response_format"] = request.response_format.to_payload()

        return body

    @staticmethod
    def encode_request_body(body: dict[str, Any]) -> bytes:
        """Serialize a request body to UTF-8 JSON bytes, stable for equal input."""
        return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    def get_redacted_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Get headers with sensitive information redacted."""
        redacted_headers = dict(headers)
        if "Authorization" in redacted_headers:
            redacted_headers["Authorization"] = "Bearer [REDACTED]"
        return redacted_headers


def _default(value: Any, default: Any) -> Any:
    return default if value is None else value


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
