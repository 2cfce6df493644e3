"""Data models for Perplexity chat completions backed by Pydantic validation."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, field_validator


class ChatMessageType(str, Enum):
    """Closed set of conversation roles accepted by the chat endpoint."""

    SYSTEM = "SYSTEM"
    ASSISTANT = "ASSISTANT"
    USER = "USER"

    @property
    def role(self) -> str:
        return _ROLE_BY_TYPE[self]

    @classmethod
    def parse(cls, value: Any) -> ChatMessageType:
        """Resolve a member from its name (any case) or its wire role string."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            candidate = value.strip().upper()
            if candidate in cls.__members__:
                return cls[candidate]
        valid = ", ".join(member.name for member in cls)
        msg = f"Invalid message type '{value}', must be one of: {valid}"
        raise ValueError(msg)


_ROLE_BY_TYPE: dict[ChatMessageType, str] = {
    ChatMessageType.SYSTEM: "system",
    ChatMessageType.ASSISTANT: "assistant",
    ChatMessageType.USER: "user",
}


class ChatMessage(BaseModel):
    """One conversation turn as configured on the task."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ChatMessageType = Field(
        validation_alias=AliasChoices("type", "role"), description="Role of the message author."
    )
    content: str | None = Field(default=None, description="Message text.")

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> ChatMessageType:
        return ChatMessageType.parse(value)


class WireMessage(BaseModel):
    """Message as it appears in the outgoing request body."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str
    content: str


class JsonSchemaSpec(BaseModel):
    """Caller-supplied JSON Schema, stored as JSON text."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str = Field(description="JSON Schema document as a JSON string.")

    @property
    def document(self) -> Any:
        """A fresh parsed copy of the schema."""
        return json.loads(self.source)


class StructuredOutputWrapper(BaseModel):
    """``response_format`` block requesting JSON-Schema structured output."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    type: str = Field(default="json_schema")
    json_schema: JsonSchemaSpec

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "json_schema": {"schema": self.json_schema.document}}


class CompletionRequest(BaseModel):
    """Fully resolved chat completion request, immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str = Field(min_length=1, description="Perplexity model identifier.")
    messages: tuple[WireMessage, ...] = Field(
        min_length=1, description="Conversation messages in conversational order."
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    top_k: int = Field(default=0, ge=0)
    stream: StrictBool = Field(default=False)
    presence_penalty: float = Field(default=0.0, ge=0.0, le=2.0)
    frequency_penalty: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int | None = Field(
        default=None, gt=0, description="Maximum tokens to generate in the completion."
    )
    response_format: StructuredOutputWrapper | None = Field(
        default=None, description="Structured output schema requested from the model."
    )


class UsageCounters(BaseModel):
    """Token usage reported by the provider for one call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class CompletionResult(BaseModel):
    """Result of a chat completion call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_text: str = Field(description="Content of the first completion choice.")
    raw_response: str = Field(description="Full, unmodified response body from the API.")
