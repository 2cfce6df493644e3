from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._validators import _ensure_api_key, validate_model_name

API_URL = "https://api.perplexity.ai/chat/completions"


class PerplexityConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Optional here: a task definition may carry its own key.
    api_key: str | None = Field(default=None, validation_alias="PERPLEXITY_API_KEY")
    model: str = Field(default="sonar", validation_alias="PERPLEXITY_MODEL")
    base_url: str = Field(default=API_URL, validation_alias="PERPLEXITY_BASE_URL")
    max_response_size_mb: int = Field(
        default=10, validation_alias="PERPLEXITY_MAX_RESPONSE_SIZE_MB"
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return _ensure_api_key(str(value), name="Perplexity")

    @field_validator("model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return validate_model_name(str(value or "sonar"))

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        url = str(value or API_URL).strip()
        if not url.startswith(("https://", "http://")):
            msg = f"Base URL must be an http(s) URL, got {url!r}"
            raise ValueError(msg)
        return url

    @field_validator("max_response_size_mb", mode="before")
    @classmethod
    def _validate_max_response_size(cls, value: Any) -> int:
        try:
            size = int(str(value if value not in (None, "") else 10))
        except ValueError as exc:
            msg = "Max response size must be a valid integer"
            raise ValueError(msg) from exc
        if size < 1 or size > 100:
            msg = f"Max response size must be between 1 and 100 MB (got {size})"
            raise ValueError(msg)
        return size
