"""Response processor for Perplexity API responses."""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

from perplexity_chat.adapters.perplexity.exceptions import ResponseShapeError
from perplexity_chat.core.logging_utils import truncate_log_content
from perplexity_chat.models.llm.llm_models import CompletionResult, UsageCounters

if TYPE_CHECKING:
    from perplexity_chat.observability.metrics import UsageSink

logger = logging.getLogger(__name__)

USAGE_COUNTER_NAMES: dict[str, str] = {
    "prompt_tokens": "usage.prompt.tokens",
    "completion_tokens": "usage.completion.tokens",
    "total_tokens": "usage.total.tokens",
}

_STATUS_MESSAGES: dict[int, str] = {
    400: "Invalid or missing request parameters",
    401: "Authentication failed (invalid or expired API key)",
    403: "Access forbidden",
    404: "Requested resource not found",
    429: "Rate limit exceeded",
    500: "Internal server error",
}


class ResponseProcessor:
    """Validates and extracts content from Perplexity API responses."""

    def parse_body(self, body: str) -> dict[str, Any]:
        """Parse the raw body as a JSON object; no partial recovery."""
        try:
            data = json.loads(body, parse_constant=_reject_constant)
        except (TypeError, ValueError) as exc:
            msg = f"Failed to parse JSON response: {exc}"
            raise ResponseShapeError(msg, context={"body_length": len(body or "")}) from exc

        if not isinstance(data, dict):
            msg = f"Response body must be a JSON object, got {type(data).__name__}"
            raise ResponseShapeError(msg)
        return data

    def extract_usage(self, data: dict[str, Any]) -> UsageCounters | None:
        """Read token counters from ``usage``.

        A missing or null ``usage`` is not an error. A present one must carry
        all three numeric fields.
        """
        usage = data.get("usage")
        if usage is None:
            return None
        if not isinstance(usage, dict):
            msg = f"Usage must be a JSON object, got {type(usage).__name__}"
            raise ResponseShapeError(msg)

        values: dict[str, int] = {}
        for field in USAGE_COUNTER_NAMES:
            value = usage.get(field)
            if (
                isinstance(value, bool)
                or not isinstance(value, int | float)
                or (isinstance(value, float) and not math.isfinite(value))
            ):
                msg = f"Usage field '{field}' is missing or not numeric"
                raise ResponseShapeError(
                    msg,
                    context={"field": field, "value": value},
                )
            values[field] = int(value)
        return UsageCounters(**values)

    def emit_usage(self, usage: UsageCounters, sink: UsageSink) -> None:
        """Report the three counters independently to the sink."""
        for field, name in USAGE_COUNTER_NAMES.items():
            sink.counter(name, getattr(usage, field))

    def extract_output_text(self, data: dict[str, Any]) -> str:
        """Return ``choices[0].message.content``; index 0 is the primary completion."""
        choices = data.get("choices")
        if not isinstance(choices, list):
            msg = "Response has no 'choices' array"
            raise ResponseShapeError(msg)
        if not choices:
            msg = "Response 'choices' array is empty"
            raise ResponseShapeError(msg)

        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            msg = "First choice has no 'message' object"
            raise ResponseShapeError(msg)

        content = message.get("content")
        if not isinstance(content, str):
            msg = "First choice message has no string 'content'"
            raise ResponseShapeError(
                msg,
                context={"content_type": type(content).__name__},
            )

        finish_reason = first.get("finish_reason")
        if finish_reason == "length":
            logger.warning("perplexity_response_truncated", extra={"model": data.get("model")})

        return content

    def process(self, body: str, sink: UsageSink | None = None) -> CompletionResult:
        """Turn a successful raw body into a CompletionResult.

        Shape is fully validated before any counter is emitted, so a failing
        call reports nothing to the sink.
        """
        data = self.parse_body(body)
        usage = self.extract_usage(data)
        output_text = self.extract_output_text(data)

        if usage is not None and sink is not None:
            self.emit_usage(usage, sink)

        return CompletionResult(output_text=output_text, raw_response=body)

    def get_error_message(
        self, status_code: int, body: str | None, *, max_body_length: int | None = None
    ) -> str:
        """Return a descriptive provider error message including the raw body.

        The API error is read from the full body; only the echoed body is cut
        to ``max_body_length``.
        """
        base = _STATUS_MESSAGES.get(status_code, f"HTTP {status_code} error")

        api_error: str | None = None
        try:
            data = json.loads(body) if body else None
        except ValueError:
            data = None
        if isinstance(data, dict):
            raw_error = data.get("error")
            if isinstance(raw_error, dict):
                api_error = raw_error.get("message") or raw_error.get("type")
            elif isinstance(raw_error, str):
                api_error = raw_error

        message = f"Perplexity API error ({status_code}): {base}"
        if api_error:
            message = f"{message}: {api_error}"
        shown = body or ""
        if max_body_length is not None:
            shown = truncate_log_content(shown, max_body_length) or ""
        return f"{message}. Response body: {shown}"


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are accepted by ``json`` but are not valid JSON.
    msg = f"Non-standard JSON constant {name!r}"
    raise ValueError(msg)
