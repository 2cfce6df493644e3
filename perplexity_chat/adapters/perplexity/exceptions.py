"""Custom exceptions for the Perplexity chat completion adapter."""

from __future__ import annotations

from typing import Any


class PerplexityError(Exception):
    """Base exception for Perplexity adapter errors."""

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.model = model
        self.context = context or {}


class ConfigurationError(PerplexityError):
    """Raised when task configuration cannot be turned into a request.

    Covers unresolved required fields, out-of-range sampling parameters,
    unknown message roles and schema strings that are not valid JSON. Always
    raised before any network call is attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, model=model, context=context)
        self.context["error_type"] = "configuration"


class TransportError(PerplexityError):
    """Raised when the HTTP call could not be completed (connect, timeout, TLS)."""

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, model=model, context=context)
        self.context["error_type"] = "transport"


class ProviderError(PerplexityError):
    """Raised when the Perplexity API answers with an HTTP status >= 400."""

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, model=model, context=context)
        self.status_code = status_code
        self.body = body
        if status_code:
            self.context["status_code"] = status_code
        self.context["error_type"] = "provider"


class ResponseShapeError(PerplexityError):
    """Raised when a successful response body cannot be interpreted."""

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, model=model, context=context)
        self.context["error_type"] = "response_shape"
