"""Perplexity chat completions client.

One call is one POST: the HTTP client is opened for the call and closed on
every exit path. There is no retry loop; failures surface to the caller once.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx

from perplexity_chat.adapters.perplexity.exceptions import (
    ConfigurationError,
    ProviderError,
    ResponseShapeError,
    TransportError,
)
from perplexity_chat.adapters.perplexity.request_builder import RequestBuilder
from perplexity_chat.adapters.perplexity.response_processor import ResponseProcessor
from perplexity_chat.config.perplexity import API_URL
from perplexity_chat.core.http_utils import ResponseSizeError, bytes_to_mb, check_response_size
from perplexity_chat.core.logging_utils import truncate_log_content

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from perplexity_chat.models.llm.llm_models import CompletionRequest, CompletionResult
    from perplexity_chat.observability.metrics import UsageSink

logger = logging.getLogger(__name__)


class PerplexityClient:
    """Chat Completions client for the Perplexity API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = API_URL,
        timeout_sec: float = 60,
        max_response_size_mb: int = 10,
        debug_payloads: bool = False,
        log_truncate_length: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Perplexity API key sent as a bearer token.
            base_url: Full chat completions endpoint URL.
            timeout_sec: Request timeout in seconds.
            max_response_size_mb: Responses larger than this are rejected.
            debug_payloads: Whether to log request/response payloads.
            log_truncate_length: Maximum logged payload length.
            transport: Optional httpx transport (tests, proxies).
        """
        if not api_key or not isinstance(api_key, str) or not api_key.strip():
            msg = "API key is required and must be a non-empty string"
            raise ConfigurationError(msg, context={"parameter": "api_key"})

        self._url = base_url
        self._timeout = httpx.Timeout(timeout_sec, connect=min(10.0, timeout_sec))
        self._max_response_size_bytes = int(max_response_size_mb) * 1024 * 1024
        self._debug_payloads = debug_payloads
        self._log_truncate_length = log_truncate_length
        self._transport = transport
        self._request_builder = RequestBuilder(api_key=api_key.strip())
        self._response_processor = ResponseProcessor()

    @property
    def request_builder(self) -> RequestBuilder:
        return self._request_builder

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Open a client for one call and map network failures to TransportError."""
        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                yield client
            except httpx.TimeoutException as e:
                raise TransportError(
                    f"Request timeout: {e}", context={"kind": "timeout"}
                ) from e
            except httpx.TransportError as e:
                raise TransportError(
                    f"Connection failed: {e}", context={"kind": type(e).__name__}
                ) from e
            except httpx.DecodingError as e:
                raise ResponseShapeError(
                    f"Failed to decode response body: {e}", context={"kind": "decoding"}
                ) from e
            except httpx.RequestError as e:
                # TooManyRedirects and any other request-level failure
                raise TransportError(
                    f"Request failed: {e}", context={"kind": type(e).__name__}
                ) from e

    async def send(self, request: CompletionRequest) -> tuple[int, str]:
        """POST the request and return ``(status_code, body)``.

        The response size limit applies to successful responses only; error
        statuses are handed back whatever their size.
        """
        headers = self._request_builder.build_headers()
        body = self._request_builder.build_request_body(request)
        content = self._request_builder.encode_request_body(body)

        if self._debug_payloads:
            logger.debug(
                "perplexity_request",
                extra={
                    "model": request.model,
                    "url": self._url,
                    "headers": self._request_builder.get_redacted_headers(headers),
                    "body": truncate_log_content(
                        content.decode("utf-8"), self._log_truncate_length
                    ),
                },
            )

        started = time.perf_counter()
        async with self._request_context() as client:
            resp = await client.post(self._url, headers=headers, content=content)
        latency = int((time.perf_counter() - started) * 1000)

        try:
            if resp.status_code < 400:
                check_response_size(resp, self._max_response_size_bytes)
        except ResponseSizeError as e:
            raise ResponseShapeError(
                f"Response too large: {e}",
                model=request.model,
                context={
                    "actual_size_mb": bytes_to_mb(e.actual_size or 0),
                    "max_size_mb": bytes_to_mb(e.max_size),
                },
            ) from e

        text = resp.text
        logger.info(
            "perplexity_response",
            extra={"model": request.model, "status": resp.status_code, "latency_ms": latency},
        )
        if self._debug_payloads:
            logger.debug(
                "perplexity_response_body",
                extra={"body": truncate_log_content(text, self._log_truncate_length)},
            )
        return resp.status_code, text

    async def chat_completion(
        self,
        request: CompletionRequest,
        *,
        usage_sink: UsageSink | None = None,
    ) -> CompletionResult:
        """Send a chat completion request and extract the first completion.

        Raises:
            TransportError: The HTTP call could not be completed.
            ProviderError: The API answered with status >= 400.
            ResponseShapeError: The body is not the expected JSON shape.
        """
        status_code, body = await self.send(request)

        if status_code >= 400:
            message = self._response_processor.get_error_message(
                status_code, body, max_body_length=self._log_truncate_length
            )
            logger.warning(
                "perplexity_api_error",
                extra={"model": request.model, "status": status_code},
            )
            raise ProviderError(
                message,
                model=request.model,
                status_code=status_code,
                body=body,
            )

        try:
            return self._response_processor.process(body, usage_sink)
        except ResponseShapeError as e:
            e.model = e.model or request.model
            logger.warning(
                "perplexity_response_invalid",
                extra={"model": request.model, "error": str(e)},
            )
            raise


def redact_request_summary(request: CompletionRequest) -> dict[str, Any]:
    """Short description of a request for logs, without message content."""
    return {
        "model": request.model,
        "message_count": len(request.messages),
        "max_tokens": request.max_tokens,
        "structured_output_used": request.response_format is not None,
        "stream": request.stream,
    }
