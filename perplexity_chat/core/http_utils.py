from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


class ResponseSizeError(ValueError):
    """Raised when a response exceeds the maximum allowed size."""

    def __init__(self, message: str, *, actual_size: int | None = None, max_size: int) -> None:
        super().__init__(message)
        self.actual_size = actual_size
        self.max_size = max_size


def check_response_size(response: httpx.Response, max_size_bytes: int) -> None:
    """Reject a response whose size is over ``max_size_bytes``.

    The declared Content-Length is checked first; when the header is absent
    or unparsable the already-read body length is used.

    Raises:
        ResponseSizeError: If the response exceeds ``max_size_bytes``.
        ValueError: If ``max_size_bytes`` is not a positive integer.
    """
    if not isinstance(max_size_bytes, int) or max_size_bytes <= 0:
        msg = f"max_size_bytes must be a positive integer, got {max_size_bytes}"
        raise ValueError(msg)

    size: int | None = None
    content_length = response.headers.get("content-length")
    if content_length:
        try:
            size = int(content_length)
        except ValueError:
            logger.warning(
                "invalid_content_length_header",
                extra={"content_length": content_length, "status_code": response.status_code},
            )

    if size is None:
        size = len(response.content)

    if size > max_size_bytes:
        msg = f"Response size ({size} bytes) exceeds limit ({max_size_bytes} bytes)"
        logger.error(
            "response_size_exceeded",
            extra={
                "content_length": size,
                "max_size": max_size_bytes,
                "status_code": response.status_code,
            },
        )
        raise ResponseSizeError(msg, actual_size=size, max_size=max_size_bytes)


def bytes_to_mb(size_bytes: int) -> float:
    """Convert bytes to megabytes."""
    return round(size_bytes / (1024 * 1024), 2)
