"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

TEST_API_KEY = "pplx-test-key-1234567890"

COMPLETION_BODY = json.dumps(
    {
        "id": "cmpl-1",
        "model": "sonar",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": "4"}}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 1, "total_tokens": 6},
    }
)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    @property
    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep developer environment variables and .env files out of tests."""
    for name in (
        "PERPLEXITY_API_KEY",
        "PERPLEXITY_MODEL",
        "PERPLEXITY_BASE_URL",
        "PERPLEXITY_MAX_RESPONSE_SIZE_MB",
        "LOG_LEVEL",
        "REQUEST_TIMEOUT_SEC",
        "DEBUG_PAYLOADS",
        "LOG_TRUNCATE_LENGTH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def completion_body() -> str:
    return COMPLETION_BODY


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Build a transport answering every request with a fixed status and body."""

    def _make(status_code: int = 200, body: str = COMPLETION_BODY) -> RecordingTransport:
        return RecordingTransport(
            lambda request: httpx.Response(
                status_code,
                content=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        )

    return _make
