"""Shared test fixtures for pytest.

Upstream services are faked with ``httpx.MockTransport`` and the FastAPI app
is driven through ``httpx.ASGITransport``, so no test touches the network.
"""

import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from app import app, get_http_client
from config import Settings, get_settings

JOB = {
    "title": "Senior Backend Engineer",
    "company": "Acme Corp",
    "location": {"city": "Austin", "state": "TX", "country": "USA"},
    "description": "Build and run Python services.",
    "employmentType": "FULL_TIME",
}

UPSTREAM_FRAMES = [
    'data: {"choices":[{"delta":{"content":"100"}}]}\n\n',
    'data: {"choices":[{"delta":{"content":"k-120k"}}]}\n\n',
    'data: {"choices":[{"delta":{"content":" ;; high ;; strong demand"}}]}\n\n',
    "data: [DONE]\n\n",
]


def delta_frame(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n"


async def chunked(chunks: List[bytes], error: Optional[Exception] = None) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


class FakeUpstream:
    """Records requests and answers them with a configurable handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(404)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def stream(self, frames: List[str], *, error: Optional[Exception] = None, status_code: int = 200) -> None:
        body = [f.encode("utf-8") for f in frames]
        self.handler = lambda request: httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=chunked(body, error),
        )

    def reply(self, status_code: int, body: Any) -> None:
        if isinstance(body, (dict, list)):
            self.handler = lambda request: httpx.Response(status_code, json=body)
        else:
            self.handler = lambda request: httpx.Response(status_code, text=body)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        OPENAI_API_KEY="test-openai-key",
        OPENAI_MODEL="gpt-test",
        OPENAI_API_URL="https://llm.test/v1",
        FIRECRAWL_API_KEY="test-firecrawl-key",
        FIRECRAWL_API_URL="https://scrape.test/v1/scrape",
    )


@pytest_asyncio.fixture
async def upstream_client(upstream: FakeUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(
    test_settings: Settings, upstream_client: httpx.AsyncClient
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client for the FastAPI app wired to the fake upstream services."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_http_client] = lambda: upstream_client
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
