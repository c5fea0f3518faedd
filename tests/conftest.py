"""Shared fixtures: a simulated completion service and an in-memory store."""

import json

import httpx
import pytest

from neurochat.completion_client import CompletionClient
from neurochat.config import Config
from neurochat.conversation_store import ConversationStore
from neurochat.storage import MemoryCache


def delta_event(text: str) -> str:
    """One SSE line carrying a content delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}) + "\n\n"


def sse_body(*deltas: str, done: bool = True) -> bytes:
    body = "".join(delta_event(d) for d in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def store(cache):
    return ConversationStore(cache)


@pytest.fixture
def make_client(config):
    """
    Builds a CompletionClient whose HTTP layer is an httpx.MockTransport.
    Every request is recorded in client.requests as parsed JSON.
    """

    def _make(handler) -> CompletionClient:
        requests = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return handler(request)

        http_client = httpx.Client(transport=httpx.MockTransport(recording_handler))
        client = CompletionClient(config, http_client=http_client, api_key="test-key")
        client.requests = requests
        return client

    return _make


def stream_response(*chunks: bytes) -> httpx.Response:
    """200 event-stream response delivering the body in the given read windows."""
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=iter(chunks),
    )
