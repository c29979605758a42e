"""Shared fixtures: a fake Ollama behind httpx.MockTransport."""

import json
from typing import Any, AsyncIterator, Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from offline_relay import api
from offline_relay.main import app
from offline_relay.ollama_client import OllamaClient

OLLAMA_URL = "http://ollama.test"


async def byte_chunks(*parts: bytes) -> AsyncIterator[bytes]:
    """Body that arrives in exactly these reads."""
    for part in parts:
        yield part


def ndjson(*objs: Dict[str, Any]) -> bytes:
    return b"".join(json.dumps(o, ensure_ascii=False).encode("utf-8") + b"\n" for o in objs)


class FakeOllama:
    """Records upstream requests and answers with `respond`."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, content=ndjson({"message": {"content": "ok"}, "done": True})
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append({"path": request.url.path, "json": body})
        return self.respond(request)

    def stream(self, *parts: bytes, status_code: int = 200):
        """Answer every request with a body split into these reads."""
        self.respond = lambda request: httpx.Response(status_code, content=byte_chunks(*parts))

    def reply(self, status_code: int = 200, **kwargs):
        self.respond = lambda request: httpx.Response(status_code, **kwargs)

    def fail(self, exc: Exception):
        def raise_exc(request):
            raise exc
        self.respond = raise_exc

    def client(self) -> OllamaClient:
        return OllamaClient(base_url=OLLAMA_URL, transport=httpx.MockTransport(self.handle))


@pytest.fixture
def upstream(monkeypatch) -> FakeOllama:
    fake = FakeOllama()
    monkeypatch.setattr(api, "ollama", fake.client())
    return fake


@pytest.fixture
def client(upstream) -> TestClient:
    return TestClient(app)
