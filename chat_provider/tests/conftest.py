"""Pytest fixtures and config."""

import asyncio
import json
import os

import pytest

from chat_provider.models.transport import TransportResponse

HANG = object()


class FakeTransport:
    """In-memory transport: records requests and replays scripted body chunks.

    A chunk may be bytes, an exception instance (raised mid-stream) or HANG
    (blocks until the read is cancelled).
    """

    def __init__(self, chunks=(), status_code=200, headers=None, error=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.headers = headers or {}
        self.error = error
        self.calls = []
        self.closed = 0

    async def post(self, url, json_body, headers, *, stream=True, cancel_token=None):
        self.calls.append({"url": url, "json": json_body, "headers": dict(headers)})
        if self.error is not None:
            raise self.error
        return TransportResponse(
            status_code=self.status_code,
            body=self._body(),
            headers=self.headers,
            close=self._close,
        )

    async def _body(self):
        for chunk in self.chunks:
            await asyncio.sleep(0)
            if chunk is HANG:
                await asyncio.Event().wait()
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def _close(self):
        self.closed += 1

    @property
    def last_messages(self):
        return self.calls[-1]["json"]["messages"]


def sse(*events: str) -> bytes:
    """Encode JSON strings as SSE data lines."""
    return "".join(f"data: {e}\n\n" for e in events).encode("utf-8")


def delta_event(text: str) -> str:
    return json.dumps({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}})


@pytest.fixture(autouse=True)
def env_cleanup(monkeypatch):
    """Avoid picking up a real key or config overlay in tests."""
    for name in list(os.environ):
        if name.startswith(("ANTHROPIC_", "LOG_")) or name == "CHAT_PROVIDER_ENV":
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def make_transport():
    return FakeTransport
