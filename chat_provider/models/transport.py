"""HTTP transport used by the stream orchestrator.

The orchestrator only needs ``post`` returning a status, headers and a
streaming body. :class:`HttpxTransport` is the default implementation;
tests substitute an in-memory one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Protocol, runtime_checkable

import httpx

from chat_provider.core.cancellation import CancelToken
from chat_provider.core.errors import TransportError

logger = logging.getLogger(__name__)


async def _noop() -> None:
    return None


@dataclass
class TransportResponse:
    status_code: int
    body: AsyncIterator[bytes]
    headers: Mapping[str, str] = field(default_factory=dict)
    close: Callable[[], Awaitable[None]] = _noop

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    async def aread(self) -> bytes:
        return b"".join([chunk async for chunk in self.body])

    async def aclose(self) -> None:
        await self.close()


@runtime_checkable
class Transport(Protocol):
    """Sends one request and returns its (possibly streaming) response."""

    async def post(
        self,
        url: str,
        json_body: Mapping[str, Any],
        headers: Mapping[str, str],
        *,
        stream: bool = True,
        cancel_token: Optional[CancelToken] = None,
    ) -> TransportResponse:
        ...


class HttpxTransport:
    """httpx.AsyncClient-backed transport. Timeouts live here, not in the core."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
        )

    async def post(
        self,
        url: str,
        json_body: Mapping[str, Any],
        headers: Mapping[str, str],
        *,
        stream: bool = True,
        cancel_token: Optional[CancelToken] = None,
    ) -> TransportResponse:
        request = self._client.build_request("POST", url, json=dict(json_body), headers=dict(headers))
        try:
            if cancel_token is not None:
                response = await cancel_token.race(self._client.send(request, stream=stream))
            else:
                response = await self._client.send(request, stream=stream)
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        logger.debug("response received", extra={"status_code": response.status_code})
        return TransportResponse(
            status_code=response.status_code,
            body=self._iter_body(response),
            headers=dict(response.headers),
            close=response.aclose,
        )

    @staticmethod
    async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
