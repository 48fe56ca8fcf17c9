"""Stream orchestrator: deterministic request lifecycle.

Idle -> Requesting -> Streaming -> Completed | Failed. Every failure,
whatever state it happens in, is written once into the open history turn
and raised once from the output channel; the channel never stays open.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from typing import TYPE_CHECKING, AsyncIterator, Mapping, Optional, Sequence

from chat_provider.core.cancellation import CancelToken
from chat_provider.core.errors import (
    EmptyInputError,
    HttpStatusError,
    NotConfiguredError,
    ProviderError,
    StreamCancelledError,
    StreamProcessingError,
    classify_error_line,
    parse_error_body,
)
from chat_provider.core.events import MessagesRequest, StreamOutcome, StreamState, WireMessage
from chat_provider.models.extractor import extract_delta
from chat_provider.models.framing import Frame, FrameKind, iter_frames

if TYPE_CHECKING:
    from chat_provider.config.loader import AnthropicSettings
    from chat_provider.memory.history import ConversationHistory
    from chat_provider.models.transport import Transport, TransportResponse

logger = logging.getLogger(__name__)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


async def _next_chunk(iterator: AsyncIterator[bytes]) -> tuple[bool, bytes]:
    try:
        return True, await iterator.__anext__()
    except StopAsyncIteration:
        return False, b""


class StreamOrchestrator:
    """Runs one streaming call at a time. Callers serialize sends themselves."""

    def __init__(self, transport: "Transport", settings: "AnthropicSettings") -> None:
        self._transport = transport
        self._settings = settings
        self._state = StreamState.IDLE
        self._last_outcome: StreamOutcome | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def last_outcome(self) -> StreamOutcome | None:
        return self._last_outcome

    @property
    def headers(self) -> dict[str, str]:
        return {
            "anthropic-version": self._settings.api_version,
            "x-api-key": self._settings.api_key.strip(),
            "content-type": "application/json",
            "accept": "text/event-stream",
        }

    def build_request(self, messages: Sequence[WireMessage]) -> MessagesRequest:
        return MessagesRequest(
            model=self._settings.model,
            messages=list(messages),
            stream=True,
            max_tokens=self._settings.max_tokens,
        )

    def record_failure(
        self, error: ProviderError, history: Optional["ConversationHistory"] = None
    ) -> None:
        self._state = StreamState.FAILED
        self._last_outcome = StreamOutcome.failed(error)
        logger.warning("stream failed: %s", error.kind.value, extra={"error_kind": error.kind.value})
        if history is not None:
            history.apply_error(error.message)

    async def stream(
        self,
        messages: Sequence[WireMessage],
        *,
        history: Optional["ConversationHistory"] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas. Each delta is applied to ``history`` before it is yielded."""
        self._state = StreamState.REQUESTING
        response: TransportResponse | None = None
        try:
            if not self._settings.api_key.strip():
                raise NotConfiguredError()
            if not messages:
                raise EmptyInputError("No messages to send.")
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            body = self.build_request(messages).model_dump(mode="json")
            logger.info(
                "sending messages request",
                extra={"model": self._settings.model, "message_count": len(messages)},
            )
            response = await self._transport.post(
                self._settings.base_url,
                body,
                self.headers,
                stream=True,
                cancel_token=cancel_token,
            )
            if not response.is_success:
                raise await self._status_error(response, cancel_token)

            self._state = StreamState.STREAMING
            async with aclosing(iter_frames(self._read_body(response, cancel_token))) as frames:
                async for frame in frames:
                    text = self._frame_text(frame)
                    if not text:
                        continue
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    if history is not None:
                        history.apply_delta(text)
                    yield text
        except ProviderError as e:
            self.record_failure(e, history)
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self.record_failure(StreamCancelledError(), history)
            raise
        except Exception as e:
            error = StreamProcessingError(f"Error processing stream: {e}")
            logger.exception("unexpected stream failure")
            self.record_failure(error, history)
            raise error from e
        else:
            self._state = StreamState.COMPLETED
            self._last_outcome = StreamOutcome.completed()
            if history is not None:
                history.finalize()
            logger.info("stream completed")
        finally:
            if response is not None:
                await response.aclose()

    @staticmethod
    def _frame_text(frame: Frame) -> str | None:
        if frame.kind is FrameKind.ERROR_LINE:
            raise classify_error_line(frame.text)
        if frame.kind is FrameKind.RAW_TEXT:
            return frame.text
        return extract_delta(frame.data)

    @staticmethod
    async def _read_body(
        response: "TransportResponse", cancel_token: Optional[CancelToken]
    ) -> AsyncIterator[bytes]:
        if cancel_token is None:
            async for chunk in response.body:
                yield chunk
            return
        iterator = response.body.__aiter__()
        while True:
            has_chunk, chunk = await cancel_token.race(_next_chunk(iterator))
            if not has_chunk:
                return
            yield chunk

    async def _status_error(
        self, response: "TransportResponse", cancel_token: Optional[CancelToken] = None
    ) -> HttpStatusError:
        status = response.status_code
        error_type = _header(response.headers, "x-error-type")
        detail = f" ({error_type})" if error_type else ""
        try:
            if cancel_token is not None:
                raw = await cancel_token.race(response.aread())
            else:
                raw = await response.aread()
        except StreamCancelledError:
            raise
        except ProviderError as e:
            logger.warning("could not read error body: %s", e)
            raw = b""
        api_error = parse_error_body(raw)
        logger.debug("error response body", extra={"status_code": status, "length": len(raw)})

        if status == 400:
            if api_error is not None:
                return HttpStatusError(status, api_error.message, api_error)
            text = raw.decode("utf-8", errors="replace").strip()
            if text and not _is_json(text):
                detail = f": {text}"
            return HttpStatusError(status, f"Bad Request - The API rejected your request{detail}")

        message = f"API returned status code {status}{detail}"
        if api_error is not None:
            message += f": {api_error.message}"
        return HttpStatusError(status, message, api_error)


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
