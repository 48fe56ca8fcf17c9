"""Frame assembly for the messages event stream.

Raw bytes arrive in chunks with arbitrary boundaries. They are decoded
incrementally, split into lines (a line is never assumed complete at a
chunk end) and fed one at a time into a small state machine:

- ``EMPTY``: no partial payload is held.
- ``BUFFERING``: a ``data:`` payload (or a bare JSON line following one)
  did not parse yet; subsequent fragments are appended until the
  accumulated text parses.

Each fed line yields zero or more :class:`Frame` objects. A complete
payload arriving while a buffer is open first flushes the buffer as its
own frame, so the two never merge.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Iterable

from chat_provider.core.errors import ErrorKind

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
# SSE field lines other than data never signal an error by themselves.
_SSE_FIELDS = ("event:", "id:", "retry:", ":")
_INVALID = object()


class FrameKind(str, Enum):
    PAYLOAD = "payload"
    ERROR_LINE = "error_line"
    RAW_TEXT = "raw_text"


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    text: str
    data: Any = None


class AssemblerState(str, Enum):
    EMPTY = "empty"
    BUFFERING = "buffering"


def _parse(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _INVALID


def looks_like_json(text: str) -> bool:
    return text.startswith(("{", "["))


def _data_payload(line: str) -> str | None:
    if not line.startswith(DATA_PREFIX):
        return None
    rest = line[len(DATA_PREFIX):]
    return rest[1:] if rest.startswith(" ") else rest


def _is_error_indicator(line: str) -> bool:
    return "error" in line and not line.startswith(_SSE_FIELDS)


class LineSplitter:
    """Incremental UTF-8 decoder that yields complete lines only."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        # A trailing CR may be the first half of CRLF.
        hold_cr = text.endswith("\r")
        if hold_cr:
            text = text[:-1]
        *lines, rest = _LINE_BREAK.split(text)
        self._pending = rest + "\r" if hold_cr else rest
        return lines

    def flush(self) -> list[str]:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        lines = _LINE_BREAK.split(text)
        if lines and not lines[-1]:
            lines.pop()
        return lines


class FrameAssembler:
    """Line-level state machine turning stream lines into frames."""

    def __init__(self) -> None:
        self._buffer: list[str] = []

    @property
    def state(self) -> AssemblerState:
        return AssemblerState.BUFFERING if self._buffer else AssemblerState.EMPTY

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()

    def feed(self, line: str) -> list[Frame]:
        if not line:
            return []
        payload = _data_payload(line)
        if payload is not None:
            if payload == DONE_SENTINEL:
                self._discard("terminator")
                return []
            if not payload:
                return []
            return self._feed_data(payload)
        if _is_error_indicator(line):
            self._discard("error line")
            return [Frame(FrameKind.ERROR_LINE, line)]
        if looks_like_json(line):
            if self.state is AssemblerState.BUFFERING:
                return self._append(line)
            data = _parse(line)
            if data is _INVALID:
                logger.warning(
                    "dropping unparseable JSON line",
                    extra={"kind": ErrorKind.PARSE_ANOMALY.value, "length": len(line)},
                )
                return []
            return [Frame(FrameKind.PAYLOAD, line, data)]
        return []

    def finish(self) -> list[Frame]:
        """End of stream: salvage whatever is still buffered."""
        if self.state is AssemblerState.EMPTY:
            return []
        return self._flush()

    def _feed_data(self, payload: str) -> list[Frame]:
        data = _parse(payload)
        if data is _INVALID:
            return self._append(payload)
        frames = self._flush() if self.state is AssemblerState.BUFFERING else []
        frames.append(Frame(FrameKind.PAYLOAD, payload, data))
        return frames

    def _append(self, fragment: str) -> list[Frame]:
        self._buffer.append(fragment)
        joined = self.pending
        data = _parse(joined)
        if data is _INVALID:
            logger.debug("buffering incomplete JSON", extra={"length": len(joined)})
            return []
        self._buffer.clear()
        return [Frame(FrameKind.PAYLOAD, joined, data)]

    def _flush(self) -> list[Frame]:
        pending = self.pending
        self._buffer.clear()
        data = _parse(pending)
        if data is not _INVALID:
            return [Frame(FrameKind.PAYLOAD, pending, data)]
        if not looks_like_json(pending):
            return [Frame(FrameKind.RAW_TEXT, pending)]
        # TODO: surface truncated JSON as an error instead of dropping it once
        # callers can tell a truncated stream apart from a completed one.
        logger.warning(
            "dropping incomplete JSON fragment",
            extra={"kind": ErrorKind.PARSE_ANOMALY.value, "length": len(pending)},
        )
        return []

    def _discard(self, reason: str) -> None:
        if self._buffer:
            logger.warning(
                "discarding buffered fragment on %s",
                reason,
                extra={"kind": ErrorKind.PARSE_ANOMALY.value, "length": len(self.pending)},
            )
            self._buffer.clear()


class FrameReader:
    """Bytes in, frames out: LineSplitter feeding a FrameAssembler."""

    def __init__(self) -> None:
        self._lines = LineSplitter()
        self._assembler = FrameAssembler()

    def feed(self, chunk: bytes) -> list[Frame]:
        frames: list[Frame] = []
        for line in self._lines.feed(chunk):
            frames.extend(self._assembler.feed(line))
        return frames

    def close(self) -> list[Frame]:
        frames: list[Frame] = []
        for line in self._lines.flush():
            frames.extend(self._assembler.feed(line))
        frames.extend(self._assembler.finish())
        return frames


def read_frames(chunks: Iterable[bytes]) -> list[Frame]:
    reader = FrameReader()
    frames: list[Frame] = []
    for chunk in chunks:
        frames.extend(reader.feed(chunk))
    frames.extend(reader.close())
    return frames


async def iter_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Lazily yield frames as chunks arrive. Closing early discards any open buffer."""
    reader = FrameReader()
    async for chunk in chunks:
        for frame in reader.feed(chunk):
            yield frame
    for frame in reader.close():
        yield frame
