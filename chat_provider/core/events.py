"""Payloads exchanged with the remote service and per-call outcomes. All are Pydantic models."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from chat_provider.core.errors import ErrorKind, ProviderError


class WireMessage(BaseModel):
    """The only message shape accepted by the messages endpoint. Derived, never stored."""

    role: Literal["user", "assistant"]
    content: str


class MessagesRequest(BaseModel):
    """Request body for a streaming messages call."""

    model: str
    messages: list[WireMessage]
    stream: bool = True
    max_tokens: int = 4096


class StreamState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamOutcome(BaseModel):
    """Terminal result of one streaming call."""

    state: StreamState = Field(description="completed | failed")
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.state == StreamState.COMPLETED

    @classmethod
    def completed(cls) -> "StreamOutcome":
        return cls(state=StreamState.COMPLETED)

    @classmethod
    def failed(cls, error: ProviderError) -> "StreamOutcome":
        return cls(state=StreamState.FAILED, error_kind=error.kind, message=error.message)
