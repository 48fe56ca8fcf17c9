"""Streaming contract for model responses.

Both entry points of the gateway produce an async iteration of text deltas:

- ``generate_stream``: one-shot, a single user message, history untouched.
- ``send_message_stream``: chat mode, history-backed, strict role alternation.

The iteration ends normally when the response is complete, or raises exactly
one :class:`chat_provider.core.errors.ProviderError` describing the failure.
"""

from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol, Sequence, runtime_checkable

from chat_provider.core.attachments import Attachment
from chat_provider.core.cancellation import CancelToken


@runtime_checkable
class StreamingProtocol(Protocol):
    """Protocol for providers that support delta streaming."""

    def generate_stream(
        self,
        prompt: str,
        attachments: Sequence[Attachment] = (),
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        ...

    def send_message_stream(
        self,
        prompt: str,
        attachments: Sequence[Attachment] = (),
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        ...
