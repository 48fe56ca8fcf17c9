"""Anthropic gateway: one-shot and chat streaming over a shared conversation history.

Streaming contract: see chat_provider.models.streaming."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Iterable, Optional, Sequence

from chat_provider.config.loader import DEFAULT_MODEL, AnthropicSettings, Config
from chat_provider.core.attachments import Attachment, compose_content
from chat_provider.core.cancellation import CancelToken
from chat_provider.core.errors import NotConfiguredError, ProviderError
from chat_provider.core.events import StreamOutcome, StreamState, WireMessage
from chat_provider.core.orchestrator import StreamOrchestrator
from chat_provider.memory.history import ConversationHistory, Turn
from chat_provider.models.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)


class AnthropicGateway:
    """Messages API adapter. One history per instance; callers serialize sends."""

    def __init__(
        self,
        settings: AnthropicSettings | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._settings = settings or AnthropicSettings()
        self._owns_transport = transport is None
        self._transport = transport or HttpxTransport(
            connect_timeout=self._settings.connect_timeout,
            read_timeout=self._settings.read_timeout,
        )
        self._history = ConversationHistory(is_configured=lambda: self.is_configured)
        self._orchestrator = StreamOrchestrator(self._transport, self._settings)
        logger.debug(
            "gateway created",
            extra={"model": self._settings.model, "configured": self.is_configured},
        )

    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        transport: Transport | None = None,
    ) -> "AnthropicGateway":
        api_key = (api_key or "").strip()
        if not api_key:
            raise NotConfiguredError("API key cannot be empty")
        return cls(AnthropicSettings(api_key=api_key, model=model), transport=transport)

    @classmethod
    def from_config(
        cls, config: Config, *, transport: Transport | None = None
    ) -> "AnthropicGateway":
        return cls(config.anthropic, transport=transport)

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    @property
    def model(self) -> str:
        return self._settings.model

    @property
    def state(self) -> StreamState:
        return self._orchestrator.state

    @property
    def last_outcome(self) -> StreamOutcome | None:
        return self._orchestrator.last_outcome

    @property
    def history(self) -> ConversationHistory:
        return self._history

    @history.setter
    def history(self, turns: Iterable[Turn]) -> None:
        self._history.replace(turns)

    def clear_history(self) -> None:
        self._history.clear()

    def generate_stream(
        self,
        prompt: str,
        attachments: Sequence[Attachment] = (),
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """One-shot: a single user message, history untouched. Empty prompts pass through."""

        async def _stream() -> AsyncIterator[str]:
            messages = [WireMessage(role="user", content=compose_content(prompt, attachments))]
            async with aclosing(
                self._orchestrator.stream(messages, cancel_token=cancel_token)
            ) as deltas:
                async for delta in deltas:
                    yield delta

        return _stream()

    def send_message_stream(
        self,
        prompt: str,
        attachments: Sequence[Attachment] = (),
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """Chat mode: records the exchange in history and streams the reply into it."""

        async def _stream() -> AsyncIterator[str]:
            before = len(self._history)
            try:
                self._history.append_user_turn(prompt, attachments)
            except ProviderError as e:
                self._orchestrator.record_failure(e)
                raise
            if len(self._history) > before:
                self._history.append_assistant_placeholder()

            content = compose_content(prompt, attachments)
            messages = self._history.export_wire_messages()
            if messages and messages[-1].role == "user":
                messages[-1] = WireMessage(role="user", content=content)
            else:
                messages.append(WireMessage(role="user", content=content))

            async with aclosing(
                self._orchestrator.stream(
                    messages, history=self._history, cancel_token=cancel_token
                )
            ) as deltas:
                async for delta in deltas:
                    yield delta

        return _stream()

    async def generate(
        self,
        prompt: str,
        attachments: Sequence[Attachment] = (),
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> str:
        """Non-streaming convenience: the full one-shot reply."""
        parts = []
        async for delta in self.generate_stream(prompt, attachments, cancel_token=cancel_token):
            parts.append(delta)
        return "".join(parts)

    async def aclose(self) -> None:
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()
