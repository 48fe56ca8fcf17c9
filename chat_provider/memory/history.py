"""Conversation history: ordered turns with change notification and wire export."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Sequence

from pydantic import BaseModel, Field

from chat_provider.core.attachments import Attachment
from chat_provider.core.errors import EmptyInputError, NotConfiguredError
from chat_provider.core.events import WireMessage

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """One message in the log. Mutated in place only while its stream is open."""

    role: Role
    text: str = ""
    attachments: list[Attachment] = Field(default_factory=list)
    finalized: bool = False

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER

    @property
    def is_assistant(self) -> bool:
        return self.role == Role.ASSISTANT


class ConversationHistory:
    """Ordered log of turns for one adapter instance.

    Storage keeps everything the UI should see; alternation and duplicate
    suppression are applied only by :meth:`export_wire_messages`. Every
    mutation notifies subscribed listeners synchronously, exactly once.
    At most one turn (the streaming assistant placeholder) is unfinalized.
    """

    def __init__(self, is_configured: Optional[Callable[[], bool]] = None) -> None:
        self._turns: list[Turn] = []
        self._listeners: list[Listener] = []
        self._is_configured = is_configured

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.exception("history listener failed: %s", e)

    def _open_turn(self) -> Turn | None:
        for turn in reversed(self._turns):
            if turn.is_assistant and not turn.finalized:
                return turn
        return None

    def append_user_turn(self, text: str, attachments: Sequence[Attachment] = ()) -> Turn:
        if self._is_configured is not None and not self._is_configured():
            raise NotConfiguredError()
        if not text.strip():
            raise EmptyInputError()
        last = self.last
        if last is not None and last.is_user and last.finalized and last.text == text:
            logger.debug("duplicate user turn ignored")
            return last
        turn = Turn(role=Role.USER, text=text, attachments=list(attachments), finalized=True)
        self._turns.append(turn)
        self._notify()
        return turn

    def append_assistant_placeholder(self) -> Turn:
        stale = self._open_turn()
        if stale is not None:
            stale.finalized = True
        turn = Turn(role=Role.ASSISTANT)
        self._turns.append(turn)
        self._notify()
        return turn

    def apply_delta(self, text: str) -> None:
        turn = self._open_turn()
        if turn is None:
            return
        turn.text += text
        self._notify()

    def apply_error(self, message: str) -> None:
        turn = self._open_turn()
        if turn is None:
            logger.debug("no open turn for error", extra={"error_text": message})
            return
        turn.text += f"\nError: {message}"
        turn.finalized = True
        self._notify()

    def finalize(self) -> None:
        turn = self._open_turn()
        if turn is None:
            return
        turn.finalized = True
        self._notify()

    def clear(self) -> None:
        self._turns.clear()
        self._notify()

    def replace(self, turns: Iterable[Turn]) -> None:
        copied = [t.model_copy(deep=True) for t in turns]
        open_turns = [t for t in copied if not t.finalized]
        keep = next((t for t in reversed(open_turns) if t.is_assistant), None)
        for turn in open_turns:
            if turn is not keep:
                turn.finalized = True
        self._turns = copied
        self._notify()

    def export_wire_messages(self) -> list[WireMessage]:
        """Messages for the next request: non-empty, no repeated (role, text), strictly alternating."""
        result: list[WireMessage] = []
        seen: set[tuple[str, str]] = set()
        last_role: str | None = None
        for turn in self._turns:
            if not turn.text:
                continue
            role = turn.role.value
            key = (role, turn.text)
            if key in seen:
                continue
            if role == last_role:
                continue
            seen.add(key)
            last_role = role
            result.append(WireMessage(role=role, content=turn.text))
        return result
