"""Text extraction from the event shapes emitted by the messages endpoint.

The endpoint mixes streaming events, whole-message objects and the legacy
completion format. Rules are tried in a fixed order and the first match
wins, so one logical event never yields its text twice:

1. ``content_block_delta`` with ``delta.text``
2. ``content_block_start`` with ``content_block.text``
3. ``content`` list of blocks: the texts joined in order
4. legacy ``completion`` string
5. ``error`` field: raised as :class:`ApiError`
6. anything else: no text
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from chat_provider.core.errors import classify_error

logger = logging.getLogger(__name__)


def _nested_text(event: Mapping[str, Any], key: str) -> str | None:
    inner = event.get(key)
    if isinstance(inner, Mapping) and isinstance(inner.get("text"), str):
        return inner["text"]
    return None


def extract_delta(event: Any) -> str | None:
    """Return the text carried by one decoded event, or None.

    Raises ApiError when the event carries an ``error`` field.
    """
    if not isinstance(event, Mapping):
        logger.debug("ignoring non-object event", extra={"event_type": type(event).__name__})
        return None

    event_type = event.get("type")
    if event_type == "content_block_delta":
        text = _nested_text(event, "delta")
        if text is not None:
            return text
    if event_type == "content_block_start":
        text = _nested_text(event, "content_block")
        if text is not None:
            return text

    content = event.get("content")
    if isinstance(content, list):
        parts = [
            block["text"]
            for block in content
            if isinstance(block, Mapping) and isinstance(block.get("text"), str)
        ]
        return "".join(parts)

    completion = event.get("completion")
    if isinstance(completion, str):
        return completion

    if "error" in event:
        raise classify_error(event)

    if event_type is not None:
        logger.debug("received event without text", extra={"event_type": event_type})
    else:
        logger.debug("unrecognized event structure", extra={"keys": sorted(map(str, event))})
    return None
