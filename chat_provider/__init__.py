"""Streaming adapter for the Anthropic messages API with a UI-observable conversation history."""

from chat_provider.core.attachments import FileAttachment, ImageAttachment, LinkAttachment
from chat_provider.core.cancellation import CancelToken
from chat_provider.core.errors import (
    ApiError,
    EmptyInputError,
    ErrorKind,
    HttpStatusError,
    NotConfiguredError,
    ProviderError,
    StreamCancelledError,
    TransportError,
)
from chat_provider.memory.history import ConversationHistory, Role, Turn
from chat_provider.models.gateway import AnthropicGateway

__all__ = [
    "AnthropicGateway",
    "ConversationHistory",
    "Turn",
    "Role",
    "CancelToken",
    "ImageAttachment",
    "FileAttachment",
    "LinkAttachment",
    "ProviderError",
    "ErrorKind",
    "NotConfiguredError",
    "EmptyInputError",
    "TransportError",
    "HttpStatusError",
    "ApiError",
    "StreamCancelledError",
]
