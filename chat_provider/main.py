"""Entry point for chat-provider: stream a reply, or chat interactively, from the terminal."""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import signal
import sys
from typing import TYPE_CHECKING, Optional, Sequence

from chat_provider.config import get_config
from chat_provider.core.attachments import (
    Attachment,
    FileAttachment,
    ImageAttachment,
    LinkAttachment,
)
from chat_provider.core.cancellation import CancelToken
from chat_provider.core.errors import ProviderError
from chat_provider.core.logging_config import setup_logging

if TYPE_CHECKING:
    from chat_provider.config.loader import Config
    from chat_provider.models.gateway import AnthropicGateway

logger = logging.getLogger(__name__)


def attachment_from_arg(value: str) -> Attachment:
    """URL -> link, image mime type -> image, anything else -> file."""
    if value.startswith(("http://", "https://")):
        return LinkAttachment(url=value)
    name = value.replace("\\", "/").rsplit("/", 1)[-1]
    mime_type, _ = mimetypes.guess_type(value)
    if mime_type and mime_type.startswith("image/"):
        return ImageAttachment(name=name, mime_type=mime_type, path=value)
    return FileAttachment(name=name, mime_type=mime_type, path=value)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream replies from the Anthropic messages API.")
    parser.add_argument("prompt", nargs="?", help="One-shot prompt. Omit for interactive chat.")
    parser.add_argument("--config", help="Path to a YAML config file.")
    parser.add_argument("--model", help="Override the configured model.")
    parser.add_argument(
        "--attach",
        action="append",
        default=[],
        metavar="PATH_OR_URL",
        help="Describe an attachment alongside the prompt (repeatable).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = get_config(args.config)
    setup_logging(config.logging.level, config.logging.use_json)
    if args.model:
        config.anthropic.model = args.model
    if not config.anthropic.is_configured:
        logger.error("ANTHROPIC_API_KEY is required")
        return 1
    attachments = [attachment_from_arg(a) for a in args.attach]
    return asyncio.run(run(config, args.prompt, attachments))


async def _print_stream(gateway: "AnthropicGateway", prompt: str, attachments: list[Attachment], chat: bool) -> bool:
    token = CancelToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        pass
    stream = (
        gateway.send_message_stream(prompt, attachments, cancel_token=token)
        if chat
        else gateway.generate_stream(prompt, attachments, cancel_token=token)
    )
    try:
        async for delta in stream:
            print(delta, end="", flush=True)
        print()
        return True
    except ProviderError as e:
        print(f"\n{e.message}", file=sys.stderr)
        return False
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


async def run(config: Config, prompt: Optional[str], attachments: list[Attachment]) -> int:
    from chat_provider.models.gateway import AnthropicGateway

    gateway = AnthropicGateway.from_config(config)
    try:
        if prompt is not None:
            ok = await _print_stream(gateway, prompt, attachments, chat=False)
            return 0 if ok else 2
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                print()
                return 0
            if not line.strip():
                continue
            await _print_stream(gateway, line, attachments, chat=True)
            attachments = []
    finally:
        await gateway.aclose()


if __name__ == "__main__":
    sys.exit(main())
