"""Tests for attachment descriptions and composition."""

import pytest
from pydantic import TypeAdapter, ValidationError

from chat_provider.core.attachments import (
    Attachment,
    FileAttachment,
    ImageAttachment,
    LinkAttachment,
    compose_content,
)
from chat_provider.memory.history import Role, Turn


def test_describe():
    assert ImageAttachment(name="cat.png").describe() == "[Image attachment: cat.png]"
    assert FileAttachment(name="report.pdf").describe() == "[File attachment: report.pdf]"
    assert LinkAttachment(url="https://example.com").describe() == "[Link: https://example.com]"


def test_compose_without_attachments_is_prompt():
    assert compose_content("Hello") == "Hello"
    assert compose_content("") == ""


def test_compose_order_preserved():
    content = compose_content(
        "Look",
        [LinkAttachment(url="https://a.example"), ImageAttachment(name="b.png")],
    )
    assert content == "Look\n\n[Link: https://a.example]\n[Image attachment: b.png]"


def test_discriminated_union_from_dicts():
    adapter = TypeAdapter(list[Attachment])
    parsed = adapter.validate_python(
        [
            {"kind": "image", "name": "a.png", "mime_type": "image/png"},
            {"kind": "file", "name": "b.txt"},
            {"kind": "link", "url": "https://c.example"},
        ]
    )
    assert [type(a) for a in parsed] == [ImageAttachment, FileAttachment, LinkAttachment]


def test_unknown_kind_rejected():
    with pytest.raises(ValidationError):
        TypeAdapter(Attachment).validate_python({"kind": "audio", "name": "x.mp3"})


def test_turn_round_trips_attachments():
    turn = Turn(role=Role.USER, text="hi", attachments=[FileAttachment(name="notes.md")])
    restored = Turn.model_validate_json(turn.model_dump_json())
    assert restored == turn
    assert isinstance(restored.attachments[0], FileAttachment)
