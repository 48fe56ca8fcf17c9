"""Tests for the command-line entry point."""

from chat_provider.core.attachments import FileAttachment, ImageAttachment, LinkAttachment
from chat_provider.main import _build_parser, attachment_from_arg, main


def test_attachment_from_url():
    att = attachment_from_arg("https://example.com/page")
    assert isinstance(att, LinkAttachment)
    assert att.url == "https://example.com/page"


def test_attachment_from_image_path():
    att = attachment_from_arg("/tmp/photos/cat.png")
    assert isinstance(att, ImageAttachment)
    assert att.name == "cat.png"
    assert att.mime_type == "image/png"
    assert att.path == "/tmp/photos/cat.png"


def test_attachment_from_other_path():
    att = attachment_from_arg("docs/notes.txt")
    assert isinstance(att, FileAttachment)
    assert att.name == "notes.txt"


def test_parser_collects_attachments():
    args = _build_parser().parse_args(["hi", "--attach", "a.png", "--attach", "https://x.example"])
    assert args.prompt == "hi"
    assert args.attach == ["a.png", "https://x.example"]


def test_parser_interactive_mode():
    args = _build_parser().parse_args([])
    assert args.prompt is None
    assert args.attach == []


def test_main_requires_api_key(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("logging:\n  level: ERROR\n")
    assert main(["hello", "--config", str(path)]) == 1
