"""Tests for core/logging_config: redaction, StructuredFormatter, setup_logging."""

import io
import json
import logging
import sys

from chat_provider.core.logging_config import StructuredFormatter, _redact, setup_logging


def _record(msg="hello", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_string_with_token():
    assert _redact("bearer abc123") == "[REDACTED]"
    assert _redact("token=xyz") == "[REDACTED]"
    assert _redact("sk-ant-api03-abcdef") == "[REDACTED]"
    assert _redact("hello") == "hello"


def test_redact_dict_recursive():
    assert _redact({"k": "x-api-key: abc"}) == {"k": "[REDACTED]"}
    assert _redact({"a": "normal"}) == {"a": "normal"}


def test_redact_list_and_tuple():
    assert _redact(["bearer x"]) == ["[REDACTED]"]
    assert _redact(("ok", "secret=1")) == ["ok", "[REDACTED]"]


def test_non_string_values_untouched():
    assert _redact(42) == 42
    assert _redact(None) is None


def test_structured_formatter_json():
    out = StructuredFormatter(use_json=True).format(_record())
    data = json.loads(out)
    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["logger"] == "test"


def test_structured_formatter_redacts_extra():
    out = StructuredFormatter(use_json=True).format(
        _record(headers={"x-api-key": "sk-ant-secret"}, model="claude-3-opus-20240229")
    )
    data = json.loads(out)
    assert data["headers"] == {"x-api-key": "[REDACTED]"}
    assert data["model"] == "claude-3-opus-20240229"


def test_structured_formatter_key_value():
    out = StructuredFormatter(use_json=False).format(_record(msg="warn", level=logging.WARNING))
    assert "warn" in out
    assert "WARNING" in out


def test_structured_formatter_with_exc_info():
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()
    out = StructuredFormatter(use_json=True).format(_record(level=logging.ERROR, exc_info=exc_info))
    data = json.loads(out)
    assert "ValueError" in data["exception"]


def test_setup_logging():
    setup_logging(level="DEBUG", use_json=True)
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    # Under pytest, root.handlers[0] may be pytest's; find ours
    structured = [
        h for h in root.handlers if isinstance(getattr(h, "formatter", None), StructuredFormatter)
    ]
    if structured:
        assert structured[0].formatter.use_json is True
    setup_logging(level="INFO")


def test_setup_logging_on_bare_root_writes_to_stream():
    root = logging.getLogger()
    saved = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    try:
        buf = io.StringIO()
        setup_logging(level="INFO", use_json=False, stream=buf)
        logging.getLogger("chat_provider.test").info("written")
        assert "written" in buf.getvalue()
    finally:
        root.handlers = saved
        root.setLevel(saved_level)
