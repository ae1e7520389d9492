from __future__ import annotations

import json
import logging
import sys

from orderdesk.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int = logging.INFO, msg: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="orderdesk.flow.controller",
        level=level,
        pathname="controller.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_third_party_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_picks_formatter() -> None:
    setup_logging("info", json_format=True)
    [handler] = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)

    setup_logging("info")
    [handler] = logging.getLogger().handlers
    assert isinstance(handler.formatter, _ContainerFormatter)


def test_container_formatter_location_only_for_warning_and_up() -> None:
    fmt = _ContainerFormatter()
    info = fmt.format(_record(logging.INFO))
    warning = fmt.format(_record(logging.WARNING, "bad thing"))

    assert "hello" in info
    assert "[controller.py:" not in info
    assert "bad thing" in warning
    assert "[controller.py:42]" in warning


def test_json_formatter_carries_flow_context() -> None:
    output = _JsonFormatter().format(
        _record(uid="uid-ana", step="no-organization", request_id="abc-123")
    )
    parsed = json.loads(output)
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "orderdesk.flow.controller"
    assert parsed["message"] == "hello"
    assert parsed["uid"] == "uid-ana"
    assert parsed["step"] == "no-organization"
    assert parsed["request_id"] == "abc-123"
    assert "method" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("test error")
    except ValueError:
        record = _record(logging.ERROR, "Something failed")
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    assert "ValueError: test error" in json.loads(output)["exception"]
