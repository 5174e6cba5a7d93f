"""Logging configuration tests."""

import json
from collections.abc import Iterator

import pytest
import structlog

from hyprbroker.logging import configure_logging


@pytest.fixture
def restore_structlog() -> Iterator[None]:
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def test_json_entries_go_to_stderr_with_component(
    restore_structlog: None,
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging(component="daemon")

    structlog.get_logger().info("broker_listening", path="/run/hb.sock")

    captured = capsys.readouterr()
    assert captured.out == ""
    entry = json.loads(captured.err)
    assert entry["event"] == "broker_listening"
    assert entry["component"] == "daemon"
    assert entry["level"] == "info"


def test_debug_entries_filtered_by_default(
    restore_structlog: None,
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging()

    structlog.get_logger().debug("event_dispatched")

    assert capsys.readouterr().err == ""


def test_console_format_is_not_json(
    restore_structlog: None,
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging(debug=True, log_format="console", component="listen")

    structlog.get_logger().debug("subscribed", subscription="all")

    err = capsys.readouterr().err
    assert "subscribed" in err
    assert "component=listen" in err
    with pytest.raises(json.JSONDecodeError):
        json.loads(err)
