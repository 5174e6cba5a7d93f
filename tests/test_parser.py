"""Line parser tests."""

import pytest

from hyprbroker.errors import EventParseError
from hyprbroker.events.parser import format_line, parse_line
from hyprbroker.events.types import EVENT_FIELDS, EventTag, FieldSpec, HyprEvent


def _sample_value(spec: FieldSpec) -> int | str | list[str]:
    if spec.kind == "u8":
        return 7
    if spec.kind == "str_list":
        return ["0xa1", "0xb2"]
    return f"{spec.name}-value"


@pytest.mark.parametrize("tag", list(EventTag), ids=lambda t: t.value)
def test_formatted_line_parses_back(tag: EventTag) -> None:
    """Every event kind survives rendering to a line and parsing it."""
    event = HyprEvent.from_fields(tag, *(_sample_value(s) for s in EVENT_FIELDS[tag]))
    assert parse_line(format_line(event)) == event


def test_fullscreen_status() -> None:
    assert parse_line("fullscreen>>1") == HyprEvent(
        tag=EventTag.FULLSCREEN, data={"status": 1}
    )
    assert parse_line("fullscreen>>7").data == {"status": 7}


def test_fullscreen_out_of_range() -> None:
    """Values above 255 are rejected."""
    with pytest.raises(EventParseError):
        parse_line("fullscreen>>300")


@pytest.mark.parametrize("payload", ["-1", "+1", "one", "", " 1x", "１"])
def test_integer_field_must_be_plain_decimal(payload: str) -> None:
    with pytest.raises(EventParseError):
        parse_line(f"fullscreen>>{payload}")


def test_togglegroup_collects_addresses() -> None:
    event = parse_line("togglegroup>>1,0x1,0x2,0x3")
    assert event.data == {
        "toggle_status": 1,
        "window_addresses": ["0x1", "0x2", "0x3"],
    }


def test_togglegroup_without_addresses() -> None:
    event = parse_line("togglegroup>>0")
    assert event.data == {"toggle_status": 0, "window_addresses": []}


def test_togglegroup_requires_status() -> None:
    with pytest.raises(EventParseError):
        parse_line("togglegroup>>")


def test_openwindow_fields() -> None:
    event = parse_line("openwindow>>55d0c0ab1230,2,kitty,~/src\n")
    assert event.tag is EventTag.OPEN_WINDOW
    assert event.data == {
        "window_address": "55d0c0ab1230",
        "workspace_name": "2",
        "window_class": "kitty",
        "window_title": "~/src",
    }


def test_unknown_tag_carries_tag_text() -> None:
    with pytest.raises(EventParseError) as exc_info:
        parse_line("bogusevent>>1,2")
    assert exc_info.value.tag == "bogusevent"
    assert exc_info.value.line == "bogusevent>>1,2"


def test_field_count_mismatch() -> None:
    """Fixed-arity events need exactly their declared fields."""
    with pytest.raises(EventParseError):
        parse_line("workspacev2>>1")
    with pytest.raises(EventParseError):
        parse_line("workspacev2>>1,one,extra")


def test_zero_field_event_ignores_payload() -> None:
    assert parse_line("configreloaded>>") == HyprEvent(tag=EventTag.CONFIG_RELOADED)
    assert parse_line("configreloaded>>junk,here") == HyprEvent(
        tag=EventTag.CONFIG_RELOADED
    )
    assert parse_line("configreloaded") == HyprEvent(tag=EventTag.CONFIG_RELOADED)


def test_payload_split_on_first_delimiter_only() -> None:
    """A '>>' inside the payload stays part of the field."""
    event = parse_line("submap>>resize>>now")
    assert event.data == {"submap_name": "resize>>now"}


def test_payload_is_trimmed() -> None:
    assert parse_line("  workspace>> 3  \n").data == {"workspace_name": "3"}


def test_comma_in_title_is_rejected() -> None:
    """Known limitation: the line protocol has no escaping.

    A window title containing a comma shifts the field count, so the line
    is rejected instead of capturing the remainder as the title.
    """
    with pytest.raises(EventParseError):
        parse_line("activewindow>>firefox,Inbox, 3 unread")


@pytest.mark.parametrize(
    "line",
    [
        "openlayer>>notifications,extra",
        "workspace>>web,mail",
        "submap>>resize,fast",
        "monitoradded>>DP-1,left",
    ],
)
def test_comma_in_single_text_field_is_rejected(line: str) -> None:
    """Same limitation for events with a single free-text field."""
    with pytest.raises(EventParseError):
        parse_line(line)
