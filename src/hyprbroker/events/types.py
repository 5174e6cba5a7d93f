"""Hyprland event model and subscription filters."""
from enum import Enum
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

U8_MAX = 255

FieldKind = Literal["str", "u8", "str_list"]


class EventTag(str, Enum):
    """Canonical lowercase tags of the events Hyprland emits on socket2."""

    WORKSPACE = "workspace"
    WORKSPACE_V2 = "workspacev2"
    FOCUSED_MON = "focusedmon"
    FOCUSED_MON_V2 = "focusedmonv2"
    ACTIVE_WINDOW = "activewindow"
    ACTIVE_WINDOW_V2 = "activewindowv2"
    FULLSCREEN = "fullscreen"
    MONITOR_REMOVED = "monitorremoved"
    MONITOR_ADDED = "monitoradded"
    MONITOR_ADDED_V2 = "monitoraddedv2"
    CREATE_WORKSPACE = "createworkspace"
    CREATE_WORKSPACE_V2 = "createworkspacev2"
    DESTROY_WORKSPACE = "destroyworkspace"
    DESTROY_WORKSPACE_V2 = "destroyworkspacev2"
    MOVE_WORKSPACE = "moveworkspace"
    MOVE_WORKSPACE_V2 = "moveworkspacev2"
    RENAME_WORKSPACE = "renameworkspace"
    ACTIVE_SPECIAL = "activespecial"
    ACTIVE_LAYOUT = "activelayout"
    OPEN_WINDOW = "openwindow"
    CLOSE_WINDOW = "closewindow"
    MOVE_WINDOW = "movewindow"
    MOVE_WINDOW_V2 = "movewindowv2"
    OPEN_LAYER = "openlayer"
    CLOSE_LAYER = "closelayer"
    SUBMAP = "submap"
    CHANGE_FLOATING_MODE = "changefloatingmode"
    URGENT = "urgent"
    SCREENCAST = "screencast"
    WINDOW_TITLE = "windowtitle"
    WINDOW_TITLE_V2 = "windowtitlev2"
    TOGGLE_GROUP = "togglegroup"
    MOVE_INTO_GROUP = "moveintogroup"
    MOVE_OUT_OF_GROUP = "moveoutofgroup"
    IGNORE_GROUP_LOCK = "ignoregrouplock"
    LOCK_GROUPS = "lockgroups"
    CONFIG_RELOADED = "configreloaded"
    PIN = "pin"


class FieldSpec(NamedTuple):
    """Name and kind of one positional payload field."""

    name: str
    kind: FieldKind


def _str(name: str) -> FieldSpec:
    return FieldSpec(name, "str")


def _u8(name: str) -> FieldSpec:
    return FieldSpec(name, "u8")


# Field order matches the comma-separated order on the wire.
EVENT_FIELDS: dict[EventTag, tuple[FieldSpec, ...]] = {
    EventTag.WORKSPACE: (_str("workspace_name"),),
    EventTag.WORKSPACE_V2: (_u8("workspace_id"), _str("workspace_name")),
    EventTag.FOCUSED_MON: (_str("monitor_name"), _str("workspace_name")),
    EventTag.FOCUSED_MON_V2: (_str("monitor_name"), _u8("workspace_id")),
    EventTag.ACTIVE_WINDOW: (_str("window_class"), _str("window_title")),
    EventTag.ACTIVE_WINDOW_V2: (_str("window_address"),),
    EventTag.FULLSCREEN: (_u8("status"),),
    EventTag.MONITOR_REMOVED: (_str("monitor_name"),),
    EventTag.MONITOR_ADDED: (_str("monitor_name"),),
    EventTag.MONITOR_ADDED_V2: (
        _u8("monitor_id"),
        _str("monitor_name"),
        _str("monitor_description"),
    ),
    EventTag.CREATE_WORKSPACE: (_str("workspace_name"),),
    EventTag.CREATE_WORKSPACE_V2: (_u8("workspace_id"), _str("workspace_name")),
    EventTag.DESTROY_WORKSPACE: (_str("workspace_name"),),
    EventTag.DESTROY_WORKSPACE_V2: (_u8("workspace_id"), _str("workspace_name")),
    EventTag.MOVE_WORKSPACE: (_str("workspace_name"), _str("monitor_name")),
    EventTag.MOVE_WORKSPACE_V2: (
        _u8("workspace_id"),
        _str("workspace_name"),
        _str("monitor_name"),
    ),
    EventTag.RENAME_WORKSPACE: (_u8("workspace_id"), _str("new_name")),
    EventTag.ACTIVE_SPECIAL: (_str("workspace_name"), _str("monitor_name")),
    EventTag.ACTIVE_LAYOUT: (_str("keyboard_name"), _str("layout_name")),
    EventTag.OPEN_WINDOW: (
        _str("window_address"),
        _str("workspace_name"),
        _str("window_class"),
        _str("window_title"),
    ),
    EventTag.CLOSE_WINDOW: (_str("window_address"),),
    EventTag.MOVE_WINDOW: (_str("window_address"), _str("workspace_name")),
    EventTag.MOVE_WINDOW_V2: (
        _str("window_address"),
        _u8("workspace_id"),
        _str("workspace_name"),
    ),
    EventTag.OPEN_LAYER: (_str("namespace"),),
    EventTag.CLOSE_LAYER: (_str("namespace"),),
    EventTag.SUBMAP: (_str("submap_name"),),
    EventTag.CHANGE_FLOATING_MODE: (_str("window_address"), _u8("floating")),
    EventTag.URGENT: (_str("window_address"),),
    EventTag.SCREENCAST: (_u8("state"), _u8("owner")),
    EventTag.WINDOW_TITLE: (_str("window_address"),),
    EventTag.WINDOW_TITLE_V2: (_str("window_address"), _str("window_title")),
    EventTag.TOGGLE_GROUP: (
        _u8("toggle_status"),
        FieldSpec("window_addresses", "str_list"),
    ),
    EventTag.MOVE_INTO_GROUP: (_str("window_address"),),
    EventTag.MOVE_OUT_OF_GROUP: (_str("window_address"),),
    EventTag.IGNORE_GROUP_LOCK: (_u8("value"),),
    EventTag.LOCK_GROUPS: (_u8("value"),),
    EventTag.CONFIG_RELOADED: (),
    EventTag.PIN: (_str("window_address"), _u8("pin_state")),
}

KNOWN_TAGS: frozenset[str] = frozenset(tag.value for tag in EventTag)


def _check_field(spec: FieldSpec, value: Any) -> None:
    """Raise ValueError if value does not fit the declared field kind."""
    if spec.kind == "u8":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{spec.name} must be an integer")
        if not 0 <= value <= U8_MAX:
            raise ValueError(f"{spec.name} must be in range 0..{U8_MAX}")
    elif spec.kind == "str":
        if not isinstance(value, str):
            raise ValueError(f"{spec.name} must be a string")
    elif not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{spec.name} must be a list of strings")


class HyprEvent(BaseModel):
    """One typed state-change notification from Hyprland.

    The payload is keyed by the field names in EVENT_FIELDS for the tag,
    so the same model covers every event kind while the table stays the
    single source of truth for arity and field types.

    Attributes:
        tag: Event kind. Serialized as ``event`` on the wire.
        data: Field name to value, validated against EVENT_FIELDS.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: EventTag = Field(alias="event", description="Event kind")
    data: dict[str, int | str | list[str]] = Field(
        default_factory=dict,
        description="Payload fields keyed by name",
    )

    @model_validator(mode="after")
    def validate_payload(self) -> "HyprEvent":
        specs = EVENT_FIELDS[self.tag]
        expected = [spec.name for spec in specs]
        if sorted(self.data) != sorted(expected):
            raise ValueError(
                f"{self.tag.value} expects fields {expected}, got {list(self.data)}"
            )
        for spec in specs:
            _check_field(spec, self.data[spec.name])
        return self

    @classmethod
    def from_fields(cls, tag: EventTag, *values: int | str | list[str]) -> "HyprEvent":
        """Build an event from positional field values in wire order.

        Args:
            tag: Event kind.
            *values: One value per entry in EVENT_FIELDS[tag].

        Returns:
            Validated event.
        """
        specs = EVENT_FIELDS[tag]
        if len(values) != len(specs):
            raise ValueError(
                f"{tag.value} takes {len(specs)} field(s), got {len(values)}"
            )
        return cls(tag=tag, data={spec.name: value for spec, value in zip(specs, values)})

    @property
    def field_values(self) -> tuple[int | str | list[str], ...]:
        """Payload values in wire order."""
        return tuple(self.data[spec.name] for spec in EVENT_FIELDS[self.tag])

    def to_wire(self) -> str:
        """Encode as one JSON line for subscribers."""
        return self.model_dump_json(by_alias=True) + "\n"


def tag_of(event: HyprEvent) -> str:
    """Return the canonical lowercase tag of an event."""
    return event.tag.value


class Subscription(BaseModel):
    """Event filter requested by a subscriber during the handshake.

    Attributes:
        tags: Accepted tags, or None to accept every event.
    """

    model_config = ConfigDict(frozen=True)

    tags: frozenset[str] | None = Field(
        default=None,
        description="Accepted tags; None means all events",
    )

    @classmethod
    def all_events(cls) -> "Subscription":
        return cls(tags=None)

    @classmethod
    def parse(cls, line: str) -> "Subscription":
        """Parse a handshake line into a subscription.

        An empty line or ``all`` (any case) selects every event. Anything
        else is a comma-separated tag list, trimmed and lowercased.

        Args:
            line: Handshake line without its newline.

        Returns:
            Parsed subscription.
        """
        text = line.strip()
        if not text or text.lower() == "all":
            return cls.all_events()
        return cls(tags=frozenset(token.strip().lower() for token in text.split(",")))

    @property
    def is_all(self) -> bool:
        return self.tags is None

    def matches(self, tag: str) -> bool:
        """Check whether an event with this tag should be delivered."""
        return self.tags is None or tag in self.tags

    def unknown_tags(self) -> frozenset[str]:
        """Filter tokens that name no known event kind."""
        if self.tags is None:
            return frozenset()
        return self.tags - KNOWN_TAGS

    def __str__(self) -> str:
        if self.tags is None:
            return "all"
        return ",".join(sorted(self.tags))
