"""Table-driven parser for Hyprland socket2 event lines."""
from hyprbroker.errors import EventParseError
from hyprbroker.events.types import (
    EVENT_FIELDS,
    U8_MAX,
    EventTag,
    FieldSpec,
    HyprEvent,
)

TAG_DELIMITER = ">>"
FIELD_DELIMITER = ","


def _parse_u8(spec: FieldSpec, raw: str, tag: str, line: str) -> int:
    """Parse a decimal field into an integer in 0..255.

    Args:
        spec: Field being parsed.
        raw: Field text.
        tag: Event tag, for error context.
        line: Full line, for error context.

    Returns:
        Parsed integer.

    Raises:
        EventParseError: If the text is not a decimal in range.
    """
    if not raw or not raw.isascii() or not raw.isdigit():
        raise EventParseError(
            f"{tag}: field {spec.name} is not an unsigned integer: {raw!r}",
            tag=tag,
            line=line,
        )
    value = int(raw)
    if value > U8_MAX:
        raise EventParseError(
            f"{tag}: field {spec.name} out of range 0..{U8_MAX}: {value}",
            tag=tag,
            line=line,
        )
    return value


def parse_line(line: str) -> HyprEvent:
    """Parse one ``TAG>>field1,field2`` line into a typed event.

    Zero-field events ignore their payload. Fixed-arity events require
    exactly the declared number of comma-separated fields. ``togglegroup``
    takes a status followed by any number of window addresses.

    The protocol has no escaping, so a free-text field containing a comma
    changes the field count and the line is rejected.

    Args:
        line: Raw line from the event socket, with or without newline.

    Returns:
        Parsed event.

    Raises:
        EventParseError: If the tag is unknown or the payload does not
            match the tag's fields.
    """
    text = line.strip()
    tag_text, _, payload = text.partition(TAG_DELIMITER)
    payload = payload.strip()

    try:
        tag = EventTag(tag_text)
    except ValueError:
        raise EventParseError(
            f"Unknown event type: {tag_text!r}",
            tag=tag_text,
            line=line,
        ) from None

    specs = EVENT_FIELDS[tag]
    if not specs:
        return HyprEvent(tag=tag)

    raw_fields = payload.split(FIELD_DELIMITER)
    variadic = specs[-1].kind == "str_list"
    fixed = specs[:-1] if variadic else specs

    if variadic:
        if len(raw_fields) < len(fixed) or not raw_fields[0]:
            raise EventParseError(
                f"{tag_text}: expected at least {len(fixed)} field(s)",
                tag=tag_text,
                line=line,
            )
    elif len(raw_fields) != len(fixed):
        raise EventParseError(
            f"{tag_text}: expected {len(fixed)} field(s), got {len(raw_fields)}",
            tag=tag_text,
            line=line,
        )

    values: list[int | str | list[str]] = []
    for spec, raw in zip(fixed, raw_fields):
        if spec.kind == "u8":
            values.append(_parse_u8(spec, raw, tag_text, line))
        else:
            values.append(raw)
    if variadic:
        values.append(raw_fields[len(fixed):])

    return HyprEvent.from_fields(tag, *values)


def format_line(event: HyprEvent) -> str:
    """Render an event back into socket2 line form, without newline.

    Args:
        event: Event to render.

    Returns:
        ``TAG>>field1,field2`` text that parse_line accepts.
    """
    parts: list[str] = []
    for value in event.field_values:
        if isinstance(value, list):
            parts.extend(value)
        else:
            parts.append(str(value))
    return f"{event.tag.value}{TAG_DELIMITER}{FIELD_DELIMITER.join(parts)}"
