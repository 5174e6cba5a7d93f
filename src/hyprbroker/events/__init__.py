"""Event model, parsing and fan-out to subscribers."""
from hyprbroker.events.broker import connect_upstream, run_broker_loop
from hyprbroker.events.hub import BrokerHub
from hyprbroker.events.parser import format_line, parse_line
from hyprbroker.events.registry import (
    EventSink,
    OverflowPolicy,
    Subscriber,
    SubscriptionRegistry,
)
from hyprbroker.events.session import ClientSession, SessionState
from hyprbroker.events.types import (
    EVENT_FIELDS,
    KNOWN_TAGS,
    EventTag,
    HyprEvent,
    Subscription,
    tag_of,
)

__all__ = [
    "EVENT_FIELDS",
    "KNOWN_TAGS",
    "BrokerHub",
    "ClientSession",
    "EventSink",
    "EventTag",
    "HyprEvent",
    "OverflowPolicy",
    "SessionState",
    "Subscriber",
    "Subscription",
    "SubscriptionRegistry",
    "connect_upstream",
    "format_line",
    "parse_line",
    "run_broker_loop",
    "tag_of",
]
