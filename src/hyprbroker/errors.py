"""Exception types raised by the broker."""


class HyprBrokerError(Exception):
    """Base class for broker errors."""


class EventParseError(HyprBrokerError, ValueError):
    """A socket2 line could not be turned into an event.

    Attributes:
        tag: Tag text found before ``>>`` (may be unknown or empty).
        line: The offending line.
    """

    def __init__(self, message: str, tag: str, line: str) -> None:
        super().__init__(message)
        self.tag = tag
        self.line = line


class UpstreamClosedError(HyprBrokerError):
    """The Hyprland event socket reached end of stream or failed."""


class BrokerAlreadyRunningError(HyprBrokerError):
    """Another broker is accepting connections on the listen socket."""


class QueryError(HyprBrokerError):
    """A snapshot request to Hyprland returned an unusable response."""
