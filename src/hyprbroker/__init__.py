"""Fan-out broker for Hyprland's event socket."""

__version__ = "0.1.0"
