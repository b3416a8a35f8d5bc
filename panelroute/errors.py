"""Exceptions raised by the panel routing core.

Expected routing outcomes (out of bounds, no path, search limit) are not
exceptions; they come back as tagged ``Unroutable`` results. The classes
here are contract violations that abort a call before any state changes.
"""


class PanelRouteError(Exception):
    """Base class for all panelroute errors."""


class InvalidGridParameters(PanelRouteError):
    """Enclosure dimensions or grid resolution are not usable."""


class UnknownComponent(PanelRouteError):
    """A call referenced a component instance that is not in the store."""

    def __init__(self, instance_id: str):
        super().__init__(f"Unknown component instance: {instance_id}")
        self.instance_id = instance_id


class UnknownPin(PanelRouteError):
    """A pin reference does not resolve to a pin on an existing instance."""

    def __init__(self, pin: str, reason: str = ""):
        message = f"Unknown pin: {pin}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.pin = pin


class InvalidConnection(PanelRouteError):
    """A connection request is structurally invalid (e.g. pin to itself)."""


class UnknownConnection(PanelRouteError):
    """A call referenced a logical connection that is not in the store."""

    def __init__(self, connection_id: str):
        super().__init__(f"Unknown connection: {connection_id}")
        self.connection_id = connection_id


class UnknownWire(PanelRouteError):
    """A call referenced a wire that is not in the store."""

    def __init__(self, wire_id: str):
        super().__init__(f"Unknown wire: {wire_id}")
        self.wire_id = wire_id


class SnapshotError(PanelRouteError):
    """A snapshot could not be loaded; the store was left untouched."""


class LibraryError(PanelRouteError):
    """The component library file is missing or malformed."""
