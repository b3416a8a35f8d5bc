"""
PanelRoute - Electrical Panel Layout Routing Core

Keeps the logical schematic and the physical 3D panel of an electrical
control cabinet in sync, and routes wires between component terminals as
Manhattan (axis-aligned) runs around the placed components.
"""

__version__ = "0.1.0"

from .geometry import BoundingBox, Point3D, RailOrientation
from .model.entities import (
    ComponentDefinition,
    ComponentInstance,
    Enclosure,
    LogicalConnection,
    MountingRail,
    Wire,
    WireType,
)
from .library.loader import ComponentLibrary
from .routing.astar_router import Routed, Unroutable, UnroutableReason, find_path
from .routing.occupancy_grid import OccupancyGrid, build_grid
from .twin.manager import DigitalTwin

__all__ = [
    "BoundingBox",
    "Point3D",
    "RailOrientation",
    "ComponentDefinition",
    "ComponentInstance",
    "Enclosure",
    "LogicalConnection",
    "MountingRail",
    "Wire",
    "WireType",
    "ComponentLibrary",
    "Routed",
    "Unroutable",
    "UnroutableReason",
    "find_path",
    "OccupancyGrid",
    "build_grid",
    "DigitalTwin",
]
