"""Logical and physical entity model for panel designs."""

from .entities import (
    ComponentType,
    PinType,
    WireType,
    LogicalPin,
    ComponentDefinition,
    PhysicalPin,
    PinRef,
    ComponentInstance,
    LogicalConnection,
    Waypoint,
    Wire,
    MountingRail,
    Enclosure,
)
from ..geometry import Point3D, RailOrientation

__all__ = [
    "ComponentType",
    "PinType",
    "WireType",
    "LogicalPin",
    "ComponentDefinition",
    "PhysicalPin",
    "PinRef",
    "ComponentInstance",
    "LogicalConnection",
    "Waypoint",
    "Wire",
    "MountingRail",
    "Enclosure",
    "Point3D",
    "RailOrientation",
]
