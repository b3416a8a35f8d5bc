"""
Panel Entity Model

Logical (schematic) and physical (3D panel) representation of the design:
catalog definitions, placed instances with their derived physical pins,
logical connections, routed wires, mounting rails and the enclosure.

Positions are millimeters. A component's physical position is the minimum
corner of its footprint box, so its body spans
``[position, position + (width, height, depth)]``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from ..geometry import (
    ORIGIN,
    BoundingBox,
    Point3D,
    RailOrientation,
    point_in_box,
)


class ComponentType(Enum):
    """Catalog component categories."""
    MCB = "MCB"                    # Miniature circuit breaker
    RELAY = "RELAY"
    CONTACTOR = "CONTACTOR"
    PLC = "PLC"                    # Programmable logic controller
    TIMER = "TIMER"
    SENSOR = "SENSOR"
    TERMINAL = "TERMINAL"
    POWER_SUPPLY = "POWER_SUPPLY"
    MOTOR = "MOTOR"


class PinType(Enum):
    """Electrical role of a logical pin."""
    POWER = "POWER"
    GROUND = "GROUND"
    NEUTRAL = "NEUTRAL"
    INPUT = "INPUT"
    OUTPUT = "OUTPUT"


class WireType(Enum):
    """Wire classification; drives color and thickness."""
    POWER = "POWER"
    SIGNAL = "SIGNAL"
    GROUND = "GROUND"

    @classmethod
    def for_pins(cls, a: PinType, b: PinType) -> "WireType":
        """Default wire type for a connection between two pin types."""
        kinds = {a, b}
        if PinType.GROUND in kinds:
            return cls.GROUND
        if PinType.POWER in kinds or PinType.NEUTRAL in kinds:
            return cls.POWER
        return cls.SIGNAL


# =============================================================================
# Catalog (immutable templates)
# =============================================================================

@dataclass(frozen=True)
class LogicalPin:
    """A named terminal on a component definition."""
    label: str
    pin_type: PinType
    # Position inside the footprint, normalized to [0, 1] on x and y
    relative_position: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        rx, ry = self.relative_position
        if not (0.0 <= rx <= 1.0 and 0.0 <= ry <= 1.0):
            raise ValueError(
                f"Pin {self.label!r} relative position {self.relative_position} "
                "must lie in [0, 1]"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "type": self.pin_type.value,
            "position": [self.relative_position[0], self.relative_position[1]],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogicalPin":
        rx, ry = data.get("position", (0.0, 0.0))
        return cls(
            label=str(data["label"]),
            pin_type=PinType(data["type"]),
            relative_position=(float(rx), float(ry)),
        )


@dataclass(frozen=True)
class ComponentDefinition:
    """Catalog entry: physical dimensions plus logical pins."""
    id: str
    component_type: ComponentType
    width: float   # mm
    height: float
    depth: float
    pins: Tuple[LogicalPin, ...] = ()

    manufacturer: str = ""
    model_number: str = ""
    display_name: str = ""
    description: str = ""
    rail_modules: float = 1.0
    color: Optional[str] = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0 or self.depth <= 0:
            raise ValueError(f"Definition {self.id!r} has non-positive dimensions")
        labels = [p.label for p in self.pins]
        if len(labels) != len(set(labels)):
            raise ValueError(f"Definition {self.id!r} has duplicate pin labels")

    def get_pin(self, label: str) -> Optional[LogicalPin]:
        """Get a pin by its label."""
        for pin in self.pins:
            if pin.label == label:
                return pin
        return None

    def pin_offset(self, pin: LogicalPin) -> Point3D:
        """Offset of a pin from the footprint's minimum corner."""
        rx, ry = pin.relative_position
        return Point3D(rx * self.width, ry * self.height, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "type": self.component_type.value,
            "dimensions": {
                "width": self.width,
                "height": self.height,
                "depth": self.depth,
            },
            "pins": [p.to_dict() for p in self.pins],
            "rail_modules": self.rail_modules,
        }
        for key in ("manufacturer", "model_number", "display_name", "description", "color"):
            value = getattr(self, key)
            if value:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentDefinition":
        dims = data.get("dimensions", {})
        return cls(
            id=str(data["id"]),
            component_type=ComponentType(data["type"]),
            width=float(dims["width"]),
            height=float(dims["height"]),
            depth=float(dims["depth"]),
            pins=tuple(LogicalPin.from_dict(p) for p in data.get("pins", [])),
            manufacturer=str(data.get("manufacturer", "")),
            model_number=str(data.get("model_number", "")),
            display_name=str(data.get("display_name", "")),
            description=str(data.get("description", "")),
            rail_modules=float(data.get("rail_modules", 1.0)),
            color=data.get("color"),
        )


# =============================================================================
# Instances
# =============================================================================

@dataclass
class PhysicalPin:
    """World-space realization of a logical pin."""
    label: str
    pin_type: PinType
    offset: Point3D          # Relative to the instance's physical position
    world_position: Point3D  # Always physical_position + offset


@dataclass(frozen=True)
class PinRef:
    """Identifies one pin on one instance, written ``"<instance_id>:<pin_label>"``."""
    instance_id: str
    pin_label: str

    SEPARATOR = ":"

    def __str__(self) -> str:
        return f"{self.instance_id}{self.SEPARATOR}{self.pin_label}"

    @classmethod
    def parse(cls, value: Union[str, "PinRef"]) -> "PinRef":
        """Parse a pin identifier string (PinRef values pass through)."""
        if isinstance(value, PinRef):
            return value
        instance_id, sep, label = str(value).partition(cls.SEPARATOR)
        if not sep or not instance_id or not label:
            raise ValueError(f"Malformed pin reference: {value!r}")
        return cls(instance_id, label)


@dataclass
class ComponentInstance:
    """A catalog definition placed in the design."""
    instance_id: str
    definition: ComponentDefinition
    label: str
    schematic_position: Tuple[float, float] = (0.0, 0.0)

    physical_position: Point3D = ORIGIN
    is_physically_placed: bool = False
    rail_slot: Optional[int] = None
    rail_id: Optional[str] = None

    physical_pins: List[PhysicalPin] = field(default_factory=list)

    def __post_init__(self):
        if PinRef.SEPARATOR in self.instance_id:
            raise ValueError(
                f"Instance id {self.instance_id!r} may not contain {PinRef.SEPARATOR!r}"
            )
        if not self.physical_pins:
            self.physical_pins = [
                PhysicalPin(
                    label=pin.label,
                    pin_type=pin.pin_type,
                    offset=self.definition.pin_offset(pin),
                    world_position=self.physical_position + self.definition.pin_offset(pin),
                )
                for pin in self.definition.pins
            ]
        else:
            self._refresh_pins()

    def move_to(self, position: Point3D, rail_slot: Optional[int] = None,
                rail_id: Optional[str] = None):
        """Set physical position and recompute every pin's world coordinate."""
        self.physical_position = position
        if rail_slot is not None:
            self.rail_slot = rail_slot
        if rail_id is not None:
            self.rail_id = rail_id
        self._refresh_pins()

    def _refresh_pins(self):
        for pin in self.physical_pins:
            pin.world_position = self.physical_position + pin.offset

    def get_pin(self, label: str) -> Optional[PhysicalPin]:
        """Get a physical pin by label."""
        for pin in self.physical_pins:
            if pin.label == label:
                return pin
        return None

    def pin_ref(self, label: str) -> PinRef:
        return PinRef(self.instance_id, label)

    def bounding_box(self) -> BoundingBox:
        """Footprint box at the current physical position (no padding)."""
        d = self.definition
        return BoundingBox.from_footprint(self.physical_position, d.width, d.height, d.depth)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "instance_id": self.instance_id,
            "definition_id": self.definition.id,
            "label": self.label,
            "schematic_position": [self.schematic_position[0], self.schematic_position[1]],
            "physical_position": self.physical_position.to_dict(),
            "placed": self.is_physically_placed,
        }
        if self.rail_slot is not None:
            d["rail_slot"] = self.rail_slot
        if self.rail_id is not None:
            d["rail_id"] = self.rail_id
        return d

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], definitions: Dict[str, ComponentDefinition]
    ) -> "ComponentInstance":
        definition_id = data["definition_id"]
        if definition_id not in definitions:
            raise KeyError(f"Unknown definition {definition_id!r}")
        sx, sy = data.get("schematic_position", (0.0, 0.0))
        slot = data.get("rail_slot")
        return cls(
            instance_id=str(data["instance_id"]),
            definition=definitions[definition_id],
            label=str(data.get("label", "")),
            schematic_position=(float(sx), float(sy)),
            physical_position=Point3D.from_dict(data.get("physical_position", {})),
            is_physically_placed=bool(data.get("placed", False)),
            rail_slot=int(slot) if slot is not None else None,
            rail_id=data.get("rail_id"),
        )


# =============================================================================
# Connections & wires
# =============================================================================

@dataclass
class LogicalConnection:
    """Unordered pair of pins that must be electrically joined."""
    connection_id: str
    from_pin: PinRef
    to_pin: PinRef
    wire_type: WireType = WireType.SIGNAL
    label: Optional[str] = None

    @property
    def pins(self) -> FrozenSet[PinRef]:
        return frozenset((self.from_pin, self.to_pin))

    @property
    def instance_ids(self) -> FrozenSet[str]:
        return frozenset((self.from_pin.instance_id, self.to_pin.instance_id))

    def involves(self, instance_id: str) -> bool:
        """Check if either end sits on the given instance."""
        return instance_id in self.instance_ids

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.connection_id,
            "from": str(self.from_pin),
            "to": str(self.to_pin),
            "wire_type": self.wire_type.value,
        }
        if self.label:
            d["label"] = self.label
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogicalConnection":
        return cls(
            connection_id=str(data["id"]),
            from_pin=PinRef.parse(data["from"]),
            to_pin=PinRef.parse(data["to"]),
            wire_type=WireType(data.get("wire_type", WireType.SIGNAL.value)),
            label=data.get("label"),
        )


@dataclass
class Waypoint:
    """A point on a wire path."""
    position: Point3D
    is_user_anchored: bool = False  # True if placed by hand, not by the router

    def to_dict(self) -> Dict[str, Any]:
        d = self.position.to_dict()
        if self.is_user_anchored:
            d["anchored"] = True
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Waypoint":
        return cls(Point3D.from_dict(data), bool(data.get("anchored", False)))


@dataclass
class Wire:
    """Physical routing result for exactly one logical connection."""
    wire_id: str
    connection_id: str
    wire_type: WireType
    color: str
    thickness: float  # Diameter in mm
    waypoints: List[Waypoint] = field(default_factory=list)
    routing_method: str = "manhattan"  # "manhattan" or "manual"

    @property
    def is_routed(self) -> bool:
        """A wire needs at least two waypoints to have a physical path."""
        return len(self.waypoints) >= 2

    @property
    def is_user_anchored(self) -> bool:
        return any(w.is_user_anchored for w in self.waypoints)

    @property
    def length(self) -> Optional[float]:
        """Total path length in mm, or None while unrouted."""
        if not self.is_routed:
            return None
        total = 0.0
        for prev, curr in zip(self.waypoints, self.waypoints[1:]):
            total += prev.position.distance_to(curr.position)
        return total

    def to_dict(self, include_waypoints: bool = True) -> Dict[str, Any]:
        d = {
            "id": self.wire_id,
            "connection_id": self.connection_id,
            "wire_type": self.wire_type.value,
            "color": self.color,
            "thickness": self.thickness,
            "routing_method": self.routing_method,
        }
        if include_waypoints and self.waypoints:
            d["waypoints"] = [w.to_dict() for w in self.waypoints]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Wire":
        return cls(
            wire_id=str(data["id"]),
            connection_id=str(data["connection_id"]),
            wire_type=WireType(data["wire_type"]),
            color=str(data["color"]),
            thickness=float(data["thickness"]),
            waypoints=[Waypoint.from_dict(w) for w in data.get("waypoints", [])],
            routing_method=data.get("routing_method", "manhattan"),
        )


# =============================================================================
# Enclosure
# =============================================================================

@dataclass
class MountingRail:
    """A DIN rail components snap onto at fixed module increments."""
    rail_id: str
    position: Point3D  # Start of the rail
    length: float
    orientation: RailOrientation = RailOrientation.HORIZONTAL
    max_modules: int = 40

    @property
    def end(self) -> Point3D:
        if self.orientation == RailOrientation.HORIZONTAL:
            return Point3D(self.position.x + self.length, self.position.y, self.position.z)
        return Point3D(self.position.x, self.position.y + self.length, self.position.z)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.rail_id,
            "position": self.position.to_dict(),
            "length": self.length,
            "orientation": self.orientation.value,
            "max_modules": self.max_modules,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MountingRail":
        return cls(
            rail_id=str(data["id"]),
            position=Point3D.from_dict(data["position"]),
            length=float(data["length"]),
            orientation=RailOrientation(data.get("orientation", "horizontal")),
            max_modules=int(data.get("max_modules", 40)),
        )


@dataclass
class Enclosure:
    """The panel volume components are placed and wired in."""
    width: float   # mm, along x
    height: float  # mm, along y
    depth: float   # mm, along z
    origin: Point3D = ORIGIN  # World coordinate of the minimum corner
    rails: List[MountingRail] = field(default_factory=list)

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_footprint(self.origin, self.width, self.height, self.depth)

    def contains(self, point: Point3D) -> bool:
        """Check if a world point lies inside the enclosure volume."""
        return point_in_box(point, self.bounding_box)

    def get_rail(self, rail_id: str) -> Optional[MountingRail]:
        for rail in self.rails:
            if rail.rail_id == rail_id:
                return rail
        return None

    def validate(self):
        """Raise ValueError if the enclosure or any rail is malformed."""
        if self.width <= 0 or self.height <= 0 or self.depth <= 0:
            raise ValueError(
                f"Enclosure dimensions must be positive, got "
                f"{self.width}x{self.height}x{self.depth}"
            )
        for rail in self.rails:
            if not (self.contains(rail.position) and self.contains(rail.end)):
                raise ValueError(f"Rail {rail.rail_id!r} lies outside the enclosure")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "depth": self.depth,
            "origin": self.origin.to_dict(),
            "rails": [r.to_dict() for r in self.rails],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Enclosure":
        return cls(
            width=float(data["width"]),
            height=float(data["height"]),
            depth=float(data["depth"]),
            origin=Point3D.from_dict(data.get("origin", {})),
            rails=[MountingRail.from_dict(r) for r in data.get("rails", [])],
        )
