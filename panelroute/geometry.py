"""Geometry primitives for the panel volume.

Everything here is pure: axis-aligned boxes, the world <-> grid cell mapping
used by the occupancy grid, and DIN-rail module quantization. Higher layers
(grid builder, router, placement) build on these functions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import math

# Standard DIN rail module width (mm)
DEFAULT_MODULE_WIDTH = 17.5
# Max perpendicular distance for a component to snap onto a rail (mm)
DEFAULT_SNAP_TOLERANCE = 30.0

GridCell = Tuple[int, int, int]


@dataclass(frozen=True)
class Point3D:
    """A point (or offset) in world space, millimeters."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def distance_to(self, other: "Point3D") -> float:
        """Euclidean distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def manhattan_distance_to(self, other: "Point3D") -> float:
        """Manhattan distance to another point."""
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point3D":
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            z=float(data.get("z", 0.0)),
        )


ORIGIN = Point3D(0.0, 0.0, 0.0)


class RailOrientation(Enum):
    """Direction a mounting rail runs in."""
    HORIZONTAL = "horizontal"  # Along x
    VERTICAL = "vertical"      # Along y


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in world space."""
    min: Point3D
    max: Point3D

    @classmethod
    def from_footprint(
        cls, position: Point3D, width: float, height: float, depth: float
    ) -> "BoundingBox":
        """Box of a footprint whose minimum corner sits at ``position``."""
        return cls(position, Point3D(position.x + width, position.y + height, position.z + depth))

    def padded(self, margin: float) -> "BoundingBox":
        """Return new box expanded by margin on all sides."""
        return BoundingBox(
            Point3D(self.min.x - margin, self.min.y - margin, self.min.z - margin),
            Point3D(self.max.x + margin, self.max.y + margin, self.max.z + margin),
        )

    @property
    def size(self) -> Tuple[float, float, float]:
        return (
            self.max.x - self.min.x,
            self.max.y - self.min.y,
            self.max.z - self.min.z,
        )

    def contains_point(self, point: Point3D) -> bool:
        return point_in_box(point, self)

    def intersects(self, other: "BoundingBox") -> bool:
        return boxes_intersect(self, other)


def boxes_intersect(a: BoundingBox, b: BoundingBox) -> bool:
    """True iff two boxes overlap on all three axes.

    Uses strict inequality, so boxes that only share a face, edge or corner
    do not intersect.
    """
    return (a.min.x < b.max.x and b.min.x < a.max.x and
            a.min.y < b.max.y and b.min.y < a.max.y and
            a.min.z < b.max.z and b.min.z < a.max.z)


def point_in_box(point: Point3D, box: BoundingBox) -> bool:
    """Check if point is inside box (boundary included)."""
    return (box.min.x <= point.x <= box.max.x and
            box.min.y <= point.y <= box.max.y and
            box.min.z <= point.z <= box.max.z)


def world_to_grid(point: Point3D, resolution: float, origin: Point3D = ORIGIN) -> GridCell:
    """Map a world point to the integer cell containing it."""
    return (
        int(math.floor((point.x - origin.x) / resolution)),
        int(math.floor((point.y - origin.y) / resolution)),
        int(math.floor((point.z - origin.z) / resolution)),
    )


def grid_to_world(cell: GridCell, resolution: float, origin: Point3D = ORIGIN) -> Point3D:
    """World coordinate of a cell centre (inverse of world_to_grid)."""
    ix, iy, iz = cell
    return Point3D(
        origin.x + (ix + 0.5) * resolution,
        origin.y + (iy + 0.5) * resolution,
        origin.z + (iz + 0.5) * resolution,
    )


def rail_offsets(position: Point3D, rail) -> Tuple[float, float, float]:
    """Split ``position - rail.position`` into (along, across_a, across_b).

    ``along`` is measured on the rail axis; the other two are the offsets on
    the axes perpendicular to it.
    """
    delta = position - rail.position
    if rail.orientation == RailOrientation.HORIZONTAL:
        return (delta.x, delta.y, delta.z)
    if rail.orientation == RailOrientation.VERTICAL:
        return (delta.y, delta.x, delta.z)
    raise ValueError(f"Unsupported rail orientation: {rail.orientation}")


def quantize_to_rail(
    position: Point3D,
    rail,
    module_width: float = DEFAULT_MODULE_WIDTH,
    snap_tolerance: float = DEFAULT_SNAP_TOLERANCE,
) -> Optional[Tuple[Point3D, int]]:
    """
    Snap a position onto a rail at whole module increments.

    Args:
        position: Proposed component position
        rail: MountingRail (anything with ``position`` and ``orientation``)
        module_width: Width of one rail module in mm
        snap_tolerance: Max offset on each perpendicular axis

    Returns:
        (snapped_position, slot_index) or None if the position is too far
        from the rail's mounting axis
    """
    if module_width <= 0:
        raise ValueError(f"module_width must be positive, got {module_width}")

    along, across_a, across_b = rail_offsets(position, rail)
    if abs(across_a) > snap_tolerance or abs(across_b) > snap_tolerance:
        return None

    # Python's round() is banker's rounding; slots use half-up
    slot = int(math.floor(along / module_width + 0.5))
    offset = slot * module_width

    anchor = rail.position
    if rail.orientation == RailOrientation.HORIZONTAL:
        snapped = Point3D(anchor.x + offset, anchor.y, anchor.z)
    else:
        snapped = Point3D(anchor.x, anchor.y + offset, anchor.z)
    return snapped, slot
