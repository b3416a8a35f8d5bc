"""Occupancy grid builder for wire routing.

Discretizes the enclosure into cubic cells and marks every cell covered by a
placed component (footprint padded by a clearance margin) as blocked. The
grid is a transient value: it is rebuilt for each routing pass from current
placements and never cached across calls.

Cells live in one flat ``bytearray`` indexed ``x + y*W + z*W*H``.
"""

import logging
import math
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from ..errors import InvalidGridParameters
from ..geometry import (
    BoundingBox,
    GridCell,
    Point3D,
    boxes_intersect,
    grid_to_world,
    world_to_grid,
)
from ..model.entities import ComponentInstance, Enclosure

logger = logging.getLogger(__name__)

# Six axis-aligned moves: +x, -x, +y, -y, +z, -z
AXIS_DIRECTIONS = (
    (1, 0, 0),
    (-1, 0, 0),
    (0, 1, 0),
    (0, -1, 0),
    (0, 0, 1),
    (0, 0, -1),
)


class OccupancyGrid:
    """3D array of free/blocked cells over the enclosure volume."""

    def __init__(self, size_x: int, size_y: int, size_z: int,
                 resolution: float, origin: Point3D = Point3D()):
        if size_x <= 0 or size_y <= 0 or size_z <= 0:
            raise InvalidGridParameters(
                f"Grid must have at least one cell per axis, got {size_x}x{size_y}x{size_z}"
            )
        if resolution <= 0:
            raise InvalidGridParameters(f"Grid resolution must be positive, got {resolution}")
        self.size_x = size_x
        self.size_y = size_y
        self.size_z = size_z
        self.resolution = resolution
        self.origin = origin
        self._blocked = bytearray(size_x * size_y * size_z)

    @property
    def shape(self) -> GridCell:
        return (self.size_x, self.size_y, self.size_z)

    @property
    def cell_count(self) -> int:
        return len(self._blocked)

    @property
    def blocked_count(self) -> int:
        return self._blocked.count(1)

    def in_bounds(self, cell: GridCell) -> bool:
        x, y, z = cell
        return 0 <= x < self.size_x and 0 <= y < self.size_y and 0 <= z < self.size_z

    def index(self, cell: GridCell) -> int:
        """Flat index of a cell. Raises IndexError outside the grid."""
        if not self.in_bounds(cell):
            raise IndexError(f"Cell {cell} outside grid {self.shape}")
        x, y, z = cell
        return x + y * self.size_x + z * self.size_x * self.size_y

    def cell(self, index: int) -> GridCell:
        """Cell coordinates of a flat index."""
        plane = self.size_x * self.size_y
        z, rest = divmod(index, plane)
        y, x = divmod(rest, self.size_x)
        return (x, y, z)

    def is_blocked(self, cell: GridCell) -> bool:
        return self._blocked[self.index(cell)] == 1

    def is_blocked_index(self, index: int) -> bool:
        return self._blocked[index] == 1

    def block(self, cell: GridCell):
        self._blocked[self.index(cell)] = 1

    def unblock(self, cell: GridCell):
        self._blocked[self.index(cell)] = 0

    def world_to_cell(self, point: Point3D) -> GridCell:
        return world_to_grid(point, self.resolution, self.origin)

    def cell_to_world(self, cell: GridCell) -> Point3D:
        """World coordinate of the cell centre."""
        return grid_to_world(cell, self.resolution, self.origin)

    def cell_box(self, cell: GridCell) -> BoundingBox:
        x, y, z = cell
        r = self.resolution
        low = Point3D(self.origin.x + x * r, self.origin.y + y * r, self.origin.z + z * r)
        return BoundingBox(low, Point3D(low.x + r, low.y + r, low.z + r))

    def cells_overlapping(self, box: BoundingBox) -> Iterator[GridCell]:
        """Cells whose volume overlaps box (shared faces excluded), clipped to the grid."""
        r = self.resolution
        o = self.origin
        ranges = []
        for lo, hi, origin, size in (
            (box.min.x, box.max.x, o.x, self.size_x),
            (box.min.y, box.max.y, o.y, self.size_y),
            (box.min.z, box.max.z, o.z, self.size_z),
        ):
            start = max(0, int(math.floor((lo - origin) / r)))
            end = min(size - 1, int(math.ceil((hi - origin) / r)) - 1)
            if start > end:
                return
            ranges.append((start, end))

        (x0, x1), (y0, y1), (z0, z1) = ranges
        for z in range(z0, z1 + 1):
            for y in range(y0, y1 + 1):
                for x in range(x0, x1 + 1):
                    yield (x, y, z)

    def block_box(self, box: BoundingBox) -> int:
        """Mark every cell overlapping box as blocked. Returns cells touched."""
        count = 0
        for cell in self.cells_overlapping(box):
            self._blocked[self.index(cell)] = 1
            count += 1
        return count

    def neighbors(self, index: int) -> List[int]:
        """Flat indices of the in-bounds axis-aligned neighbours of a cell."""
        x, y, z = self.cell(index)
        sx, sy, sz = self.size_x, self.size_y, self.size_z
        plane = sx * sy
        result = []
        if x + 1 < sx:
            result.append(index + 1)
        if x > 0:
            result.append(index - 1)
        if y + 1 < sy:
            result.append(index + sx)
        if y > 0:
            result.append(index - sx)
        if z + 1 < sz:
            result.append(index + plane)
        if z > 0:
            result.append(index - plane)
        return result

    def copy(self) -> "OccupancyGrid":
        clone = OccupancyGrid(self.size_x, self.size_y, self.size_z, self.resolution, self.origin)
        clone._blocked[:] = self._blocked
        return clone

    def get_stats(self) -> Dict:
        """Get grid statistics for debugging."""
        blocked = self.blocked_count
        return {
            "shape": self.shape,
            "resolution": self.resolution,
            "total_cells": self.cell_count,
            "blocked_cells": blocked,
            "blocked_ratio": blocked / max(self.cell_count, 1),
        }


def build_grid(
    enclosure: Enclosure,
    instances: Iterable[ComponentInstance],
    resolution: float,
    clearance: Optional[float] = None,
) -> OccupancyGrid:
    """
    Build an occupancy grid from the enclosure and current placements.

    Args:
        enclosure: Panel volume to discretize
        instances: Component instances; only physically placed ones block cells
        resolution: Cell edge length in mm
        clearance: Padding around each footprint (defaults.yaml if None)

    Returns:
        OccupancyGrid with obstacle cells marked

    Raises:
        InvalidGridParameters: resolution or an enclosure dimension is not positive
    """
    if resolution is None or resolution <= 0:
        raise InvalidGridParameters(f"Grid resolution must be positive, got {resolution}")
    for name in ("width", "height", "depth"):
        value = getattr(enclosure, name)
        if value <= 0:
            raise InvalidGridParameters(f"Enclosure {name} must be positive, got {value}")

    if clearance is None:
        from ..config import get_defaults
        clearance = get_defaults().clearance

    grid = OccupancyGrid(
        int(math.ceil(enclosure.width / resolution)),
        int(math.ceil(enclosure.height / resolution)),
        int(math.ceil(enclosure.depth / resolution)),
        resolution,
        enclosure.origin,
    )

    obstacle_count = 0
    for instance in instances:
        if not instance.is_physically_placed:
            continue
        touched = grid.block_box(instance.bounding_box().padded(clearance))
        obstacle_count += 1
        logger.debug(f"Obstacle {instance.instance_id}: {touched} cells")

    stats = grid.get_stats()
    logger.info(
        f"Built occupancy grid {stats['shape']} @ {resolution}mm: "
        f"{obstacle_count} obstacles, {stats['blocked_cells']} blocked cells"
    )
    return grid


def open_terminal_access(
    grid: OccupancyGrid,
    pin: Point3D,
    body: BoundingBox,
    others: Sequence[BoundingBox] = (),
) -> List[GridCell]:
    """
    Carve a straight corridor from a pin out of its own component's body.

    Pins sit on the face of their component, so the pin cell is covered by the
    component's padded obstacle box. The shortest axis-aligned run of cells
    leading from the pin cell out of ``body`` is unblocked so the search can
    reach the pin. A run only counts if the cell just past it is free and no
    cell after the pin cell enters another component's footprint; components
    flush against each other share a face, so the pin cell itself may touch a
    neighbour. Ties go to the first direction in AXIS_DIRECTIONS.

    Args:
        grid: Grid to modify in place
        pin: Pin world position
        body: The owning component's padded obstacle box
        others: Unpadded footprints of the other placed components

    Returns:
        Cells that were unblocked (empty if the pin is outside the grid)
    """
    start = grid.world_to_cell(pin)
    if not grid.in_bounds(start) or not boxes_intersect(grid.cell_box(start), body):
        return []

    runs = []
    for dx, dy, dz in AXIS_DIRECTIONS:
        run = [start]
        cell = start
        while boxes_intersect(grid.cell_box(cell), body):
            cell = (cell[0] + dx, cell[1] + dy, cell[2] + dz)
            if not grid.in_bounds(cell):
                run = None
                break
            run.append(cell)
        if run is not None:
            runs.append(run)

    # Stable sort keeps axis order among equal lengths
    runs.sort(key=len)
    usable = [run for run in runs if _run_is_clear(grid, run, others)]

    if usable:
        # The exit cell is left as-is; only cells inside the body are opened
        carved = usable[0][:-1]
    elif runs:
        logger.debug(f"No clear corridor from pin cell {start}, opening shortest run")
        carved = runs[0][:-1]
    else:
        # Body covers the pin along every axis up to the grid edge
        carved = [start]
    for cell in carved:
        grid.unblock(cell)
    return carved


def _run_is_clear(grid: OccupancyGrid, run: List[GridCell], others: Sequence[BoundingBox]) -> bool:
    if grid.is_blocked(run[-1]):
        return False
    for cell in run[1:]:
        box = grid.cell_box(cell)
        if any(boxes_intersect(box, other) for other in others):
            return False
    return True
