"""A* pathfinding over the occupancy grid.

Produces Manhattan (axis-aligned) wire runs in 3D:
- Uniform step cost of 1 per cell
- Manhattan distance heuristic, admissible and consistent on a
  six-connected grid, so returned paths are shortest paths
- Neighbours limited to +x, -x, +y, -y, +z, -z

Tie-breaking: the open set is a heap keyed by ``(f, -sequence)`` where
``sequence`` counts pushes. Among frontier nodes with equal total cost the
most recently inserted one is expanded first (LIFO), which makes results
fully deterministic and tends to extend the current run instead of
fanning out.

Search bookkeeping (g cost, parent) is held in per-search arrays indexed by
flat cell index. The grid is never mutated, so a grid can be searched any
number of times.
"""

import heapq
import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, List, Optional, Sequence, Tuple, Union

from ..geometry import GridCell, Point3D
from .occupancy_grid import OccupancyGrid

logger = logging.getLogger(__name__)

_INF = float("inf")


class UnroutableReason(Enum):
    """Why no path was produced."""
    OUT_OF_BOUNDS = "out_of_bounds"                  # Start/end outside the grid
    NO_PATH = "no_path"                              # Open set exhausted
    SEARCH_LIMIT_EXCEEDED = "search_limit_exceeded"  # Expansion bound hit
    INVALID_GRID_PARAMETERS = "invalid_grid_parameters"
    UNPLACED_COMPONENT = "unplaced_component"        # Endpoint not physically placed


@dataclass
class Routed:
    """A found path, reduced to its corner points."""
    waypoints: List[Point3D]
    steps: int = 0     # Path length in grid steps
    expanded: int = 0  # Nodes expanded by the search

    success: ClassVar[bool] = True


@dataclass
class Unroutable:
    """No path; ``reason`` says why."""
    reason: UnroutableReason
    detail: str = ""
    expanded: int = 0

    success: ClassVar[bool] = False


PathResult = Union[Routed, Unroutable]


@dataclass
class RouterConfig:
    """Configuration for the grid A* router."""
    # Guarantees termination on pathological grids
    max_expansions: int = 250000


def manhattan(a: GridCell, b: GridCell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1]) + abs(a[2] - b[2])


def reduce_collinear(points: Sequence[Tuple]) -> List[Tuple]:
    """
    Drop interior points that do not change direction.

    Keeps the first point, the last point and every interior point whose
    incoming and outgoing direction vectors differ. Geometry is unchanged.
    """
    if len(points) <= 2:
        return list(points)

    reduced = [points[0]]
    for prev, curr, nxt in zip(points, points[1:], points[2:]):
        incoming = tuple(c - p for c, p in zip(curr, prev))
        outgoing = tuple(n - c for n, c in zip(nxt, curr))
        if incoming != outgoing:
            reduced.append(curr)
    reduced.append(points[-1])
    return reduced


def reduce_waypoints(points: Sequence[Point3D]) -> List[Point3D]:
    """reduce_collinear for world points."""
    return [Point3D(*p) for p in reduce_collinear([p.as_tuple() for p in points])]


class AStarRouter:
    """A* router over an OccupancyGrid.

    Stateless between calls apart from its config, so one router can serve
    any number of grids.
    """

    def __init__(self, config: Optional[RouterConfig] = None):
        self.config = config or RouterConfig()

    def find_path(self, grid: OccupancyGrid, start: Point3D, goal: Point3D) -> PathResult:
        """
        Route between two world points.

        Args:
            grid: Occupancy grid to search
            start: Start point in world coordinates
            goal: End point in world coordinates

        Returns:
            Routed with reduced world waypoints (cell centres), or Unroutable
        """
        start_cell = grid.world_to_cell(start)
        goal_cell = grid.world_to_cell(goal)

        for name, point, cell in (("start", start, start_cell), ("end", goal, goal_cell)):
            if not grid.in_bounds(cell):
                detail = f"{name} {point.as_tuple()} maps to cell {cell} outside grid {grid.shape}"
                logger.debug(f"Unroutable: {detail}")
                return Unroutable(UnroutableReason.OUT_OF_BOUNDS, detail)

        for name, cell in (("start", start_cell), ("end", goal_cell)):
            if grid.is_blocked(cell):
                detail = f"{name} cell {cell} is blocked"
                logger.debug(f"Unroutable: {detail}")
                return Unroutable(UnroutableReason.NO_PATH, detail)

        return self._search(grid, start_cell, goal_cell)

    def _search(self, grid: OccupancyGrid, start_cell: GridCell, goal_cell: GridCell) -> PathResult:
        """Core A* loop, iterative with an explicit heap."""
        start = grid.index(start_cell)
        goal = grid.index(goal_cell)

        n = grid.cell_count
        g_score = [_INF] * n
        parent = [-1] * n
        closed = bytearray(n)

        g_score[start] = 0
        sequence = 0
        # open_set: heap of (f, -sequence, index)
        open_set = [(manhattan(start_cell, goal_cell), 0, start)]
        expanded = 0
        max_expansions = self.config.max_expansions

        while open_set:
            _, _, current = heapq.heappop(open_set)

            # Stale heap entry for an already expanded node
            if closed[current]:
                continue

            if current == goal:
                return self._build_result(grid, parent, goal, expanded)

            if expanded >= max_expansions:
                detail = (
                    f"Max expansions ({max_expansions}) exceeded "
                    f"routing {start_cell} -> {goal_cell}"
                )
                logger.warning(detail)
                return Unroutable(UnroutableReason.SEARCH_LIMIT_EXCEEDED, detail, expanded)

            closed[current] = 1
            expanded += 1

            tentative_g = g_score[current] + 1
            for neighbor in grid.neighbors(current):
                if closed[neighbor] or grid.is_blocked_index(neighbor):
                    continue
                if tentative_g >= g_score[neighbor]:
                    continue

                g_score[neighbor] = tentative_g
                parent[neighbor] = current

                sequence += 1
                f = tentative_g + manhattan(grid.cell(neighbor), goal_cell)
                heapq.heappush(open_set, (f, -sequence, neighbor))

        detail = f"No path from {start_cell} to {goal_cell} (open set exhausted)"
        logger.debug(detail)
        return Unroutable(UnroutableReason.NO_PATH, detail, expanded)

    def _build_result(self, grid: OccupancyGrid, parent: List[int], goal: int,
                      expanded: int) -> Routed:
        """Reconstruct, reduce and convert the path to world coordinates."""
        indices = [goal]
        while parent[indices[-1]] != -1:
            indices.append(parent[indices[-1]])
        indices.reverse()

        cells = [grid.cell(i) for i in indices]
        steps = len(cells) - 1
        if len(cells) == 1:
            # Start and goal share a cell: zero-length run
            cells = cells * 2

        corners = reduce_collinear(cells)
        waypoints = [grid.cell_to_world(c) for c in corners]
        logger.debug(
            f"Routed {cells[0]} -> {cells[-1]}: {steps} steps, "
            f"{len(waypoints)} waypoints, {expanded} expanded"
        )
        return Routed(waypoints=waypoints, steps=steps, expanded=expanded)


def find_path(
    grid: OccupancyGrid,
    start: Point3D,
    goal: Point3D,
    config: Optional[RouterConfig] = None,
) -> PathResult:
    """Convenience wrapper around AStarRouter.find_path."""
    return AStarRouter(config).find_path(grid, start, goal)
