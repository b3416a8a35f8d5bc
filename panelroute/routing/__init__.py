"""Wire routing engine.

- OccupancyGrid / build_grid: discretized enclosure with component obstacles
- open_terminal_access: opens pin cells buried in their component's padding
- AStarRouter / find_path: six-connected A* producing Manhattan wire runs
"""

from .occupancy_grid import (
    OccupancyGrid,
    AXIS_DIRECTIONS,
    build_grid,
    open_terminal_access,
)
from .astar_router import (
    AStarRouter,
    RouterConfig,
    Routed,
    Unroutable,
    UnroutableReason,
    PathResult,
    find_path,
    reduce_collinear,
    reduce_waypoints,
)

__all__ = [
    # Occupancy grid
    "OccupancyGrid",
    "AXIS_DIRECTIONS",
    "build_grid",
    "open_terminal_access",
    # A* Router
    "AStarRouter",
    "RouterConfig",
    "Routed",
    "Unroutable",
    "UnroutableReason",
    "PathResult",
    "find_path",
    "reduce_collinear",
    "reduce_waypoints",
]
