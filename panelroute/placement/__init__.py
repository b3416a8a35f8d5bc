"""Component placement: collision checks and rail snapping."""

from .collision import (
    CollisionResult,
    SnapResult,
    padded_box,
    find_collisions,
    check_collision,
    snap_to_nearest_rail,
)

__all__ = [
    "CollisionResult",
    "SnapResult",
    "padded_box",
    "find_collisions",
    "check_collision",
    "snap_to_nearest_rail",
]
