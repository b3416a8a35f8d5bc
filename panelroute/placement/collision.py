"""Placement checks: component overlap and DIN rail snapping."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..geometry import (
    DEFAULT_MODULE_WIDTH,
    DEFAULT_SNAP_TOLERANCE,
    BoundingBox,
    Point3D,
    boxes_intersect,
    quantize_to_rail,
)
from ..model.entities import ComponentInstance, MountingRail

logger = logging.getLogger(__name__)


@dataclass
class CollisionResult:
    """Outcome of an overlap check."""
    has_collision: bool
    colliding_with: List[str] = field(default_factory=list)  # Instance ids


@dataclass
class SnapResult:
    """A position snapped onto a mounting rail."""
    position: Point3D
    rail_id: str
    slot: int

    def within_rail(self, rail: MountingRail, modules: float = 1.0) -> bool:
        """Check the occupied slot range fits on the rail."""
        return self.slot >= 0 and self.slot + modules <= rail.max_modules


def padded_box(instance: ComponentInstance, clearance: float = 0.0) -> BoundingBox:
    """World-space footprint of an instance expanded by clearance."""
    return instance.bounding_box().padded(clearance)


def find_collisions(
    candidate: ComponentInstance,
    others: Iterable[ComponentInstance],
    clearance: Optional[float] = None,
) -> CollisionResult:
    """
    List placed instances whose padded footprint overlaps the candidate's.

    Unplaced instances never collide, whether candidate or other. The
    candidate itself is skipped if it appears in ``others``.

    Args:
        candidate: Instance at its proposed physical position
        others: Instances to check against
        clearance: Padding applied to the candidate box (defaults.yaml if None)
    """
    if not candidate.is_physically_placed:
        return CollisionResult(has_collision=False)

    if clearance is None:
        from ..config import get_defaults
        clearance = get_defaults().clearance

    box = padded_box(candidate, clearance)
    colliding = []
    for other in others:
        if other.instance_id == candidate.instance_id or not other.is_physically_placed:
            continue
        if boxes_intersect(box, padded_box(other)):
            colliding.append(other.instance_id)

    if colliding:
        logger.debug(f"{candidate.instance_id} collides with {colliding}")
    return CollisionResult(has_collision=bool(colliding), colliding_with=colliding)


def check_collision(
    candidate: ComponentInstance,
    others: Iterable[ComponentInstance],
    clearance: Optional[float] = None,
) -> bool:
    """True if the candidate overlaps any other placed instance."""
    return find_collisions(candidate, others, clearance).has_collision


def snap_to_nearest_rail(
    position: Point3D,
    rails: Iterable[MountingRail],
    module_width: float = DEFAULT_MODULE_WIDTH,
    tolerance: float = DEFAULT_SNAP_TOLERANCE,
) -> Optional[SnapResult]:
    """
    Snap a position onto the first rail within tolerance.

    Rails are tried in the given order and the first one whose perpendicular
    distance is within tolerance wins, even if a later rail is closer. Rail
    order is the caller's priority order.

    Returns:
        SnapResult, or None if no rail qualifies (keep the free position)
    """
    for rail in rails:
        snapped = quantize_to_rail(position, rail, module_width, tolerance)
        if snapped is None:
            continue
        snapped_position, slot = snapped
        logger.debug(f"Snapped {position.as_tuple()} to {rail.rail_id} slot {slot}")
        return SnapResult(position=snapped_position, rail_id=rail.rail_id, slot=slot)
    return None
