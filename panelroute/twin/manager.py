"""Digital Twin State Manager.

Single source of truth for a panel design. Owns the component instances,
logical connections and wires, enforces their referential invariants and
drives the router when the caller asks for a wire to be (re)routed.

Key rules:
1. Adding a component in the schematic creates an unplaced instance
2. Moving an instance recomputes its pin world positions immediately, but
   never re-routes; routing is an explicit call (route_wire / route_all)
3. Every logical connection has exactly one wire, created empty with it
4. Failed calls raise before anything is mutated

Example:
    >>> twin = DigitalTwin(library=ComponentLibrary.load())
    >>> mcb = twin.add_component_instance("siemens-5sy6-116-7", (100, 40))
    >>> relay = twin.add_component_instance("finder-55-34-8-230", (200, 40))
    >>> twin.place_component(mcb, Point3D(-350, 200, -50))
    >>> twin.place_component(relay, Point3D(-280, 200, -50))
    >>> conn = twin.add_logical_connection(f"{mcb}:OUT", f"{relay}:A1")
    >>> outcome = twin.route_wire(conn)
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..config import RoutingDefaults, get_defaults
from ..errors import (
    InvalidConnection,
    InvalidGridParameters,
    LibraryError,
    SnapshotError,
    UnknownComponent,
    UnknownConnection,
    UnknownPin,
    UnknownWire,
)
from ..geometry import ORIGIN, Point3D
from ..library.loader import ComponentLibrary
from ..model.entities import (
    ComponentDefinition,
    ComponentInstance,
    Enclosure,
    LogicalConnection,
    PhysicalPin,
    PinRef,
    Waypoint,
    Wire,
    WireType,
)
from ..placement.collision import (
    CollisionResult,
    SnapResult,
    find_collisions,
    padded_box,
    snap_to_nearest_rail,
)
from ..routing.astar_router import (
    AStarRouter,
    PathResult,
    RouterConfig,
    Unroutable,
    UnroutableReason,
)
from ..routing.occupancy_grid import OccupancyGrid, build_grid, open_terminal_access

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

PointLike = Union[Point3D, Sequence[float]]
PinLike = Union[str, PinRef]


@dataclass
class RemovalResult:
    """What a component removal cascaded to."""
    instance_id: str
    removed_connections: List[str] = field(default_factory=list)
    removed_wires: List[str] = field(default_factory=list)


@dataclass
class RouteOutcome:
    """Result of routing one wire."""
    connection_id: str
    wire_id: str
    result: PathResult

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def reason(self) -> Optional[UnroutableReason]:
        """Failure reason, None when routed."""
        if isinstance(self.result, Unroutable):
            return self.result.reason
        return None

    @property
    def waypoints(self) -> List[Point3D]:
        return list(getattr(self.result, "waypoints", []))


def _as_point(value: PointLike) -> Point3D:
    if isinstance(value, Point3D):
        return value
    x, y, z = value
    return Point3D(float(x), float(y), float(z))


class DigitalTwin:
    """Authoritative store of a panel design's logical and physical state."""

    def __init__(
        self,
        enclosure: Optional[Enclosure] = None,
        library: Optional[ComponentLibrary] = None,
        defaults: Optional[RoutingDefaults] = None,
        project_id: str = "new-project",
        project_name: str = "Untitled Panel Design",
    ):
        """
        Args:
            enclosure: Panel volume (configured default panel if None)
            library: Component catalog; definitions passed to
                     add_component_instance are registered into it
            defaults: Grid, rail and wire style settings
            project_id: Project identifier stored in snapshots
            project_name: Human-readable project name

        Raises:
            InvalidGridParameters: Enclosure has a non-positive dimension or a
                rail outside its volume
        """
        self.defaults = defaults or get_defaults()
        self.enclosure = enclosure if enclosure is not None else self.defaults.default_enclosure()
        try:
            self.enclosure.validate()
        except ValueError as e:
            raise InvalidGridParameters(str(e)) from e
        self.library = library if library is not None else ComponentLibrary()
        self.project_id = project_id
        self.project_name = project_name

        # Insertion-ordered stores keyed by id
        self._components: Dict[str, ComponentInstance] = {}
        self._connections: Dict[str, LogicalConnection] = {}
        self._wires: Dict[str, Wire] = {}

        self._counters: Dict[str, int] = {}

    # =========================================================================
    # Component management
    # =========================================================================

    def add_component_instance(
        self,
        definition: Union[ComponentDefinition, str],
        schematic_position: Tuple[float, float] = (0.0, 0.0),
    ) -> str:
        """
        Create an unplaced instance of a definition.

        Args:
            definition: Definition or the id of one already in the library
            schematic_position: 2D schematic canvas position

        Returns:
            The new instance id
        """
        if isinstance(definition, str):
            definition = self.library[definition]
        else:
            self.library.add(definition)

        same_kind = sum(1 for c in self._components.values() if c.definition.id == definition.id)
        instance_id = self._new_id(definition.component_type.value, self._components)
        instance = ComponentInstance(
            instance_id=instance_id,
            definition=definition,
            label=f"{definition.component_type.value} {same_kind + 1}",
            schematic_position=(float(schematic_position[0]), float(schematic_position[1])),
            physical_position=ORIGIN,
            is_physically_placed=False,
        )
        self._components[instance_id] = instance
        logger.debug(f"Added {instance_id} ({definition.id}) as {instance.label!r}")
        return instance_id

    def remove_component_instance(self, instance_id: str) -> RemovalResult:
        """
        Remove an instance and everything that references it.

        Connections touching any of its pins are removed, then every wire
        whose connection is gone. The surviving collections are computed
        first and swapped in together, so no reader ever sees a connection
        or wire pointing at the removed instance.
        """
        self._require_component(instance_id)

        components = {k: v for k, v in self._components.items() if k != instance_id}
        connections = {
            k: c for k, c in self._connections.items() if not c.involves(instance_id)
        }
        wires = {k: w for k, w in self._wires.items() if w.connection_id in connections}

        result = RemovalResult(
            instance_id=instance_id,
            removed_connections=[k for k in self._connections if k not in connections],
            removed_wires=[k for k in self._wires if k not in wires],
        )

        self._components, self._connections, self._wires = components, connections, wires

        logger.info(
            f"Removed {instance_id}: {len(result.removed_connections)} connections, "
            f"{len(result.removed_wires)} wires"
        )
        return result

    def update_schematic_position(self, instance_id: str, position: Tuple[float, float]):
        """Move an instance on the schematic canvas."""
        instance = self._require_component(instance_id)
        instance.schematic_position = (float(position[0]), float(position[1]))

    def update_physical_position(
        self,
        instance_id: str,
        position: PointLike,
        rail_slot: Optional[int] = None,
    ):
        """
        Move an instance in 3D and recompute its pin world positions.

        Wires are not re-routed here, so drag updates stay cheap; call
        route_wire once the move is final.
        """
        instance = self._require_component(instance_id)
        instance.move_to(_as_point(position), rail_slot=rail_slot)

    def set_physically_placed(self, instance_id: str, placed: bool):
        """Mark an instance as placed (an obstacle) or unplaced."""
        instance = self._require_component(instance_id)
        instance.is_physically_placed = placed

    def place_component(
        self,
        instance_id: str,
        position: PointLike,
        snap: bool = True,
    ) -> Optional[SnapResult]:
        """
        Drop an instance into the panel, snapping onto a rail when close.

        Args:
            instance_id: Instance to place
            position: Proposed position (minimum footprint corner)
            snap: Try the enclosure rails first (first match wins)

        Returns:
            SnapResult if the instance was snapped onto a rail, else None
        """
        instance = self._require_component(instance_id)
        target = _as_point(position)

        snapped = None
        if snap:
            snapped = snap_to_nearest_rail(
                target,
                self.enclosure.rails,
                self.defaults.module_width,
                self.defaults.snap_tolerance,
            )

        if snapped is not None:
            instance.move_to(snapped.position, rail_slot=snapped.slot, rail_id=snapped.rail_id)
            rail = self.enclosure.get_rail(snapped.rail_id)
            if rail is not None and not snapped.within_rail(rail, instance.definition.rail_modules):
                logger.warning(
                    f"{instance_id} slot {snapped.slot} does not fit on {snapped.rail_id} "
                    f"({rail.max_modules} modules)"
                )
        else:
            instance.move_to(target)
            instance.rail_slot = None
            instance.rail_id = None
        instance.is_physically_placed = True

        collisions = find_collisions(instance, self._components.values(), self.defaults.clearance)
        if collisions.has_collision:
            logger.warning(f"{instance_id} overlaps {', '.join(collisions.colliding_with)}")
        return snapped

    def check_placement(self, instance_id: str) -> CollisionResult:
        """Report the placed instances this instance currently overlaps."""
        instance = self._require_component(instance_id)
        return find_collisions(instance, self._components.values(), self.defaults.clearance)

    # =========================================================================
    # Connection management
    # =========================================================================

    def add_logical_connection(
        self,
        from_pin: PinLike,
        to_pin: PinLike,
        wire_type: Optional[WireType] = None,
        label: Optional[str] = None,
    ) -> str:
        """
        Connect two pins and create the connection's (unrouted) wire.

        Args:
            from_pin: ``"<instance_id>:<pin_label>"`` or PinRef
            to_pin: Same, for the other end (order is not significant)
            wire_type: Wire classification; derived from the pin types if None
            label: Optional wire label, e.g. "L1" or "24VDC"

        Returns:
            The new connection id

        Raises:
            UnknownPin: Either pin does not resolve to an existing instance pin
            InvalidConnection: Both ends are the same pin
        """
        ref_a, pin_a = self._resolve(from_pin)
        ref_b, pin_b = self._resolve(to_pin)

        if ref_a == ref_b:
            raise InvalidConnection(f"Cannot connect pin {ref_a} to itself")

        if wire_type is None:
            wire_type = WireType.for_pins(pin_a.pin_type, pin_b.pin_type)

        connection_id = self._new_id("conn", self._connections)
        wire_id = self._new_id("wire", self._wires)
        style = self.defaults.wire_style(wire_type)

        connection = LogicalConnection(
            connection_id=connection_id,
            from_pin=ref_a,
            to_pin=ref_b,
            wire_type=wire_type,
            label=label,
        )
        wire = Wire(
            wire_id=wire_id,
            connection_id=connection_id,
            wire_type=wire_type,
            color=style.color,
            thickness=style.thickness,
        )
        self._connections[connection_id] = connection
        self._wires[wire_id] = wire

        logger.debug(f"Connected {ref_a} -> {ref_b} as {connection_id} ({wire_type.value})")
        return connection_id

    def remove_logical_connection(self, connection_id: str) -> List[str]:
        """Remove a connection and its wire. Returns the removed wire ids."""
        self._require_connection(connection_id)
        wires = {k: w for k, w in self._wires.items() if w.connection_id != connection_id}
        removed = [k for k in self._wires if k not in wires]
        connections = {k: c for k, c in self._connections.items() if k != connection_id}
        self._connections, self._wires = connections, wires
        logger.debug(f"Removed {connection_id} and wires {removed}")
        return removed

    # =========================================================================
    # Routing
    # =========================================================================

    def route_wire(
        self,
        connection_id: str,
        enclosure: Optional[Enclosure] = None,
        resolution: Optional[float] = None,
    ) -> RouteOutcome:
        """
        Compute the physical path of one connection's wire.

        The grid is rebuilt from current placements. On success the wire's
        waypoints and length are updated; on failure its waypoints are
        cleared and the outcome carries the reason.

        Raises:
            UnknownConnection: No such connection
            InvalidGridParameters: Malformed enclosure or resolution (store
                left untouched)
        """
        self._require_connection(connection_id)
        grid = self._build_grid(enclosure, resolution)
        return self._route_connection(connection_id, grid)

    def route_all(
        self,
        enclosure: Optional[Enclosure] = None,
        resolution: Optional[float] = None,
        skip_anchored: bool = True,
    ) -> Dict[str, RouteOutcome]:
        """
        Route every wire, in connection creation order.

        Args:
            enclosure: Panel volume (the twin's own if None)
            resolution: Grid cell size in mm (configured default if None)
            skip_anchored: Leave wires with user-anchored waypoints alone

        Returns:
            Dictionary mapping connection id to RouteOutcome
        """
        grid = self._build_grid(enclosure, resolution)
        outcomes = {}
        for connection_id in list(self._connections):
            wire = self._wire_for(connection_id)
            if skip_anchored and wire.is_user_anchored:
                continue
            outcomes[connection_id] = self._route_connection(connection_id, grid.copy())

        routed = sum(1 for o in outcomes.values() if o.success)
        logger.info(f"Routing complete: {routed}/{len(outcomes)} wires routed")
        return outcomes

    def _build_grid(self, enclosure: Optional[Enclosure], resolution: Optional[float]) -> OccupancyGrid:
        return build_grid(
            enclosure if enclosure is not None else self.enclosure,
            self._components.values(),
            resolution if resolution is not None else self.defaults.resolution,
            self.defaults.clearance,
        )

    def _route_connection(self, connection_id: str, grid: OccupancyGrid) -> RouteOutcome:
        """Route one connection on a grid owned by this call."""
        connection = self._connections[connection_id]
        wire = self._wire_for(connection_id)

        endpoints = []
        for ref in (connection.from_pin, connection.to_pin):
            instance = self._components[ref.instance_id]
            endpoints.append((instance, instance.get_pin(ref.pin_label)))

        unplaced = [inst.instance_id for inst, _ in endpoints if not inst.is_physically_placed]
        if unplaced:
            result = Unroutable(
                UnroutableReason.UNPLACED_COMPONENT,
                f"Not physically placed: {', '.join(unplaced)}",
            )
        else:
            for instance, pin in endpoints:
                others = [
                    c.bounding_box() for c in self._components.values()
                    if c.is_physically_placed and c.instance_id != instance.instance_id
                ]
                open_terminal_access(
                    grid,
                    pin.world_position,
                    padded_box(instance, self.defaults.clearance),
                    others,
                )
            router = AStarRouter(RouterConfig(max_expansions=self.defaults.max_expansions))
            result = router.find_path(
                grid, endpoints[0][1].world_position, endpoints[1][1].world_position
            )

        if result.success:
            wire.waypoints = [Waypoint(position=p) for p in result.waypoints]
            wire.routing_method = "manhattan"
            logger.debug(
                f"Routed {wire.wire_id} ({connection_id}): "
                f"{len(wire.waypoints)} waypoints, {wire.length:.1f}mm"
            )
        else:
            wire.waypoints = []
            logger.warning(
                f"Failed to route {wire.wire_id} ({connection_id}): "
                f"{result.reason.value} - {result.detail}"
            )
        return RouteOutcome(connection_id=connection_id, wire_id=wire.wire_id, result=result)

    def set_wire_waypoints(self, wire_id: str, waypoints: Sequence[Union[Waypoint, PointLike]]):
        """Replace a wire's path with user-anchored waypoints (manual routing)."""
        if wire_id not in self._wires:
            raise UnknownWire(wire_id)
        points = [
            Waypoint(w.position, True) if isinstance(w, Waypoint) else Waypoint(_as_point(w), True)
            for w in waypoints
        ]
        wire = self._wires[wire_id]
        wire.waypoints = points
        wire.routing_method = "manual"

    # =========================================================================
    # Read access (copies; callers cannot mutate the store through them)
    # =========================================================================

    @property
    def components(self) -> List[ComponentInstance]:
        return copy.deepcopy(list(self._components.values()))

    @property
    def connections(self) -> List[LogicalConnection]:
        return copy.deepcopy(list(self._connections.values()))

    @property
    def wires(self) -> List[Wire]:
        return copy.deepcopy(list(self._wires.values()))

    def get_component(self, instance_id: str) -> Optional[ComponentInstance]:
        instance = self._components.get(instance_id)
        return copy.deepcopy(instance) if instance is not None else None

    def get_connection(self, connection_id: str) -> Optional[LogicalConnection]:
        connection = self._connections.get(connection_id)
        return copy.deepcopy(connection) if connection is not None else None

    def get_wire_for_connection(self, connection_id: str) -> Optional[Wire]:
        for wire in self._wires.values():
            if wire.connection_id == connection_id:
                return copy.deepcopy(wire)
        return None

    def connections_for(self, instance_id: str) -> List[LogicalConnection]:
        """Connections with at least one end on the instance."""
        return copy.deepcopy([c for c in self._connections.values() if c.involves(instance_id)])

    def resolve_pin(self, pin: PinLike) -> PhysicalPin:
        """Current physical pin (with world position) for a pin reference."""
        _, physical = self._resolve(pin)
        return copy.deepcopy(physical)

    def get_stats(self) -> Dict[str, Any]:
        """Get design statistics."""
        wires = list(self._wires.values())
        return {
            "components": len(self._components),
            "placed": sum(1 for c in self._components.values() if c.is_physically_placed),
            "connections": len(self._connections),
            "wires": len(wires),
            "routed_wires": sum(1 for w in wires if w.is_routed),
            "total_wire_length": sum(w.length for w in wires if w.is_routed),
        }

    # =========================================================================
    # Snapshots
    # =========================================================================

    def export_snapshot(self, include_computed_waypoints: bool = False) -> Dict[str, Any]:
        """
        Export the whole design as a plain dictionary.

        Computed waypoints are omitted by default since they are recomputed
        on load; user-anchored paths are always kept.
        """
        return {
            "version": SNAPSHOT_VERSION,
            "project": {"id": self.project_id, "name": self.project_name},
            "enclosure": self.enclosure.to_dict(),
            "library": self.library.to_list(),
            "components": [c.to_dict() for c in self._components.values()],
            "connections": [c.to_dict() for c in self._connections.values()],
            "wires": [
                w.to_dict(include_waypoints=include_computed_waypoints or w.is_user_anchored)
                for w in self._wires.values()
            ],
        }

    def load_snapshot(self, data: Dict[str, Any], reroute: bool = False) -> Dict[str, RouteOutcome]:
        """
        Replace the whole store with a snapshot.

        Everything is parsed and validated into new collections first; the
        store is only touched once the snapshot is known to be consistent.

        Args:
            data: Dictionary produced by export_snapshot
            reroute: Recompute every non-anchored wire after loading

        Returns:
            Routing outcomes when reroute is set, else an empty dict

        Raises:
            SnapshotError: Snapshot is malformed or inconsistent
        """
        try:
            state = self._parse_snapshot(data)
        except SnapshotError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError, LibraryError) as e:
            raise SnapshotError(f"Invalid snapshot: {e}") from e

        (self.project_id, self.project_name, self.enclosure, self.library,
         self._components, self._connections, self._wires) = state
        self._counters = {}

        logger.info(
            f"Loaded snapshot: {len(self._components)} components, "
            f"{len(self._connections)} connections, {len(self._wires)} wires"
        )
        if reroute:
            return self.route_all()
        return {}

    def _parse_snapshot(self, data: Dict[str, Any]):
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a mapping")
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise SnapshotError(f"Unsupported snapshot version: {version!r}")

        project = data.get("project", {})
        enclosure = Enclosure.from_dict(data["enclosure"])
        enclosure.validate()
        library = ComponentLibrary.from_list(data.get("library", []))
        definitions = library.as_dict()

        components: Dict[str, ComponentInstance] = {}
        for entry in data.get("components", []):
            instance = ComponentInstance.from_dict(entry, definitions)
            if instance.instance_id in components:
                raise SnapshotError(f"Duplicate instance id {instance.instance_id!r}")
            components[instance.instance_id] = instance

        connections: Dict[str, LogicalConnection] = {}
        for entry in data.get("connections", []):
            connection = LogicalConnection.from_dict(entry)
            if connection.connection_id in connections:
                raise SnapshotError(f"Duplicate connection id {connection.connection_id!r}")
            for ref in (connection.from_pin, connection.to_pin):
                instance = components.get(ref.instance_id)
                if instance is None or instance.get_pin(ref.pin_label) is None:
                    raise SnapshotError(
                        f"Connection {connection.connection_id} references unknown pin {ref}"
                    )
            connections[connection.connection_id] = connection

        wires: Dict[str, Wire] = {}
        wired = set()
        for entry in data.get("wires", []):
            wire = Wire.from_dict(entry)
            if wire.wire_id in wires:
                raise SnapshotError(f"Duplicate wire id {wire.wire_id!r}")
            if wire.connection_id not in connections:
                raise SnapshotError(
                    f"Wire {wire.wire_id} references unknown connection {wire.connection_id}"
                )
            if wire.connection_id in wired:
                raise SnapshotError(f"Connection {wire.connection_id} has more than one wire")
            wired.add(wire.connection_id)
            wires[wire.wire_id] = wire

        # Connections saved without a wire get a fresh unrouted one
        for connection_id, connection in connections.items():
            if connection_id in wired:
                continue
            style = self.defaults.wire_style(connection.wire_type)
            wire_id = f"wire_{connection_id}"
            if wire_id in wires:
                raise SnapshotError(f"Duplicate wire id {wire_id!r}")
            wires[wire_id] = Wire(
                wire_id=wire_id,
                connection_id=connection_id,
                wire_type=connection.wire_type,
                color=style.color,
                thickness=style.thickness,
            )

        return (
            str(project.get("id", self.project_id)),
            str(project.get("name", self.project_name)),
            enclosure,
            library,
            components,
            connections,
            wires,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _new_id(self, prefix: str, taken: Dict[str, Any]) -> str:
        """Next unused sequential id for a prefix, e.g. MCB_001."""
        while True:
            self._counters[prefix] = self._counters.get(prefix, 0) + 1
            candidate = f"{prefix}_{self._counters[prefix]:03d}"
            if candidate not in taken:
                return candidate

    def _require_component(self, instance_id: str) -> ComponentInstance:
        instance = self._components.get(instance_id)
        if instance is None:
            raise UnknownComponent(instance_id)
        return instance

    def _require_connection(self, connection_id: str) -> LogicalConnection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise UnknownConnection(connection_id)
        return connection

    def _wire_for(self, connection_id: str) -> Wire:
        for wire in self._wires.values():
            if wire.connection_id == connection_id:
                return wire
        raise UnknownConnection(connection_id)

    def _resolve(self, pin: PinLike) -> Tuple[PinRef, PhysicalPin]:
        try:
            ref = PinRef.parse(pin)
        except ValueError as e:
            raise UnknownPin(str(pin), str(e)) from None
        instance = self._components.get(ref.instance_id)
        if instance is None:
            raise UnknownPin(str(ref), f"no instance {ref.instance_id!r}")
        physical = instance.get_pin(ref.pin_label)
        if physical is None:
            raise UnknownPin(str(ref), f"{instance.definition.id} has no pin {ref.pin_label!r}")
        return ref, physical
