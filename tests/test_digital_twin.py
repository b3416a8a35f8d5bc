"""
Tests for the DigitalTwin state manager.

Tests cover:
- Component lifecycle and labels
- Connection validation and wire creation
- Cascade removal with no dangling references
- Placement, snapping and collision warnings
- Wire routing outcomes and idempotence
- Snapshot export/load and atomic failure
"""

import pytest

from panelroute.errors import (
    InvalidConnection,
    InvalidGridParameters,
    LibraryError,
    SnapshotError,
    UnknownComponent,
    UnknownConnection,
    UnknownPin,
    UnknownWire,
)
from panelroute.geometry import Point3D
from panelroute.model.entities import MountingRail, PinRef, WireType
from panelroute.routing.astar_router import UnroutableReason
from panelroute.twin.manager import SNAPSHOT_VERSION, DigitalTwin

MCB_ID = "siemens-5sy6-116-7"
RELAY_ID = "finder-55-34-8-230"
TERMINAL_ID = "wago-280-901"


def assert_no_dangling(twin: DigitalTwin):
    """Every connection end and every wire points at something that exists."""
    instance_ids = {c.instance_id for c in twin.components}
    connection_ids = {c.connection_id for c in twin.connections}
    for connection in twin.connections:
        assert connection.instance_ids <= instance_ids
    for wire in twin.wires:
        assert wire.connection_id in connection_ids
    wired = [w.connection_id for w in twin.wires]
    assert sorted(wired) == sorted(connection_ids)


@pytest.fixture
def connected_twin(placed_twin):
    """Placed twin with the MCB output wired to the relay coil."""
    twin, mcb, relay = placed_twin
    conn = twin.add_logical_connection(f"{mcb}:OUT", f"{relay}:A1")
    return twin, mcb, relay, conn


# =============================================================================
# Component Tests
# =============================================================================

class TestComponents:
    """Tests for adding, moving and removing instances."""

    def test_add_creates_unplaced_instance(self, twin):
        """Test new instances are unplaced at the origin with pins at their offsets."""
        instance_id = twin.add_component_instance(MCB_ID, (100, 40))
        instance = twin.get_component(instance_id)

        assert instance_id == "MCB_001"
        assert not instance.is_physically_placed
        assert instance.physical_position == Point3D(0, 0, 0)
        assert instance.schematic_position == (100.0, 40.0)
        for pin in instance.physical_pins:
            assert pin.world_position == pin.offset

    def test_labels_count_per_definition(self, twin):
        """Test labels number instances of the same definition."""
        first = twin.add_component_instance(MCB_ID)
        second = twin.add_component_instance(MCB_ID)
        relay = twin.add_component_instance(RELAY_ID)

        assert twin.get_component(first).label == "MCB 1"
        assert twin.get_component(second).label == "MCB 2"
        assert twin.get_component(relay).label == "RELAY 1"
        assert len({first, second, relay}) == 3

    def test_add_registers_definition(self, block_definition):
        """Test a definition object is added to the twin's library."""
        twin = DigitalTwin()
        twin.add_component_instance(block_definition)
        assert "test-block" in twin.library

    def test_rejects_rail_outside_enclosure(self, cube_enclosure):
        """Test a twin cannot be built around a rail that leaves the panel."""
        cube_enclosure.rails = [MountingRail("rail-a", Point3D(50, 50, 50), 200.0)]
        with pytest.raises(InvalidGridParameters, match="rail-a"):
            DigitalTwin(enclosure=cube_enclosure)

    def test_accepts_enclosure_with_inner_rail(self, cube_enclosure):
        """Test a rail inside the panel is accepted as given."""
        cube_enclosure.rails = [MountingRail("rail-a", Point3D(0, 50, 50), 100.0)]
        twin = DigitalTwin(enclosure=cube_enclosure)
        assert twin.enclosure.rails[0].rail_id == "rail-a"

    def test_add_unknown_definition_id(self, twin):
        """Test an unknown definition id is rejected."""
        with pytest.raises(LibraryError):
            twin.add_component_instance("no-such-part")
        assert twin.components == []

    def test_update_physical_position_moves_pins(self, twin):
        """Test pins track the instance position."""
        instance_id = twin.add_component_instance(MCB_ID)
        twin.update_physical_position(instance_id, (10, 20, 30), rail_slot=3)
        instance = twin.get_component(instance_id)

        assert instance.rail_slot == 3
        for pin in instance.physical_pins:
            assert pin.world_position == Point3D(10, 20, 30) + pin.offset
        assert twin.resolve_pin(f"{instance_id}:OUT").world_position == Point3D(27.5, 37, 30)

    def test_update_schematic_position(self, twin):
        """Test schematic moves leave the physical state alone."""
        instance_id = twin.add_component_instance(MCB_ID)
        twin.update_schematic_position(instance_id, (5, 6))
        instance = twin.get_component(instance_id)
        assert instance.schematic_position == (5.0, 6.0)
        assert instance.physical_position == Point3D(0, 0, 0)

    def test_unknown_instance(self, twin):
        """Test operations on unknown instances raise UnknownComponent."""
        with pytest.raises(UnknownComponent):
            twin.update_physical_position("GHOST_001", (0, 0, 0))
        with pytest.raises(UnknownComponent):
            twin.remove_component_instance("GHOST_001")
        assert twin.get_component("GHOST_001") is None

    def test_accessors_return_copies(self, placed_twin):
        """Test callers cannot mutate the store through returned values."""
        twin, mcb, _ = placed_twin
        copy = twin.get_component(mcb)
        copy.move_to(Point3D(0, 0, 0))
        copy.is_physically_placed = False

        stored = twin.get_component(mcb)
        assert stored.is_physically_placed
        assert stored.physical_position == Point3D(-350, 200, -50)


# =============================================================================
# Placement Tests
# =============================================================================

class TestPlacement:
    """Tests for place_component."""

    def test_snaps_to_first_rail(self, twin):
        """Test placement near a rail snaps to the nearest module slot."""
        instance_id = twin.add_component_instance(MCB_ID)
        snapped = twin.place_component(instance_id, Point3D(-340, 205, -45))

        assert snapped.rail_id == "dinrail-1"
        assert snapped.slot == 1
        instance = twin.get_component(instance_id)
        assert instance.is_physically_placed
        assert instance.physical_position == Point3D(-332.5, 200, -50)
        assert instance.rail_slot == 1
        assert instance.rail_id == "dinrail-1"

    def test_free_placement(self, twin):
        """Test positions away from every rail are kept as given."""
        instance_id = twin.add_component_instance(MCB_ID)
        assert twin.place_component(instance_id, Point3D(0, 400, 0)) is None

        instance = twin.get_component(instance_id)
        assert instance.physical_position == Point3D(0, 400, 0)
        assert instance.rail_id is None

    def test_snap_disabled(self, twin):
        """Test snap=False places exactly even next to a rail."""
        instance_id = twin.add_component_instance(MCB_ID)
        assert twin.place_component(instance_id, Point3D(-340, 205, -45), snap=False) is None
        assert twin.get_component(instance_id).physical_position == Point3D(-340, 205, -45)

    def test_collision_warning(self, placed_twin, caplog):
        """Test placing on top of another component logs a warning."""
        twin, mcb, relay = placed_twin
        with caplog.at_level("WARNING"):
            twin.place_component(relay, Point3D(-350, 200, -50))

        assert "overlaps" in caplog.text
        assert twin.check_placement(relay).colliding_with == [mcb]

    def test_side_by_side_no_collision(self, placed_twin):
        """Test the fixture's components are clear of each other."""
        twin, mcb, relay = placed_twin
        assert not twin.check_placement(mcb).has_collision
        assert not twin.check_placement(relay).has_collision


# =============================================================================
# Connection Tests
# =============================================================================

class TestConnections:
    """Tests for logical connections and their wires."""

    def test_connection_creates_empty_wire(self, connected_twin):
        """Test every new connection immediately has one unrouted wire."""
        twin, mcb, relay, conn = connected_twin
        wire = twin.get_wire_for_connection(conn)

        assert wire is not None
        assert wire.waypoints == []
        assert wire.length is None
        assert wire.wire_type == WireType.SIGNAL
        assert wire.color == "#0000FF"
        assert wire.thickness == 2.0
        assert twin.get_connection(conn).pins == {PinRef(mcb, "OUT"), PinRef(relay, "A1")}

    def test_wire_type_from_pins(self, twin):
        """Test power pins give power wires."""
        mcb = twin.add_component_instance(MCB_ID)
        terminal = twin.add_component_instance(TERMINAL_ID)
        conn = twin.add_logical_connection(f"{mcb}:L1", f"{terminal}:OUT", label="L1")

        wire = twin.get_wire_for_connection(conn)
        assert wire.wire_type == WireType.POWER
        assert wire.color == "#FF0000"
        assert twin.get_connection(conn).label == "L1"

    def test_explicit_wire_type(self, placed_twin):
        """Test an explicit wire type overrides the derived one."""
        twin, mcb, relay = placed_twin
        conn = twin.add_logical_connection(
            PinRef(mcb, "OUT"), PinRef(relay, "A2"), wire_type=WireType.GROUND
        )
        assert twin.get_wire_for_connection(conn).color == "#00FF00"

    @pytest.mark.parametrize("pin", ["GHOST_001:A1", "MCB_001:NOPE", "MCB_001", "garbage"])
    def test_unknown_pin(self, placed_twin, pin):
        """Test unresolvable pins are rejected and nothing is created."""
        twin, mcb, _ = placed_twin
        with pytest.raises(UnknownPin):
            twin.add_logical_connection(f"{mcb}:OUT", pin)
        assert twin.connections == []
        assert twin.wires == []

    def test_self_loop(self, placed_twin):
        """Test a pin cannot connect to itself."""
        twin, mcb, _ = placed_twin
        with pytest.raises(InvalidConnection):
            twin.add_logical_connection(f"{mcb}:OUT", f"{mcb}:OUT")
        assert twin.connections == []

    def test_remove_connection(self, connected_twin):
        """Test removing a connection removes its wire."""
        twin, _, _, conn = connected_twin
        wire_id = twin.get_wire_for_connection(conn).wire_id

        assert twin.remove_logical_connection(conn) == [wire_id]
        assert twin.connections == []
        assert twin.wires == []
        with pytest.raises(UnknownConnection):
            twin.remove_logical_connection(conn)


# =============================================================================
# Cascade Removal Tests
# =============================================================================

class TestCascadeRemoval:
    """Tests for remove_component_instance."""

    def test_remove_cascades(self, placed_twin):
        """Test removing an instance with two connections leaves no dangling references."""
        twin, mcb, relay = placed_twin
        terminal = twin.add_component_instance(TERMINAL_ID)
        c1 = twin.add_logical_connection(f"{mcb}:OUT", f"{relay}:A1")
        c2 = twin.add_logical_connection(f"{mcb}:L1", f"{terminal}:OUT")
        c3 = twin.add_logical_connection(f"{relay}:A2", f"{terminal}:IN")
        w1 = twin.get_wire_for_connection(c1).wire_id
        w2 = twin.get_wire_for_connection(c2).wire_id

        result = twin.remove_component_instance(mcb)

        assert result.instance_id == mcb
        assert result.removed_connections == [c1, c2]
        assert result.removed_wires == [w1, w2]
        assert [c.connection_id for c in twin.connections] == [c3]
        assert twin.get_component(mcb) is None
        assert_no_dangling(twin)

    def test_remove_unconnected(self, placed_twin):
        """Test removing an instance with no connections touches nothing else."""
        twin, mcb, relay = placed_twin
        result = twin.remove_component_instance(relay)
        assert result.removed_connections == []
        assert [c.instance_id for c in twin.components] == [mcb]


# =============================================================================
# Routing Tests
# =============================================================================

class TestRouting:
    """Tests for route_wire / route_all."""

    def test_route_wire(self, connected_twin):
        """Test a wire between neighbouring rail components is routed."""
        twin, _, _, conn = connected_twin
        outcome = twin.route_wire(conn)

        assert outcome.success
        assert outcome.reason is None
        assert outcome.result.steps == 7
        wire = twin.get_wire_for_connection(conn)
        assert wire.wire_id == outcome.wire_id
        # Pin cells: MCB OUT at (-332.5, 217, -50), relay A1 at (-280, 227, -50)
        assert wire.waypoints[0].position == Point3D(-335, 215, -45)
        assert wire.waypoints[-1].position == Point3D(-275, 225, -45)
        assert wire.length == pytest.approx(70.0)
        assert not wire.is_user_anchored

    def test_route_from_adjacent_rail_slots(self, twin):
        """Test MCBs in consecutive rail slots all route out of the row."""
        mcbs = [twin.add_component_instance(MCB_ID) for _ in range(4)]
        for slot, mcb in enumerate(mcbs):
            twin.place_component(mcb, Point3D(-350 + 17.5 * slot, 200, -50))
        terminal = twin.add_component_instance(TERMINAL_ID)
        twin.place_component(terminal, Point3D(-100, 400, -50), snap=False)

        for mcb in mcbs:
            conn = twin.add_logical_connection(f"{mcb}:OUT", f"{terminal}:IN")
            outcome = twin.route_wire(conn)
            assert outcome.success, f"{mcb}: {outcome.reason}"

        # The first MCB's OUT face is flush with its neighbour, so the wire
        # leaves through the front of the panel instead
        first = twin.connections_for(mcbs[0])[0].connection_id
        waypoints = twin.get_wire_for_connection(first).waypoints
        assert waypoints[0].position == Point3D(-335, 215, -45)
        assert waypoints[1].position.x == -335
        assert waypoints[1].position.y == 215
        assert waypoints[1].position.z < -50

    def test_route_is_idempotent(self, connected_twin):
        """Test routing twice with no state change gives the same wire."""
        twin, _, _, conn = connected_twin
        twin.route_wire(conn)
        first = twin.get_wire_for_connection(conn)
        twin.route_wire(conn)
        assert twin.get_wire_for_connection(conn) == first

    def test_move_does_not_reroute(self, connected_twin):
        """Test moving a component leaves the existing path untouched."""
        twin, _, relay, conn = connected_twin
        twin.route_wire(conn)
        before = twin.get_wire_for_connection(conn)

        twin.update_physical_position(relay, (-245, 200, -50))
        assert twin.get_wire_for_connection(conn) == before

        twin.route_wire(conn)
        assert twin.get_wire_for_connection(conn).waypoints[-1].position != before.waypoints[-1].position

    def test_unplaced_endpoint(self, twin):
        """Test routing to an unplaced component reports it."""
        mcb = twin.add_component_instance(MCB_ID)
        relay = twin.add_component_instance(RELAY_ID)
        conn = twin.add_logical_connection(f"{mcb}:OUT", f"{relay}:A1")

        outcome = twin.route_wire(conn)
        assert not outcome.success
        assert outcome.reason == UnroutableReason.UNPLACED_COMPONENT
        assert twin.get_wire_for_connection(conn).waypoints == []

    def test_out_of_bounds_clears_wire(self, connected_twin):
        """Test a pin outside the enclosure fails and clears the old path."""
        twin, _, relay, conn = connected_twin
        twin.route_wire(conn)
        twin.update_physical_position(relay, (500, 200, -50))

        outcome = twin.route_wire(conn)
        assert outcome.reason == UnroutableReason.OUT_OF_BOUNDS
        assert twin.get_wire_for_connection(conn).waypoints == []

    def test_invalid_resolution_leaves_store(self, connected_twin):
        """Test bad grid parameters raise before the wire is touched."""
        twin, _, _, conn = connected_twin
        twin.route_wire(conn)
        before = twin.get_wire_for_connection(conn)

        with pytest.raises(InvalidGridParameters):
            twin.route_wire(conn, resolution=0)
        assert twin.get_wire_for_connection(conn) == before

    def test_unknown_connection(self, twin):
        """Test routing an unknown connection raises."""
        with pytest.raises(UnknownConnection):
            twin.route_wire("conn_999")

    def test_route_all(self, connected_twin):
        """Test route_all routes every wire in creation order."""
        twin, mcb, relay, conn = connected_twin
        second = twin.add_logical_connection(f"{mcb}:L1", f"{relay}:A2")

        outcomes = twin.route_all()
        assert list(outcomes) == [conn, second]
        assert all(o.success for o in outcomes.values())
        assert twin.get_stats()["routed_wires"] == 2

    def test_manual_waypoints(self, connected_twin):
        """Test hand-placed waypoints are anchored and skipped by route_all."""
        twin, _, _, conn = connected_twin
        wire_id = twin.get_wire_for_connection(conn).wire_id
        twin.set_wire_waypoints(wire_id, [(0, 0, 0), (0, 30, 0), (40, 30, 0)])

        wire = twin.get_wire_for_connection(conn)
        assert wire.is_user_anchored
        assert wire.routing_method == "manual"
        assert wire.length == pytest.approx(70.0)

        assert twin.route_all() == {}
        assert twin.get_wire_for_connection(conn) == wire

    def test_manual_waypoints_unknown_wire(self, twin):
        """Test setting waypoints on an unknown wire raises."""
        with pytest.raises(UnknownWire):
            twin.set_wire_waypoints("wire_999", [])


# =============================================================================
# Snapshot Tests
# =============================================================================

class TestSnapshots:
    """Tests for export_snapshot / load_snapshot."""

    def test_export_shape(self, connected_twin):
        """Test the snapshot carries every top-level section."""
        twin, _, _, _ = connected_twin
        data = twin.export_snapshot()
        assert data["version"] == SNAPSHOT_VERSION
        assert set(data) == {
            "version", "project", "enclosure", "library", "components", "connections", "wires",
        }
        assert len(data["components"]) == 2

    def test_computed_waypoints_not_persisted(self, connected_twin):
        """Test router output is left out and recomputed on load."""
        twin, _, _, conn = connected_twin
        twin.route_wire(conn)
        routed = twin.get_wire_for_connection(conn)
        data = twin.export_snapshot()
        assert "waypoints" not in data["wires"][0]

        restored = DigitalTwin()
        restored.load_snapshot(data)
        assert not restored.get_wire_for_connection(conn).is_routed

        outcomes = DigitalTwin().load_snapshot(data, reroute=True)
        assert outcomes[conn].success

        rerouted = DigitalTwin()
        rerouted.load_snapshot(data, reroute=True)
        assert rerouted.get_wire_for_connection(conn) == routed

    def test_roundtrip(self, connected_twin):
        """Test loading an export reproduces the design."""
        twin, _, _, _ = connected_twin
        data = twin.export_snapshot()

        restored = DigitalTwin()
        restored.load_snapshot(data)
        assert restored.export_snapshot() == data
        assert_no_dangling(restored)

    def test_anchored_waypoints_persisted(self, connected_twin):
        """Test user-anchored paths survive export and load."""
        twin, _, _, conn = connected_twin
        wire_id = twin.get_wire_for_connection(conn).wire_id
        twin.set_wire_waypoints(wire_id, [(0, 0, 0), (0, 30, 0)])

        restored = DigitalTwin()
        restored.load_snapshot(twin.export_snapshot(), reroute=True)
        wire = restored.get_wire_for_connection(conn)
        assert wire.is_user_anchored
        assert [w.position for w in wire.waypoints] == [Point3D(0, 0, 0), Point3D(0, 30, 0)]

    def test_ids_continue_after_load(self, connected_twin):
        """Test new instances after a load do not reuse existing ids."""
        twin, mcb, _, _ = connected_twin
        restored = DigitalTwin()
        restored.load_snapshot(twin.export_snapshot())
        assert restored.add_component_instance(MCB_ID) != mcb

    def test_missing_wire_recreated(self, connected_twin):
        """Test a connection saved without its wire gets a fresh one."""
        twin, _, _, conn = connected_twin
        data = twin.export_snapshot()
        data["wires"] = []

        restored = DigitalTwin()
        restored.load_snapshot(data)
        assert restored.get_wire_for_connection(conn) is not None
        assert_no_dangling(restored)

    def test_bad_reference_is_atomic(self, connected_twin, library):
        """Test an inconsistent snapshot raises and leaves the store untouched."""
        twin, _, _, _ = connected_twin
        data = twin.export_snapshot()
        data["connections"][0]["to"] = "GHOST_001:A1"

        target = DigitalTwin(library=library)
        target.add_component_instance(TERMINAL_ID)
        before = target.export_snapshot()

        with pytest.raises(SnapshotError):
            target.load_snapshot(data)
        assert target.export_snapshot() == before

    @pytest.mark.parametrize("mutate", [
        lambda d: d.update(version=SNAPSHOT_VERSION + 1),
        lambda d: d.pop("enclosure"),
        lambda d: d["components"].append(dict(d["components"][0])),
        lambda d: d["wires"].append(dict(d["wires"][0], id="wire_extra")),
        lambda d: d["wires"][0].update(connection_id="conn_999"),
        lambda d: d["components"][0].update(definition_id="no-such-part"),
    ])
    def test_invalid_snapshots(self, connected_twin, mutate):
        """Test malformed snapshots raise SnapshotError."""
        twin, _, _, _ = connected_twin
        data = twin.export_snapshot()
        mutate(data)
        with pytest.raises(SnapshotError):
            DigitalTwin().load_snapshot(data)

    def test_not_a_mapping(self):
        """Test non-dict input is rejected."""
        with pytest.raises(SnapshotError):
            DigitalTwin().load_snapshot(["not", "a", "snapshot"])

