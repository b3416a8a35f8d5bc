"""
Shared test fixtures for PanelRoute tests.

Provides catalog, enclosure, grid and digital twin fixtures used across
the routing, placement and state manager tests.
"""

import pytest

from panelroute.config import RoutingDefaults
from panelroute.geometry import Point3D, RailOrientation
from panelroute.library.loader import ComponentLibrary
from panelroute.model.entities import (
    ComponentDefinition,
    ComponentInstance,
    ComponentType,
    Enclosure,
    LogicalPin,
    MountingRail,
    PinType,
)
from panelroute.routing.occupancy_grid import OccupancyGrid
from panelroute.twin.manager import DigitalTwin


MCB_ID = "siemens-5sy6-116-7"
RELAY_ID = "finder-55-34-8-230"
TERMINAL_ID = "wago-280-901"


@pytest.fixture
def library() -> ComponentLibrary:
    """The built-in component catalog."""
    return ComponentLibrary.load()


@pytest.fixture
def defaults() -> RoutingDefaults:
    """Defaults loaded from the packaged defaults.yaml."""
    return RoutingDefaults.load()


@pytest.fixture
def block_definition() -> ComponentDefinition:
    """A 20mm cube with one pin on its left face and one on its right."""
    return ComponentDefinition(
        id="test-block",
        component_type=ComponentType.TERMINAL,
        width=20.0,
        height=20.0,
        depth=20.0,
        pins=(
            LogicalPin("IN", PinType.INPUT, (0.0, 0.5)),
            LogicalPin("OUT", PinType.OUTPUT, (1.0, 0.5)),
        ),
    )


@pytest.fixture
def cube_enclosure() -> Enclosure:
    """A 100mm cube enclosure at the world origin, no rails."""
    return Enclosure(width=100.0, height=100.0, depth=100.0)


@pytest.fixture
def placed_block(block_definition) -> ComponentInstance:
    """A test block placed in the middle of the cube enclosure."""
    instance = ComponentInstance(
        instance_id="BLOCK_001",
        definition=block_definition,
        label="TERMINAL 1",
    )
    instance.move_to(Point3D(40.0, 40.0, 40.0))
    instance.is_physically_placed = True
    return instance


@pytest.fixture
def empty_grid() -> OccupancyGrid:
    """A free 10x10x10 grid with 1mm cells at the origin."""
    return OccupancyGrid(10, 10, 10, 1.0)


@pytest.fixture
def rails():
    """Two horizontal rails 20mm apart plus one vertical rail."""
    return [
        MountingRail("rail-a", Point3D(0.0, 100.0, 0.0), 500.0),
        MountingRail("rail-b", Point3D(0.0, 120.0, 0.0), 500.0),
        MountingRail("rail-v", Point3D(600.0, 0.0, 0.0), 300.0, RailOrientation.VERTICAL),
    ]


@pytest.fixture
def twin(library, defaults) -> DigitalTwin:
    """An empty twin on the default 800x600x200 panel."""
    return DigitalTwin(library=library, defaults=defaults)


@pytest.fixture
def placed_twin(twin):
    """
    Twin with an MCB and a relay side by side on the top rail.

    Returns:
        Tuple of (twin, mcb_id, relay_id)
    """
    mcb = twin.add_component_instance(MCB_ID, (100.0, 40.0))
    relay = twin.add_component_instance(RELAY_ID, (200.0, 40.0))
    twin.place_component(mcb, Point3D(-350.0, 200.0, -50.0))
    twin.place_component(relay, Point3D(-280.0, 200.0, -50.0))
    return twin, mcb, relay
