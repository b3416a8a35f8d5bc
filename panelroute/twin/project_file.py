"""
Project File Handler

Reads and writes DigitalTwin snapshots to disk. YAML is the default format;
a ``.json`` suffix selects JSON instead.

Example project file:
```yaml
version: 1
project:
  id: pump-station-a
  name: Pump Station A
enclosure:
  width: 800.0
  height: 600.0
  depth: 200.0
  ...
components:
  - instance_id: MCB_001
    definition_id: siemens-5sy6-116-7
    label: MCB 1
    placed: true
    ...
connections:
  - id: conn_001
    from: MCB_001:OUT
    to: RELAY_001:A1
    wire_type: POWER
```
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..config import RoutingDefaults
from ..errors import SnapshotError
from ..library.loader import ComponentLibrary
from .manager import DigitalTwin

logger = logging.getLogger(__name__)


def _is_json(path: Path) -> bool:
    return path.suffix.lower() == ".json"


def read_project_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a project file into a snapshot dictionary.

    Raises:
        SnapshotError: File missing or not parseable
    """
    path = Path(path)
    if not path.exists():
        raise SnapshotError(f"Project file not found: {path}")

    content = path.read_text()
    try:
        if _is_json(path):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SnapshotError(f"Failed to parse project file {path}: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotError(f"Project file must contain a mapping: {path}")
    logger.debug(f"Read project file: {path}")
    return data


def write_project_file(
    twin: DigitalTwin,
    path: Union[str, Path],
    include_computed_waypoints: bool = False,
) -> Path:
    """
    Write the twin's snapshot to a project file.

    Args:
        twin: Design to save
        path: Destination; ``.json`` writes JSON, anything else YAML
        include_computed_waypoints: Also store router-computed paths

    Returns:
        The path written
    """
    path = Path(path)
    data = twin.export_snapshot(include_computed_waypoints=include_computed_waypoints)

    if _is_json(path):
        content = json.dumps(data, indent=2)
    else:
        content = yaml.dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    path.write_text(content)
    logger.info(
        f"Saved project file: {path} ({len(data['components'])} components, "
        f"{len(data['connections'])} connections)"
    )
    return path


def load_project(
    path: Union[str, Path],
    reroute: bool = True,
    defaults: Optional[RoutingDefaults] = None,
) -> DigitalTwin:
    """Read a project file into a new DigitalTwin."""
    twin = DigitalTwin(library=ComponentLibrary(), defaults=defaults)
    twin.load_snapshot(read_project_file(path), reroute=reroute)
    return twin
