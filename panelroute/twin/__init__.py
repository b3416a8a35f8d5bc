"""Digital twin: authoritative design state plus persistence."""

from .manager import (
    SNAPSHOT_VERSION,
    DigitalTwin,
    RemovalResult,
    RouteOutcome,
)
from .project_file import load_project, read_project_file, write_project_file

__all__ = [
    "SNAPSHOT_VERSION",
    "DigitalTwin",
    "RemovalResult",
    "RouteOutcome",
    "load_project",
    "read_project_file",
    "write_project_file",
]
