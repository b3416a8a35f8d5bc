"""Routing and placement defaults.

Loads settings from ``defaults.yaml`` next to this module, or from a user
supplied file. Missing keys fall back to the built-in values so a custom
file only needs to list what it changes.
"""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .geometry import DEFAULT_MODULE_WIDTH, DEFAULT_SNAP_TOLERANCE
from .model.entities import Enclosure, WireType

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_BUILTIN: Dict[str, Any] = {
    "grid": {
        "resolution_mm": 10.0,
        "clearance_mm": 5.0,
        "max_expansions": 250000,
    },
    "rails": {
        "module_width_mm": DEFAULT_MODULE_WIDTH,
        "snap_tolerance_mm": DEFAULT_SNAP_TOLERANCE,
    },
    "wire_styles": {
        "POWER": {"color": "#FF0000", "thickness": 2.0},
        "SIGNAL": {"color": "#0000FF", "thickness": 2.0},
        "GROUND": {"color": "#00FF00", "thickness": 2.0},
    },
    "enclosure": {
        "width": 800.0,
        "height": 600.0,
        "depth": 200.0,
        "origin": {"x": -400.0, "y": 0.0, "z": -100.0},
        "rails": [],
    },
}


@dataclass(frozen=True)
class WireStyle:
    """Rendering attributes assigned to new wires."""
    color: str
    thickness: float


@dataclass
class RoutingDefaults:
    """Resolved default settings."""
    resolution: float = 10.0
    clearance: float = 5.0
    max_expansions: int = 250000
    module_width: float = DEFAULT_MODULE_WIDTH
    snap_tolerance: float = DEFAULT_SNAP_TOLERANCE
    wire_styles: Dict[WireType, WireStyle] = field(default_factory=dict)
    enclosure_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "RoutingDefaults":
        """
        Load defaults from YAML.

        Args:
            path: Optional custom settings file. If None, uses defaults.yaml.

        Returns:
            RoutingDefaults with every wire type styled
        """
        config_path = Path(path) if path is not None else DEFAULTS_PATH
        data = copy.deepcopy(_BUILTIN)

        if config_path.exists():
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Settings file must contain a mapping: {config_path}")
            _merge(data, loaded)
            logger.debug(f"Loaded routing defaults from {config_path}")
        elif path is not None:
            raise FileNotFoundError(f"Settings file not found: {config_path}")
        else:
            logger.warning(f"Defaults file not found at {config_path}, using built-in values")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingDefaults":
        grid = data.get("grid", {})
        rails = data.get("rails", {})
        styles_data = data.get("wire_styles", {})

        missing = [wt.value for wt in WireType if wt.value not in styles_data]
        if missing:
            raise ValueError(f"wire_styles missing entries for: {missing}")
        styles = {
            wt: WireStyle(
                color=str(styles_data[wt.value]["color"]),
                thickness=float(styles_data[wt.value]["thickness"]),
            )
            for wt in WireType
        }

        return cls(
            resolution=float(grid.get("resolution_mm", 10.0)),
            clearance=float(grid.get("clearance_mm", 5.0)),
            max_expansions=int(grid.get("max_expansions", 250000)),
            module_width=float(rails.get("module_width_mm", DEFAULT_MODULE_WIDTH)),
            snap_tolerance=float(rails.get("snap_tolerance_mm", DEFAULT_SNAP_TOLERANCE)),
            wire_styles=styles,
            enclosure_data=data.get("enclosure", {}),
        )

    def wire_style(self, wire_type: WireType) -> WireStyle:
        return self.wire_styles[wire_type]

    def default_enclosure(self) -> Enclosure:
        """Build a fresh Enclosure from the configured panel."""
        enclosure = Enclosure.from_dict(self.enclosure_data)
        enclosure.validate()
        return enclosure


def _merge(base: Dict[str, Any], override: Dict[str, Any]):
    """Recursively merge override into base (lists are replaced)."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


_defaults: Optional[RoutingDefaults] = None


def get_defaults() -> RoutingDefaults:
    """Get the shared defaults loaded from the packaged defaults.yaml."""
    global _defaults
    if _defaults is None:
        _defaults = RoutingDefaults.load()
    return _defaults
