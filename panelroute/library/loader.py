"""
Component Library Loader

Loads catalog definitions from component_library.yaml by default, but
allows users to provide custom catalog files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml

from ..errors import LibraryError
from ..model.entities import ComponentDefinition, ComponentType

logger = logging.getLogger(__name__)

DEFAULT_LIBRARY_PATH = Path(__file__).parent / "component_library.yaml"


class ComponentLibrary:
    """Catalog of immutable component definitions keyed by id."""

    def __init__(self, definitions: Optional[List[ComponentDefinition]] = None):
        self._definitions: Dict[str, ComponentDefinition] = {}
        for definition in definitions or []:
            self.add(definition)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ComponentLibrary":
        """
        Load a catalog from YAML.

        Args:
            path: Optional catalog file. If None, uses the built-in
                  component_library.yaml.

        Returns:
            ComponentLibrary with every entry validated
        """
        library_path = Path(path) if path is not None else DEFAULT_LIBRARY_PATH

        if not library_path.exists():
            raise LibraryError(f"Component library not found: {library_path}")

        # Security: Check for symlinks to prevent reading unintended files
        if library_path.is_symlink():
            raise LibraryError(f"Component library cannot be a symlink: {library_path}")

        with open(library_path, "r") as f:
            data = yaml.safe_load(f) or {}

        if "components" not in data:
            raise LibraryError(f"Library file missing 'components' section: {library_path}")

        library = cls.from_list(data["components"])
        logger.debug(f"Loaded {len(library)} component definitions from {library_path}")
        return library

    @classmethod
    def from_list(cls, entries: List[Dict[str, Any]]) -> "ComponentLibrary":
        library = cls()
        for entry in entries:
            try:
                definition = ComponentDefinition.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                entry_id = entry.get("id", "?") if isinstance(entry, dict) else "?"
                raise LibraryError(f"Invalid library entry {entry_id!r}: {e}") from e
            library.add(definition)
        return library

    def add(self, definition: ComponentDefinition):
        """Register a definition; ids must be unique."""
        existing = self._definitions.get(definition.id)
        if existing is not None and existing != definition:
            raise LibraryError(f"Conflicting definition for id {definition.id!r}")
        self._definitions[definition.id] = definition

    def get(self, definition_id: str) -> Optional[ComponentDefinition]:
        return self._definitions.get(definition_id)

    def __getitem__(self, definition_id: str) -> ComponentDefinition:
        try:
            return self._definitions[definition_id]
        except KeyError:
            raise LibraryError(f"Unknown component definition: {definition_id}") from None

    def __contains__(self, definition_id: str) -> bool:
        return definition_id in self._definitions

    def __iter__(self) -> Iterator[ComponentDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def by_type(self, component_type: ComponentType) -> List[ComponentDefinition]:
        """Get all definitions of a component type."""
        return [d for d in self._definitions.values() if d.component_type == component_type]

    def as_dict(self) -> Dict[str, ComponentDefinition]:
        return dict(self._definitions)

    def to_list(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self._definitions.values()]
