"""Component catalog loading."""

from .loader import ComponentLibrary, DEFAULT_LIBRARY_PATH

__all__ = ["ComponentLibrary", "DEFAULT_LIBRARY_PATH"]
