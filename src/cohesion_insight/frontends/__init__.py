"""Front-end adapters and their registry."""

from pathlib import Path
from typing import List, Optional, Sequence

from ..roles import RoleMarkerMap
from .base import FrontendAdapter
from .python_ast import PythonFrontend
from .structural_model import StructuralModelFrontend


class FrontendRegistry:
    """Dispatches source files to the adapter that handles them.

    Adapters are tried in registration order; the first that handles a
    path wins, so more specific suffixes should be registered first.
    """

    def __init__(self, adapters: Optional[Sequence[FrontendAdapter]] = None):
        self._adapters: List[FrontendAdapter] = list(adapters or [])

    def for_path(self, path: Path) -> Optional[FrontendAdapter]:
        for adapter in self._adapters:
            if adapter.handles(path):
                return adapter
        return None

    def default_markers(self) -> RoleMarkerMap:
        """Union of every adapter's ecosystem markers."""
        markers = RoleMarkerMap()
        for adapter in self._adapters:
            markers = markers.merged(adapter.default_markers())
        return markers


def default_registry() -> FrontendRegistry:
    return FrontendRegistry([StructuralModelFrontend(), PythonFrontend()])


__all__ = [
    "FrontendAdapter",
    "FrontendRegistry",
    "PythonFrontend",
    "StructuralModelFrontend",
    "default_registry",
]
