"""Front-end adapter interface.

A front-end turns one source file of its ecosystem into structural units and
knows which role markers that ecosystem uses. Concrete parsing never leaks
past this boundary: the rest of the engine sees only the structural model.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Tuple

from ..model import StructuralUnit
from ..roles import RoleMarkerMap


class FrontendAdapter(ABC):
    """Abstract base class for per-ecosystem front-ends."""

    name: str = "frontend"
    suffixes: Tuple[str, ...] = ()

    def handles(self, path: Path) -> bool:
        name = path.name.lower()
        return any(name.endswith(suffix) for suffix in self.suffixes)

    @abstractmethod
    def parse(self, content: str, rel_path: str) -> List[StructuralUnit]:
        """Parse one source file.

        Raises:
            ParseError: If the content cannot be turned into structure
        """

    def default_markers(self) -> RoleMarkerMap:
        """Role markers conventional in this ecosystem."""
        return RoleMarkerMap()
