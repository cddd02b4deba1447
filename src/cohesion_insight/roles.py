"""Role classification from pluggable role markers.

Markers are ecosystem-specific (decorators, base classes, annotations...).
Front-end adapters extract them and ship a default marker map for their
ecosystem; users extend or override it with ``--role-marker-map``. The
classifier itself knows no concrete marker and never guesses: a unit with no
resolvable marker, or with markers that point at different roles, is
unclassified and reported with a ClassificationAmbiguity.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from .config import load_toml_file
from .exceptions import ClassificationAmbiguity, ConfigError, InvalidMarkerMapError
from .logging_config import get_logger
from .model import Role, StructuralUnit

logger = get_logger(__name__)


class RoleMarkerMap:
    """Immutable marker -> role mapping.

    Lookups are exact first, then case-insensitive.
    """

    def __init__(self, markers: Optional[Mapping[str, Role]] = None) -> None:
        entries = dict(markers or {})
        self._exact: Mapping[str, Role] = MappingProxyType(entries)
        self._folded: Mapping[str, Role] = MappingProxyType(
            {k.lower(): v for k, v in entries.items()}
        )

    def resolve(self, marker: str) -> Optional[Role]:
        role = self._exact.get(marker)
        if role is None:
            role = self._folded.get(marker.lower())
        return role

    def merged(self, other: "RoleMarkerMap") -> "RoleMarkerMap":
        """New map with ``other``'s entries taking precedence."""
        combined = dict(self._exact)
        combined.update(other._exact)
        return RoleMarkerMap(combined)

    def __len__(self) -> int:
        return len(self._exact)

    @classmethod
    def from_names(cls, mapping: Mapping[str, str], source: Path = Path("<inline>")) -> "RoleMarkerMap":
        resolved: dict[str, Role] = {}
        for marker, role_name in mapping.items():
            if not isinstance(role_name, str):
                raise InvalidMarkerMapError(source, f"role for {marker!r} must be a string")
            try:
                role = Role.parse(role_name)
            except ValueError:
                raise InvalidMarkerMapError(source, f"unknown role {role_name!r} for {marker!r}")
            if role is Role.UNCLASSIFIED:
                raise InvalidMarkerMapError(source, f"{marker!r} cannot map to 'unclassified'")
            resolved[marker] = role
        return cls(resolved)


def load_marker_map(path: Path) -> RoleMarkerMap:
    """Read a marker map from TOML (``[markers]`` table) or JSON (flat object).

    Raises:
        InvalidMarkerMapError: If the file is unreadable or malformed
    """
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        else:
            data = load_toml_file(path)
    except ConfigError:
        raise
    except (OSError, ValueError) as e:
        raise InvalidMarkerMapError(path, str(e))

    if not isinstance(data, dict):
        raise InvalidMarkerMapError(path, "expected a table of marker = role entries")
    table = data.get("markers", data)
    if not isinstance(table, dict):
        raise InvalidMarkerMapError(path, "[markers] must be a table")

    marker_map = RoleMarkerMap.from_names(table, source=path)
    logger.debug(f"Loaded {len(marker_map)} role markers from {path}")
    return marker_map


@dataclass(frozen=True)
class Classification:
    unit_id: str
    role: Role
    marker: Optional[str] = None  # the marker that decided the role
    ambiguity: Optional[ClassificationAmbiguity] = None


def classify(unit: StructuralUnit, marker_map: RoleMarkerMap) -> Classification:
    """Resolve a unit's role. A declared role wins over markers."""
    if unit.declared_role is not None and unit.declared_role is not Role.UNCLASSIFIED:
        return Classification(unit.id, unit.declared_role, marker="declared")

    hits: dict[Role, list[str]] = {}
    for marker in unit.markers:
        role = marker_map.resolve(marker)
        if role is not None:
            hits.setdefault(role, []).append(marker)

    if len(hits) == 1:
        role, markers = next(iter(hits.items()))
        return Classification(unit.id, role, marker=markers[0])

    if not hits:
        return Classification(
            unit.id, Role.UNCLASSIFIED, ambiguity=ClassificationAmbiguity(unit.id, unit.markers)
        )

    conflicting = sorted(m for markers in hits.values() for m in markers)
    return Classification(
        unit.id,
        Role.UNCLASSIFIED,
        ambiguity=ClassificationAmbiguity(unit.id, conflicting, conflicting=True),
    )
