"""Structural model of the analyzed code.

Ontology:
  StructuralUnit  - class/component, owns its members and methods
  Member          - field of a unit, collaborator or primitive
  Method          - behaviour of a unit, with its load contributions
  LoadContribution - one counted construct inside a method body

The graph is frozen once built for a run. Scores and cohesion records are
derived from it on demand and never stored back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from .exceptions import ErrorCode


class Role(Enum):
    """Architectural role of a unit, which decides its score ceiling."""

    CONTROLLER = "controller"
    DOMAIN_SERVICE = "domain_service"
    APPLICATION_SERVICE = "application_service"
    ENTITY = "entity"
    VALUE_OBJECT = "value_object"
    REPOSITORY = "repository"
    UNCLASSIFIED = "unclassified"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Parse a role name, tolerating case, dashes and spaces."""
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        return cls(normalized)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class ContributionCategory(Enum):
    COLLABORATOR_REFERENCE = "collaborator-reference"
    BRANCH = "branch"
    NESTED_BRANCH = "nested-branch"
    LOOP = "loop"
    TRY = "try"
    CATCH = "catch"
    LAMBDA = "lambda"
    STREAM_STAGE = "stream-stage"


# Categories whose cost doubles when lexically inside a branch or loop
NESTABLE = frozenset(
    {
        ContributionCategory.LOOP,
        ContributionCategory.TRY,
        ContributionCategory.CATCH,
    }
)


@dataclass(frozen=True)
class LoadContribution:
    """One counted construct inside a method body.

    Base points are always 1. A nested branch, or a loop/try/catch nested
    inside a branch or loop, costs one extra point.
    """

    category: ContributionCategory
    nested: bool = False
    member_id: Optional[str] = None  # collaborator references only
    chain_id: Optional[int] = None  # stream stages only
    line: Optional[int] = None

    @property
    def points(self) -> int:
        if self.category is ContributionCategory.NESTED_BRANCH:
            return 2
        if self.nested and self.category in NESTABLE:
            return 2
        return 1


@dataclass(frozen=True)
class Member:
    id: str
    type_descriptor: str = ""
    is_collaborator: bool = False
    type_name: Optional[str] = None  # custom type named by the descriptor, unresolved
    resolved_unit: Optional[str] = None  # unit id the type resolves to, if any


@dataclass(frozen=True)
class Method:
    id: str
    unit_id: str  # non-owning back reference
    referenced_members: frozenset[str] = frozenset()
    contributions: tuple[LoadContribution, ...] = ()
    called_units: frozenset[str] = frozenset()
    line: Optional[int] = None


@dataclass(frozen=True)
class StructuralUnit:
    id: str
    source: str
    members: tuple[Member, ...] = ()
    methods: tuple[Method, ...] = ()
    markers: tuple[str, ...] = ()
    declared_role: Optional[Role] = None
    line: Optional[int] = None

    @property
    def member_ids(self) -> frozenset[str]:
        return frozenset(m.id for m in self.members)

    @property
    def collaborators(self) -> tuple[Member, ...]:
        return tuple(m for m in self.members if m.is_collaborator)

    def member(self, member_id: str) -> Optional[Member]:
        for m in self.members:
            if m.id == member_id:
                return m
        return None

    @property
    def simple_name(self) -> str:
        return self.id.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class SkippedUnit:
    """A source unit the builder could not turn into structure."""

    source: str
    reason: str
    code: ErrorCode = ErrorCode.CI101


@dataclass(frozen=True)
class StructuralGraph:
    """All units of one analysis run, sorted by id."""

    units: tuple[StructuralUnit, ...] = ()
    skipped: tuple[SkippedUnit, ...] = ()
    cancelled: bool = False
    _index: Mapping[str, StructuralUnit] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", MappingProxyType({u.id: u for u in self.units}))

    def __iter__(self) -> Iterator[StructuralUnit]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)

    def unit(self, unit_id: str) -> Optional[StructuralUnit]:
        return self._index.get(unit_id)

    def dependencies(self, unit_id: str) -> frozenset[str]:
        """Unit ids this unit depends on through member types or calls."""
        unit = self._index.get(unit_id)
        if unit is None:
            return frozenset()
        deps: set[str] = {m.resolved_unit for m in unit.members if m.resolved_unit}
        for method in unit.methods:
            deps.update(method.called_units)
        deps.discard(unit_id)
        return frozenset(d for d in deps if d in self._index)

    def related(self, a: str, b: str) -> bool:
        """Do the two units share a structural relationship in either direction?"""
        return b in self.dependencies(a) or a in self.dependencies(b)
