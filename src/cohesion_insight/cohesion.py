"""Member/method cohesion of a unit.

The usage graph is bipartite: collaborator members on one side, methods on
the other, an edge wherever a method references a member. It is computed once
per unit and shared read-only with the drift detector.

    cohesion ratio = mean over methods of (members referenced / N)

A unit whose usage graph falls apart into several connected components holds
several disjoint responsibilities; each component is one extraction boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import numpy as np
from scipy.sparse import bmat, csr_matrix
from scipy.sparse.csgraph import connected_components

from .model import StructuralUnit
from .report import Violation, ViolationKind

if TYPE_CHECKING:
    from .config import AnalysisConfig


@dataclass(frozen=True)
class Component:
    """One responsibility cluster: methods and the members only they touch."""

    methods: tuple[str, ...]
    members: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.methods) + len(self.members)


@dataclass(frozen=True, eq=False)
class CohesionRecord:
    """Read-only usage snapshot of one unit.

    ``usage[i, j]`` is True when method ``methods[i]`` references collaborator
    member ``members[j]``.
    """

    unit_id: str
    methods: tuple[str, ...]
    members: tuple[str, ...]
    usage: np.ndarray
    ratio: float
    components: tuple[Component, ...]

    @property
    def fragmented(self) -> bool:
        return len(self.components) >= 2


def usage_matrix(unit: StructuralUnit) -> tuple[tuple[str, ...], tuple[str, ...], np.ndarray]:
    methods = tuple(m.id for m in unit.methods)
    members = tuple(m.id for m in unit.collaborators)
    column = {member_id: j for j, member_id in enumerate(members)}

    usage = np.zeros((len(methods), len(members)), dtype=bool)
    for i, method in enumerate(unit.methods):
        for ref in method.referenced_members:
            j = column.get(ref)
            if j is not None:
                usage[i, j] = True
    usage.setflags(write=False)
    return methods, members, usage


def cohesion_ratio(usage: np.ndarray) -> float:
    """Mean fraction of collaborators used per method; 1.0 when undefined."""
    n_methods, n_members = usage.shape
    if n_methods == 0 or n_members == 0:
        return 1.0
    return float(usage.sum(axis=1).mean() / n_members)


def partition(
    usage: np.ndarray, methods: tuple[str, ...], members: tuple[str, ...]
) -> tuple[Component, ...]:
    """Connected components of the bipartite usage graph.

    Methods that touch no collaborator and members no method uses carry no
    responsibility signal and are left out. Components are ordered by size
    (largest first), then by their first method's position in the unit.
    """
    active_rows = np.flatnonzero(usage.any(axis=1))
    active_cols = np.flatnonzero(usage.any(axis=0))
    if active_rows.size == 0:
        return ()

    sub = csr_matrix(usage[np.ix_(active_rows, active_cols)].astype(np.int8))
    graph = bmat([[None, sub], [sub.T, None]], format="csr")
    n_components, labels = connected_components(graph, directed=False)

    n_rows = active_rows.size
    grouped: dict[int, tuple[list[int], list[int]]] = {
        label: ([], []) for label in range(n_components)
    }
    for k, label in enumerate(labels):
        if k < n_rows:
            grouped[label][0].append(int(active_rows[k]))
        else:
            grouped[label][1].append(int(active_cols[k - n_rows]))

    ordered = sorted(grouped.values(), key=lambda g: (-(len(g[0]) + len(g[1])), min(g[0])))
    return tuple(
        Component(
            methods=tuple(methods[i] for i in sorted(rows)),
            members=tuple(members[j] for j in sorted(cols)),
        )
        for rows, cols in ordered
    )


def analyze_cohesion(unit: StructuralUnit) -> CohesionRecord:
    methods, members, usage = usage_matrix(unit)
    return CohesionRecord(
        unit_id=unit.id,
        methods=methods,
        members=members,
        usage=usage,
        ratio=cohesion_ratio(usage),
        components=partition(usage, methods, members),
    )


def low_cohesion(record: CohesionRecord, config: "AnalysisConfig") -> Optional[Violation]:
    """At most one LowCohesion violation per unit."""
    if not record.members or len(record.methods) < config.cohesion_min_methods:
        return None

    below_floor = record.ratio < config.cohesion_floor
    if not record.fragmented and not below_floor:
        return None

    reasons = []
    if record.fragmented:
        reasons.append(f"splits into {len(record.components)} disjoint member-usage groups")
    if below_floor:
        reasons.append(
            f"cohesion ratio {record.ratio:.2f} is below the floor {config.cohesion_floor:.2f}"
        )

    return Violation(
        kind=ViolationKind.LOW_COHESION,
        unit_id=record.unit_id,
        severity=config.severities.for_kind(ViolationKind.LOW_COHESION),
        message=f"{record.unit_id} {' and '.join(reasons)}",
        suggested_split=record.components if record.fragmented else (),
    )
