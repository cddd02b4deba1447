"""Responsibility drift: divergent change and shotgun surgery.

Divergent change reads the cohesion partition of a single unit: every
responsibility cluster beyond the first is one reason for the unit to change.

Shotgun surgery is the mirror image across units and needs history the
structural graph does not hold: units that keep changing together without
any structural relationship between them scatter one concept over the code.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from .cochange import CoChangeMatrix
from .cohesion import CohesionRecord
from .model import StructuralGraph
from .report import Violation, ViolationKind

if TYPE_CHECKING:
    from .config import AnalysisConfig


def divergent_change(record: CohesionRecord, config: "AnalysisConfig") -> list[Violation]:
    """One violation per responsibility cluster beyond the first."""
    if not record.fragmented:
        return []

    severity = config.severities.for_kind(ViolationKind.DIVERGENT_CHANGE)
    total = len(record.components)
    primary = record.components[0]
    violations = []
    for index, component in enumerate(record.components[1:], start=2):
        violations.append(
            Violation(
                kind=ViolationKind.DIVERGENT_CHANGE,
                unit_id=record.unit_id,
                severity=severity,
                message=(
                    f"Responsibility cluster {index} of {total} "
                    f"({', '.join(component.methods)} using {', '.join(component.members)}) "
                    f"changes independently of {', '.join(primary.methods)}"
                ),
                suggested_split=(component,),
            )
        )
    return violations


def cochange_edges(
    graph: StructuralGraph, matrix: CoChangeMatrix, config: "AnalysisConfig"
) -> dict[str, set[str]]:
    """Frequent co-change between structurally unrelated units, as adjacency."""
    adjacency: dict[str, set[str]] = {}
    for (a, b), pair in matrix.pairs.items():
        if pair.cochange_count < config.cochange_min_count:
            continue
        if pair.confidence < config.cochange_min_confidence:
            continue
        if graph.related(a, b):
            continue
        adjacency.setdefault(a, set()).add(b)
        adjacency.setdefault(b, set()).add(a)
    return adjacency


def clusters(adjacency: dict[str, set[str]]) -> list[list[str]]:
    """Connected components (BFS), each sorted, in order of their smallest unit."""
    visited: set[str] = set()
    result: list[list[str]] = []
    for start in sorted(adjacency):
        if start in visited:
            continue
        component: list[str] = []
        queue: deque[str] = deque([start])
        visited.add(start)
        while queue:
            node = queue.popleft()
            component.append(node)
            for neighbor in sorted(adjacency.get(node, ())):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        result.append(sorted(component))
    return result


def shotgun_surgery(
    graph: StructuralGraph, matrix: CoChangeMatrix, config: "AnalysisConfig"
) -> list[Violation]:
    severity = config.severities.for_kind(ViolationKind.SHOTGUN_SURGERY)
    violations = []
    for cluster in clusters(cochange_edges(graph, matrix, config)):
        if len(cluster) < config.shotgun_min_units:
            continue
        anchor, others = cluster[0], tuple(cluster[1:])
        violations.append(
            Violation(
                kind=ViolationKind.SHOTGUN_SURGERY,
                unit_id=anchor,
                severity=severity,
                message=(
                    f"{len(cluster)} structurally unrelated units change together: "
                    f"{', '.join(cluster)}"
                ),
                related_units=others,
            )
        )
    return violations
