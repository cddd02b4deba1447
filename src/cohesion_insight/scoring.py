"""Cognitive load scoring.

score(method) = sum of contribution points, with two deduplications:
  - a collaborator member counts once per method, however often it is used
  - under the "per_chain" stream policy, a stream pipeline counts once

Aggregation depends on the role: controllers, services and repositories are
judged method by method; entities and value objects on the aggregate of all
their methods (sum by default, max as the alternative policy).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Literal, Optional

from .model import ContributionCategory, Method, Role, StructuralUnit

Aggregation = Literal["per_method", "sum", "max"]

PER_METHOD_ROLES = frozenset(
    {
        Role.CONTROLLER,
        Role.DOMAIN_SERVICE,
        Role.APPLICATION_SERVICE,
        Role.REPOSITORY,
    }
)
AGGREGATE_ROLES = frozenset({Role.ENTITY, Role.VALUE_OBJECT})


@dataclass(frozen=True)
class MethodScore:
    unit_id: str
    method_id: str
    score: int
    breakdown: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class UnitScore:
    unit_id: str
    role: Role
    aggregation: Aggregation
    methods: tuple[MethodScore, ...]

    @property
    def total(self) -> int:
        return sum(m.score for m in self.methods)

    @property
    def aggregate(self) -> int:
        """The value compared against the ceiling for aggregate roles."""
        if self.aggregation == "max":
            return max((m.score for m in self.methods), default=0)
        return self.total


def _counted(method: Method, stream_policy: str):
    """Yield the contributions that survive deduplication."""
    seen_members: set[str] = set()
    seen_chains: set[int] = set()
    for c in method.contributions:
        if c.category is ContributionCategory.COLLABORATOR_REFERENCE and c.member_id:
            if c.member_id in seen_members:
                continue
            seen_members.add(c.member_id)
        elif (
            c.category is ContributionCategory.STREAM_STAGE
            and stream_policy == "per_chain"
            and c.chain_id is not None
        ):
            if c.chain_id in seen_chains:
                continue
            seen_chains.add(c.chain_id)
        yield c


def score_method(method: Method, stream_policy: str = "per_stage") -> int:
    """Cognitive load of one method. Zero contributions score 0."""
    return sum(c.points for c in _counted(method, stream_policy))


def breakdown(method: Method, stream_policy: str = "per_stage") -> dict[str, int]:
    """Points per category, for explanations in the report."""
    points: Counter[str] = Counter()
    for c in _counted(method, stream_policy):
        points[c.category.value] += c.points
    return dict(sorted(points.items()))


def aggregation_for(role: Role, entity_aggregation: str = "sum") -> Aggregation:
    if role in PER_METHOD_ROLES:
        return "per_method"
    if role in AGGREGATE_ROLES:
        return "max" if entity_aggregation == "max" else "sum"
    return "sum"


def score_unit(
    unit: StructuralUnit,
    role: Role,
    stream_policy: str = "per_stage",
    entity_aggregation: str = "sum",
) -> UnitScore:
    methods = tuple(
        MethodScore(
            unit_id=unit.id,
            method_id=m.id,
            score=score_method(m, stream_policy),
            breakdown=tuple(breakdown(m, stream_policy).items()),
        )
        for m in unit.methods
    )
    return UnitScore(
        unit_id=unit.id,
        role=role,
        aggregation=aggregation_for(role, entity_aggregation),
        methods=methods,
    )


def over_ceiling(unit_score: UnitScore, ceiling: Optional[int]) -> list[MethodScore]:
    """Method scores above the ceiling, for per-method roles."""
    if ceiling is None or unit_score.aggregation != "per_method":
        return []
    return [m for m in unit_score.methods if m.score > ceiling]


def describe_breakdown(score: MethodScore) -> str:
    if not score.breakdown:
        return "no contributions"
    return ", ".join(f"{category} {points}" for category, points in score.breakdown)
