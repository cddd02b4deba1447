"""Violations, their ordering, and the pass/fail verdict."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from .cohesion import Component


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: "Severity") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str) -> "Severity":
        return cls(value.strip().lower())


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


class ViolationKind(Enum):
    OVER_LOAD = "OverLoad"
    LOW_COHESION = "LowCohesion"
    DIVERGENT_CHANGE = "DivergentChange"
    SHOTGUN_SURGERY = "ShotgunSurgery"
    UNCLASSIFIED = "Unclassified"
    OVER_EXTRACTED = "OverExtracted"
    SKIPPED_UNIT = "SkippedUnit"
    ANALYSIS_FAILURE = "AnalysisFailure"

    @property
    def config_key(self) -> str:
        """snake_case name used in the ``[severities]`` config table."""
        return re.sub(r"(?<!^)(?=[A-Z])", "_", self.value).lower()

    @classmethod
    def parse(cls, value: str) -> "ViolationKind":
        for kind in cls:
            if value in (kind.value, kind.config_key, kind.name):
                return kind
        raise ValueError(f"Unknown violation kind: {value!r}")


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    unit_id: str
    severity: Severity
    message: str
    method_id: Optional[str] = None
    score: Optional[int] = None
    threshold: Optional[int] = None
    suggested_split: tuple["Component", ...] = ()
    related_units: tuple[str, ...] = ()

    @property
    def sort_key(self) -> tuple:
        return (
            -self.severity.rank,
            self.unit_id,
            self.kind.value,
            self.method_id or "",
            self.message,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON shape; optional keys are omitted when absent."""
        data: dict[str, Any] = {"kind": self.kind.value, "unitId": self.unit_id}
        if self.method_id is not None:
            data["methodId"] = self.method_id
        if self.score is not None:
            data["score"] = self.score
        if self.threshold is not None:
            data["threshold"] = self.threshold
        data["severity"] = self.severity.value
        data["message"] = self.message
        if self.suggested_split:
            data["suggestedSplit"] = [
                {"methods": list(c.methods), "members": list(c.members)}
                for c in self.suggested_split
            ]
        if self.related_units:
            data["relatedUnits"] = list(self.related_units)
        return data


class ViolationAccumulator:
    """Append-only, thread-safe violation sink shared by analysis tasks.

    Insertion order carries no meaning; ``Report`` sorts on the way out.
    """

    def __init__(self) -> None:
        self._items: list[Violation] = []
        self._lock = threading.Lock()

    def add(self, violation: Violation) -> None:
        with self._lock:
            self._items.append(violation)

    def extend(self, violations: Iterable[Violation]) -> None:
        batch = list(violations)
        with self._lock:
            self._items.extend(batch)

    def snapshot(self) -> tuple[Violation, ...]:
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class RunStatus(Enum):
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Report:
    """Merged findings of one run, in deterministic order."""

    violations: tuple[Violation, ...]
    severity_threshold: Severity = Severity.ERROR
    status: RunStatus = RunStatus.COMPLETE
    units_analyzed: int = 0
    units_skipped: int = 0

    @classmethod
    def build(
        cls,
        violations: Iterable[Violation],
        severity_threshold: Severity = Severity.ERROR,
        status: RunStatus = RunStatus.COMPLETE,
        units_analyzed: int = 0,
        units_skipped: int = 0,
    ) -> "Report":
        ordered = tuple(sorted(set(violations), key=lambda v: v.sort_key))
        return cls(
            violations=ordered,
            severity_threshold=severity_threshold,
            status=status,
            units_analyzed=units_analyzed,
            units_skipped=units_skipped,
        )

    @property
    def blocking(self) -> tuple[Violation, ...]:
        """Violations at or above the severity threshold."""
        return tuple(v for v in self.violations if v.severity.at_least(self.severity_threshold))

    @property
    def clean(self) -> bool:
        return not self.blocking

    @property
    def cancelled(self) -> bool:
        return self.status is RunStatus.CANCELLED

    def by_kind(self, kind: ViolationKind) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.kind is kind)

    def counts(self) -> dict[Severity, int]:
        counts = {s: 0 for s in Severity}
        for v in self.violations:
            counts[v.severity] += 1
        return counts

    def to_json_list(self) -> list[dict[str, Any]]:
        return [v.to_dict() for v in self.violations]
