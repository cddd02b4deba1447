"""Co-change history: records of coordinated edits across units.

The history is external to the structural model. A source supplies records
``{unit, timestamp}``; records close together in time are one coordinated
edit. From those edits a sparse pair matrix is built, the same way a commit
history yields file co-change pairs.
"""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import combinations
from pathlib import Path
from typing import Any, Iterable, Optional

from .cancellation import CancellationToken
from .exceptions import CoChangeSourceError
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CoChangeRecord:
    unit: str
    timestamp: float  # unix seconds


@dataclass(frozen=True)
class CoChangeEdit:
    bucket: int  # position in time order
    units: frozenset[str]


@dataclass(frozen=True)
class CoChangePair:
    unit_a: str
    unit_b: str
    cochange_count: int  # edits touching both
    total_a: int  # edits touching unit_a
    total_b: int  # edits touching unit_b

    @property
    def confidence_a_b(self) -> float:
        """P(B changed | A changed)"""
        return self.cochange_count / self.total_a if self.total_a else 0.0

    @property
    def confidence_b_a(self) -> float:
        """P(A changed | B changed)"""
        return self.cochange_count / self.total_b if self.total_b else 0.0

    @property
    def confidence(self) -> float:
        return max(self.confidence_a_b, self.confidence_b_a)


@dataclass(frozen=True)
class CoChangeMatrix:
    pairs: dict[tuple[str, str], CoChangePair]  # sparse, keys sorted (a < b)
    total_edits: int
    unit_change_counts: dict[str, int]


class CoChangeSource(ABC):
    """Supplier of co-change records. Implementations may do I/O."""

    name: str = "co-change source"

    @abstractmethod
    def fetch(self, token: Optional[CancellationToken] = None) -> list[CoChangeRecord]:
        """Return all records; stop early and return what was read if cancelled."""


class NdjsonCoChangeSource(CoChangeSource):
    """Newline-delimited JSON file, one ``{"unit": ..., "timestamp": ...}`` per line.

    Timestamps may be unix seconds or ISO-8601 strings. Malformed lines are
    skipped with a warning.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.name = str(path)
        self.malformed_lines = 0

    def fetch(self, token: Optional[CancellationToken] = None) -> list[CoChangeRecord]:
        records: list[CoChangeRecord] = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    if token is not None and token.cancelled:
                        logger.debug(f"Co-change fetch cancelled at line {lineno}")
                        break
                    line = line.strip()
                    if not line:
                        continue
                    record = self._parse_line(line, lineno)
                    if record is not None:
                        records.append(record)
        except (OSError, UnicodeDecodeError) as e:
            raise CoChangeSourceError(self.name, str(e))

        if self.malformed_lines:
            logger.warning(f"Skipped {self.malformed_lines} malformed co-change records in {self.path}")
        return records

    def _parse_line(self, line: str, lineno: int) -> Optional[CoChangeRecord]:
        try:
            data = json.loads(line)
            unit = data["unit"]
            if not isinstance(unit, str) or not unit:
                raise ValueError("unit must be a non-empty string")
            return CoChangeRecord(unit=unit, timestamp=parse_timestamp(data["timestamp"]))
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            self.malformed_lines += 1
            logger.debug(f"{self.path}:{lineno}: malformed co-change record: {e}")
            return None


class StaticCoChangeSource(CoChangeSource):
    """In-memory records, for library callers that already hold the history."""

    name = "in-memory co-change records"

    def __init__(self, records: Iterable[CoChangeRecord]):
        self._records = list(records)

    def fetch(self, token: Optional[CancellationToken] = None) -> list[CoChangeRecord]:
        return list(self._records)


def parse_timestamp(value: Any) -> float:
    """Unix seconds from a number, numeric string, or ISO-8601 string.

    Raises:
        ValueError: If the value is not a finite point in time
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            pass
        else:
            return _finite(seconds)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.timestamp()
    raise ValueError(f"invalid timestamp: {value!r}")


def _finite(value: Any) -> float:
    try:
        seconds = float(value)
    except OverflowError:
        raise ValueError(f"timestamp out of range: {value!r}")
    if not math.isfinite(seconds):
        raise ValueError(f"timestamp out of range: {value!r}")
    return seconds


def group_edits(records: Iterable[CoChangeRecord], window_seconds: int = 0) -> list[CoChangeEdit]:
    """Group records into coordinated edits.

    Records are taken in time order. An edit opens at its first record and
    takes every record less than ``window_seconds`` later; with a zero window,
    only identical timestamps belong to one edit.
    """
    edits: list[CoChangeEdit] = []
    start: Optional[float] = None
    units: set[str] = set()
    for record in sorted(records, key=lambda r: (r.timestamp, r.unit)):
        if start is not None:
            elapsed = record.timestamp - start
            same_edit = elapsed < window_seconds if window_seconds > 0 else elapsed == 0
            if not same_edit:
                edits.append(CoChangeEdit(bucket=len(edits), units=frozenset(units)))
                units = set()
                start = None
        if start is None:
            start = record.timestamp
        units.add(record.unit)
    if units:
        edits.append(CoChangeEdit(bucket=len(edits), units=frozenset(units)))
    return edits


def build_cochange_matrix(
    edits: Iterable[CoChangeEdit],
    analyzed_units: set[str],
    min_cochanges: int = 2,
    max_units_per_edit: int = 30,
) -> CoChangeMatrix:
    """Build sparse co-change matrix from coordinated edits.

    Only includes:
    - Units present in the structural graph
    - Pairs with cochange_count >= min_cochanges (filter noise)
    - Edits touching <= max_units_per_edit units (filter bulk changes)
    """
    unit_change_counts: dict[str, int] = defaultdict(int)
    pair_counts: dict[tuple[str, str], int] = defaultdict(int)
    total_edits = 0

    for edit in edits:
        relevant = sorted(u for u in edit.units if u in analyzed_units)
        if not relevant or len(relevant) > max_units_per_edit:
            continue
        total_edits += 1

        for unit in relevant:
            unit_change_counts[unit] += 1
        for a, b in combinations(relevant, 2):
            pair_counts[(a, b)] += 1

    pairs: dict[tuple[str, str], CoChangePair] = {}
    for (a, b), count in sorted(pair_counts.items()):
        if count < min_cochanges:
            continue
        pairs[(a, b)] = CoChangePair(
            unit_a=a,
            unit_b=b,
            cochange_count=count,
            total_a=unit_change_counts[a],
            total_b=unit_change_counts[b],
        )

    return CoChangeMatrix(
        pairs=pairs,
        total_edits=total_edits,
        unit_change_counts=dict(unit_change_counts),
    )
