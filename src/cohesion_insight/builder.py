"""SourceModelBuilder: turns source paths into a frozen StructuralGraph.

Usage:
    builder = SourceModelBuilder(config)
    graph = builder.build([Path("src")])

Files are parsed in a thread pool by the front-end registered for their
suffix. Unreadable or unparseable files become SkippedUnits; the run goes on.
After the barrier, member types and call targets are resolved against the
assembled graph.
"""

from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from fnmatch import fnmatch
from pathlib import Path
from threading import Lock
from typing import Iterable, Iterator, Optional, Sequence

from .cancellation import CancellationToken
from .config import DEFAULT_CONFIG, AnalysisConfig
from .exceptions import (
    AnalysisInvariantViolation,
    ErrorCode,
    InvalidPathError,
    ParseError,
)
from .frontends import FrontendAdapter, FrontendRegistry, default_registry
from .logging_config import get_logger
from .model import (
    ContributionCategory,
    Method,
    SkippedUnit,
    StructuralGraph,
    StructuralUnit,
)

logger = get_logger(__name__)

# CPU count, capped at 8 to avoid overwhelming I/O
_DEFAULT_WORKERS = min(os.cpu_count() or 4, 8)


def default_workers() -> int:
    return _DEFAULT_WORKERS


class _ParseCollector:
    """Append-only sink shared by the parse tasks."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.units: list[StructuralUnit] = []
        self.skipped: list[SkippedUnit] = []

    def add_units(self, units: Iterable[StructuralUnit]) -> None:
        with self._lock:
            self.units.extend(units)

    def skip(self, skipped: SkippedUnit) -> None:
        with self._lock:
            self.skipped.append(skipped)


class SourceModelBuilder:
    """Builds the structural graph for one analysis run."""

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        registry: Optional[FrontendRegistry] = None,
    ) -> None:
        self.config = config
        self.registry = registry or default_registry()
        self._max_workers = config.workers or _DEFAULT_WORKERS

    def build(
        self, paths: Sequence[Path], token: Optional[CancellationToken] = None
    ) -> StructuralGraph:
        """Parse every source under ``paths``.

        Raises:
            InvalidPathError: If an input path does not exist
        """
        start = time.perf_counter()
        sources = list(self.discover(paths))
        logger.debug(f"Discovered {len(sources)} source files")

        collector = _ParseCollector()
        cancelled = self._parse_all(sources, collector, token)

        units, duplicates = _drop_duplicates(collector.units)
        skipped = sorted(
            collector.skipped + duplicates, key=lambda s: (s.source, s.code.value, s.reason)
        )
        for s in duplicates:
            logger.warning(f"Skipped {s.source}: {s.reason}")

        graph = StructuralGraph(
            units=tuple(sorted(resolve_types(units), key=lambda u: u.id)),
            skipped=tuple(skipped),
            cancelled=cancelled,
        )
        logger.debug(
            f"Built graph of {len(graph)} units ({len(graph.skipped)} skipped) "
            f"in {time.perf_counter() - start:.2f}s"
        )
        return graph

    def discover(self, paths: Sequence[Path]) -> Iterator[tuple[Path, str, FrontendAdapter]]:
        """Yield ``(file, relative path, adapter)`` for every handled source."""
        for raw in paths:
            path = Path(raw)
            if not path.exists():
                raise InvalidPathError(path, "path does not exist")
            if path.is_file():
                adapter = self.registry.for_path(path)
                if adapter is not None:
                    yield path, path.name, adapter
                continue
            if not path.is_dir():
                raise InvalidPathError(path, "not a file or directory")
            yield from self._walk(path)

    def _walk(self, root: Path) -> Iterator[tuple[Path, str, FrontendAdapter]]:
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".") and not self._excluded((rel_dir / d).parts + ("",))
            )
            for filename in sorted(filenames):
                rel = rel_dir / filename
                if self._excluded(rel.parts):
                    logger.debug(f"Skipped (pattern): {rel}")
                    continue
                file_path = Path(dirpath) / filename
                adapter = self.registry.for_path(file_path)
                if adapter is not None:
                    yield file_path, rel.as_posix(), adapter

    def _excluded(self, parts: tuple[str, ...]) -> bool:
        """Match exclude patterns against every trailing slice of the path."""
        candidates = ["/".join(parts[i:]) for i in range(len(parts))]
        return any(
            fnmatch(candidate, pattern)
            for pattern in self.config.exclude_patterns
            for candidate in candidates
        )

    def _parse_all(
        self,
        sources: list[tuple[Path, str, FrontendAdapter]],
        collector: _ParseCollector,
        token: Optional[CancellationToken],
    ) -> bool:
        """Parse all sources into the collector. Returns True if cancelled."""

        def task(source: tuple[Path, str, FrontendAdapter]) -> None:
            if token is not None and token.cancelled:
                return
            self._parse_one(*source, collector)

        if self._max_workers == 1 or len(sources) < 2:
            for source in sources:
                if token is not None and token.cancelled:
                    return True
                task(source)
            return bool(token is not None and token.cancelled)

        executor = ThreadPoolExecutor(max_workers=self._max_workers)
        try:
            futures = [executor.submit(task, s) for s in sources]
            for future in as_completed(futures):
                if token is not None and token.cancelled:
                    break
                # Task bodies catch parse failures; anything else is a bug
                future.result()
        finally:
            # Queued tasks are dropped, running ones finish
            executor.shutdown(wait=True, cancel_futures=True)
        return bool(token is not None and token.cancelled)

    @staticmethod
    def _parse_one(
        file_path: Path, rel_path: str, adapter: FrontendAdapter, collector: _ParseCollector
    ) -> None:
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {rel_path}: {e}")
            collector.skip(SkippedUnit(rel_path, f"cannot read file: {e}", ErrorCode.CI100))
            return

        try:
            units = adapter.parse(content, rel_path)
        except ParseError as e:
            where = f" (line {e.line})" if e.line is not None else ""
            logger.warning(f"Skipped {rel_path}: {e.reason}{where}")
            collector.skip(SkippedUnit(rel_path, f"{e.reason}{where}", e.code))
            return
        collector.add_units(units)


def _drop_duplicates(
    units: list[StructuralUnit],
) -> tuple[list[StructuralUnit], list[SkippedUnit]]:
    """Keep the first unit per id in source order; later sources are skipped."""
    kept: dict[str, StructuralUnit] = {}
    skipped: list[SkippedUnit] = []
    for unit in sorted(units, key=lambda u: (u.id, u.source, u.line or 0)):
        first = kept.get(unit.id)
        if first is None:
            kept[unit.id] = unit
            continue
        skipped.append(
            SkippedUnit(
                unit.source,
                f"duplicate unit id {unit.id} (first defined in {first.source})",
                ErrorCode.CI103,
            )
        )
    return list(kept.values()), skipped


class _TypeIndex:
    """Resolves type names to unit ids: exact id, unique dotted suffix, unique simple name."""

    def __init__(self, unit_ids: Iterable[str]) -> None:
        self._ids = frozenset(unit_ids)
        by_simple: dict[str, list[str]] = {}
        for unit_id in self._ids:
            by_simple.setdefault(unit_id.rsplit(".", 1)[-1], []).append(unit_id)
        self._by_simple = by_simple

    def resolve(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        if name in self._ids:
            return name
        candidates = self._by_simple.get(name.rsplit(".", 1)[-1], [])
        if "." in name:
            candidates = [c for c in candidates if c.endswith(f".{name}")]
        if len(candidates) == 1:
            return candidates[0]
        return None


def resolve_types(units: Sequence[StructuralUnit]) -> list[StructuralUnit]:
    """Bind member types and call targets to unit ids of the graph.

    Ambiguous and external names stay unresolved and drop out of the
    call targets.
    """
    index = _TypeIndex(u.id for u in units)
    resolved: list[StructuralUnit] = []
    for unit in units:
        members = tuple(
            replace(m, resolved_unit=index.resolve(m.type_name)) if m.type_name else m
            for m in unit.members
        )
        methods = tuple(_resolve_calls(method, index) for method in unit.methods)
        resolved.append(replace(unit, members=members, methods=methods))
    return resolved


def _resolve_calls(method: Method, index: _TypeIndex) -> Method:
    targets = frozenset(t for t in (index.resolve(c) for c in method.called_units) if t)
    if targets == method.called_units:
        return method
    return replace(method, called_units=targets)


def validate_unit(unit: StructuralUnit) -> None:
    """Check that a unit's structural model is internally consistent.

    Raises:
        AnalysisInvariantViolation: CI400 for a reference to a member the unit
            does not own or a method attached to another unit, CI401 for a
            collaborator-reference contribution naming a non-collaborator
    """
    member_ids = unit.member_ids
    collaborators = {m.id for m in unit.collaborators}
    for method in unit.methods:
        if method.unit_id != unit.id:
            raise AnalysisInvariantViolation(
                unit.id, f"method {method.id} belongs to {method.unit_id}"
            )
        missing = sorted(method.referenced_members - member_ids)
        if missing:
            raise AnalysisInvariantViolation(
                unit.id, f"method {method.id} references unknown member(s) {', '.join(missing)}"
            )
        for contribution in method.contributions:
            if contribution.category is not ContributionCategory.COLLABORATOR_REFERENCE:
                continue
            if contribution.member_id not in collaborators:
                raise AnalysisInvariantViolation(
                    unit.id,
                    f"method {method.id} counts {contribution.member_id} as a collaborator",
                    ErrorCode.CI401,
                )
