"""AnalysisEngine: orchestrates one run from source paths to a Report.

Stages:
    1. Parse sources into the structural graph (thread pool, barrier)
    2. Per-unit analysis: classify, score, cohesion, divergent change
       (thread pool, append-only accumulator)
    3. Shotgun surgery, once every unit is done and the co-change
       history has arrived (second barrier)

The co-change fetch starts in the background as soon as the run starts.
Every task checks the cancellation token first; a cancelled run still
returns the report of what finished.
"""

from __future__ import annotations

import concurrent.futures
import time
from pathlib import Path
from threading import Lock
from typing import Optional, Sequence

from .builder import SourceModelBuilder, default_workers, validate_unit
from .cancellation import CancellationToken
from .cochange import CoChangeMatrix, CoChangeSource, build_cochange_matrix, group_edits
from .cohesion import analyze_cohesion, low_cohesion
from .config import DEFAULT_CONFIG, AnalysisConfig
from .drift import divergent_change, shotgun_surgery
from .exceptions import AnalysisInvariantViolation, CoChangeSourceError, ParseError
from .frontends import FrontendRegistry, default_registry
from .logging_config import get_logger
from .model import Role, SkippedUnit, StructuralGraph, StructuralUnit
from .report import Report, RunStatus, Violation, ViolationAccumulator, ViolationKind
from .roles import Classification, RoleMarkerMap, classify
from .scoring import UnitScore, describe_breakdown, over_ceiling, score_unit

logger = get_logger(__name__)


class AnalysisEngine:
    """Runs the analysis pipeline with one configuration.

    Args:
        config: Analysis configuration
        marker_map: User role markers, merged over the front-ends' defaults
        cochange_source: Optional history for shotgun surgery
        registry: Front-end registry (defaults to every built-in front-end)
    """

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        marker_map: Optional[RoleMarkerMap] = None,
        cochange_source: Optional[CoChangeSource] = None,
        registry: Optional[FrontendRegistry] = None,
    ) -> None:
        self.config = config
        self.registry = registry or default_registry()
        self.marker_map = self.registry.default_markers()
        if marker_map is not None:
            self.marker_map = self.marker_map.merged(marker_map)
        self.cochange_source = cochange_source
        self._workers = config.workers or default_workers()

    def run(self, paths: Sequence[Path], token: Optional[CancellationToken] = None) -> Report:
        """Analyze ``paths`` and return the ordered report.

        Raises:
            InvalidPathError: If an input path does not exist
            ParseError: If ``strict_parse`` is set and any source was skipped
        """
        token = token or CancellationToken()
        accumulator = ViolationAccumulator()
        start = time.perf_counter()

        fetch_token = CancellationToken()
        fetcher = _CoChangeFetch(self.cochange_source, fetch_token)
        graph = StructuralGraph()
        analyzed = 0
        try:
            graph = SourceModelBuilder(self.config, self.registry).build(paths, token)
            if self.config.strict_parse and graph.skipped:
                raise _strict_failure(graph.skipped)
            accumulator.extend(self._skipped_violations(graph.skipped))
            logger.debug(f"Stage 1 done in {time.perf_counter() - start:.2f}s")

            if not token.cancelled:
                analyzed = self._analyze_units(graph, accumulator, token)
                logger.debug(f"Stage 2 done in {time.perf_counter() - start:.2f}s")

            if not token.cancelled:
                matrix = fetcher.result(graph, self.config, token)
                if matrix is not None:
                    accumulator.extend(shotgun_surgery(graph, matrix, self.config))
        except KeyboardInterrupt:
            token.cancel("interrupted")
            logger.warning("Interrupted, reporting partial results")
        finally:
            fetch_token.cancel("run finished")
            fetcher.close()

        cancelled = token.cancelled or graph.cancelled
        if cancelled:
            logger.warning(f"Run cancelled ({token.reason or 'cancelled'}), report is partial")
        report = Report.build(
            accumulator.snapshot(),
            severity_threshold=self.config.severity_threshold,
            status=RunStatus.CANCELLED if cancelled else RunStatus.COMPLETE,
            units_analyzed=analyzed,
            units_skipped=len(graph.skipped),
        )
        logger.info(
            f"Analyzed {analyzed} units, {len(report.violations)} findings "
            f"in {time.perf_counter() - start:.2f}s"
        )
        return report

    def _analyze_units(
        self, graph: StructuralGraph, accumulator: ViolationAccumulator, token: CancellationToken
    ) -> int:
        counter_lock = Lock()
        analyzed = 0

        def task(unit: StructuralUnit) -> None:
            nonlocal analyzed
            if token.cancelled:
                return
            accumulator.extend(self.analyze_unit(unit))
            with counter_lock:
                analyzed += 1

        if self._workers == 1 or len(graph) < 2:
            for unit in graph:
                task(unit)
            return analyzed

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self._workers)
        try:
            futures = [executor.submit(task, unit) for unit in graph]
            for future in concurrent.futures.as_completed(futures):
                future.result()
                if token.cancelled:
                    break
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return analyzed

    def analyze_unit(self, unit: StructuralUnit) -> list[Violation]:
        """All per-unit findings. An inconsistent unit yields one AnalysisFailure."""
        try:
            validate_unit(unit)
        except AnalysisInvariantViolation as e:
            logger.error(str(e))
            return [
                Violation(
                    kind=ViolationKind.ANALYSIS_FAILURE,
                    unit_id=unit.id,
                    severity=self.config.severities.for_kind(ViolationKind.ANALYSIS_FAILURE),
                    message=f"[{e.code.value}] {e.reason}",
                )
            ]

        classification = classify(unit, self.marker_map)
        if classification.ambiguity is not None:
            logger.warning(str(classification.ambiguity))

        scores = score_unit(
            unit,
            classification.role,
            self.config.stream_policy,
            self.config.entity_aggregation,
        )
        violations = self._load_violations(scores, classification)
        if unit.methods and classification.role in self.config.over_extraction_roles:
            violations.extend(self._over_extraction(scores))

        record = analyze_cohesion(unit)
        finding = low_cohesion(record, self.config)
        if finding is not None:
            violations.append(finding)
        violations.extend(divergent_change(record, self.config))
        return violations

    def _load_violations(
        self, scores: UnitScore, classification: Classification
    ) -> list[Violation]:
        config = self.config
        role = classification.role

        if role is Role.UNCLASSIFIED:
            reason = (
                classification.ambiguity.message
                if classification.ambiguity is not None
                else "no role"
            )
            return [
                Violation(
                    kind=ViolationKind.UNCLASSIFIED,
                    unit_id=scores.unit_id,
                    severity=config.severities.for_kind(ViolationKind.UNCLASSIFIED),
                    message=f"{reason}; aggregate cognitive load {scores.aggregate}",
                    score=scores.aggregate,
                )
            ]

        ceiling = config.thresholds.ceiling(role)
        severity = config.severities.for_kind(ViolationKind.OVER_LOAD)
        if scores.aggregation == "per_method":
            return [
                Violation(
                    kind=ViolationKind.OVER_LOAD,
                    unit_id=scores.unit_id,
                    method_id=m.method_id,
                    severity=severity,
                    message=(
                        f"{m.method_id} scores {m.score}, above the {role.label} "
                        f"ceiling of {ceiling} ({describe_breakdown(m)})"
                    ),
                    score=m.score,
                    threshold=ceiling,
                )
                for m in over_ceiling(scores, ceiling)
            ]

        if ceiling is not None and scores.aggregate > ceiling:
            return [
                Violation(
                    kind=ViolationKind.OVER_LOAD,
                    unit_id=scores.unit_id,
                    severity=severity,
                    message=(
                        f"{scores.aggregation} of method scores is {scores.aggregate}, above "
                        f"the {role.label} ceiling of {ceiling}"
                    ),
                    score=scores.aggregate,
                    threshold=ceiling,
                )
            ]
        return []

    def _over_extraction(self, scores: UnitScore) -> list[Violation]:
        low, high = self.config.over_extraction_min, self.config.over_extraction_max
        if not low <= scores.aggregate <= high:
            return []
        return [
            Violation(
                kind=ViolationKind.OVER_EXTRACTED,
                unit_id=scores.unit_id,
                severity=self.config.severities.for_kind(ViolationKind.OVER_EXTRACTED),
                message=(
                    f"{scores.role.label} carries almost no behaviour (aggregate "
                    f"{scores.aggregate}); logic may have been extracted into services"
                ),
                score=scores.aggregate,
            )
        ]

    def _skipped_violations(self, skipped: Sequence[SkippedUnit]) -> list[Violation]:
        severity = self.config.severities.for_kind(ViolationKind.SKIPPED_UNIT)
        return [
            Violation(
                kind=ViolationKind.SKIPPED_UNIT,
                unit_id=s.source,
                severity=severity,
                message=f"[{s.code.value}] {s.reason}",
            )
            for s in skipped
        ]


class _CoChangeFetch:
    """Background fetch of the co-change history, bounded by a timeout."""

    def __init__(self, source: Optional[CoChangeSource], token: CancellationToken) -> None:
        self.source = source
        self.token = token
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._future: Optional[concurrent.futures.Future] = None
        self._started = time.monotonic()
        if source is None:
            logger.debug("No co-change source, shotgun surgery is skipped")
            return
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        self._future = self._executor.submit(source.fetch, token)

    def result(
        self, graph: StructuralGraph, config: AnalysisConfig, run_token: CancellationToken
    ) -> Optional[CoChangeMatrix]:
        if self._future is None or self.source is None:
            return None

        # The bound applies to the fetch itself, which started with the run
        deadline = self._started + config.cochange_timeout_seconds
        while not self._future.done():
            if run_token.cancelled:
                return None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    f"Co-change source {self.source.name} timed out after "
                    f"{config.cochange_timeout_seconds}s, shotgun surgery is skipped"
                )
                return None
            concurrent.futures.wait([self._future], timeout=min(remaining, 0.25))

        try:
            records = self._future.result()
        except CoChangeSourceError as e:
            logger.warning(f"{e}, shotgun surgery is skipped")
            return None

        edits = group_edits(records, config.cochange_window_seconds)
        matrix = build_cochange_matrix(
            edits,
            {u.id for u in graph},
            min_cochanges=config.cochange_min_count,
            max_units_per_edit=config.cochange_max_units_per_edit,
        )
        logger.debug(
            f"Co-change: {len(records)} records, {matrix.total_edits} edits, "
            f"{len(matrix.pairs)} pairs"
        )
        return matrix

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)


def _strict_failure(skipped: Sequence[SkippedUnit]) -> ParseError:
    first = skipped[0]
    more = f" (and {len(skipped) - 1} more)" if len(skipped) > 1 else ""
    return ParseError(first.source, f"{first.reason}{more}", first.code)
