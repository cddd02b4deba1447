"""Tests for divergent change and shotgun surgery."""

from cohesion_insight.cochange import CoChangeEdit, build_cochange_matrix
from cohesion_insight.cohesion import analyze_cohesion
from cohesion_insight.config import AnalysisConfig
from cohesion_insight.drift import (
    clusters,
    cochange_edges,
    divergent_change,
    shotgun_surgery,
)
from cohesion_insight.model import Member, Method, StructuralGraph, StructuralUnit
from cohesion_insight.report import Severity, ViolationKind


def _unit(unit_id, usage=None, depends_on=None):
    usage = usage or {}
    members = sorted({m for refs in usage.values() for m in refs})
    member_objs = [Member(id=m, type_descriptor="Dep", is_collaborator=True) for m in members]
    if depends_on:
        member_objs.append(
            Member(
                id="dep",
                type_descriptor=depends_on,
                is_collaborator=True,
                type_name=depends_on,
                resolved_unit=depends_on,
            )
        )
    return StructuralUnit(
        id=unit_id,
        source=f"{unit_id}.py",
        members=tuple(member_objs),
        methods=tuple(
            Method(id=name, unit_id=unit_id, referenced_members=frozenset(refs))
            for name, refs in usage.items()
        ),
    )


def _matrix(units, *edits):
    return build_cochange_matrix(
        [CoChangeEdit(bucket=i, units=frozenset(e)) for i, e in enumerate(edits)],
        set(units),
    )


class TestDivergentChange:
    def test_k_components_yield_k_minus_one(self):
        unit = _unit("app.God", {"a": ["x"], "b": ["y"], "c": ["z"], "d": ["z"]})
        violations = divergent_change(analyze_cohesion(unit), AnalysisConfig())
        assert len(violations) == 2
        assert all(v.kind is ViolationKind.DIVERGENT_CHANGE for v in violations)
        assert all(v.severity is Severity.INFO for v in violations)
        # the largest cluster (c, d) is the primary one and not reported
        reported = [v.suggested_split[0].methods for v in violations]
        assert ("c", "d") not in reported
        assert sorted(reported) == [("a",), ("b",)]

    def test_cohesive_unit_has_no_divergence(self):
        unit = _unit("app.Fine", {"a": ["x", "y"], "b": ["y"]})
        assert divergent_change(analyze_cohesion(unit), AnalysisConfig()) == []


class TestClusters:
    def test_bfs_components_sorted(self):
        adjacency = {"c": {"d"}, "d": {"c"}, "a": {"b"}, "b": {"a", "e"}, "e": {"b"}}
        assert clusters(adjacency) == [["a", "b", "e"], ["c", "d"]]

    def test_empty(self):
        assert clusters({}) == []


class TestShotgunSurgery:
    def _graph(self, *units):
        return StructuralGraph(units=tuple(sorted(units, key=lambda u: u.id)))

    def test_three_unrelated_units_changing_together(self):
        graph = self._graph(_unit("app.A"), _unit("app.B"), _unit("app.C"))
        ids = [u.id for u in graph]
        matrix = _matrix(ids, ids, ids)
        violations = shotgun_surgery(graph, matrix, AnalysisConfig())
        assert len(violations) == 1
        v = violations[0]
        assert v.kind is ViolationKind.SHOTGUN_SURGERY
        assert v.unit_id == "app.A"
        assert v.related_units == ("app.B", "app.C")

    def test_structurally_related_pairs_are_not_edges(self):
        graph = self._graph(
            _unit("app.A", depends_on="app.B"), _unit("app.B"), _unit("app.C")
        )
        ids = [u.id for u in graph]
        matrix = _matrix(ids, ids, ids)
        adjacency = cochange_edges(graph, matrix, AnalysisConfig())
        assert "app.B" not in adjacency.get("app.A", set())
        # A-C and B-C still connect all three into one cluster
        assert len(shotgun_surgery(graph, matrix, AnalysisConfig())) == 1

    def test_pair_below_min_units(self):
        graph = self._graph(_unit("app.A"), _unit("app.B"))
        matrix = _matrix(["app.A", "app.B"], ["app.A", "app.B"], ["app.A", "app.B"])
        assert shotgun_surgery(graph, matrix, AnalysisConfig()) == []

    def test_low_confidence_pairs_ignored(self):
        graph = self._graph(_unit("app.A"), _unit("app.B"), _unit("app.C"))
        ids = [u.id for u in graph]
        noise = [["app.A"], ["app.B"], ["app.C"]] * 3
        matrix = _matrix(ids, ids, ids, *noise)
        # each pair: 2 shared edits out of 5 per unit = confidence 0.4
        assert shotgun_surgery(graph, matrix, AnalysisConfig()) == []
        relaxed = AnalysisConfig(cochange_min_confidence=0.4)
        assert len(shotgun_surgery(graph, matrix, relaxed)) == 1
