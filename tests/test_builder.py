"""Tests for the source model builder."""

import json
from pathlib import Path

import pytest

from cohesion_insight.builder import SourceModelBuilder, resolve_types, validate_unit
from cohesion_insight.cancellation import CancellationToken
from cohesion_insight.config import AnalysisConfig
from cohesion_insight.exceptions import (
    AnalysisInvariantViolation,
    ErrorCode,
    InvalidPathError,
)
from cohesion_insight.model import (
    ContributionCategory,
    LoadContribution,
    Member,
    Method,
    StructuralUnit,
)


def _build(paths, **config):
    return SourceModelBuilder(AnalysisConfig(**config)).build([Path(p) for p in paths])


class TestDiscovery:
    def test_walks_directories_and_skips_excluded(self, tmp_path, write_source):
        write_source("app/models.py", "class Order:\n    pass\n")
        write_source("app/.hidden/secret.py", "class Secret:\n    pass\n")
        write_source("venv/lib/site.py", "class Site:\n    pass\n")
        write_source("app/build/gen.py", "class Generated:\n    pass\n")
        write_source("app/README.md", "# docs\n")

        graph = _build([tmp_path])
        assert [u.id for u in graph] == ["app.models.Order"]

    def test_custom_exclude_pattern(self, tmp_path, write_source):
        write_source("app/models.py", "class Order:\n    pass\n")
        write_source("app/test_models.py", "class TestOrder:\n    pass\n")
        graph = _build([tmp_path], exclude_patterns=["test_*.py"])
        assert [u.id for u in graph] == ["app.models.Order"]

    def test_single_file_path(self, write_source):
        path = write_source("pkg/orders.py", "class Order:\n    pass\n")
        graph = _build([path])
        assert [u.id for u in graph] == ["orders.Order"]

    def test_missing_path(self, tmp_path):
        with pytest.raises(InvalidPathError) as excinfo:
            _build([tmp_path / "missing"])
        assert excinfo.value.code is ErrorCode.CI203

    def test_mixed_frontends(self, tmp_path, write_source):
        write_source("app/models.py", "class Order:\n    pass\n")
        write_source(
            "java/shop.units.json",
            json.dumps({"units": [{"id": "shop.OrderResource", "role": "controller"}]}),
        )
        graph = _build([tmp_path])
        assert [u.id for u in graph] == ["app.models.Order", "shop.OrderResource"]


class TestSkippedUnits:
    def test_unparseable_file_is_skipped(self, tmp_path, write_source):
        write_source("app/good.py", "class Good:\n    pass\n")
        write_source("app/bad.py", "class Bad(:\n")
        graph = _build([tmp_path])
        assert [u.id for u in graph] == ["app.good.Good"]
        assert len(graph.skipped) == 1
        skipped = graph.skipped[0]
        assert skipped.source == "app/bad.py"
        assert skipped.code is ErrorCode.CI101
        assert "line 1" in skipped.reason

    def test_undecodable_file_is_skipped(self, tmp_path):
        (tmp_path / "latin.py").write_bytes(b"class A:\n    name = '\xe9'\n")
        graph = _build([tmp_path])
        assert len(graph) == 0
        assert graph.skipped[0].code is ErrorCode.CI100

    def test_wrongly_typed_model_is_skipped(self, tmp_path, write_source):
        write_source("ok.py", "class Ok:\n    pass\n")
        write_source("bad.units.json", json.dumps({"units": [{"id": "x.B", "members": None}]}))
        graph = _build([tmp_path], workers=2)
        assert [u.id for u in graph] == ["ok.Ok"]
        (skipped,) = graph.skipped
        assert skipped.source == "bad.units.json"
        assert skipped.code is ErrorCode.CI102
        assert "members must be an array" in skipped.reason

    def test_duplicate_unit_id_keeps_first_source(self, tmp_path, write_source):
        unit = {"units": [{"id": "shop.Order"}]}
        write_source("a.units.json", json.dumps(unit))
        write_source("b.units.json", json.dumps(unit))
        graph = _build([tmp_path])
        assert [u.source for u in graph] == ["a.units.json"]
        assert graph.skipped[0].source == "b.units.json"
        assert graph.skipped[0].code is ErrorCode.CI103

    def test_parallel_and_sequential_agree(self, tmp_path, write_source):
        for i in range(12):
            write_source(f"pkg/m{i}.py", f"class C{i}:\n    def run(self):\n        return {i}\n")
        write_source("pkg/broken.py", "def (:\n")
        sequential = _build([tmp_path], workers=1)
        parallel = _build([tmp_path], workers=4)
        assert sequential == parallel
        assert len(parallel) == 12


class TestCancellation:
    def test_cancelled_before_start(self, tmp_path, write_source):
        write_source("a.py", "class A:\n    pass\n")
        write_source("b.py", "class B:\n    pass\n")
        token = CancellationToken()
        token.cancel()
        graph = SourceModelBuilder(AnalysisConfig(workers=2)).build([tmp_path], token)
        assert graph.cancelled
        assert len(graph) == 0


class TestTypeResolution:
    def _units(self):
        repo = StructuralUnit(id="shop.repos.OrderRepository", source="shop/repos.py")
        other = StructuralUnit(id="billing.OrderRepository", source="billing.py")
        invoice = StructuralUnit(id="billing.Invoice", source="billing.py")
        service = StructuralUnit(
            id="shop.Service",
            source="shop.py",
            members=(
                Member(id="repo", is_collaborator=True, type_name="repos.OrderRepository"),
                Member(id="ambiguous", is_collaborator=True, type_name="OrderRepository"),
                Member(id="invoice", is_collaborator=True, type_name="Invoice"),
                Member(id="external", is_collaborator=True, type_name="Requests"),
            ),
            methods=(
                Method(
                    id="run",
                    unit_id="shop.Service",
                    called_units=frozenset({"Invoice", "Unknown", "billing.OrderRepository"}),
                ),
            ),
        )
        return [repo, other, invoice, service]

    def test_member_types(self):
        resolved = {u.id: u for u in resolve_types(self._units())}
        service = resolved["shop.Service"]
        assert service.member("repo").resolved_unit == "shop.repos.OrderRepository"
        assert service.member("ambiguous").resolved_unit is None
        assert service.member("invoice").resolved_unit == "billing.Invoice"
        assert service.member("external").resolved_unit is None

    def test_call_targets(self):
        resolved = {u.id: u for u in resolve_types(self._units())}
        assert resolved["shop.Service"].methods[0].called_units == frozenset(
            {"billing.Invoice", "billing.OrderRepository"}
        )

    def test_graph_dependencies(self, tmp_path, write_source, order_resource_source):
        write_source("shop.py", order_resource_source)
        graph = _build([tmp_path])
        assert graph.dependencies("shop.OrderResource") == frozenset({"shop.OrderRepository"})
        assert graph.related("shop.OrderRepository", "shop.OrderResource")


class TestValidateUnit:
    def _unit(self, unit_id="shop.Order", **method_kwargs):
        return StructuralUnit(
            id="shop.Order",
            source="shop.py",
            members=(Member(id="repo", is_collaborator=True), Member(id="count")),
            methods=(Method(id="run", unit_id=unit_id, **method_kwargs),),
        )

    def test_consistent_unit(self):
        validate_unit(
            self._unit(
                referenced_members=frozenset({"repo", "count"}),
                contributions=(
                    LoadContribution(ContributionCategory.COLLABORATOR_REFERENCE, member_id="repo"),
                ),
            )
        )

    def test_unknown_member_reference(self):
        with pytest.raises(AnalysisInvariantViolation) as excinfo:
            validate_unit(self._unit(referenced_members=frozenset({"ghost"})))
        assert excinfo.value.code is ErrorCode.CI400
        assert "ghost" in excinfo.value.reason

    def test_collaborator_reference_to_primitive(self):
        with pytest.raises(AnalysisInvariantViolation) as excinfo:
            validate_unit(
                self._unit(
                    contributions=(
                        LoadContribution(
                            ContributionCategory.COLLABORATOR_REFERENCE, member_id="count"
                        ),
                    )
                )
            )
        assert excinfo.value.code is ErrorCode.CI401

    def test_foreign_method(self):
        with pytest.raises(AnalysisInvariantViolation):
            validate_unit(self._unit(unit_id="shop.Other"))
