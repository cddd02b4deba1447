"""Tests for the JSON structural-model front-end."""

import json

import pytest

from cohesion_insight.exceptions import ErrorCode, ParseError
from cohesion_insight.frontends import StructuralModelFrontend
from cohesion_insight.model import ContributionCategory as C
from cohesion_insight.model import Role
from cohesion_insight.scoring import score_method


def _parse(document):
    content = document if isinstance(document, str) else json.dumps(document)
    return StructuralModelFrontend().parse(content, "model.units.json")


def _order_resource(**method_overrides):
    method = {
        "id": "place",
        "references": ["repo", "payments", "name"],
        "calls": ["shop.OrderRepository"],
        "contributions": ["branch", {"category": "loop", "nested": True}],
    }
    method.update(method_overrides)
    return {
        "units": [
            {
                "id": "shop.OrderResource",
                "role": "controller",
                "markers": ["@RestController"],
                "members": [
                    {"id": "repo", "type": "OrderRepository", "collaborator": True},
                    {"id": "payments", "type": "PaymentGateway", "collaborator": True},
                    {"id": "name", "type": "String"},
                ],
                "methods": [method],
            }
        ]
    }


class TestStructuralModel:
    def test_handles_suffix_only(self, tmp_path):
        frontend = StructuralModelFrontend()
        assert frontend.handles(tmp_path / "shop.units.json")
        assert not frontend.handles(tmp_path / "package.json")

    def test_unit(self):
        (unit,) = _parse(_order_resource())
        assert unit.id == "shop.OrderResource"
        assert unit.declared_role is Role.CONTROLLER
        assert unit.markers == ("@RestController",)
        assert [m.id for m in unit.collaborators] == ["repo", "payments"]
        assert unit.member("repo").type_name == "OrderRepository"
        assert unit.member("name").type_name is None

    def test_collaborator_references_are_derived(self):
        (unit,) = _parse(_order_resource())
        method = unit.methods[0]
        refs = [c.member_id for c in method.contributions if c.category is C.COLLABORATOR_REFERENCE]
        assert refs == ["repo", "payments"]
        assert method.referenced_members == frozenset({"repo", "payments", "name"})
        assert method.called_units == frozenset({"shop.OrderRepository"})
        # 2 collaborators + branch + nested loop
        assert score_method(method) == 5

    def test_explicit_collaborator_reference_not_doubled(self):
        (unit,) = _parse(
            _order_resource(
                contributions=[{"category": "collaborator-reference", "member": "repo"}]
            )
        )
        refs = [
            c.member_id
            for c in unit.methods[0].contributions
            if c.category is C.COLLABORATOR_REFERENCE
        ]
        assert sorted(refs) == ["payments", "repo"]

    def test_bare_list_document(self):
        units = _parse(_order_resource()["units"])
        assert len(units) == 1

    def test_missing_reference_kept_verbatim(self):
        (unit,) = _parse(_order_resource(references=["ghost"]))
        assert unit.methods[0].referenced_members == frozenset({"ghost"})

    @pytest.mark.parametrize(
        "document",
        [
            "{not json",
            {"units": {}},
            {"units": [{"role": "controller"}]},
            {"units": [{"id": "a.B", "role": "gateway"}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "contributions": ["recursion"]}]}]},
            {"units": [{"id": "a.B", "members": [{"id": "x"}, {"id": "x"}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m"}, {"id": "m"}]}]},
            {
                "units": [
                    {
                        "id": "a.B",
                        "methods": [{"id": "m", "contributions": ["collaborator-reference"]}],
                    }
                ]
            },
            {"units": [{"id": "a.B", "methods": [{"id": "m", "contributions": [{"category": "stream-stage", "chain": "x"}]}]}]},
            {"units": [{"id": "a.B", "members": None}]},
            {"units": [{"id": "a.B", "markers": 5}]},
            {"units": [{"id": "a.B", "methods": None}]},
            {"units": [{"id": "a.B", "members": [{"id": "x", "type": 5}]}]},
            {"units": [{"id": "a.B", "members": [{"id": "x", "collaborator": "yes"}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "references": "x"}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "calls": None}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "contributions": {}}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "line": "7"}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "contributions": [{"category": "collaborator-reference", "member": ["a"]}]}]}]},
            {"units": [{"id": "a.B", "methods": [{"id": "m", "contributions": [{"category": "loop", "nested": "false"}]}]}]},
        ],
    )
    def test_malformed_documents(self, document):
        with pytest.raises(ParseError) as excinfo:
            _parse(document)
        assert excinfo.value.code is ErrorCode.CI102

    def test_flags_must_be_booleans(self):
        document = _order_resource(contributions=[{"category": "loop", "nested": 0}])
        with pytest.raises(ParseError, match="nested must be true or false"):
            _parse(document)

    def test_explicit_false_flag(self):
        document = _order_resource(
            references=[], contributions=[{"category": "loop", "nested": False}] * 3
        )
        (unit,) = _parse(document)
        assert score_method(unit.methods[0]) == 3
