"""Tests for cognitive load scoring."""

import pytest

from cohesion_insight.model import (
    ContributionCategory as C,
    LoadContribution,
    Method,
    Role,
    StructuralUnit,
)
from cohesion_insight.scoring import (
    aggregation_for,
    breakdown,
    describe_breakdown,
    over_ceiling,
    score_method,
    score_unit,
)


def _method(*contributions, method_id="run", unit_id="app.Unit"):
    return Method(id=method_id, unit_id=unit_id, contributions=tuple(contributions))


def _c(category, **kwargs):
    return LoadContribution(category=category, **kwargs)


def _unit(*methods, unit_id="app.Unit"):
    return StructuralUnit(id=unit_id, source="app.py", methods=tuple(methods))


class TestContributionPoints:
    def test_flat_constructs_cost_one(self):
        for category in (C.BRANCH, C.LOOP, C.TRY, C.CATCH, C.LAMBDA, C.STREAM_STAGE):
            assert _c(category).points == 1

    def test_nested_branch_costs_two(self):
        assert _c(C.NESTED_BRANCH).points == 2

    @pytest.mark.parametrize("category", [C.LOOP, C.TRY, C.CATCH])
    def test_nested_loop_try_catch_cost_two(self, category):
        assert _c(category, nested=True).points == 2

    def test_nested_flag_ignored_for_lambda(self):
        assert _c(C.LAMBDA, nested=True).points == 1


class TestScoreMethod:
    def test_zero_contributions_score_zero(self):
        assert score_method(_method()) == 0

    def test_nested_branch_contributes_exactly_two(self):
        flat = score_method(_method(_c(C.BRANCH)))
        nested = score_method(_method(_c(C.BRANCH), _c(C.NESTED_BRANCH)))
        assert nested - flat == 2

    def test_collaborator_counted_once_per_member(self):
        method = _method(
            _c(C.COLLABORATOR_REFERENCE, member_id="repo"),
            _c(C.COLLABORATOR_REFERENCE, member_id="repo"),
            _c(C.COLLABORATOR_REFERENCE, member_id="clock"),
        )
        assert score_method(method) == 2

    def test_stream_stages_per_stage(self):
        method = _method(
            _c(C.STREAM_STAGE, chain_id=0),
            _c(C.STREAM_STAGE, chain_id=0),
            _c(C.STREAM_STAGE, chain_id=1),
        )
        assert score_method(method, "per_stage") == 3

    def test_stream_stages_per_chain(self):
        method = _method(
            _c(C.STREAM_STAGE, chain_id=0),
            _c(C.STREAM_STAGE, chain_id=0),
            _c(C.STREAM_STAGE, chain_id=1),
            _c(C.STREAM_STAGE),
            _c(C.STREAM_STAGE),
        )
        # stages without a chain id count individually
        assert score_method(method, "per_chain") == 4

    def test_mixed_method(self):
        method = _method(
            _c(C.COLLABORATOR_REFERENCE, member_id="repo"),
            _c(C.BRANCH),
            _c(C.LOOP, nested=True),
            _c(C.TRY),
            _c(C.CATCH),
            _c(C.LAMBDA),
        )
        assert score_method(method) == 7

    def test_breakdown_by_category(self):
        method = _method(_c(C.BRANCH), _c(C.BRANCH), _c(C.NESTED_BRANCH), _c(C.LAMBDA))
        assert breakdown(method) == {"branch": 2, "lambda": 1, "nested-branch": 2}


class TestAggregation:
    @pytest.mark.parametrize(
        "role",
        [Role.CONTROLLER, Role.DOMAIN_SERVICE, Role.APPLICATION_SERVICE, Role.REPOSITORY],
    )
    def test_per_method_roles(self, role):
        assert aggregation_for(role) == "per_method"

    def test_entity_sum_by_default(self):
        assert aggregation_for(Role.ENTITY) == "sum"
        assert aggregation_for(Role.VALUE_OBJECT, "max") == "max"

    def test_unclassified_sums(self):
        assert aggregation_for(Role.UNCLASSIFIED, "max") == "sum"

    def test_unit_aggregate_sum_and_max(self):
        unit = _unit(
            _method(_c(C.BRANCH), _c(C.BRANCH), method_id="a"),
            _method(_c(C.LOOP), method_id="b"),
        )
        assert score_unit(unit, Role.ENTITY).aggregate == 3
        assert score_unit(unit, Role.ENTITY, entity_aggregation="max").aggregate == 2

    def test_empty_unit_aggregate_is_zero(self):
        scores = score_unit(_unit(), Role.ENTITY)
        assert scores.aggregate == 0
        assert score_unit(_unit(), Role.ENTITY, entity_aggregation="max").aggregate == 0


class TestOverCeiling:
    def _scores(self, role):
        unit = _unit(
            _method(*[_c(C.BRANCH)] * 6, method_id="find"),
            _method(_c(C.BRANCH), method_id="get"),
        )
        return score_unit(unit, role)

    def test_repository_method_above_five(self):
        flagged = over_ceiling(self._scores(Role.REPOSITORY), 5)
        assert [m.method_id for m in flagged] == ["find"]
        assert flagged[0].score == 6

    def test_score_equal_to_ceiling_passes(self):
        assert over_ceiling(self._scores(Role.REPOSITORY), 6) == []

    def test_aggregate_roles_not_checked_per_method(self):
        assert over_ceiling(self._scores(Role.ENTITY), 1) == []

    def test_no_ceiling(self):
        assert over_ceiling(self._scores(Role.UNCLASSIFIED), None) == []

    def test_describe_breakdown(self):
        scores = self._scores(Role.REPOSITORY)
        assert describe_breakdown(scores.methods[0]) == "branch 6"
        empty = score_unit(_unit(_method()), Role.REPOSITORY).methods[0]
        assert describe_breakdown(empty) == "no contributions"
