"""Tests for the formatters package."""

import json

import pytest

from cohesion_insight.cohesion import Component
from cohesion_insight.formatters import JsonFormatter, TextFormatter, get_formatter
from cohesion_insight.report import Report, RunStatus, Severity, Violation, ViolationKind


def _make_report(status=RunStatus.COMPLETE):
    return Report.build(
        [
            Violation(
                kind=ViolationKind.OVER_LOAD,
                unit_id="shop.OrderResource",
                method_id="place",
                severity=Severity.ERROR,
                message="place scores 8, above the controller ceiling of 7",
                score=8,
                threshold=7,
            ),
            Violation(
                kind=ViolationKind.LOW_COHESION,
                unit_id="billing.BillingService",
                severity=Severity.WARNING,
                message="billing.BillingService splits into 2 disjoint member-usage groups",
                suggested_split=(
                    Component(methods=("post",), members=("ledger",)),
                    Component(methods=("notify",), members=("mailer",)),
                ),
            ),
            Violation(
                kind=ViolationKind.SKIPPED_UNIT,
                unit_id="bad.py",
                severity=Severity.WARNING,
                message="[CI101] invalid syntax (line 1)",
            ),
        ],
        status=status,
        units_analyzed=3,
        units_skipped=1,
    )


class TestGetFormatter:
    def test_known_formatters(self):
        assert isinstance(get_formatter("text"), TextFormatter)
        assert isinstance(get_formatter("json"), JsonFormatter)

    def test_unknown_formatter(self):
        with pytest.raises(ValueError, match="Unknown formatter"):
            get_formatter("xml")


class TestJsonFormatter:
    def test_array_in_report_order(self):
        data = json.loads(JsonFormatter().format(_make_report()))
        assert [d["kind"] for d in data] == ["OverLoad", "SkippedUnit", "LowCohesion"]
        assert data[0] == {
            "kind": "OverLoad",
            "unitId": "shop.OrderResource",
            "methodId": "place",
            "score": 8,
            "threshold": 7,
            "severity": "error",
            "message": "place scores 8, above the controller ceiling of 7",
        }

    def test_optional_keys_omitted(self):
        data = json.loads(JsonFormatter().format(_make_report()))
        skipped = data[1]
        assert "methodId" not in skipped
        assert "score" not in skipped
        assert "suggestedSplit" not in skipped

    def test_suggested_split(self):
        data = json.loads(JsonFormatter().format(_make_report()))
        assert data[2]["suggestedSplit"] == [
            {"methods": ["post"], "members": ["ledger"]},
            {"methods": ["notify"], "members": ["mailer"]},
        ]

    def test_empty_report(self):
        assert JsonFormatter().format(Report.build([])) == "[]"

    def test_render_prints(self, capsys):
        JsonFormatter().render(_make_report())
        assert json.loads(capsys.readouterr().out)[0]["kind"] == "OverLoad"


class TestTextFormatter:
    def test_summary_and_rows(self):
        output = TextFormatter().format(_make_report())
        assert "3 units analyzed, 1 skipped" in output
        assert "1 errors, 2 warnings, 0 info" in output
        assert "FAILED" in output
        assert "shop.OrderResource.place" in output
        assert "8/7" in output
        assert "OverLoad" in output

    def test_markup_in_messages_is_literal(self):
        output = TextFormatter().format(_make_report())
        assert "[CI101]" in output

    def test_suggested_split_listed(self):
        output = TextFormatter().format(_make_report())
        assert "Suggested split for billing.BillingService" in output
        assert "methods notify" in output

    def test_no_findings(self):
        output = TextFormatter().format(Report.build([]))
        assert "No findings." in output
        assert "clean" in output

    def test_cancelled_run_marked_partial(self):
        output = TextFormatter().format(_make_report(status=RunStatus.CANCELLED))
        assert "partial" in output

    def test_console_passed_to_text_formatter(self):
        from rich.console import Console

        console = Console(record=True, width=100)
        get_formatter("text", console=console).render(Report.build([]))
        assert "No findings." in console.export_text()
