"""Tests for the error taxonomy."""

import pytest

from cohesion_insight.exceptions import (
    AnalysisInvariantViolation,
    ClassificationAmbiguity,
    CoChangeSourceError,
    CohesionInsightError,
    ConfigError,
    ErrorCode,
    InvalidConfigError,
    InvalidMarkerMapError,
    InvalidPathError,
    ParseError,
)


class TestErrorCode:
    """Test ErrorCode enum."""

    def test_parsing_error_codes(self):
        """Parsing errors are CI1xx."""
        assert ErrorCode.CI100.value == "CI100"  # File read error
        assert ErrorCode.CI101.value == "CI101"  # Syntax error
        assert ErrorCode.CI102.value == "CI102"  # Malformed structural model
        assert ErrorCode.CI103.value == "CI103"  # Duplicate unit id

    def test_configuration_error_codes(self):
        """Configuration errors are CI2xx."""
        assert ErrorCode.CI200.value == "CI200"
        assert ErrorCode.CI201.value == "CI201"
        assert ErrorCode.CI202.value == "CI202"
        assert ErrorCode.CI203.value == "CI203"

    def test_classification_and_analysis_codes(self):
        assert ErrorCode.CI300.value == "CI300"
        assert ErrorCode.CI301.value == "CI301"
        assert ErrorCode.CI400.value == "CI400"
        assert ErrorCode.CI401.value == "CI401"
        assert ErrorCode.CI402.value == "CI402"


class TestCohesionInsightError:
    """Test the base exception."""

    def test_basic_creation(self):
        err = CohesionInsightError("Test error", code=ErrorCode.CI100)
        assert err.message == "Test error"
        assert err.code == ErrorCode.CI100
        assert err.recoverable is False
        assert err.details == {}

    def test_str_includes_code(self):
        err = CohesionInsightError("File read failed", code=ErrorCode.CI100)
        assert str(err) == "[CI100] File read failed"

    def test_str_without_code(self):
        assert str(CohesionInsightError("plain")) == "plain"

    def test_str_includes_details(self):
        err = CohesionInsightError("Parse failed", details={"path": "a.py"}, code=ErrorCode.CI101)
        assert str(err) == "[CI101] Parse failed (path=a.py)"


class TestAnalysisErrors:
    def test_parse_error_is_recoverable(self):
        err = ParseError("models.units.json", "bad", ErrorCode.CI102)
        assert err.recoverable is True
        assert err.code is ErrorCode.CI102
        assert err.source == "models.units.json"

    def test_ambiguity_without_marker(self):
        err = ClassificationAmbiguity("shop.Order")
        assert err.code is ErrorCode.CI300
        assert err.recoverable is True
        assert "No role marker" in err.message

    def test_ambiguity_with_conflict(self):
        err = ClassificationAmbiguity("shop.Order", ["Entity", "Repository"], conflicting=True)
        assert err.code is ErrorCode.CI301
        assert "Entity, Repository" in err.message

    def test_invariant_violation_is_not_recoverable(self):
        err = AnalysisInvariantViolation("shop.Order", "method x references y")
        assert err.recoverable is False
        assert err.code is ErrorCode.CI400

    def test_cochange_source_error(self):
        err = CoChangeSourceError("history.ndjson", "missing")
        assert err.code is ErrorCode.CI402
        assert err.recoverable is True


class TestConfigErrors:
    def test_config_error_default_code(self):
        assert ConfigError("broken").code is ErrorCode.CI200

    def test_subclasses_are_config_errors(self, tmp_path):
        for err in (
            InvalidConfigError("cohesion_floor", 2.0, "out of range"),
            InvalidMarkerMapError(tmp_path / "m.toml", "bad"),
            InvalidPathError(tmp_path / "missing", "does not exist"),
        ):
            assert isinstance(err, ConfigError)
            assert err.recoverable is False

    def test_invalid_config_details(self):
        err = InvalidConfigError("workers", 0, "must be at least 1")
        assert err.code is ErrorCode.CI201
        assert err.details["key"] == "workers"
        assert err.details["value"] == "0"
