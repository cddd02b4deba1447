"""Exception hierarchy for Cohesion Insight."""

from .analysis import (
    AnalysisError,
    AnalysisInvariantViolation,
    ClassificationAmbiguity,
    CoChangeSourceError,
    ParseError,
)
from .base import CohesionInsightError
from .config import (
    ConfigError,
    InvalidConfigError,
    InvalidMarkerMapError,
    InvalidPathError,
)
from .taxonomy import ErrorCode

__all__ = [
    "CohesionInsightError",
    "ErrorCode",
    "AnalysisError",
    "ParseError",
    "ClassificationAmbiguity",
    "AnalysisInvariantViolation",
    "CoChangeSourceError",
    "ConfigError",
    "InvalidConfigError",
    "InvalidMarkerMapError",
    "InvalidPathError",
]
