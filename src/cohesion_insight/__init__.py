"""
Cohesion Insight - Role-Aware Cognitive Load and Cohesion Analysis

Scores the cognitive load of every method, holds it against a ceiling chosen
by the unit's architectural role, measures how cohesively each unit uses its
collaborators, and flags responsibilities drifting apart (divergent change)
or scattered across units (shotgun surgery).
"""

__version__ = "0.1.0"

from .api import analyze
from .cancellation import CancellationToken
from .config import AnalysisConfig, load_config
from .engine import AnalysisEngine
from .model import Role, StructuralGraph, StructuralUnit
from .report import Report, Severity, Violation, ViolationKind
from .roles import RoleMarkerMap

__all__ = [
    "analyze",  # Main entry point
    "AnalysisEngine",  # Advanced usage (custom registry, reuse)
    "AnalysisConfig",
    "load_config",
    "CancellationToken",
    "Report",
    "Violation",
    "ViolationKind",
    "Severity",
    "Role",
    "RoleMarkerMap",
    "StructuralGraph",
    "StructuralUnit",
]
