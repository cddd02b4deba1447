"""Error taxonomy with error codes.

Error Code Convention:
    CI1xx - Parsing errors (recoverable, unit skipped)
    CI2xx - Configuration errors (fatal, run aborted)
    CI3xx - Classification errors (recoverable, unit unclassified)
    CI4xx - Analysis errors (fatal for one unit, or a skipped sub-detector)
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Structured error codes for observability and debugging."""

    # Parsing errors (CI1xx)
    CI100 = "CI100"  # File read error
    CI101 = "CI101"  # Syntax error in source file
    CI102 = "CI102"  # Malformed structural model document
    CI103 = "CI103"  # Duplicate unit id

    # Configuration errors (CI2xx)
    CI200 = "CI200"  # Config file unreadable
    CI201 = "CI201"  # Invalid configuration value
    CI202 = "CI202"  # Invalid role-marker map
    CI203 = "CI203"  # Invalid input path

    # Classification errors (CI3xx)
    CI300 = "CI300"  # No role marker resolved
    CI301 = "CI301"  # Conflicting role markers

    # Analysis errors (CI4xx)
    CI400 = "CI400"  # Method references a member absent from its unit
    CI401 = "CI401"  # Contribution references an unknown member
    CI402 = "CI402"  # Co-change source unavailable
