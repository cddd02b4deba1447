"""Analysis-related exceptions: parsing, classification, internal consistency."""

from pathlib import Path
from typing import Optional, Sequence, Union

from .base import CohesionInsightError
from .taxonomy import ErrorCode


class AnalysisError(CohesionInsightError):
    """Base class for analysis-related errors."""

    pass


class ParseError(AnalysisError):
    """Raised when one source unit cannot be read or parsed.

    Recoverable: the unit is skipped and reported, the run continues.
    """

    recoverable = True

    def __init__(
        self,
        source: Union[Path, str],
        reason: str,
        code: ErrorCode = ErrorCode.CI101,
        line: Optional[int] = None,
    ):
        details = {"source": str(source), "reason": reason}
        if line is not None:
            details["line"] = str(line)
        super().__init__(f"Cannot parse {source}", details=details, code=code)
        self.source = str(source)
        self.reason = reason
        self.line = line


class ClassificationAmbiguity(AnalysisError):
    """Raised when a unit's role marker is missing or conflicting.

    Recoverable: the unit is treated as unclassified and a warning is reported.
    """

    recoverable = True

    def __init__(self, unit_id: str, markers: Sequence[str] = (), conflicting: bool = False):
        if conflicting:
            message = f"Conflicting role markers on {unit_id}: {', '.join(markers)}"
            code = ErrorCode.CI301
        else:
            message = f"No role marker resolved for {unit_id}"
            code = ErrorCode.CI300
        super().__init__(message, details={"unit": unit_id}, code=code)
        self.unit_id = unit_id
        self.markers = tuple(markers)
        self.conflicting = conflicting


class AnalysisInvariantViolation(AnalysisError):
    """Raised when the structural model of one unit is internally inconsistent.

    Fatal for that unit only: it is reported as an analysis failure and never
    silently dropped.
    """

    def __init__(self, unit_id: str, reason: str, code: ErrorCode = ErrorCode.CI400):
        super().__init__(
            f"Inconsistent structural model for {unit_id}: {reason}",
            details={"unit": unit_id},
            code=code,
        )
        self.unit_id = unit_id
        self.reason = reason


class CoChangeSourceError(AnalysisError):
    """Raised when the co-change history cannot be fetched."""

    recoverable = True

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Co-change source unavailable: {source}",
            details={"source": source, "reason": reason},
            code=ErrorCode.CI402,
        )
        self.source = source
        self.reason = reason
