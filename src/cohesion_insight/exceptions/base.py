"""Base exception for Cohesion Insight."""

from typing import Dict, Optional

from .taxonomy import ErrorCode


class CohesionInsightError(Exception):
    """Base exception for all Cohesion Insight errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (file path, unit id, etc.)
        code: Structured error code for categorization
        recoverable: Whether the run can continue past this error
    """

    code: Optional[ErrorCode] = None
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, str]] = None,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        prefix = f"[{self.code.value}] " if self.code is not None else ""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{prefix}{self.message} ({details_str})"
        return f"{prefix}{self.message}"
