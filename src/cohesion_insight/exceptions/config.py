"""Configuration exceptions: config files, marker maps, input paths."""

from pathlib import Path
from typing import Any

from .base import CohesionInsightError
from .taxonomy import ErrorCode


class ConfigError(CohesionInsightError):
    """Base class for configuration-related errors.

    Always fatal: analysis never starts on a broken configuration.
    """

    code = ErrorCode.CI200


class InvalidConfigError(ConfigError):
    """Raised when configuration values are invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
            code=ErrorCode.CI201,
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidMarkerMapError(ConfigError):
    """Raised when a role-marker map file is malformed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Invalid role-marker map: {path}",
            details={"path": str(path), "reason": reason},
            code=ErrorCode.CI202,
        )
        self.path = path
        self.reason = reason


class InvalidPathError(ConfigError):
    """Raised when a provided input path is invalid."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Invalid path: {path}",
            details={"path": str(path), "reason": reason},
            code=ErrorCode.CI203,
        )
        self.path = path
        self.reason = reason
