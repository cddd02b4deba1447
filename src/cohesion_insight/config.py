"""Configuration loading and management for Cohesion Insight.

Configuration is loaded once per run into an immutable value and passed
explicitly to every component. Sources are merged in priority order:
    1. Defaults (defined in AnalysisConfig)
    2. Project config (./cohesion-insight.toml)
    3. Explicit config file (--config)
    4. Environment variables (COHESION_* prefix)
    5. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(severity_threshold="warning")
    >>> config.severity_threshold
    <Severity.WARNING: 'warning'>
    >>> config.thresholds.ceiling(Role.REPOSITORY)
    5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, Union, get_type_hints

from .exceptions import ConfigError, InvalidConfigError
from .model import Role
from .report import Severity, ViolationKind

StreamPolicy = Literal["per_stage", "per_chain"]
EntityAggregation = Literal["sum", "max"]

PROJECT_CONFIG_NAME = "cohesion-insight.toml"
ENV_PREFIX = "COHESION_"


@dataclass(frozen=True)
class RoleThresholds:
    """Score ceiling per architectural role.

    Controllers, services and repositories are checked method by method.
    Entities and value objects are checked on the aggregate of their methods,
    hence the higher ceiling. Unclassified units have no ceiling.
    """

    controller: int = 7
    domain_service: int = 7
    application_service: int = 7
    entity: int = 9
    value_object: int = 9
    repository: int = 5

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfigError(f"thresholds.{f.name}", value, "must be an integer")
            if value < 0:
                raise InvalidConfigError(f"thresholds.{f.name}", value, "must be non-negative")

    def ceiling(self, role: Role) -> Optional[int]:
        if role is Role.UNCLASSIFIED:
            return None
        return getattr(self, role.value)

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SeverityTable:
    """Severity attached to each violation kind."""

    over_load: Severity = Severity.ERROR
    low_cohesion: Severity = Severity.WARNING
    divergent_change: Severity = Severity.INFO
    shotgun_surgery: Severity = Severity.INFO
    unclassified: Severity = Severity.INFO
    over_extracted: Severity = Severity.INFO
    skipped_unit: Severity = Severity.WARNING
    analysis_failure: Severity = Severity.ERROR

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, Severity):
                object.__setattr__(self, f.name, _parse_severity(f"severities.{f.name}", value))

    def for_kind(self, kind: ViolationKind) -> Severity:
        return getattr(self, kind.config_key)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "SeverityTable":
        """Build from a ``[severities]`` table keyed by kind name or snake_case key."""
        resolved: dict[str, Any] = {}
        for key, value in data.items():
            try:
                kind = ViolationKind.parse(key)
            except ValueError:
                raise InvalidConfigError(f"severities.{key}", value, "unknown violation kind")
            resolved[kind.config_key] = value
        return cls(**resolved)


_DEFAULT_EXCLUDES = (
    "venv/*",
    ".venv/*",
    "__pycache__/*",
    "node_modules/*",
    "build/*",
    "dist/*",
    ".git/*",
    ".tox/*",
    "*.egg-info/*",
    ".eggs/*",
    ".mypy_cache/*",
    ".pytest_cache/*",
)


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one analysis run.

    Attributes:
        Verdict:
            severity_threshold: Minimum severity that makes a run unclean

        Cognitive load:
            stream_policy: Count stream stages individually ("per_stage") or
                once per pipeline ("per_chain")
            entity_aggregation: Aggregate entity/value-object method scores by
                "sum" or "max" before checking the ceiling
            over_extraction_roles: Roles whose units are expected to hold behaviour
            over_extraction_min / over_extraction_max: Aggregate score range
                that triggers the "possibly over-extracted" advisory

        Cohesion:
            cohesion_floor: Units with a cohesion ratio below this are flagged
            cohesion_min_methods: Units with fewer methods are not assessed

        Co-change (shotgun surgery):
            cochange_window_seconds: Records this close in time form one edit
            cochange_max_units_per_edit: Larger edits are bulk changes, ignored
            cochange_min_count: Minimum shared edits for a pair
            cochange_min_confidence: Minimum P(B changed | A changed)
            cochange_timeout_seconds: Bound on fetching the history
            shotgun_min_units: Minimum cluster size reported

        Execution:
            workers: Parallel workers (None = auto-detect)
            exclude_patterns: Glob patterns skipped when walking directories
            strict_parse: Unparseable units abort the run
    """

    severity_threshold: Severity = Severity.ERROR

    stream_policy: StreamPolicy = "per_stage"
    entity_aggregation: EntityAggregation = "sum"
    over_extraction_roles: tuple[Role, ...] = (Role.ENTITY, Role.VALUE_OBJECT)
    over_extraction_min: int = 1
    over_extraction_max: int = 3

    cohesion_floor: float = 0.5
    cohesion_min_methods: int = 2

    cochange_window_seconds: int = 0
    cochange_max_units_per_edit: int = 30
    cochange_min_count: int = 2
    cochange_min_confidence: float = 0.5
    cochange_timeout_seconds: float = 30.0
    shotgun_min_units: int = 3

    workers: Optional[int] = None
    exclude_patterns: tuple[str, ...] = _DEFAULT_EXCLUDES
    strict_parse: bool = False

    thresholds: RoleThresholds = field(default_factory=RoleThresholds)
    severities: SeverityTable = field(default_factory=SeverityTable)

    def __post_init__(self) -> None:
        """Normalize loose input types and validate values."""
        if not isinstance(self.severity_threshold, Severity):
            object.__setattr__(
                self,
                "severity_threshold",
                _parse_severity("severity_threshold", self.severity_threshold),
            )
        if not isinstance(self.over_extraction_roles, tuple) or not all(
            isinstance(r, Role) for r in self.over_extraction_roles
        ):
            object.__setattr__(
                self,
                "over_extraction_roles",
                tuple(_parse_role("over_extraction_roles", r) for r in self.over_extraction_roles),
            )
        if not isinstance(self.exclude_patterns, tuple):
            object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))

        if self.stream_policy not in ("per_stage", "per_chain"):
            raise InvalidConfigError(
                "stream_policy", self.stream_policy, "must be 'per_stage' or 'per_chain'"
            )
        if self.entity_aggregation not in ("sum", "max"):
            raise InvalidConfigError(
                "entity_aggregation", self.entity_aggregation, "must be 'sum' or 'max'"
            )
        if not 0.0 <= self.cohesion_floor <= 1.0:
            raise InvalidConfigError(
                "cohesion_floor", self.cohesion_floor, "must be between 0.0 and 1.0"
            )
        if not 0.0 <= self.cochange_min_confidence <= 1.0:
            raise InvalidConfigError(
                "cochange_min_confidence",
                self.cochange_min_confidence,
                "must be between 0.0 and 1.0",
            )
        if self.over_extraction_min > self.over_extraction_max:
            raise InvalidConfigError(
                "over_extraction_min",
                self.over_extraction_min,
                "must not exceed over_extraction_max",
            )
        if self.workers is not None and self.workers < 1:
            raise InvalidConfigError("workers", self.workers, "must be at least 1")
        if self.cochange_timeout_seconds <= 0:
            raise InvalidConfigError(
                "cochange_timeout_seconds", self.cochange_timeout_seconds, "must be positive"
            )

        for name in (
            "cohesion_min_methods",
            "cochange_window_seconds",
            "cochange_max_units_per_edit",
            "cochange_min_count",
            "over_extraction_min",
        ):
            if getattr(self, name) < 0:
                raise InvalidConfigError(name, getattr(self, name), "must be non-negative")
        if self.shotgun_min_units < 2:
            raise InvalidConfigError(
                "shotgun_min_units", self.shotgun_min_units, "must be at least 2"
            )


DEFAULT_CONFIG = AnalysisConfig()


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags); ``None``
            values are ignored

    Returns:
        Validated AnalysisConfig instance

    Raises:
        ConfigError: If a config file is unreadable or contains invalid values
    """
    merged: dict[str, Any] = {}

    project_config = Path.cwd() / PROJECT_CONFIG_NAME
    if project_config.exists():
        merged.update(_read_config_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        merged.update(_read_config_file(config_file))

    merged.update(_load_env_vars())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    thresholds = merged.pop("thresholds", None)
    if isinstance(thresholds, dict):
        unknown = set(thresholds) - set(RoleThresholds.__dataclass_fields__)
        if unknown:
            raise InvalidConfigError(
                "thresholds", ", ".join(sorted(unknown)), "unknown role in [thresholds]"
            )
        merged["thresholds"] = RoleThresholds(**thresholds)
    elif isinstance(thresholds, RoleThresholds):
        merged["thresholds"] = thresholds
    elif thresholds is not None:
        raise InvalidConfigError("thresholds", thresholds, "must be a table")

    severities = merged.pop("severities", None)
    if isinstance(severities, dict):
        merged["severities"] = SeverityTable.from_mapping(severities)
    elif isinstance(severities, SeverityTable):
        merged["severities"] = severities
    elif severities is not None:
        raise InvalidConfigError("severities", severities, "must be a table")

    unknown_keys = set(merged) - set(AnalysisConfig.__dataclass_fields__)
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown_keys))}")

    try:
        return AnalysisConfig(**merged)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}")


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = load_toml_file(path)
    except ConfigError:
        raise
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid config file '{path}': {e}")
    # Allow the settings to live under [tool.cohesion-insight] as well
    tool = data.get("tool")
    tool_section = tool.get("cohesion-insight") if isinstance(tool, dict) else None
    if isinstance(tool_section, dict):
        return dict(tool_section)
    return data


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from COHESION_* environment variables.

    Only scalar fields are supported (e.g. COHESION_SEVERITY_THRESHOLD,
    COHESION_COHESION_FLOOR, COHESION_WORKERS, COHESION_STRICT_PARSE).
    """
    type_hints = get_type_hints(AnalysisConfig)
    result: dict[str, Any] = {}

    for field_name in AnalysisConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the field's type.

    Returns None for field types that cannot be expressed as one string.
    """
    args = getattr(type_hint, "__args__", ())
    origin = getattr(type_hint, "__origin__", None)
    if origin is Union and type(None) in args:
        non_none = [t for t in args if t is not type(None)]
        if non_none:
            type_hint = non_none[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is tuple or origin is list:
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")
    if type_hint is int:
        return int(value)
    if type_hint is float:
        return float(value)
    if type_hint is Severity or type_hint is str or origin is Literal:
        return value
    return None


def _parse_severity(key: str, value: Any) -> Severity:
    try:
        return Severity.parse(str(value))
    except ValueError:
        raise InvalidConfigError(key, value, "must be one of: info, warning, error")


def _parse_role(key: str, value: Any) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role.parse(str(value))
    except ValueError:
        raise InvalidConfigError(key, value, "unknown role")


def load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigError: If tomllib/tomli not available
    """
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        try:
            # Fallback to tomli for Python 3.9-3.10
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
