"""Public API for Cohesion Insight.

Example:
    >>> from cohesion_insight import analyze
    >>>
    >>> report = analyze("src")
    >>> report.clean
    True
    >>>
    >>> # With customization
    >>> report = analyze(
    ...     ["src", "models.units.json"],
    ...     config=load_config(severity_threshold="warning"),
    ...     marker_map={"Service": "domain_service"},
    ...     cochange_source="history.ndjson",
    ... )
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from .cancellation import CancellationToken
from .cochange import CoChangeSource, NdjsonCoChangeSource
from .config import AnalysisConfig, load_config
from .engine import AnalysisEngine
from .logging_config import get_logger
from .report import Report
from .roles import RoleMarkerMap, load_marker_map

logger = get_logger(__name__)

PathLike = Union[str, Path]


def analyze(
    paths: Union[PathLike, Sequence[PathLike]] = ".",
    config: Optional[AnalysisConfig] = None,
    marker_map: Union[RoleMarkerMap, Mapping[str, str], PathLike, None] = None,
    cochange_source: Union[CoChangeSource, PathLike, None] = None,
    token: Optional[CancellationToken] = None,
) -> Report:
    """Analyze source paths and return the ordered report.

    Args:
        paths: File or directory, or a sequence of them
        config: Analysis configuration (default: auto-discovered TOML + env)
        marker_map: Extra role markers as a map, a ``{marker: role}`` mapping,
            or a TOML/JSON file path; merged over the front-end defaults
        cochange_source: Co-change history, or an NDJSON file path
        token: Cancellation token; a cancelled run returns a partial report

    Returns:
        Report with violations in deterministic order

    Raises:
        ConfigError: If configuration, marker map or input paths are invalid
        ParseError: If ``config.strict_parse`` is set and a source was skipped
    """
    if isinstance(paths, (str, Path)):
        paths = [paths]
    resolved_paths = [Path(p) for p in paths]

    if config is None:
        config = load_config()

    if marker_map is not None and not isinstance(marker_map, RoleMarkerMap):
        if isinstance(marker_map, (str, Path)):
            marker_map = load_marker_map(Path(marker_map))
        else:
            marker_map = RoleMarkerMap.from_names(marker_map)

    if isinstance(cochange_source, (str, Path)):
        cochange_source = NdjsonCoChangeSource(Path(cochange_source))

    engine = AnalysisEngine(config, marker_map=marker_map, cochange_source=cochange_source)
    return engine.run(resolved_paths, token=token)
