"""JSON formatter for Cohesion Insight."""

import json

from ..report import Report
from .base import BaseFormatter


class JsonFormatter(BaseFormatter):
    """Render the ordered violation array as JSON.

    Keys are emitted in a fixed order and the violations are already sorted,
    so unchanged input gives byte-identical output.
    """

    def render(self, report: Report) -> None:
        print(self.format(report))

    def format(self, report: Report) -> str:
        return json.dumps(report.to_json_list(), indent=2)
