"""Report renderers: ``text`` for terminals, ``json`` for machines."""

from typing import Dict, Optional, Type

from rich.console import Console

from .base import BaseFormatter
from .json_formatter import JsonFormatter
from .text_formatter import TextFormatter

FORMATTERS: Dict[str, Type[BaseFormatter]] = {
    "text": TextFormatter,
    "json": JsonFormatter,
}


def get_formatter(name: str, console: Optional[Console] = None) -> BaseFormatter:
    """Formatter registered under ``name``.

    ``console`` only applies to the text formatter; JSON always goes to
    stdout unstyled.

    Raises:
        ValueError: If name is not recognized
    """
    cls = FORMATTERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown formatter: {name!r}. Choose from: {', '.join(sorted(FORMATTERS))}")
    if cls is TextFormatter:
        return TextFormatter(console)
    return cls()


__all__ = [
    "FORMATTERS",
    "BaseFormatter",
    "JsonFormatter",
    "TextFormatter",
    "get_formatter",
]
