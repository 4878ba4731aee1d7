"""Shared formatter plumbing.

A formatter is a TraversalHandler bound to an output sink. Constructing a
formatter performs no I/O; everything is written while the catalog is
traversed. Format factories validate their settings up front and hand back a
FormatterBuilder that binds the sink once there is something to write.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from dbdoc.core.fragments import parse_bool
from dbdoc.core.sinks import OutputOptions, Sink
from dbdoc.core.traversal import TraversalHandler

FormatterBuilder = Callable[[Sink, OutputOptions], TraversalHandler]


def section_values(config: Mapping[str, Any], section: str) -> dict[str, Any]:
    """Return the keys of one config section with the `section.` prefix removed."""
    prefix = f"{section}."
    return {
        key[len(prefix):]: value
        for key, value in config.items()
        if key.startswith(prefix)
    }


def flag(settings: Mapping[str, Any], key: str, default: bool = False) -> bool:
    """Read a boolean formatter setting."""
    if key not in settings:
        return default
    return parse_bool(settings[key], option=key)


class BaseFormatter(TraversalHandler):
    """TraversalHandler that renders into a sink."""

    def __init__(self, sink: Sink, output: OutputOptions) -> None:
        self.sink = sink
        self.output = output
