"""Formatter registry.

Maps output format tokens to formatter factories. A factory receives the
merged formatter settings, validates them and returns a builder; the builder
binds the sink and the output options and returns a TraversalHandler. Neither
step writes anything. Looking up an unknown token fails with
UnsupportedFormatError, and Execute resolves the token and its settings
before it asks the crawler for anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from dbdoc.core.errors import UnsupportedFormatError
from dbdoc.core.formatters.base import FormatterBuilder
from dbdoc.core.formatters.diagram import diagram_formatter
from dbdoc.core.formatters.json_report import json_formatter
from dbdoc.core.formatters.lint_report import lint_formatter
from dbdoc.core.formatters.text import list_formatter, text_formatter

FormatterFactory = Callable[[Mapping[str, Any]], FormatterBuilder]


@dataclass(frozen=True)
class FormatterEntry:
    """
    A registered output format.

    Attributes:
        token: Format token, lower case.
        factory: Validates settings and returns a formatter builder.
        description: One-line description for `available-commands`.
        config_section: Config file section holding this format's defaults.
    """

    token: str
    factory: FormatterFactory
    description: str
    config_section: str


class FormatterRegistry:
    """Registry of output formats keyed by case-insensitive token."""

    def __init__(self) -> None:
        self._entries: dict[str, FormatterEntry] = {}

    def register(
        self,
        token: str,
        factory: FormatterFactory,
        description: str,
        *,
        config_section: str | None = None,
    ) -> None:
        key = token.strip().lower()
        self._entries[key] = FormatterEntry(
            token=key,
            factory=factory,
            description=description,
            config_section=config_section or key,
        )

    def lookup(self, token: str) -> FormatterEntry:
        """
        Return the entry for a format token.

        Raises:
            UnsupportedFormatError: If no formatter is registered for it.
        """
        entry = self._entries.get((token or "").strip().lower())
        if entry is None:
            available = ", ".join(self.tokens())
            raise UnsupportedFormatError(
                f"Unsupported output format '{token}' (available: {available})",
                option="format",
            )
        return entry

    def create(self, token: str, settings: Mapping[str, Any]) -> FormatterBuilder:
        """
        Validate the settings of a format and return its builder.

        Raises:
            UnsupportedFormatError: If no formatter is registered for `token`.
            OptionValidationError: If a setting has an invalid value.
        """
        return self.lookup(token).factory(settings)

    def tokens(self) -> list[str]:
        return sorted(self._entries)

    def entries(self) -> list[FormatterEntry]:
        return [self._entries[token] for token in self.tokens()]


def default_registry() -> FormatterRegistry:
    """Return a registry with all bundled formats."""
    registry = FormatterRegistry()
    registry.register("text", text_formatter, "Detailed plain-text schema report")
    registry.register(
        "list",
        list_formatter,
        "Brief listing of object names and types",
        config_section="text",
    )
    registry.register("json", json_formatter, "Catalog serialized as JSON")
    registry.register("diagram", diagram_formatter, "Graphviz DOT diagram source")
    registry.register("lint", lint_formatter, "Schema lint report as JSON")
    return registry
