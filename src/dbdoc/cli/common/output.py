"""Console helpers shared by the dbdoc commands.

Everything here prints to stderr; stdout is reserved for reports.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from dbdoc.cli.common.tui_style import QUESTIONARY_STYLE_SELECT
from dbdoc.core.options import SchemaCrawlerOptions
from dbdoc.core.sinks import OutputOptions

console = Console(
    theme=Theme(
        {
            "ok": "bold green",
            "warn": "yellow",
            "err": "bold red",
            "heading": "bold cyan",
            "meta": "dim",
        }
    ),
    stderr=True,
)


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def _two_column_table(title: str, first: str, second: str, first_style: str = "ok") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column(first, style=first_style, no_wrap=True)
    table.add_column(second)
    return table


@dataclass(frozen=True)
class Out:
    """Status lines, prompts and tables for the interactive surfaces."""

    def _emit(self, marker: str, msg: str) -> None:
        console.print(f"{marker} {escape(msg)}")

    def info(self, msg: str) -> None:
        self._emit("[heading]›[/]", msg)

    def success(self, msg: str) -> None:
        self._emit("[ok]✓[/]", msg)

    def warn(self, msg: str) -> None:
        self._emit("[warn]⚠[/]", msg)

    def error(self, msg: str) -> None:
        self._emit("[err]✗[/]", msg)

    @contextmanager
    def status(self, msg: str) -> Iterator[None]:
        """Spin while a crawl runs; the spinner disappears when the block exits."""
        with console.status(msg, spinner="dots"):
            yield

    def header(self, title: str) -> None:
        console.print(f"[heading]{escape(title)}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            console.print(f"[meta]{escape(str(key))}[/]: {escape(str(value))}")

    def select_one(self, message: str, choices: list[str]) -> str | None:
        """Ask for one of ``choices``; ``None`` when there is nothing to pick or the user cancels."""
        if not choices:
            return None

        return questionary.select(
            f"[DBDOC] {message}",
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="↑/↓ to move, Enter to pick",
            pointer="❯",
        ).ask()

    def formats_table(self, rows: Iterable[tuple[str, str]], title: str = "Output formats") -> None:
        table = _two_column_table(title, "Format", "Description")
        for token, description in rows:
            table.add_row(token, escape(description))
        console.print(table)

    def servers_table(
        self, rows: Iterable[tuple[str, str, str]], title: str = "Servers"
    ) -> None:
        """One row per registered server plugin, with its connect arguments."""
        table = _two_column_table(title, "Server", "Description")
        table.add_column("Arguments", style="meta")
        for name, description, arguments in rows:
            table.add_row(name, escape(description), escape(arguments))
        console.print(table)

    def commands_table(self, rows: Iterable[tuple[str, str]], title: str = "Commands") -> None:
        table = _two_column_table(title, "Command", "Usage")
        for name, usage in rows:
            table.add_row(name, escape(usage))
        console.print(table)

    def options_table(
        self,
        options: SchemaCrawlerOptions,
        output: OutputOptions,
        title: str = "Session options",
    ) -> None:
        """Show the composed crawl options and output options of a session.

        Limit and grep rules are listed only when they narrow something.
        """
        t = _two_column_table(title, "Option", "Value", first_style="meta")

        limit = options.limit
        for label in ("schemas", "tables", "routines", "columns", "synonyms", "sequences"):
            rule = getattr(limit, label)
            if not rule.includes_all:
                t.add_row(f"limit.{label}", escape(f"include={rule.include!r} exclude={rule.exclude!r}"))
        if limit.table_types:
            t.add_row("limit.table-types", ", ".join(limit.table_types))
        if limit.routine_types:
            t.add_row("limit.routine-types", ", ".join(limit.routine_types))

        grep = options.grep
        for label in ("grep_columns", "grep_routine_parameters", "grep_definitions"):
            rule = getattr(grep, label)
            if rule is not None:
                t.add_row(f"grep.{label.replace('_', '-')}", escape(repr(rule.include)))
        if grep.invert_match:
            t.add_row("grep.invert-match", "yes")
        if grep.only_matching:
            t.add_row("grep.only-matching", "yes")

        load = options.load
        t.add_row("load.info-level", load.info_level.value)
        t.add_row("load.retrieve", ", ".join(sorted(r.value for r in load.retrievals())))
        t.add_row("load.weak-associations", _yes_no(load.retrieve_weak_associations))
        t.add_row("load.load-row-counts", _yes_no(load.load_row_counts))

        filt = options.filter
        t.add_row("filter.parents", str(filt.parent_table_depth))
        t.add_row("filter.children", str(filt.child_table_depth))
        t.add_row("filter.no-empty-tables", _yes_no(filt.no_empty_tables))

        t.add_row("output.format", output.output_format)
        t.add_row("output.file", output.destination)
        if output.title:
            t.add_row("output.title", escape(output.title))

        console.print(t)


out = Out()
