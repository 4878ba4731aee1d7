"""Graphviz DOT diagrams of a catalog.

Tables become HTML-like record nodes, foreign keys solid edges and weak
associations dashed edges. Only the DOT source is produced; turning it into
an image is left to Graphviz.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from html import escape
from typing import Any, Mapping

from dbdoc.core.formatters.base import (
    BaseFormatter,
    FormatterBuilder,
    flag,
    section_values,
)
from dbdoc.core.schema import CrawlInfo, Table
from dbdoc.core.sinks import OutputOptions, Sink

DEFAULT_GRAPH_ATTRIBUTES = {
    "fontname": "Helvetica",
    "labeljust": "r",
    "nodesep": "0.18",
    "rankdir": "RL",
}
DEFAULT_NODE_ATTRIBUTES = {"fontname": "Helvetica", "shape": "none"}
DEFAULT_EDGE_ATTRIBUTES = {"fontname": "Helvetica"}


@dataclass(frozen=True)
class DiagramOptions:
    """Rendering switches and Graphviz attributes for diagrams."""

    no_info: bool = False
    no_foreign_key_names: bool = False
    show_unqualified_names: bool = False
    show_ordinal_numbers: bool = False
    sort_table_columns: bool = False
    show_row_counts: bool = False
    graph_attributes: Mapping[str, str] = field(default_factory=dict)
    node_attributes: Mapping[str, str] = field(default_factory=dict)
    edge_attributes: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> DiagramOptions:
        def _attrs(kind: str, defaults: Mapping[str, str]) -> dict[str, str]:
            overrides = {k: str(v) for k, v in section_values(settings, kind).items()}
            return {**defaults, **overrides}

        return cls(
            no_info=flag(settings, "no-info"),
            no_foreign_key_names=flag(settings, "no-foreign-key-names"),
            show_unqualified_names=flag(settings, "show-unqualified-names"),
            show_ordinal_numbers=flag(settings, "show-ordinal-numbers"),
            sort_table_columns=flag(settings, "sort-table-columns"),
            show_row_counts=flag(settings, "show-row-counts"),
            graph_attributes=_attrs("graph", DEFAULT_GRAPH_ATTRIBUTES),
            node_attributes=_attrs("node", DEFAULT_NODE_ATTRIBUTES),
            edge_attributes=_attrs("edge", DEFAULT_EDGE_ATTRIBUTES),
        )


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _attribute_list(attributes: Mapping[str, str]) -> str:
    return ", ".join(f"{k}={_quote(v)}" for k, v in sorted(attributes.items()))


@dataclass(frozen=True)
class _Edge:
    table: str
    column: str
    referenced_table: str
    referenced_column: str
    label: str
    weak: bool


class DiagramFormatter(BaseFormatter):
    """Writes a DOT digraph of tables and their relationships."""

    def __init__(self, sink: Sink, output: OutputOptions, options: DiagramOptions) -> None:
        super().__init__(sink, output)
        self.options = options
        self._ports: dict[str, dict[str, str]] = {}
        self._edges: list[_Edge] = []

    def begin(self) -> None:
        self._ports = {}
        self._edges = []
        self.sink.writeln('digraph "catalog" {')
        self.sink.writeln(f"  graph [{_attribute_list(self.options.graph_attributes)}];")
        self.sink.writeln(f"  node [{_attribute_list(self.options.node_attributes)}];")
        self.sink.writeln(f"  edge [{_attribute_list(self.options.edge_attributes)}];")

    def handle_crawl_info(self, crawl_info: CrawlInfo) -> None:
        rows = []
        title = self.output.title or crawl_info.title
        if title:
            rows.append(f'<tr><td colspan="2"><b>{escape(title)}</b></td></tr>')
        if not self.options.no_info:
            rows.append(
                f'<tr><td align="right">generated by</td>'
                f'<td align="left">dbdoc {escape(crawl_info.generator_version)}</td></tr>'
            )
            rows.append(
                f'<tr><td align="right">generated on</td>'
                f'<td align="left">{escape(crawl_info.crawl_timestamp)}</td></tr>'
            )
        if not rows:
            return
        self.sink.writeln("  graph [label=<")
        self.sink.writeln('    <table border="1" cellborder="0" cellspacing="0">')
        for row in rows:
            self.sink.writeln(f"      {row}")
        self.sink.writeln("    </table>")
        self.sink.writeln("  >];")

    def handle_table(self, table: Table) -> None:
        columns = list(table.columns)
        if self.options.sort_table_columns:
            columns.sort(key=lambda c: c.name)
        self._ports[table.full_name] = {
            c.name: f"c{position}" for position, c in enumerate(columns, start=1)
        }

        name = table.name if self.options.show_unqualified_names else table.full_name
        pk_columns = set(table.primary_key.columns) if table.primary_key else set()

        self.sink.writeln("")
        self.sink.writeln(f"  /* {table.full_name} */")
        self.sink.writeln(f"  {_quote(table.full_name)} [label=<")
        self.sink.writeln('    <table border="1" cellborder="0" cellspacing="0">')
        self.sink.writeln(
            f'      <tr><td colspan="2" bgcolor="lightgrey" align="left">'
            f"<b>{escape(name)}</b></td>"
            f'<td bgcolor="lightgrey" align="right">[{escape(table.table_type.lower())}]</td></tr>'
        )
        for position, column in enumerate(columns, start=1):
            label = escape(column.name)
            if column.name in pk_columns:
                label = f"<u>{label}</u>"
            if self.options.show_ordinal_numbers:
                label = f"{column.ordinal}. {label}"
            self.sink.writeln(
                f'      <tr><td port="c{position}.start" align="left">{label}</td>'
                f'<td align="left">{escape(column.data_type.lower())}</td>'
                f'<td port="c{position}.end" align="right"></td></tr>'
            )
        if self.options.show_row_counts and table.row_count is not None:
            self.sink.writeln(
                f'      <tr><td colspan="3" align="right">{table.row_count:,} rows</td></tr>'
            )
        self.sink.writeln("    </table>")
        self.sink.writeln("  >];")

        for fk in table.foreign_keys:
            label = "" if self.options.no_foreign_key_names else fk.name
            for column, ref in zip(fk.columns, fk.referenced_columns):
                self._edges.append(
                    _Edge(table.full_name, column, fk.referenced_table, ref, label, False)
                )
        for wa in table.weak_associations:
            self._edges.append(
                _Edge(
                    table.full_name,
                    wa.column,
                    wa.referenced_table,
                    wa.referenced_column,
                    "",
                    True,
                )
            )

    def _endpoint(self, table: str, column: str, side: str) -> str:
        port = self._ports.get(table, {}).get(column)
        if port is None:
            return _quote(table)
        return f"{_quote(table)}:{_quote(f'{port}.{side}')}"

    def end(self) -> None:
        edges = sorted(
            (e for e in self._edges if e.referenced_table in self._ports),
            key=lambda e: (e.table, e.column, e.referenced_table, e.referenced_column),
        )
        if edges:
            self.sink.writeln("")
        for edge in edges:
            attributes = {"dir": "both", "arrowhead": "none", "arrowtail": "crowodot"}
            if edge.weak:
                attributes["style"] = "dashed"
            if edge.label:
                attributes["label"] = edge.label
            self.sink.writeln(
                f"  {self._endpoint(edge.table, edge.column, 'start')}"
                f" -> {self._endpoint(edge.referenced_table, edge.referenced_column, 'end')}"
                f" [{_attribute_list(attributes)}];"
            )
        self.sink.writeln("}")


def diagram_formatter(settings: Mapping[str, Any]) -> FormatterBuilder:
    return partial(DiagramFormatter, options=DiagramOptions.from_settings(settings))
