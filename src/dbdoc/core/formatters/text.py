"""Plain-text schema reports.

Two variants share one formatter: `text` renders full table details
(columns, keys, indexes, weak associations, row counts), while `list`
renders one name row per object.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Mapping

from dbdoc.core.formatters.base import BaseFormatter, FormatterBuilder, flag
from dbdoc.core.schema import (
    Column,
    ColumnDataType,
    CrawlInfo,
    Routine,
    Sequence,
    Synonym,
    Table,
)
from dbdoc.core.sinks import OutputOptions, Sink

LINE_WIDTH = 72
DOCUMENT_RULE = "=" * LINE_WIDTH
_NAME_WIDTH = 36


@dataclass(frozen=True)
class TextOptions:
    """Rendering switches for text reports."""

    no_info: bool = False
    no_generator_info: bool = False
    show_database_info: bool = False
    show_driver_info: bool = False
    hide_remarks: bool = False
    no_empty_sections: bool = False

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> TextOptions:
        return cls(
            no_info=flag(settings, "no-info"),
            no_generator_info=flag(settings, "no-generator-info"),
            show_database_info=flag(settings, "show-database-info"),
            show_driver_info=flag(settings, "show-driver-info"),
            hide_remarks=flag(settings, "hide-remarks"),
            no_empty_sections=flag(settings, "no-empty-sections"),
        )


class HeaderType(str, Enum):
    TITLE = "title"
    SUBTITLE = "subtitle"


class TextFormattingHelper:
    """Low-level plain-text layout primitives."""

    def __init__(self, sink: Sink) -> None:
        self.sink = sink

    def write_document_start(self) -> None:
        self.sink.writeln(DOCUMENT_RULE)

    def write_document_end(self) -> None:
        self.sink.writeln()
        self.sink.writeln(DOCUMENT_RULE)

    def write_header(self, kind: HeaderType, text: str) -> None:
        underline = "=" if kind == HeaderType.TITLE else "-"
        self.sink.writeln()
        if kind == HeaderType.SUBTITLE:
            self.sink.writeln()
        self.sink.writeln(text)
        self.sink.writeln(underline * len(text))

    def write_object_start(self) -> None:
        self.sink.writeln()

    def write_object_end(self) -> None:
        pass

    def write_name_row(self, name: str, description: str) -> None:
        gap = LINE_WIDTH - len(name) - len(description)
        self.sink.writeln(f"{name}{' ' * max(gap, 1)}{description}")

    def write_name_value_row(self, name: str, value: str) -> None:
        self.sink.writeln(f"{name:<{_NAME_WIDTH}}{value}".rstrip())

    def write_description_row(self, text: str) -> None:
        for line in text.splitlines():
            self.sink.writeln(f"  {line}".rstrip())

    def write_detail_row(self, ordinal: str, name: str, detail: str) -> None:
        self.sink.writeln(f"{ordinal:<2}{name:<{_NAME_WIDTH - 2}}{detail}".rstrip())

    def write_empty_row(self) -> None:
        self.sink.writeln()


class SchemaTextFormatter(BaseFormatter):
    """Text report of a catalog; `details=False` gives the brief listing."""

    def __init__(
        self,
        sink: Sink,
        output: OutputOptions,
        options: TextOptions,
        *,
        details: bool = True,
    ) -> None:
        super().__init__(sink, output)
        self.options = options
        self.details = details
        self.suppress_empty_sections = options.no_empty_sections
        self.helper = TextFormattingHelper(sink)

    def begin(self) -> None:
        self.helper.write_document_start()

    def end(self) -> None:
        self.helper.write_document_end()

    def handle_crawl_info(self, crawl_info: CrawlInfo) -> None:
        title = self.output.title or crawl_info.title
        if title and title.strip():
            self.helper.write_header(HeaderType.TITLE, title.strip())

        opts = self.options
        if opts.no_info or (
            opts.no_generator_info
            and not opts.show_database_info
            and not opts.show_driver_info
        ):
            return

        self.helper.write_header(HeaderType.SUBTITLE, "System Information")
        self.helper.write_object_start()
        if not opts.no_generator_info:
            self.helper.write_name_value_row(
                "generated by", f"dbdoc {crawl_info.generator_version}"
            )
            self.helper.write_name_value_row("generated on", crawl_info.crawl_timestamp)
        if opts.show_database_info:
            product = f"{crawl_info.database_product} {crawl_info.database_version}"
            self.helper.write_name_value_row("database version", product.strip())
        if opts.show_driver_info:
            self.helper.write_name_value_row("driver version", crawl_info.driver_version)
        self.helper.write_object_end()

    def handle_column_data_types_start(self) -> None:
        if self.details:
            self.helper.write_header(HeaderType.SUBTITLE, "Column Data Types")
            self.helper.write_object_start()

    def handle_column_data_type(self, column_data_type: ColumnDataType) -> None:
        if not self.details:
            return
        kind = "[user defined]" if column_data_type.user_defined else "[system]"
        self.helper.write_name_row(column_data_type.full_name, kind)
        if column_data_type.base_type:
            self.helper.write_description_row(f"based on {column_data_type.base_type}")

    def handle_column_data_types_end(self) -> None:
        if self.details:
            self.helper.write_object_end()

    def handle_tables_start(self) -> None:
        self.helper.write_header(HeaderType.SUBTITLE, "Tables")
        self.helper.write_object_start()

    def handle_table(self, table: Table) -> None:
        if self.details:
            self.helper.write_empty_row()
        self.helper.write_name_row(table.full_name, f"[{table.table_type.lower()}]")
        self._remarks(table.remarks)
        if not self.details:
            return

        self.helper.sink.writeln("-" * LINE_WIDTH)
        for column in table.columns:
            self._column(column)

        if table.primary_key:
            self.helper.write_empty_row()
            self.helper.write_name_row(table.primary_key.name, "[primary key]")
            for name in table.primary_key.columns:
                self.helper.write_detail_row("", name, "")

        for fk in sorted(table.foreign_keys, key=lambda k: k.name):
            self.helper.write_empty_row()
            self.helper.write_name_row(fk.name, "[foreign key]")
            for column, ref in zip(fk.columns, fk.referenced_columns):
                self.helper.write_detail_row(
                    "", column, f"--> {fk.referenced_table}.{ref}"
                )

        for wa in sorted(table.weak_associations, key=lambda w: w.column):
            self.helper.write_empty_row()
            self.helper.write_name_row("", "[weak association]")
            self.helper.write_detail_row(
                "", wa.column, f"~~> {wa.referenced_table}.{wa.referenced_column}"
            )

        for index in sorted(table.indexes, key=lambda i: i.name):
            self.helper.write_empty_row()
            kind = "[unique index]" if index.unique else "[non-unique index]"
            self.helper.write_name_row(index.name, kind)
            for name in index.columns:
                self.helper.write_detail_row("", name, "")

        if table.definition:
            self.helper.write_empty_row()
            self.helper.write_name_row("", "[definition]")
            self.helper.write_description_row(table.definition)

        if table.row_count is not None:
            self.helper.write_empty_row()
            self.helper.write_name_value_row("row count", str(table.row_count))

    def handle_tables_end(self) -> None:
        self.helper.write_object_end()

    def handle_routines_start(self) -> None:
        self.helper.write_header(HeaderType.SUBTITLE, "Routines")
        self.helper.write_object_start()

    def handle_routine(self, routine: Routine) -> None:
        detail = routine.routine_type.lower()
        if routine.return_type:
            detail = f"{detail}, {routine.return_type}"
        if self.details:
            self.helper.write_empty_row()
        self.helper.write_name_row(routine.full_name, f"[{detail}]")
        self._remarks(routine.remarks)
        if not self.details:
            return
        for parameter in routine.parameters:
            self.helper.write_detail_row(
                "", parameter.name, f"{parameter.data_type} {parameter.mode.lower()}"
            )

    def handle_routines_end(self) -> None:
        self.helper.write_object_end()

    def handle_synonyms_start(self) -> None:
        self.helper.write_header(HeaderType.SUBTITLE, "Synonyms")
        self.helper.write_object_start()

    def handle_synonym(self, synonym: Synonym) -> None:
        self.helper.write_name_row(synonym.full_name, "[synonym]")
        self._remarks(synonym.remarks)
        if self.details:
            self.helper.write_detail_row("", "", f"--> {synonym.referenced_object}")

    def handle_synonyms_end(self) -> None:
        self.helper.write_object_end()

    def handle_sequences_start(self) -> None:
        self.helper.write_header(HeaderType.SUBTITLE, "Sequences")
        self.helper.write_object_start()

    def handle_sequence(self, sequence: Sequence) -> None:
        self.helper.write_name_row(sequence.full_name, "[sequence]")
        self._remarks(sequence.remarks)
        if not self.details:
            return
        self.helper.write_name_value_row("  increment", str(sequence.increment))
        if sequence.minimum_value is not None:
            self.helper.write_name_value_row("  minimum value", str(sequence.minimum_value))
        if sequence.maximum_value is not None:
            self.helper.write_name_value_row("  maximum value", str(sequence.maximum_value))
        self.helper.write_name_value_row("  cycle", "yes" if sequence.cycle else "no")

    def handle_sequences_end(self) -> None:
        self.helper.write_object_end()

    def _column(self, column: Column) -> None:
        detail = column.data_type
        if not column.nullable:
            detail = f"{detail} NOT NULL"
        if column.default is not None:
            detail = f"{detail} DEFAULT {column.default}"
        self.helper.write_detail_row("", column.name, detail)
        if column.remarks and not self.options.hide_remarks:
            self.helper.write_detail_row("", "", column.remarks)

    def _remarks(self, remarks: str | None) -> None:
        if remarks and not self.options.hide_remarks:
            self.helper.write_description_row(remarks)


def text_formatter(settings: Mapping[str, Any]) -> FormatterBuilder:
    return partial(
        SchemaTextFormatter, options=TextOptions.from_settings(settings), details=True
    )


def list_formatter(settings: Mapping[str, Any]) -> FormatterBuilder:
    return partial(
        SchemaTextFormatter, options=TextOptions.from_settings(settings), details=False
    )
