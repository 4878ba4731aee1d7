"""JSON serialization of a catalog."""

from __future__ import annotations

import json
from dataclasses import asdict
from functools import partial
from typing import Any, Mapping

from dbdoc.core.formatters.base import BaseFormatter, FormatterBuilder, flag
from dbdoc.core.schema import (
    ColumnDataType,
    CrawlInfo,
    Routine,
    Sequence,
    Synonym,
    Table,
)
from dbdoc.core.sinks import OutputOptions, Sink


def _with_full_name(obj: Any) -> dict[str, Any]:
    data = asdict(obj)
    return {"full_name": obj.full_name, **data}


class JsonFormatter(BaseFormatter):
    """Collects the catalog during traversal and writes one JSON document at the end."""

    def __init__(
        self, sink: Sink, output: OutputOptions, *, no_info: bool = False
    ) -> None:
        super().__init__(sink, output)
        self.no_info = no_info
        self.document: dict[str, Any] = {}

    def begin(self) -> None:
        self.document = {}
        if self.output.title:
            self.document["title"] = self.output.title

    def handle_crawl_info(self, crawl_info: CrawlInfo) -> None:
        if not self.no_info:
            self.document["crawl_info"] = asdict(crawl_info)

    def handle_column_data_types_start(self) -> None:
        self.document["column_data_types"] = []

    def handle_column_data_type(self, column_data_type: ColumnDataType) -> None:
        self.document["column_data_types"].append(_with_full_name(column_data_type))

    def handle_tables_start(self) -> None:
        self.document["tables"] = []

    def handle_table(self, table: Table) -> None:
        self.document["tables"].append(_with_full_name(table))

    def handle_routines_start(self) -> None:
        self.document["routines"] = []

    def handle_routine(self, routine: Routine) -> None:
        self.document["routines"].append(_with_full_name(routine))

    def handle_synonyms_start(self) -> None:
        self.document["synonyms"] = []

    def handle_synonym(self, synonym: Synonym) -> None:
        self.document["synonyms"].append(_with_full_name(synonym))

    def handle_sequences_start(self) -> None:
        self.document["sequences"] = []

    def handle_sequence(self, sequence: Sequence) -> None:
        self.document["sequences"].append(_with_full_name(sequence))

    def end(self) -> None:
        self.sink.write(json.dumps(self.document, indent=2, ensure_ascii=False))
        self.sink.writeln()


def json_formatter(settings: Mapping[str, Any]) -> FormatterBuilder:
    return partial(JsonFormatter, no_info=flag(settings, "no-info"))
