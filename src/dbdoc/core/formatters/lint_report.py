"""Lint report formatter, written as a JSON document."""

from __future__ import annotations

import json
from dataclasses import asdict
from functools import partial
from typing import Any, Mapping

from dbdoc.core.formatters.base import BaseFormatter, FormatterBuilder
from dbdoc.core.lint import Lint, Linter, build_linters
from dbdoc.core.schema import CrawlInfo, Table
from dbdoc.core.sinks import OutputOptions, Sink


class LintReportFormatter(BaseFormatter):
    """Runs the linters over each table and writes the collected findings."""

    def __init__(
        self, sink: Sink, output: OutputOptions, linters: list[Linter]
    ) -> None:
        super().__init__(sink, output)
        self.linters = linters
        self.crawl_info: CrawlInfo | None = None
        self.lints: list[Lint] = []

    def begin(self) -> None:
        self.lints = []

    def handle_crawl_info(self, crawl_info: CrawlInfo) -> None:
        self.crawl_info = crawl_info

    def handle_table(self, table: Table) -> None:
        for linter in self.linters:
            self.lints.extend(linter.lint(table))

    def end(self) -> None:
        report: dict[str, Any] = {}
        if self.output.title:
            report["title"] = self.output.title
        if self.crawl_info is not None:
            report["crawl_info"] = asdict(self.crawl_info)
        report["linters"] = [linter.linter_id for linter in self.linters]
        report["lints"] = [
            {**asdict(lint), "severity": lint.severity.value} for lint in self.lints
        ]
        self.sink.write(json.dumps(report, indent=2, ensure_ascii=False))
        self.sink.writeln()


def lint_formatter(settings: Mapping[str, Any]) -> FormatterBuilder:
    disabled = settings.get("disabled-linters", "")
    if isinstance(disabled, str):
        disabled = disabled.split(",")
    return partial(LintReportFormatter, linters=build_linters(disabled))
