from __future__ import annotations

import io
import json
from dataclasses import replace

import pytest

from dbdoc.core.crawl import infer_weak_associations
from dbdoc.core.errors import OptionValidationError, SinkWriteError, UnsupportedFormatError
from dbdoc.core.formatters.diagram import diagram_formatter
from dbdoc.core.formatters.json_report import json_formatter
from dbdoc.core.formatters.lint_report import lint_formatter
from dbdoc.core.formatters.registry import default_registry
from dbdoc.core.formatters.text import DOCUMENT_RULE, list_formatter, text_formatter
from dbdoc.core.sinks import OutputOptions, Sink
from dbdoc.core.traversal import traverse


def _render(factory, catalog, settings=None, output=None) -> str:
    buffer = io.StringIO()
    sink = Sink(buffer, name="buffer")
    build = factory(settings or {})
    traverse(catalog, build(sink, output or OutputOptions()))
    return buffer.getvalue()


def test_text_report_starts_and_ends_with_document_rule(library_catalog):
    text = _render(text_formatter, library_catalog)

    assert text.startswith(DOCUMENT_RULE + "\n")
    assert text.endswith(DOCUMENT_RULE + "\n")


def test_text_report_contains_system_information(library_catalog):
    text = _render(text_formatter, library_catalog)

    assert "System Information" in text
    assert "dbdoc 1.2.3" in text
    assert "2026-01-01T00:00:00+00:00" in text
    assert "database version" not in text


@pytest.mark.parametrize(
    "settings",
    [{"no-info": True}, {"no-info": "true"}, {"no-generator-info": True}],
)
def test_text_report_info_can_be_switched_off(library_catalog, settings):
    assert "System Information" not in _render(text_formatter, library_catalog, settings)


def test_text_report_database_and_driver_info(library_catalog):
    text = _render(
        text_formatter,
        library_catalog,
        {"no-generator-info": True, "show-database-info": True, "show-driver-info": True},
    )

    assert "System Information" in text
    assert "StubDB 9.9" in text
    assert "stub-driver 1.0" in text
    assert "generated by" not in text


def test_text_report_title_is_underlined(library_catalog):
    text = _render(text_formatter, library_catalog, output=OutputOptions(title="Library"))

    assert "\nLibrary\n=======\n" in text


def test_text_report_table_details(library_catalog):
    text = _render(text_formatter, library_catalog)

    assert "LIBRARY.BOOKS" in text
    assert "[foreign key]" in text
    assert "--> LIBRARY.AUTHORS.ID" in text
    assert "[non-unique index]" in text
    assert "People who write books" in text
    assert "Display name" in text


def test_text_report_hides_remarks(library_catalog):
    text = _render(text_formatter, library_catalog, {"hide-remarks": True})

    assert "People who write books" not in text
    assert "Display name" not in text


def test_text_report_suppresses_empty_sections(library_catalog):
    empty = replace(library_catalog, tables=())

    assert "\nTables\n" in _render(text_formatter, empty)
    assert "\nTables\n" not in _render(text_formatter, empty, {"no-empty-sections": True})


def test_text_report_is_reproducible(library_catalog):
    assert _render(text_formatter, library_catalog) == _render(
        text_formatter, library_catalog
    )


def test_list_report_has_one_row_per_object(library_catalog):
    text = _render(list_formatter, library_catalog)
    rows = [line for line in text.splitlines() if line.endswith("[table]")]

    assert [row.split()[0] for row in rows] == [
        "LIBRARY.AUTHORS",
        "LIBRARY.BOOKS",
        "LIBRARY.EBOOKS",
        "LIBRARY.REGIONS",
    ]
    assert all(len(row) == 72 for row in rows)
    assert "[foreign key]" not in text


def test_json_report_serializes_catalog(library_catalog):
    document = json.loads(
        _render(json_formatter, library_catalog, output=OutputOptions(title="Library"))
    )

    assert document["title"] == "Library"
    assert document["crawl_info"]["generator_version"] == "1.2.3"
    assert [t["full_name"] for t in document["tables"]] == [
        "LIBRARY.AUTHORS",
        "LIBRARY.BOOKS",
        "LIBRARY.EBOOKS",
        "LIBRARY.REGIONS",
    ]
    books = document["tables"][1]
    assert books["foreign_keys"][0]["referenced_table"] == "LIBRARY.AUTHORS"
    assert document["sequences"][0]["full_name"] == "LIBRARY.BOOK_SEQ"


def test_json_report_without_info(library_catalog):
    document = json.loads(_render(json_formatter, library_catalog, {"no-info": True}))

    assert "crawl_info" not in document


def test_diagram_has_nodes_and_foreign_key_edges(library_catalog):
    dot = _render(diagram_formatter, library_catalog)

    assert dot.startswith('digraph "catalog" {\n')
    assert dot.endswith("}\n")
    assert '"LIBRARY.AUTHORS" [label=<' in dot
    assert '"LIBRARY.BOOKS":"c3.start" -> "LIBRARY.AUTHORS":"c1.end"' in dot
    assert 'label="FK_BOOKS_AUTHORS"' in dot
    assert 'rankdir="RL"' in dot


def test_diagram_settings(library_catalog):
    dot = _render(
        diagram_formatter,
        library_catalog,
        {
            "no-foreign-key-names": True,
            "show-unqualified-names": True,
            "show-row-counts": True,
            "graph.rankdir": "LR",
        },
    )

    assert 'label="FK_BOOKS_AUTHORS"' not in dot
    assert 'rankdir="LR"' in dot
    assert "<b>AUTHORS</b>" in dot
    assert "5 rows" in dot


def test_diagram_draws_weak_associations_dashed(library_catalog):
    catalog = replace(library_catalog, tables=infer_weak_associations(library_catalog.tables))
    dot = _render(diagram_formatter, catalog)

    [line] = [l for l in dot.splitlines() if '"LIBRARY.AUTHORS":"c3.start"' in l]
    assert '-> "LIBRARY.REGIONS":"c1.end"' in line
    assert 'style="dashed"' in line


def test_diagram_skips_edges_to_tables_not_drawn(library_catalog):
    books_only = replace(
        library_catalog, tables=(library_catalog.lookup_table("LIBRARY.BOOKS"),)
    )

    assert "->" not in _render(diagram_formatter, books_only)


def test_lint_report_lists_findings(library_catalog):
    report = json.loads(_render(lint_formatter, library_catalog))

    assert [(l["object_name"], l["linter_id"]) for l in report["lints"]] == [
        ("LIBRARY.EBOOKS", "foreign-key-with-no-index"),
        ("LIBRARY.EBOOKS", "empty-table"),
        ("LIBRARY.EBOOKS", "no-remarks"),
        ("LIBRARY.REGIONS", "no-remarks"),
    ]
    assert report["lints"][0]["severity"] == "medium"
    assert report["lints"][0]["value"] == "FK_EBOOKS_BOOKS"


def test_lint_report_disabled_linters(library_catalog):
    report = json.loads(
        _render(lint_formatter, library_catalog, {"disabled-linters": "no-remarks, empty-table"})
    )

    assert "no-remarks" not in report["linters"]
    assert [l["linter_id"] for l in report["lints"]] == ["foreign-key-with-no-index"]


def test_lint_report_rejects_unknown_linter(library_catalog):
    with pytest.raises(OptionValidationError, match="no-such-rule"):
        _render(lint_formatter, library_catalog, {"disabled-linters": "no-such-rule"})


def test_registry_lookup_is_case_insensitive():
    registry = default_registry()

    assert registry.lookup("TEXT").token == "text"
    assert registry.lookup("list").config_section == "text"
    assert registry.tokens() == ["diagram", "json", "lint", "list", "text"]


def test_registry_rejects_unknown_format():
    with pytest.raises(UnsupportedFormatError) as excinfo:
        default_registry().lookup("pdf")

    assert excinfo.value.option == "format"
    assert "pdf" in str(excinfo.value)


def test_registry_create_validates_settings_without_writing(library_catalog):
    registry = default_registry()

    with pytest.raises(OptionValidationError) as excinfo:
        registry.create("DIAGRAM", {"show-row-counts": "sometimes"})
    assert excinfo.value.option == "show-row-counts"

    build = registry.create("list", {"no-empty-sections": "yes"})
    buffer = io.StringIO()
    formatter = build(Sink(buffer, name="buffer"), OutputOptions())
    assert buffer.getvalue() == ""

    traverse(library_catalog, formatter)
    assert "LIBRARY.BOOKS" in buffer.getvalue()


class _AsciiStream(io.StringIO):
    def write(self, text):
        text.encode("ascii")
        return super().write(text)


def test_sink_wraps_encoding_errors():
    sink = Sink(_AsciiStream(), name="<stdout>")

    with pytest.raises(SinkWriteError, match="Cannot write to <stdout>") as excinfo:
        sink.writeln("Bücher")

    assert excinfo.value.option == "output-file"
    assert isinstance(excinfo.value.__cause__, UnicodeEncodeError)
