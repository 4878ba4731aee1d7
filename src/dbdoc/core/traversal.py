"""Catalog traversal.

`traverse` walks a Catalog in a fixed order and feeds each part to a
TraversalHandler:

    begin
    crawl info (exactly once)
    column data types, tables, routines, synonyms, sequences
        (each as start, objects in name order, end)
    end

Every handler method is a no-op by default, so a formatter implements only
what it renders. The walk itself never depends on which methods a handler
overrides: each category's start and end are always delivered, unless the
handler asks for empty sections to be suppressed.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from dbdoc.core.schema import (
    Catalog,
    ColumnDataType,
    CrawlInfo,
    Routine,
    Sequence,
    Synonym,
    Table,
)

T = TypeVar("T")


class TraversalHandler:
    """Receives catalog contents in traversal order. Override what you need."""

    suppress_empty_sections: bool = False

    def begin(self) -> None:
        pass

    def end(self) -> None:
        pass

    def handle_crawl_info(self, crawl_info: CrawlInfo) -> None:
        pass

    def handle_column_data_types_start(self) -> None:
        pass

    def handle_column_data_type(self, column_data_type: ColumnDataType) -> None:
        pass

    def handle_column_data_types_end(self) -> None:
        pass

    def handle_tables_start(self) -> None:
        pass

    def handle_table(self, table: Table) -> None:
        pass

    def handle_tables_end(self) -> None:
        pass

    def handle_routines_start(self) -> None:
        pass

    def handle_routine(self, routine: Routine) -> None:
        pass

    def handle_routines_end(self) -> None:
        pass

    def handle_synonyms_start(self) -> None:
        pass

    def handle_synonym(self, synonym: Synonym) -> None:
        pass

    def handle_synonyms_end(self) -> None:
        pass

    def handle_sequences_start(self) -> None:
        pass

    def handle_sequence(self, sequence: Sequence) -> None:
        pass

    def handle_sequences_end(self) -> None:
        pass


def in_name_order(objects: Iterable[T]) -> list[T]:
    """Sort catalog objects by full name, then by name, for stable output."""
    return sorted(
        objects,
        key=lambda o: (getattr(o, "full_name", ""), getattr(o, "name", "")),
    )


def _traverse_category(
    objects: Iterable[T],
    start: Callable[[], None],
    handle: Callable[[T], None],
    end: Callable[[], None],
    *,
    suppress_empty: bool,
) -> None:
    ordered = in_name_order(objects)
    if suppress_empty and not ordered:
        return
    start()
    for obj in ordered:
        handle(obj)
    end()


def traverse(catalog: Catalog, handler: TraversalHandler) -> None:
    """
    Feed a catalog to a handler in the fixed traversal order.

    Args:
        catalog: Crawled catalog.
        handler: Formatter or any other TraversalHandler.
    """
    suppress = bool(handler.suppress_empty_sections)

    handler.begin()
    handler.handle_crawl_info(catalog.crawl_info)

    _traverse_category(
        catalog.column_data_types,
        handler.handle_column_data_types_start,
        handler.handle_column_data_type,
        handler.handle_column_data_types_end,
        suppress_empty=suppress,
    )
    _traverse_category(
        catalog.tables,
        handler.handle_tables_start,
        handler.handle_table,
        handler.handle_tables_end,
        suppress_empty=suppress,
    )
    _traverse_category(
        catalog.routines,
        handler.handle_routines_start,
        handler.handle_routine,
        handler.handle_routines_end,
        suppress_empty=suppress,
    )
    _traverse_category(
        catalog.synonyms,
        handler.handle_synonyms_start,
        handler.handle_synonym,
        handler.handle_synonyms_end,
        suppress_empty=suppress,
    )
    _traverse_category(
        catalog.sequences,
        handler.handle_sequences_start,
        handler.handle_sequence,
        handler.handle_sequences_end,
        suppress_empty=suppress,
    )

    handler.end()
