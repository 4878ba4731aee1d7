"""Crawler boundary and catalog post-processing.

Crawlers live behind the Crawler protocol: they receive an open connection
and the composed SchemaCrawlerOptions unchanged and return a Catalog. The
helpers in this module are shared by the bundled crawlers to turn a raw,
complete crawl into the catalog the options ask for: object limits, load
depth, grep, table filtering and weak association inference.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Iterable, Protocol

from dbdoc.core.options import (
    GrepOptions,
    InclusionRule,
    LimitOptions,
    LoadOptions,
    Retrieval,
    SchemaCrawlerOptions,
)
from dbdoc.core.schema import Catalog, CrawlInfo, Routine, Table, WeakAssociation

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "dbdoc-cli"


class Connection(Protocol):
    """An open handle to a data source."""

    server: str

    def describe(self) -> str:
        """Return a short human-readable description of the target."""
        ...

    def close(self) -> None:
        """Release the underlying resources."""
        ...


class Crawler(Protocol):
    """Retrieves a Catalog from an open connection."""

    def crawl(self, connection: Connection, options: SchemaCrawlerOptions) -> Catalog:
        """Crawl metadata as limited by `options`."""
        ...


def generator_version() -> str:
    """Return the installed dbdoc version."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0+unknown"


def new_crawl_info(
    *,
    server: str,
    database_product: str = "",
    database_version: str = "",
    driver_version: str = "",
    timestamp: datetime | None = None,
) -> CrawlInfo:
    """Build CrawlInfo stamped with the generator version and crawl time."""
    ts = timestamp or datetime.now(timezone.utc)
    return CrawlInfo(
        generator_version=generator_version(),
        crawl_timestamp=ts.replace(microsecond=0).isoformat(),
        server=server,
        database_product=database_product,
        database_version=database_version,
        driver_version=driver_version,
    )


def _schema_included(schema: str | None, limit: LimitOptions) -> bool:
    return limit.schemas.matches(schema or "")


def _type_included(kind: str, allowed: tuple[str, ...]) -> bool:
    return not allowed or kind.upper() in allowed


def apply_limit(catalog: Catalog, limit: LimitOptions) -> Catalog:
    """Keep only the objects the limit rules include."""
    tables = []
    for table in catalog.tables:
        if not _schema_included(table.schema, limit):
            continue
        if not limit.tables.matches(table.full_name):
            continue
        if not _type_included(table.table_type, limit.table_types):
            continue
        if not limit.columns.includes_all:
            table = replace(
                table,
                columns=tuple(
                    c for c in table.columns
                    if limit.columns.matches(table.column_full_name(c))
                ),
            )
        tables.append(table)

    routines = [
        r
        for r in catalog.routines
        if _schema_included(r.schema, limit)
        and limit.routines.matches(r.full_name)
        and _type_included(r.routine_type, limit.routine_types)
    ]
    synonyms = [
        s
        for s in catalog.synonyms
        if _schema_included(s.schema, limit) and limit.synonyms.matches(s.full_name)
    ]
    sequences = [
        s
        for s in catalog.sequences
        if _schema_included(s.schema, limit) and limit.sequences.matches(s.full_name)
    ]
    schemas = [s for s in catalog.schemas if limit.schemas.matches(s)]

    return replace(
        catalog,
        schemas=tuple(schemas),
        tables=tuple(tables),
        routines=tuple(routines),
        synonyms=tuple(synonyms),
        sequences=tuple(sequences),
    )


def apply_load(catalog: Catalog, load: LoadOptions) -> Catalog:
    """Strip the metadata categories the info level does not retrieve."""
    retrievals = load.retrievals()
    keep_remarks = Retrieval.REMARKS in retrievals
    keep_definitions = Retrieval.DEFINITIONS in retrievals

    def _table(table: Table) -> Table:
        columns = table.columns if Retrieval.COLUMNS in retrievals else ()
        if not keep_remarks:
            columns = tuple(replace(c, remarks=None) for c in columns)
        return replace(
            table,
            columns=columns,
            primary_key=table.primary_key
            if Retrieval.PRIMARY_KEYS in retrievals
            else None,
            foreign_keys=table.foreign_keys
            if Retrieval.FOREIGN_KEYS in retrievals
            else (),
            indexes=table.indexes if Retrieval.INDEXES in retrievals else (),
            remarks=table.remarks if keep_remarks else None,
            definition=table.definition if keep_definitions else None,
            row_count=table.row_count if load.load_row_counts else None,
        )

    def _routine(routine: Routine) -> Routine:
        return replace(
            routine,
            remarks=routine.remarks if keep_remarks else None,
            definition=routine.definition if keep_definitions else None,
        )

    return replace(
        catalog,
        column_data_types=catalog.column_data_types
        if Retrieval.COLUMN_DATA_TYPES in retrievals
        else (),
        tables=tuple(_table(t) for t in catalog.tables),
        routines=tuple(_routine(r) for r in catalog.routines)
        if Retrieval.ROUTINES in retrievals
        else (),
        synonyms=catalog.synonyms if Retrieval.SYNONYMS in retrievals else (),
        sequences=catalog.sequences if Retrieval.SEQUENCES in retrievals else (),
    )


def _text_matches(rule: InclusionRule, *texts: str | None) -> bool:
    return any(rule.matches(" ".join(t.split())) for t in texts if t)


def _table_matches(table: Table, grep: GrepOptions) -> bool:
    if grep.grep_columns is not None and any(
        grep.grep_columns.matches(table.column_full_name(c)) for c in table.columns
    ):
        return True
    if grep.grep_definitions is not None and _text_matches(
        grep.grep_definitions,
        table.remarks,
        table.definition,
        *(c.remarks for c in table.columns),
    ):
        return True
    return False


def _routine_matches(routine: Routine, grep: GrepOptions) -> bool:
    if grep.grep_routine_parameters is not None and any(
        grep.grep_routine_parameters.matches(f"{routine.full_name}.{p.name}")
        for p in routine.parameters
    ):
        return True
    if grep.grep_definitions is not None and _text_matches(
        grep.grep_definitions, routine.remarks, routine.definition
    ):
        return True
    return False


def apply_grep(catalog: Catalog, grep: GrepOptions) -> Catalog:
    """Keep tables and routines whose contents match the grep rules."""
    tables = catalog.tables
    if grep.grep_columns is not None or grep.grep_definitions is not None:
        tables = tuple(
            t for t in tables if _table_matches(t, grep) != grep.invert_match
        )

    routines = catalog.routines
    if grep.grep_routine_parameters is not None or grep.grep_definitions is not None:
        routines = tuple(
            r for r in routines if _routine_matches(r, grep) != grep.invert_match
        )

    return replace(catalog, tables=tables, routines=routines)


def _related(
    selected: set[str], pool: Iterable[Table], *, parents: int, children: int
) -> set[str]:
    """Expand `selected` with parent/child tables from `pool` up to the depths."""
    pool = list(pool)
    result = set(selected)

    frontier = set(selected)
    for _ in range(parents):
        found = {
            fk.referenced_table
            for t in pool
            if t.full_name in frontier
            for fk in t.foreign_keys
        }
        frontier = found - result
        result |= frontier
        if not frontier:
            break

    frontier = set(selected)
    for _ in range(children):
        found = {
            t.full_name
            for t in pool
            for fk in t.foreign_keys
            if fk.referenced_table in frontier
        }
        frontier = found - result
        result |= frontier
        if not frontier:
            break

    return result


def apply_filter(
    catalog: Catalog, pool: Catalog, options: SchemaCrawlerOptions
) -> Catalog:
    """
    Pull in related tables, drop empty ones and prune dangling foreign keys.

    Args:
        catalog: Catalog after limit and grep.
        pool: Catalog after limit only; related tables are taken from here.
        options: Filter and grep options to honor.
    """
    filt = options.filter
    grep = options.grep
    names = {t.full_name for t in catalog.tables}

    expand = filt.parent_table_depth or filt.child_table_depth
    if expand and not (grep.only_matching and grep.is_active):
        names = _related(
            names,
            pool.tables,
            parents=filt.parent_table_depth,
            children=filt.child_table_depth,
        )

    tables = [t for t in pool.tables if t.full_name in names]

    if filt.no_empty_tables:
        tables = [t for t in tables if t.row_count != 0]

    if grep.only_matching:
        kept = {t.full_name for t in tables}
        tables = [
            replace(
                t,
                foreign_keys=tuple(
                    fk for fk in t.foreign_keys if fk.referenced_table in kept
                ),
                weak_associations=tuple(
                    wa for wa in t.weak_associations if wa.referenced_table in kept
                ),
            )
            for t in tables
        ]

    return replace(catalog, tables=tuple(tables))


_ID_SUFFIX = re.compile(r"^(?P<stem>.+?)_?id$", re.IGNORECASE)


def _candidate_names(stem: str) -> list[str]:
    stem = stem.lower()
    names = [stem, f"{stem}s", f"{stem}es"]
    if stem.endswith("y"):
        names.append(f"{stem[:-1]}ies")
    return names


def infer_weak_associations(tables: Iterable[Table]) -> tuple[Table, ...]:
    """
    Infer `<table>_id` style relationships that are not declared foreign keys.

    A column is associated with a table when its name minus the `id` suffix
    names that table (also in plural form) and the table has a single-column
    primary key. Columns that already take part in a foreign key, and a
    table's own primary key, are skipped.
    """
    tables = list(tables)
    by_name: dict[str, Table] = {}
    for t in tables:
        if t.primary_key and len(t.primary_key.columns) == 1:
            by_name.setdefault(t.name.lower(), t)

    out = []
    for table in tables:
        fk_columns = {c for fk in table.foreign_keys for c in fk.columns}
        own_pk = set(table.primary_key.columns) if table.primary_key else set()
        found = []
        for column in table.columns:
            if column.name in fk_columns or column.name in own_pk:
                continue
            m = _ID_SUFFIX.match(column.name)
            if not m:
                continue
            for candidate in _candidate_names(m.group("stem")):
                target = by_name.get(candidate)
                if target is None or target.full_name == table.full_name:
                    continue
                found.append(
                    WeakAssociation(
                        column=column.name,
                        referenced_table=target.full_name,
                        referenced_column=target.primary_key.columns[0],
                    )
                )
                break
        out.append(replace(table, weak_associations=tuple(found)) if found else table)
    return tuple(out)


def apply_options(catalog: Catalog, options: SchemaCrawlerOptions) -> Catalog:
    """
    Apply all crawl options to a complete, raw crawl.

    Order: limit, load depth, weak associations, grep, then table filtering.
    """
    limited = apply_limit(catalog, options.limit)
    loaded = apply_load(limited, options.load)
    if options.load.retrieve_weak_associations:
        loaded = replace(loaded, tables=infer_weak_associations(loaded.tables))
    grepped = apply_grep(loaded, options.grep)
    result = apply_filter(grepped, loaded, options)
    logger.debug(
        "Catalog after options: %d tables, %d routines, %d synonyms, %d sequences",
        len(result.tables),
        len(result.routines),
        len(result.synonyms),
        len(result.sequences),
    )
    return result
