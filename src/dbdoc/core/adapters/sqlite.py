"""SQLite crawler.

Reads schema metadata from a SQLite database file through the standard
library driver. SQLite has a single schema per attached database, reported
here as `main`; it has no routines, synonyms or sequences and no remarks.
"""

from __future__ import annotations

import logging
import platform
import sqlite3
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Mapping

from dbdoc.core.config import expand_path
from dbdoc.core.crawl import apply_options, new_crawl_info
from dbdoc.core.errors import ConnectionFailedError, CrawlError, OptionValidationError
from dbdoc.core.options import SchemaCrawlerOptions
from dbdoc.core.schema import (
    Catalog,
    Column,
    ColumnDataType,
    ForeignKey,
    Index,
    PrimaryKey,
    Table,
    qualify,
)

logger = logging.getLogger(__name__)

SCHEMA = "main"
ROW_COUNT_WORKERS = 4


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SqliteConnection:
    """Read-only connection to a SQLite database file."""

    server = "sqlite"

    def __init__(self, path: Path) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            self.uri(), uri=True, check_same_thread=False
        )

    def uri(self) -> str:
        return f"{self.path.as_uri()}?mode=ro"

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ConnectionFailedError(f"Connection to {self.path} is closed")
        return self._conn

    def describe(self) -> str:
        return str(self.path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def connect_sqlite(arguments: Mapping[str, Any]) -> SqliteConnection:
    """
    Open a SQLite database named by the `database` connect argument.

    Raises:
        OptionValidationError: If no database was given.
        ConnectionFailedError: If the file does not exist or cannot be opened.
    """
    raw = arguments.get("database")
    if not raw or raw is True:
        raise OptionValidationError(
            "connect to sqlite requires --database=<path>", option="database"
        )
    path = expand_path(str(raw))
    if not path.is_file():
        raise ConnectionFailedError(f"SQLite database not found: {path}")
    try:
        connection = SqliteConnection(path)
        connection.conn.execute("SELECT 1 FROM sqlite_master LIMIT 1").fetchall()
    except sqlite3.Error as exc:
        raise ConnectionFailedError(f"Cannot open SQLite database {path}: {exc}") from exc
    logger.info("Connected to SQLite database %s", path)
    return connection


def _columns(conn: sqlite3.Connection, table: str) -> list[Column]:
    columns = []
    for cid, name, decl_type, notnull, default, pk in conn.execute(
        f"PRAGMA table_info({_quote(table)})"
    ):
        columns.append(
            Column(
                name=name,
                data_type=(decl_type or "").upper(),
                ordinal=cid + 1,
                nullable=not notnull and not pk,
                default=None if default is None else str(default),
                part_of_primary_key=bool(pk),
            )
        )
    return columns


def _primary_key(conn: sqlite3.Connection, table: str) -> PrimaryKey | None:
    ranked = [
        (pk, name)
        for _, name, _, _, _, pk in conn.execute(f"PRAGMA table_info({_quote(table)})")
        if pk
    ]
    if not ranked:
        return None
    return PrimaryKey(name=f"PK_{table}", columns=tuple(n for _, n in sorted(ranked)))


def _foreign_keys(
    conn: sqlite3.Connection, table: str, primary_keys: Mapping[str, PrimaryKey | None]
) -> list[ForeignKey]:
    grouped: dict[int, list[tuple[int, str, str, str | None]]] = defaultdict(list)
    for row in conn.execute(f"PRAGMA foreign_key_list({_quote(table)})"):
        fk_id, seq, ref_table, from_col, to_col = row[:5]
        grouped[fk_id].append((seq, ref_table, from_col, to_col))

    out = []
    for fk_id in sorted(grouped):
        parts = sorted(grouped[fk_id])
        ref_table = parts[0][1]
        ref_columns = [to for _, _, _, to in parts]
        if any(c is None for c in ref_columns):
            # Implicit reference to the parent's primary key
            pk = primary_keys.get(ref_table)
            ref_columns = list(pk.columns) if pk else [c or "" for c in ref_columns]
        out.append(
            ForeignKey(
                name=f"FK_{table}_{ref_table}_{fk_id}",
                columns=tuple(frm for _, _, frm, _ in parts),
                referenced_table=qualify(SCHEMA, ref_table),
                referenced_columns=tuple(ref_columns),
            )
        )
    return out


def _indexes(conn: sqlite3.Connection, table: str) -> list[Index]:
    out = []
    for row in conn.execute(f"PRAGMA index_list({_quote(table)})"):
        _, name, unique, origin = row[:4]
        if origin == "pk":
            continue
        columns = tuple(
            col
            for _, _, col in sorted(conn.execute(f"PRAGMA index_info({_quote(name)})"))
            if col is not None
        )
        out.append(Index(name=name, columns=columns, unique=bool(unique)))
    return sorted(out, key=lambda i: i.name)


def _count_rows(uri: str, table: str) -> tuple[str, int]:
    # sqlite3 connections are not shared across worker threads
    conn = sqlite3.connect(uri, uri=True)
    try:
        (count,) = conn.execute(f"SELECT COUNT(*) FROM {_quote(table)}").fetchone()
    finally:
        conn.close()
    return table, count


def count_rows_parallel(
    uri: str, tables: list[str], max_parallel: int = ROW_COUNT_WORKERS
) -> dict[str, int]:
    """
    Count rows of several tables concurrently.

    Args:
        uri: SQLite URI of the database.
        tables: Table names to count.
        max_parallel: Maximum number of concurrent counts.

    Returns:
        A mapping of table name to row count.
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")
    if not tables:
        return {}

    counts: dict[str, int] = {}
    with ThreadPoolExecutor(max_workers=max_parallel) as pool:
        futures = [pool.submit(_count_rows, uri, table) for table in tables]
        for f in as_completed(futures):
            name, count = f.result()
            counts[name] = count
    return counts


class SqliteCrawler:
    """Crawls a SqliteConnection into a Catalog."""

    def crawl(self, connection: SqliteConnection, options: SchemaCrawlerOptions) -> Catalog:
        try:
            return apply_options(self._crawl_all(connection, options), options)
        except sqlite3.Error as exc:
            raise CrawlError(f"Crawl of {connection.describe()} failed: {exc}") from exc

    def _crawl_all(
        self, connection: SqliteConnection, options: SchemaCrawlerOptions
    ) -> Catalog:
        conn = connection.conn
        objects = conn.execute(
            "SELECT name, type, sql FROM sqlite_master "
            "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name"
        ).fetchall()
        logger.debug("Found %d tables and views in %s", len(objects), connection.path)

        primary_keys = {
            name: _primary_key(conn, name) for name, kind, _ in objects if kind == "table"
        }

        row_counts: dict[str, int] = {}
        if options.load.load_row_counts:
            base_tables = [name for name, kind, _ in objects if kind == "table"]
            row_counts = count_rows_parallel(connection.uri(), base_tables)

        tables = []
        data_types: set[str] = set()
        for name, kind, sql in objects:
            columns = _columns(conn, name)
            data_types.update(c.data_type for c in columns if c.data_type)
            if kind == "view":
                tables.append(
                    Table(
                        schema=SCHEMA,
                        name=name,
                        table_type="VIEW",
                        columns=tuple(columns),
                        definition=sql,
                    )
                )
                continue
            tables.append(
                Table(
                    schema=SCHEMA,
                    name=name,
                    table_type="TABLE",
                    columns=tuple(columns),
                    primary_key=primary_keys[name],
                    foreign_keys=tuple(_foreign_keys(conn, name, primary_keys)),
                    indexes=tuple(_indexes(conn, name)),
                    row_count=row_counts.get(name),
                )
            )

        crawl_info = new_crawl_info(
            server=connection.server,
            database_product="SQLite",
            database_version=sqlite3.sqlite_version,
            driver_version=f"Python sqlite3 {platform.python_version()}",
        )
        return Catalog(
            crawl_info=crawl_info,
            schemas=(SCHEMA,),
            column_data_types=tuple(
                ColumnDataType(name=t) for t in sorted(data_types)
            ),
            tables=tuple(tables),
        )
