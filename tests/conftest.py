from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from dbdoc.core.crawl import apply_options  # noqa: E402
from dbdoc.core.dispatcher import CommandDispatcher  # noqa: E402
from dbdoc.core.schema import (  # noqa: E402
    Catalog,
    Column,
    ColumnDataType,
    CrawlInfo,
    ForeignKey,
    Index,
    PrimaryKey,
    Routine,
    RoutineParameter,
    Sequence,
    Synonym,
    Table,
)
from dbdoc.core.servers import ServerPlugin, ServerRegistry  # noqa: E402
from dbdoc.core.session import SessionStore  # noqa: E402


def build_library_catalog() -> Catalog:
    """A small catalog: authors, books, ebooks and regions in schema LIBRARY."""
    authors = Table(
        schema="LIBRARY",
        name="AUTHORS",
        columns=(
            Column("ID", "INTEGER", 1, nullable=False, part_of_primary_key=True),
            Column("NAME", "VARCHAR", 2, nullable=False, remarks="Display name"),
            Column("REGION_ID", "INTEGER", 3),
        ),
        primary_key=PrimaryKey("PK_AUTHORS", ("ID",)),
        remarks="People who write books",
        row_count=3,
    )
    books = Table(
        schema="LIBRARY",
        name="BOOKS",
        columns=(
            Column("ID", "INTEGER", 1, nullable=False, part_of_primary_key=True),
            Column("TITLE", "VARCHAR", 2, nullable=False),
            Column("AUTHOR_ID", "INTEGER", 3, nullable=False),
        ),
        primary_key=PrimaryKey("PK_BOOKS", ("ID",)),
        foreign_keys=(
            ForeignKey("FK_BOOKS_AUTHORS", ("AUTHOR_ID",), "LIBRARY.AUTHORS", ("ID",)),
        ),
        indexes=(Index("IDX_BOOKS_AUTHOR", ("AUTHOR_ID",)),),
        remarks="Printed books",
        row_count=5,
    )
    ebooks = Table(
        schema="LIBRARY",
        name="EBOOKS",
        columns=(
            Column("ID", "INTEGER", 1, nullable=False, part_of_primary_key=True),
            Column("BOOK_ID", "INTEGER", 2),
        ),
        primary_key=PrimaryKey("PK_EBOOKS", ("ID",)),
        foreign_keys=(
            ForeignKey("FK_EBOOKS_BOOKS", ("BOOK_ID",), "LIBRARY.BOOKS", ("ID",)),
        ),
        row_count=0,
    )
    regions = Table(
        schema="LIBRARY",
        name="REGIONS",
        columns=(
            Column("ID", "INTEGER", 1, nullable=False, part_of_primary_key=True),
            Column("REGIONS_NAME", "VARCHAR", 2),
        ),
        primary_key=PrimaryKey("PK_REGIONS", ("ID",)),
        row_count=2,
    )
    return Catalog(
        crawl_info=CrawlInfo(
            generator_version="1.2.3",
            crawl_timestamp="2026-01-01T00:00:00+00:00",
            server="stub",
            database_product="StubDB",
            database_version="9.9",
            driver_version="stub-driver 1.0",
        ),
        schemas=("LIBRARY",),
        column_data_types=(
            ColumnDataType("VARCHAR"),
            ColumnDataType("INTEGER"),
        ),
        tables=(regions, books, authors, ebooks),
        routines=(
            Routine(
                schema="LIBRARY",
                name="BOOK_COUNT",
                return_type="INTEGER",
                parameters=(RoutineParameter("AUTHOR", "INTEGER"),),
                definition="SELECT COUNT(*) FROM BOOKS WHERE AUTHOR_ID = AUTHOR",
            ),
        ),
        synonyms=(Synonym(schema="LIBRARY", name="PUBLICATIONS", referenced_object="LIBRARY.BOOKS"),),
        sequences=(Sequence(schema="LIBRARY", name="BOOK_SEQ", minimum_value=1),),
    )


class StubConnection:
    server = "stub"

    def __init__(self, arguments=None):
        self.arguments = dict(arguments or {})
        self.closed = False

    def describe(self) -> str:
        return "stub database"

    def close(self) -> None:
        self.closed = True


class StubCrawler:
    """Records the options it receives and applies them to the library catalog."""

    def __init__(self, catalog: Catalog | None = None):
        self.catalog = catalog or build_library_catalog()
        self.received = []
        self.crawled = []

    def crawl(self, connection, options):
        self.received.append(options)
        result = apply_options(self.catalog, options)
        self.crawled.append(result)
        return result


@pytest.fixture
def library_catalog() -> Catalog:
    return build_library_catalog()


@pytest.fixture
def crawler() -> StubCrawler:
    return StubCrawler()


@pytest.fixture
def connections() -> list[StubConnection]:
    return []


@pytest.fixture
def dispatcher(crawler, connections) -> CommandDispatcher:
    def _connect(arguments):
        conn = StubConnection(arguments)
        connections.append(conn)
        return conn

    servers = ServerRegistry()
    servers.register(
        ServerPlugin(
            name="stub",
            description="In-memory test server",
            connect=_connect,
            crawler=crawler,
        )
    )
    return CommandDispatcher(servers=servers)


@pytest.fixture
def store(dispatcher) -> SessionStore:
    return SessionStore(dispatcher)


@pytest.fixture
def sqlite_db(tmp_path) -> Path:
    """A SQLite file with authors, books (FK to authors) and a view."""
    path = tmp_path / "library.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE authors (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            region_id INTEGER
        );
        CREATE TABLE regions (
            id INTEGER PRIMARY KEY,
            name TEXT
        );
        CREATE TABLE books (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL DEFAULT 'untitled',
            author_id INTEGER NOT NULL REFERENCES authors(id)
        );
        CREATE INDEX idx_books_author ON books(author_id);
        CREATE UNIQUE INDEX idx_books_title ON books(title);
        CREATE VIEW book_titles AS SELECT title FROM books;
        INSERT INTO authors (id, name) VALUES (1, 'Ann'), (2, 'Bob');
        INSERT INTO books (id, title, author_id) VALUES (1, 'One', 1), (2, 'Two', 1), (3, 'Three', 2);
        """
    )
    conn.commit()
    conn.close()
    return path
