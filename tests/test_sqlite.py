from __future__ import annotations

import pytest

from dbdoc.core.adapters.sqlite import SqliteCrawler, connect_sqlite, count_rows_parallel
from dbdoc.core.commands import Connect, Execute, Limit
from dbdoc.core.dispatcher import CommandDispatcher
from dbdoc.core.errors import ConnectionFailedError, OptionValidationError
from dbdoc.core.fragments import limit_fragment, load_fragment
from dbdoc.core.options import DEFAULT_OPTIONS, compose
from dbdoc.core.session import SessionStore


@pytest.fixture
def connection(sqlite_db):
    conn = connect_sqlite({"database": str(sqlite_db)})
    yield conn
    conn.close()


def test_connect_requires_database():
    with pytest.raises(OptionValidationError) as excinfo:
        connect_sqlite({})

    assert excinfo.value.option == "database"


def test_connect_to_missing_file(tmp_path):
    with pytest.raises(ConnectionFailedError, match="not found"):
        connect_sqlite({"database": str(tmp_path / "nope.db")})


def test_crawl_reads_tables_and_views(connection):
    catalog = SqliteCrawler().crawl(connection, DEFAULT_OPTIONS)

    assert [(t.full_name, t.table_type) for t in catalog.tables] == [
        ("main.authors", "TABLE"),
        ("main.book_titles", "VIEW"),
        ("main.books", "TABLE"),
        ("main.regions", "TABLE"),
    ]
    assert catalog.crawl_info.database_product == "SQLite"
    assert catalog.crawl_info.server == "sqlite"


def test_crawl_reads_columns_and_keys(connection):
    books = SqliteCrawler().crawl(connection, DEFAULT_OPTIONS).lookup_table("main.books")

    assert [(c.name, c.data_type, c.nullable) for c in books.columns] == [
        ("id", "INTEGER", False),
        ("title", "TEXT", False),
        ("author_id", "INTEGER", False),
    ]
    assert books.column("title").default == "'untitled'"
    assert books.primary_key.name == "PK_books"
    assert books.primary_key.columns == ("id",)

    [fk] = books.foreign_keys
    assert fk.name == "FK_books_authors_0"
    assert fk.columns == ("author_id",)
    assert fk.referenced_table == "main.authors"
    assert fk.referenced_columns == ("id",)

    assert [(i.name, i.unique) for i in books.indexes] == [
        ("idx_books_author", False),
        ("idx_books_title", True),
    ]


def test_view_definition_needs_maximum_info_level(connection):
    crawler = SqliteCrawler()
    standard = crawler.crawl(connection, DEFAULT_OPTIONS)
    maximum = crawler.crawl(
        connection, compose(DEFAULT_OPTIONS, load_fragment(info_level="maximum"))
    )

    assert standard.lookup_table("main.book_titles").definition is None
    assert "SELECT title FROM books" in maximum.lookup_table("main.book_titles").definition
    assert [t.name for t in maximum.column_data_types] == ["INTEGER", "TEXT"]


def test_row_counts_are_loaded_on_request(connection):
    crawler = SqliteCrawler()
    plain = crawler.crawl(connection, DEFAULT_OPTIONS)
    counted = crawler.crawl(
        connection, compose(DEFAULT_OPTIONS, load_fragment(load_row_counts=True))
    )

    assert plain.lookup_table("main.books").row_count is None
    assert {t.name: t.row_count for t in counted.tables} == {
        "authors": 2,
        "book_titles": None,
        "books": 3,
        "regions": 0,
    }


def test_count_rows_parallel(connection):
    counts = count_rows_parallel(connection.uri(), ["authors", "books"], max_parallel=2)

    assert counts == {"authors": 2, "books": 3}
    assert count_rows_parallel(connection.uri(), []) == {}
    with pytest.raises(ValueError):
        count_rows_parallel(connection.uri(), ["books"], max_parallel=0)


def test_closed_connection_cannot_crawl(sqlite_db):
    conn = connect_sqlite({"database": str(sqlite_db)})
    conn.close()

    with pytest.raises(ConnectionFailedError, match="closed"):
        SqliteCrawler().crawl(conn, DEFAULT_OPTIONS)


def test_session_over_sqlite_writes_list_report(sqlite_db, tmp_path):
    store = SessionStore(CommandDispatcher())
    target = tmp_path / "tables.txt"

    store.apply_command(Limit(limit_fragment(table_types="TABLE")))
    store.apply_command(Connect(server="sqlite", arguments={"database": str(sqlite_db)}))
    store.apply_command(Execute(output_format="list", output_file=target))
    store.close()

    text = target.read_text(encoding="utf-8")
    assert "main.books" in text
    assert "main.book_titles" not in text
