from __future__ import annotations

from types import SimpleNamespace as NS

import pytest
from databricks.sdk.errors import NotFound

from dbdoc.core.adapters import unitycatalog
from dbdoc.core.adapters.unitycatalog import (
    AuthError,
    DatabricksConnection,
    UnityCatalogCrawler,
    connect_databricks,
    get_client,
    sanitize_host,
)
from dbdoc.core.errors import ConnectionFailedError, CrawlError, OptionValidationError
from dbdoc.core.fragments import limit_fragment, load_fragment
from dbdoc.core.options import DEFAULT_OPTIONS, compose


def _column(name, type_text, position, nullable=True, comment=None):
    return NS(name=name, type_text=type_text, type_name=None, position=position,
              nullable=nullable, comment=comment)


TABLES = {
    "sales": [
        NS(
            name="orders",
            table_type=NS(value="MANAGED"),
            comment="Customer orders",
            view_definition=None,
            columns=[
                _column("customer_id", "bigint", 1),
                _column("id", "bigint", 0, nullable=False),
            ],
            table_constraints=[
                NS(
                    primary_key_constraint=NS(name="pk_orders", child_columns=["id"]),
                    foreign_key_constraint=None,
                ),
                NS(
                    primary_key_constraint=None,
                    foreign_key_constraint=NS(
                        name="fk_orders_customers",
                        child_columns=["customer_id"],
                        parent_table="main.sales.customers",
                        parent_columns=["id"],
                    ),
                ),
            ],
        ),
        NS(
            name="customers",
            table_type=NS(value="MANAGED"),
            comment=None,
            view_definition=None,
            columns=[_column("id", "bigint", 0, nullable=False, comment="Surrogate key")],
            table_constraints=None,
        ),
    ],
    "hr": [],
}

FUNCTIONS = {
    "sales": [
        NS(
            name="order_total",
            input_params=NS(parameters=[NS(name="order_id", type_text="bigint", parameter_mode=None)]),
            full_data_type="DECIMAL(10,2)",
            data_type=None,
            comment="Sum of line items",
            routine_definition="RETURN 1",
        )
    ],
}


class _FakeClient:
    def __init__(self, *, missing_catalog=False, failing_tables=False):
        self.config = NS(host="https://ws.example.com")
        self.function_calls = []

        def _get_catalog(name):
            if missing_catalog:
                raise NotFound(f"Catalog '{name}' does not exist.")
            return NS(name=name)

        def _tables(catalog_name, schema_name):
            if failing_tables:
                raise NotFound("Schema was dropped")
            return TABLES[schema_name]

        def _functions(catalog_name, schema_name):
            self.function_calls.append(schema_name)
            return FUNCTIONS.get(schema_name, [])

        self.catalogs = NS(get=_get_catalog)
        self.schemas = NS(
            list=lambda catalog_name: [NS(name="information_schema"), NS(name="sales"), NS(name="hr")]
        )
        self.tables = NS(list=_tables)
        self.functions = NS(list=_functions)


def test_sanitize_host():
    assert sanitize_host("https://adb-1.azuredatabricks.net/?o=123") == "https://adb-1.azuredatabricks.net"
    assert sanitize_host("https://ws.example.com/") == "https://ws.example.com"
    assert sanitize_host(None) is None


def test_get_client_reports_expired_login(monkeypatch):
    def _config(**kwargs):
        raise ValueError("default auth: cannot refresh token. Run: databricks auth login --host https://ws")

    monkeypatch.setattr(unitycatalog, "Config", _config)

    with pytest.raises(AuthError) as excinfo:
        get_client(profile="dev")

    assert "databricks auth login --profile dev" in str(excinfo.value)
    assert isinstance(excinfo.value, ConnectionFailedError)


def test_get_client_passes_through_other_auth_errors(monkeypatch):
    def _config(**kwargs):
        raise ValueError("no host")

    monkeypatch.setattr(unitycatalog, "Config", _config)

    with pytest.raises(AuthError, match="authentication failed: no host"):
        get_client()


def test_connect_requires_catalog():
    with pytest.raises(OptionValidationError) as excinfo:
        connect_databricks({"profile": "dev"})

    assert excinfo.value.option == "catalog"


def test_connect_checks_catalog_exists(monkeypatch):
    monkeypatch.setattr(unitycatalog, "get_client", lambda profile, host: _FakeClient(missing_catalog=True))

    with pytest.raises(ConnectionFailedError, match="Cannot open catalog nope"):
        connect_databricks({"catalog": "nope"})


def test_connect_returns_connection(monkeypatch):
    seen = {}

    def _client(profile, host):
        seen.update(profile=profile, host=host)
        return _FakeClient()

    monkeypatch.setattr(unitycatalog, "get_client", _client)
    conn = connect_databricks({"catalog": "main", "profile": "dev"})

    assert seen == {"profile": "dev", "host": None}
    assert conn.catalog == "main"
    assert conn.describe() == "https://ws.example.com catalog main"


def test_crawl_reads_tables_and_constraints():
    catalog = UnityCatalogCrawler().crawl(DatabricksConnection(_FakeClient(), "main"), DEFAULT_OPTIONS)

    assert catalog.schemas == ("main.hr", "main.sales")
    assert sorted(t.full_name for t in catalog.tables) == ["main.sales.customers", "main.sales.orders"]

    orders = catalog.lookup_table("main.sales.orders")
    assert [(c.name, c.data_type, c.ordinal, c.nullable) for c in orders.columns] == [
        ("id", "BIGINT", 1, False),
        ("customer_id", "BIGINT", 2, True),
    ]
    assert orders.table_type == "MANAGED"
    assert orders.primary_key.columns == ("id",)
    assert orders.column("id").part_of_primary_key
    [fk] = orders.foreign_keys
    assert (fk.name, fk.referenced_table, fk.referenced_columns) == (
        "fk_orders_customers",
        "main.sales.customers",
        ("id",),
    )
    assert catalog.lookup_table("main.sales.customers").column("id").remarks == "Surrogate key"


def test_crawl_reads_functions():
    catalog = UnityCatalogCrawler().crawl(DatabricksConnection(_FakeClient(), "main"), DEFAULT_OPTIONS)

    [routine] = catalog.routines
    assert routine.full_name == "main.sales.order_total"
    assert routine.return_type == "DECIMAL(10,2)"
    assert [(p.name, p.data_type, p.mode) for p in routine.parameters] == [("order_id", "BIGINT", "IN")]


def test_crawl_limits_schemas_before_listing_tables():
    client = _FakeClient()
    options = compose(DEFAULT_OPTIONS, limit_fragment(include_schemas="main\\.hr"))
    catalog = UnityCatalogCrawler().crawl(DatabricksConnection(client, "main"), options)

    assert catalog.schemas == ("main.hr",)
    assert catalog.tables == ()
    assert client.function_calls == ["hr"]


def test_minimum_info_level_skips_function_listing():
    client = _FakeClient()
    options = compose(DEFAULT_OPTIONS, load_fragment(info_level="minimum"))
    catalog = UnityCatalogCrawler().crawl(DatabricksConnection(client, "main"), options)

    assert client.function_calls == []
    assert catalog.routines == ()


def test_sdk_errors_become_crawl_errors():
    conn = DatabricksConnection(_FakeClient(failing_tables=True), "main")

    with pytest.raises(CrawlError, match="Schema was dropped") as excinfo:
        UnityCatalogCrawler().crawl(conn, DEFAULT_OPTIONS)

    assert isinstance(excinfo.value.__cause__, NotFound)
