"""Databricks Unity Catalog crawler.

Connections are WorkspaceClients built from the Databricks unified auth
configuration (~/.databrickscfg or environment variables). One connection
documents one UC catalog; every UC schema is reported as `catalog.schema`,
so table full names match Unity Catalog's three-part names.
"""

from __future__ import annotations

import logging
import re
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Iterable, Mapping

from databricks.sdk import WorkspaceClient
from databricks.sdk.core import Config
from databricks.sdk.errors import NotFound, PermissionDenied

from dbdoc.core.crawl import apply_options, new_crawl_info
from dbdoc.core.errors import ConnectionFailedError, CrawlError, OptionValidationError
from dbdoc.core.options import Retrieval, SchemaCrawlerOptions
from dbdoc.core.schema import (
    Catalog,
    Column,
    ColumnDataType,
    ForeignKey,
    PrimaryKey,
    Routine,
    RoutineParameter,
    Table,
)

logger = logging.getLogger(__name__)

SKIPPED_SCHEMAS = frozenset({"information_schema"})


class AuthError(ConnectionFailedError):
    """Raised when Databricks authentication fails."""


def _format_auth_error(message: str, profile: str | None) -> str:
    login_match = re.search(r"databricks auth login ([^\s]+)", message)
    if login_match:
        cmd = "databricks auth login"
        if profile:
            cmd = f"{cmd} --profile {profile}"
        return (
            "Databricks authentication failed. Your refresh token is invalid.\n"
            f"Re-authenticate with:\n  $ {cmd}"
        )
    return f"Databricks authentication failed: {message}"


def sanitize_host(host: str | None) -> str | None:
    """Strip query strings (such as '?o=123') and trailing slashes from a host URL."""
    if not host:
        return host
    return host.split("?", 1)[0].rstrip("/")


def get_client(profile: str | None = None, host: str | None = None) -> WorkspaceClient:
    """
    Create a WorkspaceClient for a profile, optionally overriding its host.

    Raises:
        AuthError: If the configuration cannot be resolved.
    """
    kwargs: dict[str, Any] = {}
    if profile:
        kwargs["profile"] = profile
    if host:
        kwargs["host"] = host
    try:
        cfg = Config(**kwargs)
    except ValueError as exc:
        raise AuthError(_format_auth_error(str(exc), profile)) from exc
    cfg.host = sanitize_host(cfg.host)
    return WorkspaceClient(config=cfg)


class DatabricksConnection:
    """A WorkspaceClient bound to the Unity Catalog catalog being documented."""

    server = "databricks"

    def __init__(
        self, client: WorkspaceClient, catalog: str, profile: str | None = None
    ) -> None:
        self.client = client
        self.catalog = catalog
        self.profile = profile

    def describe(self) -> str:
        host = getattr(getattr(self.client, "config", None), "host", None) or "?"
        return f"{host} catalog {self.catalog}"

    def close(self) -> None:
        # WorkspaceClient holds no resources that need releasing
        return None


def connect_databricks(arguments: Mapping[str, Any]) -> DatabricksConnection:
    """
    Connect to a Databricks workspace for the `catalog` connect argument.

    Raises:
        OptionValidationError: If no catalog was given.
        ConnectionFailedError: If authentication or catalog lookup fails.
    """
    catalog = arguments.get("catalog")
    if not catalog or catalog is True:
        raise OptionValidationError(
            "connect to databricks requires --catalog=<name>", option="catalog"
        )
    profile = arguments.get("profile") or None
    host = arguments.get("host") or None

    client = get_client(profile=profile, host=host)
    try:
        client.catalogs.get(name=str(catalog))
    except (NotFound, PermissionDenied) as exc:
        raise ConnectionFailedError(f"Cannot open catalog {catalog}: {exc}") from exc
    logger.info("Connected to Databricks catalog %s", catalog)
    return DatabricksConnection(client, str(catalog), profile=profile)


def _enum_text(value: Any) -> str:
    """Return the plain text of an SDK enum or string value."""
    if value is None:
        return ""
    return str(getattr(value, "value", value))


def _constraints(
    info: Any,
) -> tuple[PrimaryKey | None, tuple[ForeignKey, ...]]:
    primary_key = None
    foreign_keys = []
    for constraint in getattr(info, "table_constraints", None) or []:
        pk = getattr(constraint, "primary_key_constraint", None)
        if pk is not None and getattr(pk, "child_columns", None):
            primary_key = PrimaryKey(name=pk.name or "", columns=tuple(pk.child_columns))
        fk = getattr(constraint, "foreign_key_constraint", None)
        if fk is not None and getattr(fk, "child_columns", None):
            foreign_keys.append(
                ForeignKey(
                    name=fk.name or "",
                    columns=tuple(fk.child_columns),
                    referenced_table=fk.parent_table or "",
                    referenced_columns=tuple(fk.parent_columns or ()),
                )
            )
    return primary_key, tuple(sorted(foreign_keys, key=lambda f: f.name))


def _table(schema: str, info: Any) -> Table:
    primary_key, foreign_keys = _constraints(info)
    pk_columns = set(primary_key.columns) if primary_key else set()
    columns = []
    for i, col in enumerate(getattr(info, "columns", None) or []):
        position = getattr(col, "position", None)
        columns.append(
            Column(
                name=col.name,
                data_type=(getattr(col, "type_text", None) or _enum_text(col.type_name)).upper(),
                ordinal=(position + 1) if position is not None else i + 1,
                nullable=bool(getattr(col, "nullable", True)),
                remarks=getattr(col, "comment", None),
                part_of_primary_key=col.name in pk_columns,
            )
        )
    return Table(
        schema=schema,
        name=info.name,
        table_type=_enum_text(getattr(info, "table_type", None)) or "TABLE",
        columns=tuple(sorted(columns, key=lambda c: c.ordinal)),
        primary_key=primary_key,
        foreign_keys=foreign_keys,
        remarks=getattr(info, "comment", None),
        definition=getattr(info, "view_definition", None),
    )


def _routine(schema: str, info: Any) -> Routine:
    params = getattr(getattr(info, "input_params", None), "parameters", None) or []
    return Routine(
        schema=schema,
        name=info.name,
        routine_type="FUNCTION",
        return_type=(getattr(info, "full_data_type", None) or _enum_text(getattr(info, "data_type", None))),
        parameters=tuple(
            RoutineParameter(
                name=p.name,
                data_type=(getattr(p, "type_text", None) or "").upper(),
                mode=_enum_text(getattr(p, "parameter_mode", None)) or "IN",
            )
            for p in params
        ),
        remarks=getattr(info, "comment", None),
        definition=getattr(info, "routine_definition", None),
    )


class UnityCatalogCrawler:
    """Crawls a DatabricksConnection into a Catalog."""

    def crawl(
        self, connection: DatabricksConnection, options: SchemaCrawlerOptions
    ) -> Catalog:
        try:
            return apply_options(self._crawl_all(connection, options), options)
        except (NotFound, PermissionDenied) as exc:
            raise CrawlError(f"Crawl of {connection.describe()} failed: {exc}") from exc

    def _schema_names(self, connection: DatabricksConnection, options: SchemaCrawlerOptions) -> list[str]:
        out = []
        for s in connection.client.schemas.list(catalog_name=connection.catalog):
            name = getattr(s, "name", None)
            if not name or name in SKIPPED_SCHEMAS:
                continue
            if options.limit.schemas.matches(f"{connection.catalog}.{name}"):
                out.append(name)
        return sorted(out)

    def _tables(self, connection: DatabricksConnection, schema: str) -> Iterable[Table]:
        qualified = f"{connection.catalog}.{schema}"
        for info in connection.client.tables.list(
            catalog_name=connection.catalog, schema_name=schema
        ):
            if getattr(info, "name", None):
                yield _table(qualified, info)

    def _routines(self, connection: DatabricksConnection, schema: str) -> Iterable[Routine]:
        qualified = f"{connection.catalog}.{schema}"
        for info in connection.client.functions.list(
            catalog_name=connection.catalog, schema_name=schema
        ):
            if getattr(info, "name", None):
                yield _routine(qualified, info)

    def _crawl_all(
        self, connection: DatabricksConnection, options: SchemaCrawlerOptions
    ) -> Catalog:
        schemas = self._schema_names(connection, options)
        logger.debug("Crawling %d schemas in %s", len(schemas), connection.catalog)

        load_routines = options.load.retrieves(Retrieval.ROUTINES)
        tables: list[Table] = []
        routines: list[Routine] = []
        for schema in schemas:
            tables.extend(self._tables(connection, schema))
            if load_routines:
                routines.extend(self._routines(connection, schema))

        if options.load.load_row_counts:
            logger.warning("Row counts are not available for Unity Catalog tables")

        data_types = sorted({c.data_type for t in tables for c in t.columns if c.data_type})
        try:
            sdk_version = version("databricks-sdk")
        except PackageNotFoundError:
            sdk_version = "unknown"
        crawl_info = new_crawl_info(
            server=connection.server,
            database_product="Databricks Unity Catalog",
            database_version=connection.catalog,
            driver_version=f"databricks-sdk {sdk_version}",
        )
        return Catalog(
            crawl_info=crawl_info,
            schemas=tuple(f"{connection.catalog}.{s}" for s in schemas),
            column_data_types=tuple(ColumnDataType(name=t) for t in data_types),
            tables=tuple(tables),
            routines=tuple(routines),
        )
