"""Server plugins.

A server plugin knows how to open a connection to one kind of data source
and which crawler reads it. The registry backs the `connect` and
`available-servers` commands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from dbdoc.core.adapters.sqlite import SqliteCrawler, connect_sqlite
from dbdoc.core.adapters.unitycatalog import UnityCatalogCrawler, connect_databricks
from dbdoc.core.crawl import Connection, Crawler
from dbdoc.core.errors import OptionValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerPlugin:
    """
    A connectable kind of data source.

    Attributes:
        name: Server token used by `connect --server=<name>`.
        description: One-line description.
        connect: Opens a connection from connect arguments.
        crawler: Crawler that reads connections of this server.
        arguments: Connect arguments understood by `connect`, for help output.
    """

    name: str
    description: str
    connect: Callable[[Mapping[str, Any]], Connection]
    crawler: Crawler
    arguments: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConnectionHandle:
    """An open connection together with the crawler that reads it."""

    server: str
    connection: Connection
    crawler: Crawler

    def describe(self) -> str:
        return f"{self.server}: {self.connection.describe()}"

    def close(self) -> None:
        self.connection.close()


class ServerRegistry:
    """Registry of server plugins keyed by name."""

    def __init__(self) -> None:
        self._plugins: dict[str, ServerPlugin] = {}

    def register(self, plugin: ServerPlugin) -> None:
        self._plugins[plugin.name.lower()] = plugin

    def lookup(self, name: str) -> ServerPlugin:
        plugin = self._plugins.get((name or "").strip().lower())
        if plugin is None:
            available = ", ".join(self.names())
            raise OptionValidationError(
                f"Unknown server '{name}' (available: {available})", option="server"
            )
        return plugin

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def plugins(self) -> list[ServerPlugin]:
        return [self._plugins[name] for name in self.names()]

    def connect(self, name: str, arguments: Mapping[str, Any]) -> ConnectionHandle:
        """Open a connection through the named plugin."""
        plugin = self.lookup(name)
        logger.debug("Connecting to %s with arguments %s", plugin.name, sorted(arguments))
        connection = plugin.connect(arguments)
        return ConnectionHandle(
            server=plugin.name, connection=connection, crawler=plugin.crawler
        )


def default_servers() -> ServerRegistry:
    """Return a registry with the bundled server plugins."""
    registry = ServerRegistry()
    registry.register(
        ServerPlugin(
            name="sqlite",
            description="SQLite database file",
            connect=connect_sqlite,
            crawler=SqliteCrawler(),
            arguments=("database",),
        )
    )
    registry.register(
        ServerPlugin(
            name="databricks",
            description="Databricks Unity Catalog (profile from ~/.databrickscfg)",
            connect=connect_databricks,
            crawler=UnityCatalogCrawler(),
            arguments=("catalog", "profile", "host"),
        )
    )
    return registry
