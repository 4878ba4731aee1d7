"""Command dispatcher.

Validates each command against the session's state and routes it to a
handler. Handlers are pure with respect to the session: they return a new
Session and a CommandResult and never modify the one they were given.
Side effects on the outside world (opening or closing a connection, writing
a report, changing the log level) happen only in the handler of the command
that asks for them.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from typing import Callable, cast

from dbdoc.core.commands import (
    COMMANDS,
    AvailableCommands,
    AvailableServers,
    Command,
    CommandResult,
    ConfigFile,
    Connect,
    Disconnect,
    Execute,
    Exit,
    Filter,
    Grep,
    Help,
    Limit,
    Load,
    Log,
    SessionState,
    Sweep,
    System,
    command_class,
)
from dbdoc.core.config import expand_path, load_config
from dbdoc.core.crawl import generator_version
from dbdoc.core.errors import (
    ConnectionFailedError,
    CrawlError,
    DbdocError,
    OptionValidationError,
    PreconditionError,
)
from dbdoc.core.formatters.base import section_values
from dbdoc.core.formatters.registry import FormatterRegistry, default_registry
from dbdoc.core.fragments import fragments_from_config
from dbdoc.core.options import DEFAULT_OPTIONS, SchemaCrawlerOptions, compose
from dbdoc.core.schema import Catalog
from dbdoc.core.servers import ConnectionHandle, ServerRegistry, default_servers
from dbdoc.core.session import Session
from dbdoc.core.sinks import OutputOptions, open_sink
from dbdoc.core.traversal import traverse

logger = logging.getLogger(__name__)

ROOT_LOGGER = "dbdoc"

REPORTED_LIBRARIES = ("typer", "rich", "questionary", "prompt_toolkit", "databricks-sdk")

Handler = Callable[[Session, Command], "tuple[Session, CommandResult]"]

_PRECONDITION_MESSAGES = {
    SessionState.DISCONNECTED: "already connected",
    SessionState.CONNECTED: "not connected",
}


def _library_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "not installed"


class CommandDispatcher:
    """
    Routes commands to handlers.

    Args:
        servers: Server plugins available to `connect`.
        formatters: Output formats available to `execute`.
    """

    def __init__(
        self,
        servers: ServerRegistry | None = None,
        formatters: FormatterRegistry | None = None,
    ) -> None:
        self.servers = servers or default_servers()
        self.formatters = formatters or default_registry()
        self._handlers: dict[type[Command], Handler] = {
            Connect: self._connect,
            Disconnect: self._disconnect,
            Filter: self._compose,
            Grep: self._compose,
            Limit: self._compose,
            Load: self._compose,
            Execute: self._execute,
            Sweep: self._sweep,
            Exit: self._exit,
            ConfigFile: self._config_file,
            Log: self._log,
            System: self._system,
            AvailableCommands: self._available_commands,
            AvailableServers: self._available_servers,
            Help: self._help,
        }

    def check_state(self, session: Session, command: Command) -> None:
        """
        Raise PreconditionError if `command` is not legal in the session's state.
        """
        state = session.state
        if state is SessionState.ENDED:
            raise PreconditionError("session has ended", command=command.name)
        required = command.required_state
        if required is not None and state is not required:
            raise PreconditionError(
                _PRECONDITION_MESSAGES[required], command=command.name
            )

    def dispatch(
        self, session: Session, command: Command
    ) -> tuple[Session, CommandResult]:
        """
        Apply a command to a session.

        Returns:
            The new session and the command's result.

        Raises:
            DbdocError: If the command is illegal in the current state or its
                handler fails. The error carries the command name.
        """
        self.check_state(session, command)
        handler = self._handlers[type(command)]
        try:
            new_session, result = handler(session, command)
        except DbdocError as exc:
            raise exc.with_command(command.name)
        logger.info("%s: %s", command.name, result.message)
        return new_session, result

    # Connection lifecycle

    def _connect(self, session: Session, cmd: Connect):
        defaults = section_values(session.config, "connect")
        server = defaults.pop("server", None)
        server = cmd.server or server
        if not server:
            raise OptionValidationError(
                "connect requires --server=<name>", option="server"
            )
        handle = self.servers.connect(str(server), {**defaults, **cmd.arguments})
        return replace(session, connection=handle), CommandResult(
            cmd.name, f"Connected to {handle.describe()}"
        )

    def _disconnect(self, session: Session, cmd: Disconnect):
        handle = cast(ConnectionHandle, session.connection)
        try:
            handle.close()
        except DbdocError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ConnectionFailedError(
                f"Cannot close {handle.describe()}: {exc}"
            ) from exc
        return replace(session, connection=None), CommandResult(
            cmd.name, f"Disconnected from {handle.describe()}"
        )

    def _exit(self, session: Session, cmd: Exit):
        message = "Session ended"
        handle = session.connection
        if handle is not None:
            try:
                handle.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Closing %s failed: %s", handle.describe(), exc)
                message = f"Session ended; closing {handle.describe()} failed: {exc}"
        return replace(session, connection=None, ended=True), CommandResult(
            cmd.name, message
        )

    # Options

    def _compose(self, session: Session, cmd: Filter | Grep | Limit | Load):
        fields = ", ".join(sorted(cmd.fragment.values)) or "nothing"
        return session.with_fragment(cmd.fragment), CommandResult(
            cmd.name, f"Updated {cmd.fragment.section} options: {fields}"
        )

    def _sweep(self, session: Session, cmd: Sweep):
        return session.swept(), CommandResult(
            cmd.name, "Reset limit, grep, load and filter options"
        )

    def _config_file(self, session: Session, cmd: ConfigFile):
        config = load_config(cmd.path)
        baseline = compose(DEFAULT_OPTIONS, *fragments_from_config(config))
        updated = session.with_baseline(baseline, config)
        updated = replace(updated, output=_output_defaults(updated.output, config))
        return updated, CommandResult(
            cmd.name, f"Loaded {len(config)} settings from {cmd.path}", data=dict(config)
        )

    # Execution

    def _crawl(
        self, handle: ConnectionHandle, options: SchemaCrawlerOptions
    ) -> Catalog:
        try:
            return handle.crawler.crawl(handle.connection, options)
        except DbdocError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise CrawlError(f"Crawl of {handle.describe()} failed: {exc}") from exc

    def _execute(self, session: Session, cmd: Execute):
        handle = cast(ConnectionHandle, session.connection)

        output = session.output
        if cmd.output_format is not None:
            output = replace(output, output_format=cmd.output_format.strip().lower())
        if cmd.output_file is not None:
            output = replace(output, output_file=cmd.output_file)
        if cmd.title is not None:
            output = replace(output, title=cmd.title)

        # Unknown formats and bad settings fail before the crawl and before
        # the output file is opened
        entry = self.formatters.lookup(output.output_format)
        settings = {**section_values(session.config, entry.config_section), **cmd.settings}
        build = self.formatters.create(entry.token, settings)

        catalog = self._crawl(handle, session.options)
        with open_sink(output) as sink:
            traverse(catalog, build(sink, output))

        return replace(session, output=output), CommandResult(
            cmd.name,
            f"Wrote {entry.token} report for {len(catalog.tables)} tables "
            f"to {output.destination}",
            data={"tables": len(catalog.tables), "routines": len(catalog.routines)},
        )

    # Informational

    def _log(self, session: Session, cmd: Log):
        logging.getLogger(ROOT_LOGGER).setLevel(cmd.level)
        return session, CommandResult(cmd.name, f"Log level set to {cmd.level}")

    def _system(self, session: Session, cmd: System):
        info = {
            "dbdoc": generator_version(),
            "python": platform.python_version(),
            "platform": platform.platform(),
        }
        info.update({lib: _library_version(lib) for lib in REPORTED_LIBRARIES})
        if session.connection is not None:
            info["connection"] = session.connection.describe()
        return session, CommandResult(cmd.name, "System information", data=info)

    def _available_commands(self, session: Session, cmd: AvailableCommands):
        rows = [(e.token, e.description) for e in self.formatters.entries()]
        return session, CommandResult(
            cmd.name, f"{len(rows)} output formats", data=rows
        )

    def _available_servers(self, session: Session, cmd: AvailableServers):
        rows = [
            (p.name, p.description, ", ".join(p.arguments))
            for p in self.servers.plugins()
        ]
        return session, CommandResult(cmd.name, f"{len(rows)} servers", data=rows)

    def _help(self, session: Session, cmd: Help):
        if cmd.topic:
            cls = command_class(cmd.topic)
            return session, CommandResult(
                cmd.name, cls.description, data=[(cls.name, cls.description)]
            )
        rows = [(cls.name, cls.description) for cls in COMMANDS]
        return session, CommandResult(cmd.name, f"{len(rows)} commands", data=rows)


def _output_defaults(output: OutputOptions, config) -> OutputOptions:
    """Fill output fields still at their defaults from the `output` config section."""
    values = section_values(config, "output")
    default = OutputOptions()
    if "format" in values and output.output_format == default.output_format:
        output = replace(output, output_format=str(values["format"]).strip().lower())
    if "file" in values and output.output_file is None:
        output = replace(output, output_file=expand_path(values["file"]))
    if "title" in values and output.title is None:
        output = replace(output, title=str(values["title"]))
    return output
