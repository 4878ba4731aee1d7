"""Session commands.

Commands are plain immutable values. Each command class names itself in the
shell vocabulary and declares which session state it requires; the
dispatcher enforces the requirement and runs the matching handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from dbdoc.core.errors import OptionValidationError, UnknownCommandError
from dbdoc.core.options import OptionsFragment


class SessionState(str, Enum):
    """Lifecycle state of a session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ENDED = "ended"


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def parse_log_level(value: str) -> str:
    """Validate a log level name and return it upper-cased."""
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise OptionValidationError(
            f"Unknown log level '{value}' (use one of {', '.join(LOG_LEVELS)})",
            option="level",
        )
    return level


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Command:
    """Base class for session commands."""

    name: ClassVar[str] = ""
    required_state: ClassVar[SessionState | None] = None
    description: ClassVar[str] = ""


@dataclass(frozen=True)
class Connect(Command):
    name: ClassVar[str] = "connect"
    required_state: ClassVar[SessionState | None] = SessionState.DISCONNECTED
    description: ClassVar[str] = (
        "Connect to a data source: connect --server=sqlite --database=PATH"
    )

    server: str | None = None
    arguments: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", _frozen(self.arguments))


@dataclass(frozen=True)
class Disconnect(Command):
    name: ClassVar[str] = "disconnect"
    required_state: ClassVar[SessionState | None] = SessionState.CONNECTED
    description: ClassVar[str] = "Close the current connection"


@dataclass(frozen=True)
class _ComposeOptions(Command):
    """Composes one options fragment into the session's options."""

    section: ClassVar[str] = ""

    fragment: OptionsFragment

    def __post_init__(self) -> None:
        if self.fragment.section != self.section:
            raise OptionValidationError(
                f"{self.name} expects a '{self.section}' fragment, "
                f"got '{self.fragment.section}'"
            )


@dataclass(frozen=True)
class Limit(_ComposeOptions):
    name: ClassVar[str] = "limit"
    section: ClassVar[str] = "limit"
    description: ClassVar[str] = (
        "Limit crawled objects: --include-tables=REGEX --exclude-columns=REGEX "
        "--table-types=TABLE,VIEW ..."
    )


@dataclass(frozen=True)
class Grep(_ComposeOptions):
    name: ClassVar[str] = "grep"
    section: ClassVar[str] = "grep"
    description: ClassVar[str] = (
        "Keep objects whose contents match: --grep-columns=REGEX "
        "--grep-definitions=REGEX --invert-match --only-matching"
    )


@dataclass(frozen=True)
class Load(_ComposeOptions):
    name: ClassVar[str] = "load"
    section: ClassVar[str] = "load"
    description: ClassVar[str] = (
        "Set crawl depth: --info-level=minimum|standard|maximum|custom "
        "--retrieve=columns,indexes --weak-associations --load-row-counts"
    )


@dataclass(frozen=True)
class Filter(_ComposeOptions):
    name: ClassVar[str] = "filter"
    section: ClassVar[str] = "filter"
    description: ClassVar[str] = (
        "Filter tables: --parents=N --children=N --no-empty-tables"
    )


@dataclass(frozen=True)
class Execute(Command):
    name: ClassVar[str] = "execute"
    required_state: ClassVar[SessionState | None] = SessionState.CONNECTED
    description: ClassVar[str] = (
        "Crawl and write a report: --format=text|list|json|diagram|lint "
        "--output-file=PATH --title=TEXT plus formatter settings"
    )

    output_format: str | None = None
    output_file: Path | None = None
    title: str | None = None
    settings: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))

    def __post_init__(self) -> None:
        object.__setattr__(self, "settings", _frozen(self.settings))


@dataclass(frozen=True)
class Sweep(Command):
    name: ClassVar[str] = "sweep"
    description: ClassVar[str] = "Reset limit, grep, load and filter options"


@dataclass(frozen=True)
class Exit(Command):
    name: ClassVar[str] = "exit"
    description: ClassVar[str] = "Close the connection and end the session"


@dataclass(frozen=True)
class ConfigFile(Command):
    name: ClassVar[str] = "config-file"
    description: ClassVar[str] = "Load defaults from a TOML file: --file=PATH"

    path: Path


@dataclass(frozen=True)
class Log(Command):
    name: ClassVar[str] = "log"
    description: ClassVar[str] = "Set the log level: --level=DEBUG|INFO|WARNING|ERROR"

    level: str = "WARNING"

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", parse_log_level(self.level))


@dataclass(frozen=True)
class System(Command):
    name: ClassVar[str] = "system"
    description: ClassVar[str] = "Show version information"


@dataclass(frozen=True)
class AvailableCommands(Command):
    name: ClassVar[str] = "available-commands"
    description: ClassVar[str] = "List output formats accepted by execute"


@dataclass(frozen=True)
class AvailableServers(Command):
    name: ClassVar[str] = "available-servers"
    description: ClassVar[str] = "List servers accepted by connect"


@dataclass(frozen=True)
class Help(Command):
    name: ClassVar[str] = "help"
    description: ClassVar[str] = "List commands, or describe one: help --command=NAME"

    topic: str | None = None


COMMANDS: tuple[type[Command], ...] = (
    Connect,
    Disconnect,
    Filter,
    Grep,
    Limit,
    Load,
    Execute,
    Log,
    ConfigFile,
    Sweep,
    System,
    AvailableCommands,
    AvailableServers,
    Exit,
    Help,
)

COMMANDS_BY_NAME: dict[str, type[Command]] = {cls.name: cls for cls in COMMANDS}


def command_class(name: str) -> type[Command]:
    """
    Return the command class for a (case-insensitive) vocabulary name.

    Raises:
        UnknownCommandError: If the name is not in the vocabulary.
    """
    cls = COMMANDS_BY_NAME.get((name or "").strip().lower())
    if cls is None:
        raise UnknownCommandError(
            f"Unknown command '{name}' (try 'help')", command=name or None
        )
    return cls


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of a successfully dispatched command.

    Attributes:
        command: Vocabulary name of the command.
        message: Short human-readable summary.
        data: Optional structured payload for the frontend to render.
    """

    command: str
    message: str = ""
    data: Any = None
