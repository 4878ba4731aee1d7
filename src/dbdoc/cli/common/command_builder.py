"""Command construction utilities.

Translates user input (shell lines and `key=value` settings) into concrete
Command values. Shell lines look like

    limit --include-tables=".*BOOKS" --table-types TABLE,VIEW
    grep --grep-columns=.*REGIONS.* --only-matching
    execute --format=text --output-file=report.txt

Arguments are split with shell quoting rules. `--key=value` and
`--key value` set a value; a bare `--flag` sets it to true. At most one
positional argument is accepted, by the commands that name one.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any, Iterable

from dbdoc.core.commands import (
    AvailableCommands,
    AvailableServers,
    Command,
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
    Sweep,
    System,
    command_class,
)
from dbdoc.core.errors import OptionValidationError
from dbdoc.core.fragments import build_fragment

# Commands that accept one positional argument, and the key it stands for
POSITIONAL_KEYS = {
    "config-file": "file",
    "help": "command",
    "log": "level",
    "connect": "server",
}

_FRAGMENT_COMMANDS: dict[type[Command], str] = {
    Limit: "limit",
    Grep: "grep",
    Load: "load",
    Filter: "filter",
}

_NO_ARGUMENT_COMMANDS = (
    Disconnect,
    Sweep,
    Exit,
    System,
    AvailableCommands,
    AvailableServers,
)


def split_arguments(tokens: list[str]) -> tuple[dict[str, Any], list[str]]:
    """
    Split tokens into `--key` arguments and positional values.

    Raises:
        OptionValidationError: If an argument is given twice.
    """
    arguments: dict[str, Any] = {}
    positional: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token.startswith("--") or token == "--":
            positional.append(token)
            continue
        key, sep, value = token[2:].partition("=")
        key = key.strip().lower()
        if not key:
            raise OptionValidationError(f"Malformed argument '{token}'")
        if not sep:
            if i < len(tokens) and not tokens[i].startswith("--"):
                value = tokens[i]
                i += 1
            else:
                value = True
        if key in arguments:
            raise OptionValidationError(f"Argument '--{key}' given twice", option=key)
        arguments[key] = value
    return arguments, positional


def _text(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.pop(key, None)
    if value is True:
        raise OptionValidationError(f"--{key} requires a value", option=key)
    return value


def build_command(name: str, arguments: dict[str, Any]) -> Command:
    """
    Build a Command from its vocabulary name and parsed arguments.

    Raises:
        UnknownCommandError: If the name is not a command.
        OptionValidationError: For unknown or invalid arguments.
    """
    cls = command_class(name)
    arguments = dict(arguments)

    if cls in _FRAGMENT_COMMANDS:
        return cls(fragment=build_fragment(_FRAGMENT_COMMANDS[cls], arguments))

    if cls is Connect:
        server = _text(arguments, "server")
        return Connect(server=server, arguments=arguments)

    if cls is Execute:
        output_format = _text(arguments, "format")
        output_file = _text(arguments, "output-file")
        title = _text(arguments, "title")
        return Execute(
            output_format=output_format,
            output_file=Path(output_file) if output_file else None,
            title=title,
            settings=arguments,
        )

    if cls is ConfigFile:
        path = _text(arguments, "file")
        if not path:
            raise OptionValidationError("config-file requires --file=<path>", option="file")
        command: Command = ConfigFile(path=Path(path))
    elif cls is Log:
        level = _text(arguments, "level")
        if not level:
            raise OptionValidationError("log requires --level=<level>", option="level")
        command = Log(level=level)
    elif cls is Help:
        command = Help(topic=_text(arguments, "command"))
    elif cls in _NO_ARGUMENT_COMMANDS:
        command = cls()
    else:  # pragma: no cover - every vocabulary command is handled above
        raise OptionValidationError(f"Command '{cls.name}' cannot be built")

    if arguments:
        unknown = ", ".join(f"--{k}" for k in sorted(arguments))
        raise OptionValidationError(f"{cls.name} does not accept {unknown}")
    return command


def parse_line(line: str) -> Command | None:
    """
    Parse one shell line into a Command.

    Returns:
        The command, or None for blank lines and `#` comments.

    Raises:
        UnknownCommandError: If the first word is not a command.
        OptionValidationError: For malformed or unknown arguments.
    """
    try:
        tokens = shlex.split(line, comments=True)
    except ValueError as exc:
        raise OptionValidationError(f"Cannot parse line: {exc}") from exc
    if not tokens:
        return None

    name = tokens[0].lower()
    cls = command_class(name)
    arguments, positional = split_arguments(tokens[1:])

    key = POSITIONAL_KEYS.get(cls.name)
    if positional:
        if key is None or len(positional) > 1 or key in arguments:
            raise OptionValidationError(
                f"Unexpected argument(s) for {cls.name}: {' '.join(positional)}"
            )
        arguments[key] = positional[0]
    return build_command(cls.name, arguments)


def parse_settings(items: Iterable[str]) -> dict[str, str]:
    """
    Parse repeated `key=value` settings.

    Raises:
        OptionValidationError: If an item is not of the form `key=value`.
    """
    settings: dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise OptionValidationError(
                f"Invalid setting '{item}' (expected key=value)", option="setting"
            )
        key, value = item.split("=", 1)
        settings[key.strip().lower()] = value.strip()
    return settings
