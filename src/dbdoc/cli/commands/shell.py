"""Interactive shell and script runner."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import InMemoryHistory

from dbdoc.cli.common.command_builder import parse_line
from dbdoc.cli.common.context import AppContext, build_store
from dbdoc.cli.common.exits import die
from dbdoc.cli.common.options import ScriptOpt
from dbdoc.cli.common.output import out
from dbdoc.cli.common.tui_style import SHELL_PROMPT_STYLE
from dbdoc.core.commands import (
    COMMANDS,
    AvailableCommands,
    AvailableServers,
    Command,
    CommandResult,
    ConfigFile,
    Connect,
    Exit,
    Help,
    SessionState,
    Sweep,
    System,
)
from dbdoc.core.errors import DbdocError
from dbdoc.core.fragments import FRAGMENT_BUILDERS
from dbdoc.core.session import SessionStore


def completion_words() -> list[str]:
    """Command names plus every `--argument` the line parser understands."""
    words = {cls.name for cls in COMMANDS}
    for builder in FRAGMENT_BUILDERS.values():
        words.update(f"--{name.replace('_', '-')}" for name in builder.__kwdefaults__)
    words.update(
        {
            "--server",
            "--database",
            "--catalog",
            "--profile",
            "--format",
            "--output-file",
            "--title",
            "--file",
            "--level",
            "--command",
        }
    )
    return sorted(words)


def render_result(store: SessionStore, command: Command, result: CommandResult) -> None:
    """Print a command result the way its command calls for."""
    if isinstance(command, AvailableCommands):
        out.formats_table(result.data)
    elif isinstance(command, AvailableServers):
        out.servers_table(result.data)
    elif isinstance(command, Help):
        out.commands_table(result.data)
    elif isinstance(command, System):
        out.header("System Information")
        out.kv(result.data)
    elif isinstance(command, (ConfigFile, Sweep)):
        out.success(result.message)
        out.options_table(store.current_options(), store.current_output())
    else:
        out.success(result.message)


def _choose_server(store: SessionStore, command: Connect) -> Connect | None:
    """Ask for a server when `connect` names none and the config has no default."""
    if command.server or "connect.server" in store.session.config:
        return command
    server = out.select_one("Select a server", store.dispatcher.servers.names())
    if server is None:
        return None
    return replace(command, server=server)


def run_script(store: SessionStore, script: Path) -> int:
    """
    Run shell commands from a file, stopping at the first failure.

    Returns:
        The process exit code: 0 when every command succeeded, 1 otherwise.
    """
    try:
        lines = script.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        out.error(f"Cannot read script {script}: {exc}")
        return 1

    for lineno, line in enumerate(lines, start=1):
        try:
            command = parse_line(line)
            if command is None:
                continue
            result = store.apply_command(command)
        except DbdocError as exc:
            out.error(f"{script}:{lineno}: {exc}")
            store.close()
            return 1
        render_result(store, command, result)
        if store.state is SessionState.ENDED:
            return 0

    store.apply_command(Exit())
    return 0


def _prompt_message(store: SessionStore) -> FormattedText:
    handle = store.current_connection()
    if handle is None:
        state = ("class:state", " (disconnected)")
    else:
        state = ("class:connected", f" ({handle.server})")
    return FormattedText([("class:app", "dbdoc"), state, ("class:arrow", " › ")])


def interactive(store: SessionStore) -> None:
    """Read, dispatch and render commands until `exit` or end of input."""
    session: PromptSession = PromptSession(
        history=InMemoryHistory(),
        completer=WordCompleter(completion_words(), ignore_case=True, WORD=True),
        style=SHELL_PROMPT_STYLE,
    )
    out.info("Type 'help' for the list of commands, 'exit' to leave.")

    while store.state is not SessionState.ENDED:
        try:
            line = session.prompt(_prompt_message(store))
        except KeyboardInterrupt:
            continue
        except EOFError:
            store.apply_command(Exit())
            break

        try:
            command = parse_line(line)
            if command is None:
                continue
            if isinstance(command, Connect):
                command = _choose_server(store, command)
                if command is None:
                    out.warn("No server selected.")
                    continue
            result = store.apply_command(command)
        except DbdocError as exc:
            out.error(str(exc))
            continue
        render_result(store, command, result)


def shell(ctx: typer.Context, script: Path | None = ScriptOpt):
    """Start an interactive session (or run a script of session commands)."""
    appctx: AppContext = ctx.obj
    store = build_store(appctx.config_file)

    if script is not None:
        code = run_script(store, script)
        if code:
            die("Script stopped at the first failed command.", code=code)
        raise typer.Exit(0)

    interactive(store)
