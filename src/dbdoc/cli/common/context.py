"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dbdoc.cli.common.exits import exit_from_exc
from dbdoc.core.commands import ConfigFile
from dbdoc.core.dispatcher import CommandDispatcher
from dbdoc.core.errors import DbdocError
from dbdoc.core.session import SessionStore


@dataclass
class AppContext:
    """Options shared by all dbdoc commands."""

    config_file: Path | None
    log_level: str


def build_store(
    config_file: Path | None, dispatcher: CommandDispatcher | None = None
) -> SessionStore:
    """Build a session store, loading the config file first when one is given.

    Args:
        config_file: Optional TOML config file providing option defaults.
        dispatcher: Dispatcher to use; the default servers and formats otherwise.

    Returns:
        SessionStore: A fresh, disconnected session.
    """
    store = SessionStore(dispatcher or CommandDispatcher())
    if config_file is not None:
        try:
            store.apply_command(ConfigFile(path=config_file))
        except DbdocError as exc:
            exit_from_exc(exc)
    return store
