"""CLI application for database schema documentation."""

from pathlib import Path

import typer

from dbdoc.cli.commands.run import run
from dbdoc.cli.commands.shell import shell
from dbdoc.cli.common.context import AppContext
from dbdoc.cli.common.exits import exit_from_exc
from dbdoc.cli.common.logsetup import setup_logging
from dbdoc.cli.common.options import ConfigFileOpt, LogLevelOpt
from dbdoc.core.config import expand_path
from dbdoc.core.errors import DbdocError

app = typer.Typer(
    help="dbdoc - document database schemas as text, JSON, diagrams and lint reports",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    log_level: str = LogLevelOpt,
    config: Path | None = ConfigFileOpt,
):
    """Set up logging and shared options."""
    try:
        setup_logging(log_level)
    except DbdocError as exc:
        exit_from_exc(exc)
    ctx.obj = AppContext(
        config_file=expand_path(config) if config else None,
        log_level=log_level.upper(),
    )


app.command("run", help="Connect, crawl and write one report.")(run)
app.command("shell", help="Start an interactive session.")(shell)


if __name__ == "__main__":
    app()
