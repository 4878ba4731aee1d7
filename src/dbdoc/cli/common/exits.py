"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer

from dbdoc.cli.common.output import out
from dbdoc.core.errors import (
    DbdocError,
    OptionValidationError,
    UnknownCommandError,
    UnsupportedFormatError,
)

# Invalid input exits 2, like click's usage errors; everything else exits 1
USAGE_ERRORS = (OptionValidationError, UnsupportedFormatError, UnknownCommandError)


def exit_code_for(exc: DbdocError) -> int:
    """Return the process exit code for a dbdoc error."""
    return 2 if isinstance(exc, USAGE_ERRORS) else 1


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str | None = None, code: int | None = None) -> NoReturn:
    """
    Print an error message and exit, chaining the original exception.

    The exit code defaults to `exit_code_for(exc)` for dbdoc errors and 1
    otherwise.
    """
    if code is None:
        code = exit_code_for(exc) if isinstance(exc, DbdocError) else 1
    out.error(message or str(exc))
    raise typer.Exit(code) from exc
