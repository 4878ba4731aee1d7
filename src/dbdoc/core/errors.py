"""Error taxonomy for dbdoc.

Every failure raised by the core derives from DbdocError. A failing command
never changes the session, so each error carries enough context (the
command name and, where relevant, the offending option) for the operator to
correct and reissue the command.
"""

from __future__ import annotations


class DbdocError(RuntimeError):
    """Base class for all dbdoc errors."""

    def __init__(
        self,
        message: str,
        *,
        command: str | None = None,
        option: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.command = command
        self.option = option

    def with_command(self, command: str) -> DbdocError:
        """Attach the command name if it is not known yet."""
        if self.command is None:
            self.command = command
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.option:
            parts.append(f"(option: {self.option})")
        if self.command:
            parts.insert(0, f"[{self.command}]")
        return " ".join(parts)


class PreconditionError(DbdocError):
    """Raised when a command is not valid in the current session state."""


class OptionValidationError(DbdocError, ValueError):
    """Raised when a filter, grep, limit or load value is malformed."""


class UnknownCommandError(DbdocError):
    """Raised when a shell command keyword is not recognized."""


class UnsupportedFormatError(DbdocError):
    """Raised when an output format token has no registered formatter."""


class CrawlError(DbdocError):
    """Raised when the crawler fails; the original exception is chained."""


class SinkWriteError(DbdocError):
    """Raised when the output destination cannot be opened or written."""


class ConnectionFailedError(DbdocError):
    """Raised when a server plugin cannot open or close a connection."""


class ConfigError(DbdocError):
    """Raised when a config file cannot be read or parsed."""
