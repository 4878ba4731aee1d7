"""Interactive session state.

A Session is a frozen value: every command computes a new Session from the
current one. The SessionStore owns the current value and swaps in the
result only when the command succeeds, so a failing command leaves the
session exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from dbdoc.core.commands import Command, CommandResult, SessionState
from dbdoc.core.options import (
    DEFAULT_OPTIONS,
    OptionsFragment,
    SchemaCrawlerOptions,
    compose,
)
from dbdoc.core.servers import ConnectionHandle
from dbdoc.core.sinks import OutputOptions

if TYPE_CHECKING:
    from dbdoc.core.dispatcher import CommandDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """
    Snapshot of an interactive session.

    `options` is always `compose(baseline, *fragments)`.

    Attributes:
        connection: Open connection, or None while disconnected.
        baseline: Options from the config file (defaults without one).
        fragments: Fragments issued since the last sweep, in order.
        options: The composed options handed to the crawler.
        output: Output options used by the next execute.
        config: Flattened auxiliary key/value config.
        ended: True after exit.
    """

    connection: ConnectionHandle | None = None
    baseline: SchemaCrawlerOptions = DEFAULT_OPTIONS
    fragments: tuple[OptionsFragment, ...] = ()
    options: SchemaCrawlerOptions = DEFAULT_OPTIONS
    output: OutputOptions = field(default_factory=OutputOptions)
    config: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    ended: bool = False

    @property
    def state(self) -> SessionState:
        if self.ended:
            return SessionState.ENDED
        if self.connection is None:
            return SessionState.DISCONNECTED
        return SessionState.CONNECTED

    def with_fragment(self, fragment: OptionsFragment) -> Session:
        return replace(
            self,
            fragments=self.fragments + (fragment,),
            options=compose(self.options, fragment),
        )

    def with_baseline(
        self, baseline: SchemaCrawlerOptions, config: Mapping[str, Any]
    ) -> Session:
        """Replace the config and baseline, re-applying the issued fragments."""
        return replace(
            self,
            baseline=baseline,
            config=MappingProxyType(dict(config)),
            options=compose(baseline, *self.fragments),
        )

    def swept(self) -> Session:
        return replace(self, fragments=(), options=self.baseline)


class SessionStore:
    """Owns the current Session and applies commands to it atomically."""

    def __init__(
        self,
        dispatcher: CommandDispatcher | None = None,
        session: Session | None = None,
    ) -> None:
        if dispatcher is None:
            from dbdoc.core.dispatcher import CommandDispatcher

            dispatcher = CommandDispatcher()
        self.dispatcher = dispatcher
        self._session = session or Session()

    @property
    def session(self) -> Session:
        return self._session

    def apply_command(self, command: Command) -> CommandResult:
        """
        Dispatch a command and commit the resulting session.

        Raises:
            DbdocError: If the command fails; the session is unchanged.
        """
        session, result = self.dispatcher.dispatch(self._session, command)
        self._session = session
        return result

    def current_options(self) -> SchemaCrawlerOptions:
        return self._session.options

    def current_connection(self) -> ConnectionHandle | None:
        return self._session.connection

    def current_output(self) -> OutputOptions:
        return self._session.output

    @property
    def state(self) -> SessionState:
        return self._session.state

    def close(self) -> None:
        """Release the connection without ending the session bookkeeping.

        Used on error paths, so a failing close is logged and the handle is
        dropped anyway.
        """
        handle = self._session.connection
        if handle is None:
            return
        self._session = replace(self._session, connection=None)
        try:
            handle.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Closing %s failed: %s", handle.describe(), exc)
